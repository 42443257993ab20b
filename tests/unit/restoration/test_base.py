"""Tests for the restoration client base class."""

import pytest
from fakes import FakeRestorationClient, flat_page
from PIL import Image

from comicrestore.core.models import FatalFailure, RestoreParams, Success, TransientFailure
from comicrestore.exceptions import ExternalServiceError, RateLimitError, ValidationError
from comicrestore.restoration.base import classify_status, validate_inputs

PARAMS = RestoreParams(scale_factor=2, matte_compensation=0, face_restore=False, ocr=False)


class TestClassifyStatus:
    """Tests for HTTP status classification."""

    @pytest.mark.parametrize("status", [408, 425, 429, 500, 502, 503, 504])
    def test_transient(self, status):
        assert classify_status(status) == "transient"

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 422])
    def test_fatal(self, status):
        assert classify_status(status) == "fatal"


class TestValidateInputs:
    """Tests for validate_inputs."""

    def test_valid(self):
        validate_inputs(flat_page((10, 10), 0), Image.new("L", (10, 10)))

    def test_oversized(self):
        with pytest.raises(ValidationError, match="pixel limit"):
            validate_inputs(flat_page((10, 10), 0), None, max_pixels=99)

    def test_mask_mismatch(self):
        """Test masks must match the image size."""
        with pytest.raises(ValidationError, match="does not match"):
            validate_inputs(flat_page((10, 10), 0), Image.new("L", (10, 11)))


class TestSubmit:
    """Tests for BaseRestorationClient.submit outcome mapping."""

    @pytest.mark.asyncio
    async def test_success(self):
        outcome = await FakeRestorationClient().submit(flat_page((4, 4), 0), None, PARAMS)

        assert isinstance(outcome, Success)
        assert outcome.buffer.size == (8, 8)

    @pytest.mark.asyncio
    async def test_validation_failure(self):
        """Test invalid input is fatal and makes no call."""
        client = FakeRestorationClient(max_pixels=10)

        outcome = await client.submit(flat_page((4, 4), 0), None, PARAMS)

        assert isinstance(outcome, FatalFailure)
        assert outcome.kind == "validation"
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_rate_limit_is_transient(self):
        """Test retry-after seconds become milliseconds."""
        client = FakeRestorationClient(script=[RateLimitError(retry_after=1.5)])

        outcome = await client.submit(flat_page((4, 4), 0), None, PARAMS)

        assert isinstance(outcome, TransientFailure)
        assert outcome.retry_after_ms == 1500

    @pytest.mark.asyncio
    async def test_fatal_service_error(self):
        client = FakeRestorationClient(
            script=[ExternalServiceError("Unauthenticated", transient=False, status_code=401)]
        )

        outcome = await client.submit(flat_page((4, 4), 0), None, PARAMS)

        assert outcome == FatalFailure(reason="Unauthenticated", kind="external")

    @pytest.mark.asyncio
    async def test_default_validate(self):
        assert await FakeRestorationClient().validate() is True
