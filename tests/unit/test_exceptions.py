"""Tests for exceptions module."""

from pathlib import Path

from comicrestore.exceptions import (
    ComicRestoreError,
    ConfigurationError,
    EmptyDocumentError,
    ExternalServiceError,
    QAFailure,
    RateLimitError,
    SourceReadError,
    StorageError,
    ValidationError,
)


class TestExceptions:
    """Tests for custom exceptions."""

    def test_hierarchy(self):
        """Test that all errors derive from the base error."""
        for error_cls in (
            ConfigurationError,
            ValidationError,
            ExternalServiceError,
            RateLimitError,
            SourceReadError,
            StorageError,
            QAFailure,
            EmptyDocumentError,
        ):
            assert issubclass(error_cls, ComicRestoreError)

    def test_external_service_error(self):
        """Test external service error attributes."""
        error = ExternalServiceError("Bad gateway", transient=True, status_code=502)

        assert str(error) == "Bad gateway"
        assert error.transient is True
        assert error.status_code == 502
        assert error.retry_after is None

    def test_rate_limit_error(self):
        """Test rate limit error is a transient 429."""
        error = RateLimitError(retry_after=30)

        assert isinstance(error, ExternalServiceError)
        assert error.transient is True
        assert error.status_code == 429
        assert error.retry_after == 30
        assert "30" in str(error)

    def test_rate_limit_error_without_retry_after(self):
        error = RateLimitError()

        assert str(error) == "Rate limited"
        assert error.retry_after is None

    def test_source_read_error(self):
        """Test source read error keeps the path and cause."""
        cause = OSError("truncated")
        error = SourceReadError("scans/page01.jpg", "corrupt image", cause=cause)

        assert error.path == Path("scans/page01.jpg")
        assert error.cause is cause
        assert "page01.jpg" in str(error)
        assert "corrupt image" in str(error)

    def test_qa_failure(self):
        """Test QA failure joins its reasons."""
        error = QAFailure(["sharpness low", "color drift"])

        assert error.reasons == ["sharpness low", "color drift"]
        assert str(error) == "QA failed: sharpness low; color drift"

    def test_qa_failure_without_reasons(self):
        assert "unknown reason" in str(QAFailure([]))

    def test_empty_document_error(self):
        """Test empty document error reports submitted count."""
        error = EmptyDocumentError(total_results=3)

        assert error.total_results == 3
        assert "3 results" in str(error)
