"""Restoration client for the Replicate predictions API."""

import asyncio
import base64
from typing import Any

import httpx

from comicrestore.config.constants import (
    DEFAULT_MAX_PIXELS,
    DEFAULT_MAX_POLLS,
    DEFAULT_MODEL_VERSION,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_SERVICE_TIMEOUT,
    REPLICATE_API_URL,
)
from comicrestore.core.models import PixelBuffer, RestoreParams
from comicrestore.exceptions import (
    ConfigurationError,
    ExternalServiceError,
    RateLimitError,
    SourceReadError,
)
from comicrestore.image.source import decode_image, encode_png
from comicrestore.restoration.base import BaseRestorationClient, classify_status
from comicrestore.utils.logging import get_logger

log = get_logger(__name__)

TERMINAL_STATUSES = ("succeeded", "failed", "canceled")


def to_data_uri(data: bytes, mime: str = "image/png") -> str:
    """Encode bytes as a base64 data URI."""
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def _parse_retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("retry-after")
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


class ReplicateClient(BaseRestorationClient):
    """Upscale and repair pages with a hosted Real-ESRGAN style model.

    Creates a prediction, polls until it reaches a terminal status, then
    downloads the output image. Each ``submit`` is a single logical call;
    retrying is left to the job runner.
    """

    name = "replicate"

    def __init__(
        self,
        api_token: str | None,
        model_version: str = DEFAULT_MODEL_VERSION,
        base_url: str = REPLICATE_API_URL,
        timeout: int = DEFAULT_SERVICE_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_polls: int = DEFAULT_MAX_POLLS,
        max_pixels: int = DEFAULT_MAX_PIXELS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            api_token: Replicate API token
            model_version: Model version hash to run
            base_url: API base URL
            timeout: Per-request timeout in seconds
            poll_interval: Seconds between status polls
            max_polls: Polls before the prediction is treated as timed out
            max_pixels: Largest accepted input area
            transport: Optional httpx transport (used in tests)

        Raises:
            ConfigurationError: If no token is given
        """
        super().__init__(max_pixels=max_pixels)
        if not api_token:
            raise ConfigurationError("Replicate API token is required")
        self.model_version = model_version
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self.client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {api_token}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Any, transport: httpx.AsyncBaseTransport | None = None) -> "ReplicateClient":
        """Build a client from ``RestoreSettings``."""
        service = settings.service
        return cls(
            api_token=settings.require_token(),
            model_version=service.model_version,
            base_url=service.base_url,
            timeout=service.timeout,
            poll_interval=service.poll_interval,
            max_polls=service.max_polls,
            max_pixels=service.max_pixels,
            transport=transport,
        )

    def build_input(
        self,
        image: PixelBuffer,
        mask: PixelBuffer | None,
        params: RestoreParams,
    ) -> dict[str, Any]:
        """Model input payload."""
        payload: dict[str, Any] = {
            "image": to_data_uri(encode_png(image)),
            "scale": params.scale_factor,
            "face_enhance": params.face_restore,
        }
        if params.strength < 1:
            payload["strength"] = params.strength
        if mask is not None:
            payload["mask"] = to_data_uri(encode_png(mask))
        return payload

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request, mapping transport and HTTP errors to service errors."""
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise ExternalServiceError(f"Request timed out: {e}", transient=True) from e
        except httpx.TransportError as e:
            raise ExternalServiceError(f"Connection error: {e}", transient=True) from e

        if response.status_code == 429:
            raise RateLimitError(retry_after=_parse_retry_after(response))
        if response.is_error:
            detail = response.text[:200]
            raise ExternalServiceError(
                f"Replicate returned {response.status_code}: {detail}",
                transient=classify_status(response.status_code) == "transient",
                status_code=response.status_code,
                retry_after=_parse_retry_after(response),
            )
        return response

    async def _create_prediction(self, payload: dict[str, Any]) -> dict[str, Any]:
        response = await self._request(
            "POST",
            "/predictions",
            json={"version": self.model_version, "input": payload},
        )
        prediction = response.json()
        log.debug("Prediction created", prediction_id=prediction.get("id"), status=prediction.get("status"))
        return prediction

    async def _wait_for_prediction(self, prediction: dict[str, Any]) -> dict[str, Any]:
        """Poll until the prediction reaches a terminal status."""
        polls = 0
        while prediction.get("status") not in TERMINAL_STATUSES:
            if polls >= self.max_polls:
                raise ExternalServiceError(
                    f"Prediction {prediction.get('id')} timed out after {polls} polls",
                    transient=True,
                )
            await asyncio.sleep(self.poll_interval)
            response = await self._request("GET", f"/predictions/{prediction['id']}")
            prediction = response.json()
            polls += 1
            if polls % 10 == 0:
                log.debug("Prediction still running", prediction_id=prediction.get("id"), polls=polls)
        return prediction

    async def _download_output(self, output: Any) -> PixelBuffer:
        """Fetch the output image from a URL or data URI."""
        if isinstance(output, list):
            output = output[-1] if output else None
        if not isinstance(output, str) or not output:
            raise ExternalServiceError("Prediction returned no output image", transient=False)

        if output.startswith("data:"):
            _, _, encoded = output.partition(",")
            data = base64.b64decode(encoded)
        else:
            # Output URLs are signed; no auth header
            try:
                response = await self.client.get(output, headers={"Authorization": ""})
            except httpx.TransportError as e:
                raise ExternalServiceError(f"Output download failed: {e}", transient=True) from e
            if response.is_error:
                raise ExternalServiceError(
                    f"Output download returned {response.status_code}",
                    transient=classify_status(response.status_code) == "transient",
                    status_code=response.status_code,
                )
            data = response.content

        try:
            return decode_image(data, name="prediction output")
        except SourceReadError as e:
            raise ExternalServiceError(f"Output is not a valid image: {e}", transient=False) from e

    async def _restore(
        self,
        image: PixelBuffer,
        mask: PixelBuffer | None,
        params: RestoreParams,
    ) -> PixelBuffer:
        prediction = await self._create_prediction(self.build_input(image, mask, params))
        prediction = await self._wait_for_prediction(prediction)

        status = prediction.get("status")
        if status == "failed":
            raise ExternalServiceError(
                f"Prediction failed: {prediction.get('error') or 'unknown error'}",
                transient=False,
            )
        if status == "canceled":
            raise ExternalServiceError("Prediction was canceled", transient=True)

        return await self._download_output(prediction.get("output"))

    async def validate(self) -> bool:
        """Check that the token is accepted by the API."""
        try:
            await self._request("GET", "/account")
        except ExternalServiceError as e:
            log.warning("Replicate token validation failed", error=str(e))
            return False
        return True

    async def aclose(self) -> None:
        await self.client.aclose()
