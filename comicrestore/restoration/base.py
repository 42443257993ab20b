"""Base classes for restoration clients."""

from abc import ABC, abstractmethod
from typing import Literal

from comicrestore.config.constants import DEFAULT_MAX_PIXELS
from comicrestore.core.models import (
    FatalFailure,
    PixelBuffer,
    RestorationOutcome,
    RestoreParams,
    Success,
    TransientFailure,
)
from comicrestore.exceptions import ExternalServiceError, ValidationError
from comicrestore.utils.logging import get_logger

log = get_logger(__name__)

# Status codes that signal a busy or briefly unavailable service
TRANSIENT_STATUS_CODES = frozenset({408, 425, 429})

StatusClass = Literal["transient", "fatal"]


def classify_status(status_code: int) -> StatusClass:
    """Classify an HTTP error status.

    Rate limits, request timeouts and every 5xx are transient. Everything
    else (auth, malformed request, unknown model) is fatal.
    """
    if status_code in TRANSIENT_STATUS_CODES or status_code >= 500:
        return "transient"
    return "fatal"


def validate_inputs(
    image: PixelBuffer,
    mask: PixelBuffer | None,
    max_pixels: int = DEFAULT_MAX_PIXELS,
) -> None:
    """Reject inputs that must never reach the service.

    Raises:
        ValidationError: Empty image, oversized image, or mask size mismatch.
    """
    width, height = image.size
    if width <= 0 or height <= 0:
        raise ValidationError("Image is empty")
    if width * height > max_pixels:
        raise ValidationError(
            f"Image {width}x{height} exceeds the {max_pixels} pixel limit"
        )
    if mask is not None and mask.size != image.size:
        raise ValidationError(
            f"Mask size {mask.size[0]}x{mask.size[1]} does not match image {width}x{height}"
        )


class BaseRestorationClient(ABC):
    """Abstract base class for restoration clients.

    Subclasses implement ``_restore`` and raise ``ExternalServiceError`` on
    failure; ``submit`` validates input and folds errors into a tagged
    ``RestorationOutcome`` so callers never handle exceptions for expected
    failures.
    """

    name: str = "base"

    def __init__(self, max_pixels: int = DEFAULT_MAX_PIXELS) -> None:
        self.max_pixels = max_pixels

    @abstractmethod
    async def _restore(
        self,
        image: PixelBuffer,
        mask: PixelBuffer | None,
        params: RestoreParams,
    ) -> PixelBuffer:
        """Perform one restoration call.

        Args:
            image: Normalized RGB page image
            mask: Optional binary mask of the same size
            params: Restoration parameters

        Returns:
            Restored buffer

        Raises:
            ExternalServiceError: On any service failure
        """
        ...

    async def submit(
        self,
        image: PixelBuffer,
        mask: PixelBuffer | None,
        params: RestoreParams,
    ) -> RestorationOutcome:
        """Submit one image for restoration."""
        try:
            validate_inputs(image, mask, self.max_pixels)
        except ValidationError as e:
            log.warning("Restoration input rejected", client=self.name, error=str(e))
            return FatalFailure(reason=str(e), kind="validation")

        try:
            buffer = await self._restore(image, mask, params)
        except ExternalServiceError as e:
            if e.transient:
                retry_after_ms = int(e.retry_after * 1000) if e.retry_after is not None else None
                log.debug(
                    "Transient restoration failure",
                    client=self.name,
                    status_code=e.status_code,
                    error=str(e),
                )
                return TransientFailure(reason=str(e), retry_after_ms=retry_after_ms)
            log.debug(
                "Fatal restoration failure",
                client=self.name,
                status_code=e.status_code,
                error=str(e),
            )
            return FatalFailure(reason=str(e), kind="external")

        return Success(buffer=buffer)

    async def aclose(self) -> None:
        """Release network resources."""
        return None

    async def validate(self) -> bool:
        """Validate the client configuration.

        Returns:
            True if the client is properly configured
        """
        return True
