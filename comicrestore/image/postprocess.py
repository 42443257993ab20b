"""Deterministic local transforms applied after restoration."""

import math
from collections.abc import Callable
from dataclasses import dataclass, field

from PIL import Image

from comicrestore.core.models import PixelBuffer, RestoreOptions
from comicrestore.utils.logging import get_logger

log = get_logger(__name__)

# Delegates for optional enhancement steps. Both run synchronously.
FaceEnhancer = Callable[[PixelBuffer], PixelBuffer]
TextExtractor = Callable[[PixelBuffer], str]


@dataclass
class PostProcessResult:
    """Post-processed buffer plus by-products."""

    buffer: PixelBuffer
    extracted_text: str | None = None
    steps: list[str] = field(default_factory=list)


def matte_curve(lift: float) -> list[int]:
    """Build a 256-entry tone curve lifting midtones for matte paper.

    The lift follows a bell curve centred on mid-grey so deep blacks and
    paper whites stay put. A lift of 0 is the identity.
    """
    curve = []
    for value in range(256):
        normalized = value / 255
        weight = math.exp(-(((normalized - 0.5) * 3) ** 2))
        adjusted = round(value + weight * lift)
        curve.append(max(0, min(255, adjusted)))
    return curve


def apply_matte_compensation(buffer: PixelBuffer, lift: float) -> PixelBuffer:
    """Apply the matte tone curve to every channel."""
    if lift <= 0:
        return buffer
    curve = matte_curve(lift)
    bands = len(buffer.getbands())
    return buffer.point(curve * bands)


def target_size(source_size: tuple[int, int], scale_factor: int) -> tuple[int, int]:
    """Expected restored size for a source image at a given scale factor."""
    return source_size[0] * scale_factor, source_size[1] * scale_factor


def normalize_scale(
    buffer: PixelBuffer,
    source_size: tuple[int, int],
    scale_factor: int,
) -> PixelBuffer:
    """Resize a restored buffer to exactly ``source_size * scale_factor``.

    Hosted models occasionally return off-by-a-few or unscaled output; any
    size other than the exact target is resampled.
    """
    width, height = target_size(source_size, scale_factor)
    current_w, current_h = buffer.size
    if (current_w, current_h) == (width, height):
        return buffer
    log.debug(
        "Normalizing restored scale",
        restored=f"{current_w}x{current_h}",
        target=f"{width}x{height}",
    )
    return buffer.resize((width, height), Image.Resampling.LANCZOS)


class PostProcessor:
    """Scale normalization, matte compensation and optional delegates."""

    def __init__(
        self,
        face_enhancer: FaceEnhancer | None = None,
        text_extractor: TextExtractor | None = None,
    ) -> None:
        self.face_enhancer = face_enhancer
        self.text_extractor = text_extractor

    def process(
        self,
        restored: PixelBuffer,
        source_size: tuple[int, int],
        options: RestoreOptions,
    ) -> PostProcessResult:
        """Run all post-processing steps in order."""
        steps: list[str] = []
        buffer = restored if restored.mode == "RGB" else restored.convert("RGB")

        buffer = normalize_scale(buffer, source_size, options.scale_factor)
        steps.append("scale")

        if options.face_restore and self.face_enhancer is not None:
            buffer = self.face_enhancer(buffer)
            if buffer.size != target_size(source_size, options.scale_factor):
                buffer = normalize_scale(buffer, source_size, options.scale_factor)
            steps.append("face")

        if options.matte_compensation > 0:
            buffer = apply_matte_compensation(buffer, options.matte_compensation)
            steps.append("matte")

        text = None
        if options.ocr and self.text_extractor is not None:
            text = self._extract_text(buffer)
            steps.append("ocr")

        return PostProcessResult(buffer=buffer, extracted_text=text, steps=steps)

    def _extract_text(self, buffer: PixelBuffer) -> str | None:
        # Text extraction is a by-product; its failure never rejects the page
        try:
            return self.text_extractor(buffer) or ""
        except Exception as e:
            log.warning("Text extraction failed", error=str(e))
            return None
