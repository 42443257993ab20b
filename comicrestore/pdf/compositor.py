"""Page geometry and document assembly."""

import math
from dataclasses import dataclass

from PIL import Image

from comicrestore.config.constants import POINTS_PER_INCH
from comicrestore.core.models import JobResult, PixelBuffer, RestoreOptions
from comicrestore.exceptions import ConfigurationError, EmptyDocumentError
from comicrestore.utils.logging import get_logger

log = get_logger(__name__)

PAPER_WHITE = (255, 255, 255)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


@dataclass(frozen=True)
class PageGeometry:
    """Print trim size, bleed and resolution."""

    trim_width_in: float
    trim_height_in: float
    bleed_in: float
    dpi: int

    def __post_init__(self) -> None:
        if self.trim_width_in <= 0 or self.trim_height_in <= 0:
            raise ConfigurationError(
                f"Trim size must be positive, got {self.trim_width_in}x{self.trim_height_in}in"
            )
        if self.bleed_in < 0:
            raise ConfigurationError(f"Bleed cannot be negative, got {self.bleed_in}in")
        if self.dpi <= 0:
            raise ConfigurationError(f"DPI must be positive, got {self.dpi}")

    @classmethod
    def from_options(cls, options: RestoreOptions) -> "PageGeometry":
        return cls(
            trim_width_in=options.page_width_in,
            trim_height_in=options.page_height_in,
            bleed_in=options.bleed_in,
            dpi=options.dpi,
        )

    @property
    def full_width_in(self) -> float:
        return self.trim_width_in + 2 * self.bleed_in

    @property
    def full_height_in(self) -> float:
        return self.trim_height_in + 2 * self.bleed_in

    def pixel_size(self) -> tuple[int, int]:
        """Canvas size in pixels including bleed, rounded half up to whole pixels."""
        width = _round_half_up(self.full_width_in * self.dpi)
        height = _round_half_up(self.full_height_in * self.dpi)
        return width, height

    def point_size(self) -> tuple[float, float]:
        """Page size in PDF points including bleed."""
        return self.full_width_in * POINTS_PER_INCH, self.full_height_in * POINTS_PER_INCH

    def trim_box(self) -> tuple[float, float, float, float]:
        """Trim rectangle in points (x0, y0, x1, y1), inset from the page by the bleed."""
        width, height = self.point_size()
        inset = self.bleed_in * POINTS_PER_INCH
        return inset, inset, width - inset, height - inset


@dataclass(frozen=True, eq=False)
class Page:
    """One print-ready page."""

    pixel_width: int
    pixel_height: int
    dpi: int
    content: PixelBuffer
    job_id: str | None = None
    name: str | None = None


@dataclass(frozen=True, eq=False)
class Document:
    """Ordered, immutable sequence of pages."""

    pages: tuple[Page, ...]
    geometry: PageGeometry
    title: str | None = None

    def __len__(self) -> int:
        return len(self.pages)


def fit_within(size: tuple[int, int], bounds: tuple[int, int]) -> tuple[int, int]:
    """Largest size with the same aspect ratio that fits inside ``bounds``."""
    width, height = size
    max_w, max_h = bounds
    scale = min(max_w / width, max_h / height)
    return (
        max(1, min(max_w, round(width * scale))),
        max(1, min(max_h, round(height * scale))),
    )


def compose_page(buffer: PixelBuffer, geometry: PageGeometry) -> PixelBuffer:
    """Scale a restored image to fit the page canvas and centre it on white.

    Aspect ratio is preserved; leftover space is padded, never stretched.
    """
    canvas_size = geometry.pixel_size()
    if buffer.size == canvas_size:
        return buffer if buffer.mode == "RGB" else buffer.convert("RGB")

    fitted_size = fit_within(buffer.size, canvas_size)
    fitted = buffer.convert("RGB")
    if fitted.size != fitted_size:
        fitted = fitted.resize(fitted_size, Image.Resampling.LANCZOS)

    canvas = Image.new("RGB", canvas_size, PAPER_WHITE)
    offset = (
        (canvas_size[0] - fitted_size[0]) // 2,
        (canvas_size[1] - fitted_size[1]) // 2,
    )
    canvas.paste(fitted, offset)
    return canvas


def build_page(result: JobResult, geometry: PageGeometry) -> Page:
    """Turn a completed job result into a page."""
    if result.final_buffer is None:
        raise ValueError(f"Job {result.job_id} has no restored image")
    width, height = geometry.pixel_size()
    return Page(
        pixel_width=width,
        pixel_height=height,
        dpi=geometry.dpi,
        content=compose_page(result.final_buffer, geometry),
        job_id=result.job_id,
        name=result.name,
    )


def assemble(
    results: list[JobResult],
    geometry: PageGeometry,
    combine: bool = False,
    title: str | None = None,
) -> list[Document]:
    """Assemble completed results into documents, in submission order.

    With ``combine`` all pages form one document; otherwise each page is
    its own single-page document.

    Raises:
        EmptyDocumentError: If no result is completed
    """
    accepted = sorted((r for r in results if r.is_completed), key=lambda r: r.index)
    if not accepted:
        raise EmptyDocumentError(total_results=len(results))

    pages = [build_page(result, geometry) for result in accepted]
    width, height = geometry.pixel_size()
    log.info(
        "Pages composed",
        pages=len(pages),
        skipped=len(results) - len(pages),
        size=f"{width}x{height}",
        dpi=geometry.dpi,
    )

    if combine:
        return [Document(pages=tuple(pages), geometry=geometry, title=title)]
    return [
        Document(pages=(page,), geometry=geometry, title=title or page.name)
        for page in pages
    ]
