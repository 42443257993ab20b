"""Image source adapter: input discovery, decoding and normalization."""

import io
from dataclasses import dataclass
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError

from comicrestore.config.constants import IMAGE_EXTENSIONS, MASK_PATTERNS, MASK_SUBDIR
from comicrestore.core.models import ImageSource, PixelBuffer
from comicrestore.exceptions import SourceReadError, ValidationError
from comicrestore.utils.logging import get_logger

log = get_logger(__name__)

# Mask pixels at or above this level mark regions eligible for inpainting
MASK_THRESHOLD = 128


@dataclass(frozen=True, eq=False)
class SourcePair:
    """Normalized page image and optional same-size binary mask."""

    image: PixelBuffer
    mask: PixelBuffer | None = None

    @property
    def size(self) -> tuple[int, int]:
        return self.image.size


def normalize_image(img: Image.Image) -> PixelBuffer:
    """Normalize any decoded image to 8-bit sRGB.

    Handles EXIF orientation, 16-bit and float greyscale, palettes, CMYK and
    alpha (composited over white paper).
    """
    img = ImageOps.exif_transpose(img)

    if img.mode.startswith("I;16") or img.mode == "I":
        # 16-bit greyscale scans: scale down to 8 bits
        img = img.convert("I").point(lambda v: v * (1 / 256)).convert("L")
    elif img.mode == "F":
        img = img.convert("L")

    if img.mode == "P":
        img = img.convert("RGBA" if "transparency" in img.info else "RGB")

    if img.mode in ("RGBA", "LA", "PA"):
        rgba = img.convert("RGBA")
        background = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
        img = Image.alpha_composite(background, rgba)

    if img.mode != "RGB":
        img = img.convert("RGB")
    return img


def normalize_mask(img: Image.Image) -> PixelBuffer:
    """Reduce a mask to single-channel binary (255 = inpaint, 0 = preserve)."""
    grey = normalize_image(img).convert("L")
    return grey.point(lambda v: 255 if v >= MASK_THRESHOLD else 0)


def decode_image(data: bytes, name: str = "<bytes>") -> PixelBuffer:
    """Decode encoded image bytes into a normalized buffer."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            return normalize_image(img)
    except Image.DecompressionBombError as e:
        raise ValidationError(f"{name}: image too large to decode ({e})") from e
    except (UnidentifiedImageError, OSError) as e:
        raise SourceReadError(name, "unsupported or corrupt image data", cause=e) from e


def encode_png(buffer: PixelBuffer) -> bytes:
    """Encode a buffer as PNG bytes."""
    output = io.BytesIO()
    buffer.save(output, format="PNG")
    return output.getvalue()


def load_image(source: ImageSource) -> PixelBuffer:
    """Load a page image from a path or normalize an in-memory buffer."""
    if isinstance(source, Image.Image):
        return normalize_image(source)

    path = Path(source)
    if not path.is_file():
        raise SourceReadError(path, "file not found")
    try:
        with Image.open(path) as img:
            img.load()
            return normalize_image(img)
    except Image.DecompressionBombError as e:
        raise ValidationError(f"{path.name}: image too large to decode ({e})") from e
    except (UnidentifiedImageError, OSError) as e:
        raise SourceReadError(path, "unsupported or corrupt image", cause=e) from e


def load_mask(source: ImageSource) -> PixelBuffer:
    """Load a damage mask from a path or buffer."""
    if isinstance(source, Image.Image):
        return normalize_mask(source)

    path = Path(source)
    if not path.is_file():
        raise SourceReadError(path, "mask file not found")
    try:
        with Image.open(path) as img:
            img.load()
            return normalize_mask(img)
    except Image.DecompressionBombError as e:
        raise ValidationError(f"{path.name}: mask too large to decode ({e})") from e
    except (UnidentifiedImageError, OSError) as e:
        raise SourceReadError(path, "unsupported or corrupt mask", cause=e) from e


def load_pair(image: ImageSource, mask: ImageSource | None = None) -> SourcePair:
    """Load the page image and optional mask.

    Dimension agreement is not checked here; the restoration client rejects
    mismatched masks before any network call.
    """
    pair = SourcePair(
        image=load_image(image),
        mask=load_mask(mask) if mask is not None else None,
    )
    log.debug(
        "Source loaded",
        size=f"{pair.size[0]}x{pair.size[1]}",
        mask=pair.mask is not None,
    )
    return pair


def is_mask_file(path: Path) -> bool:
    """Check whether a filename follows one of the mask naming conventions."""
    name = path.name.lower()
    stem = path.stem.lower()
    return (
        stem.endswith("_mask")
        or stem.endswith("-mask")
        or stem.endswith(".mask")
        or name.startswith("mask_")
    )


def find_images(directory: Path, extensions: tuple[str, ...] = IMAGE_EXTENSIONS) -> list[Path]:
    """Find page images in a directory, sorted by name for page order.

    Raises:
        SourceReadError: If the directory does not exist.
    """
    if not directory.is_dir():
        raise SourceReadError(directory, "directory not found")

    files = [
        path
        for path in directory.iterdir()
        if path.is_file() and path.suffix.lower() in extensions and not is_mask_file(path)
    ]
    return sorted(files, key=lambda p: p.name)


def find_mask(image_path: Path) -> Path | None:
    """Find the mask belonging to an image, next to it or in a masks/ subdirectory."""
    candidates = [pattern.format(stem=image_path.stem) for pattern in MASK_PATTERNS]
    for directory in (image_path.parent, image_path.parent / MASK_SUBDIR):
        if not directory.is_dir():
            continue
        for candidate in candidates:
            mask_path = directory / candidate
            if mask_path.is_file():
                log.debug("Mask found", image=image_path.name, mask=str(mask_path))
                return mask_path
    return None
