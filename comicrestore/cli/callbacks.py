"""CLI callback functions."""

from pathlib import Path

import typer

from comicrestore.config.constants import IMAGE_EXTENSIONS, SUPPORTED_SCALES


def validate_input_file(value: Path) -> Path:
    """Validate input image exists and has a supported extension."""
    if not value.exists():
        raise typer.BadParameter(f"File not found: {value}")

    if not value.is_file():
        raise typer.BadParameter(f"Path is not a file: {value}")

    if value.suffix.lower() not in IMAGE_EXTENSIONS:
        raise typer.BadParameter(
            f"Unsupported image type '{value.suffix}'. Options: {', '.join(IMAGE_EXTENSIONS)}"
        )

    return value


def validate_mask_file(value: Path | None) -> Path | None:
    if value is None:
        return None
    if not value.is_file():
        raise typer.BadParameter(f"Mask not found: {value}")
    return value


def validate_output_dir(value: Path | None) -> Path | None:
    """Validate output directory path."""
    if value is None:
        return None

    if value.exists() and not value.is_dir():
        raise typer.BadParameter(f"Output path exists but is not a directory: {value}")

    return value


def validate_scale(value: int | None) -> int | None:
    """Validate upscale factor option."""
    if value is not None and value not in SUPPORTED_SCALES:
        raise typer.BadParameter(
            f"Invalid scale {value}. Options: {', '.join(str(s) for s in SUPPORTED_SCALES)}"
        )
    return value


def validate_concurrency(value: int | None) -> int | None:
    if value is not None and value < 1:
        raise typer.BadParameter("Concurrency must be at least 1")
    return value
