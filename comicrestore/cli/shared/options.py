"""Shared restoration options for the restore and batch commands."""

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from comicrestore.config.settings import RestoreSettings


@dataclass
class RestoreCLIOptions:
    """CLI parameters common to single-page and batch restoration.

    ``None`` means "not given on the command line" so the configured
    default applies.
    """

    # Output settings
    output_dir: Path | None = None
    config_path: Path | None = None

    # Page geometry
    width: float | None = None
    height: float | None = None
    bleed: float | None = None
    dpi: int | None = None

    # Restoration quality
    scale: int | None = None
    matte_compensation: float | None = None
    face_restore: bool | None = None
    ocr: bool | None = None

    # Assembly
    combine: bool | None = None

    # Runtime settings
    verbose: bool = False

    def overrides(self) -> dict[str, Any]:
        """Values to layer over configured defaults when building job options."""
        return {
            "page_width_in": self.width,
            "page_height_in": self.height,
            "bleed_in": self.bleed,
            "dpi": self.dpi,
            "scale_factor": self.scale,
            "matte_compensation": self.matte_compensation,
            "face_restore": self.face_restore,
            "ocr": self.ocr,
        }

    def resolve_combine(self, settings: "RestoreSettings") -> bool:
        return settings.batch.combine if self.combine is None else self.combine

    def resolve_output_dir(self, settings: "RestoreSettings", base_path: Path | None = None) -> Path:
        """Resolve output directory with fallback to settings default."""
        if self.output_dir:
            return self.output_dir
        return settings.get_output_dir(base_path)
