"""Quality assurance metrics and verdict policy for restored pages."""

import numpy as np
from PIL import Image

from comicrestore.config.settings import QAConfig
from comicrestore.core.models import PixelBuffer, QAReport, Verdict
from comicrestore.utils.logging import get_logger

log = get_logger(__name__)

# ITU-R BT.601 luma weights
_LUMA = np.array([0.299, 0.587, 0.114], dtype=np.float64)

# Horizontal, vertical and both diagonals
_LINE_DIRECTIONS = ((0, 1), (1, 0), (1, 1), (1, -1))

# Largest speck (in source pixels from its centre) treated as damage
SPECK_RADIUS = 2


def to_luminance(buffer: PixelBuffer) -> np.ndarray:
    """Luminance plane of an RGB or greyscale buffer as float64 (0-255)."""
    pixels = np.asarray(buffer.convert("RGB"), dtype=np.float64)
    return pixels @ _LUMA


def laplacian_variance(luma: np.ndarray) -> float:
    """Variance of the 4-neighbour Laplacian, a standard edge-energy estimate."""
    if luma.shape[0] < 3 or luma.shape[1] < 3:
        return 0.0
    lap = (
        luma[:-2, 1:-1]
        + luma[2:, 1:-1]
        + luma[1:-1, :-2]
        + luma[1:-1, 2:]
        - 4 * luma[1:-1, 1:-1]
    )
    return float(lap.var())


def clipping_fractions(luma: np.ndarray, low: int, high: int) -> tuple[float, float]:
    """Share of pixels crushed to black (< low) and blown to white (> high)."""
    total = luma.size
    if total == 0:
        return 0.0, 0.0
    black = float(np.count_nonzero(luma < low)) / total
    white = float(np.count_nonzero(luma > high)) / total
    return black, white


def speck_map(luma: np.ndarray, tolerance: float, radius: int = SPECK_RADIUS) -> np.ndarray:
    """Pixels that stand out from their neighbours along every line direction.

    Dust, specks and pinholes up to ``radius`` pixels across deviate from the
    median of a short line through them whichever way the line runs. Ink
    lines and panel borders do not, because the line along the stroke stays
    on the stroke.
    """
    height, width = luma.shape
    padded = np.pad(luma, radius, mode="edge")
    deviation: np.ndarray | None = None
    for dy, dx in _LINE_DIRECTIONS:
        offsets = [(radius + k * dy, radius + k * dx) for k in range(-radius, radius + 1)]
        samples = np.stack([padded[y : y + height, x : x + width] for y, x in offsets])
        along = np.abs(luma - np.median(samples, axis=0))
        deviation = along if deviation is None else np.minimum(deviation, along)
    return deviation > tolerance


def channel_tint(buffer: PixelBuffer) -> float:
    """Largest difference between channel means, normalized to 0-1."""
    pixels = np.asarray(buffer.convert("RGB"), dtype=np.float64)
    means = pixels.reshape(-1, 3).mean(axis=0)
    return float(means.max() - means.min()) / 255


class QAChecker:
    """Scores a restored page against its source and decides pass/retry/fail.

    Sharpness and color deviation are Retry-class conditions; a damage
    residual above threshold (only with a mask) is Fail-class. When no
    remediation pass remains, Retry-class conditions escalate to Fail.
    """

    def __init__(self, config: QAConfig | None = None) -> None:
        self.config = config or QAConfig()

    def _reference(self, original: PixelBuffer, size: tuple[int, int]) -> PixelBuffer:
        """Original resampled to the restored size for like-for-like comparison."""
        if original.size == size:
            return original
        return original.resize(size, Image.Resampling.BICUBIC)

    def sharpness_ratio(self, original: PixelBuffer, restored: PixelBuffer) -> float:
        """Edge energy of the restored page relative to the plainly resized original."""
        reference = self._reference(original, restored.size)
        ref_energy = laplacian_variance(to_luminance(reference))
        out_energy = laplacian_variance(to_luminance(restored))
        if ref_energy == 0:
            return 1.0
        return out_energy / ref_energy

    def color_deviation(self, original: PixelBuffer, restored: PixelBuffer) -> tuple[float, dict[str, float]]:
        """Drift of the output away from the neutral tonal range, beyond the source's own.

        Returns the score (0-1) and the advisory clipping/tint metrics.
        """
        low, high = self.config.neutral_low, self.config.neutral_high
        reference = self._reference(original, restored.size)

        ref_black, ref_white = clipping_fractions(to_luminance(reference), low, high)
        out_black, out_white = clipping_fractions(to_luminance(restored), low, high)
        ref_tint = channel_tint(reference)
        out_tint = channel_tint(restored)

        clipping_increase = max(0.0, (out_black + out_white) - (ref_black + ref_white))
        tint_increase = max(0.0, out_tint - ref_tint)
        score = min(1.0, clipping_increase + tint_increase)

        metrics = {
            "clip_black": out_black,
            "clip_white": out_white,
            "tint": out_tint,
        }
        return score, metrics

    def damage_residual(self, original: PixelBuffer, restored: PixelBuffer, mask: PixelBuffer) -> float:
        """Share of the damage found inside the mask that is still present after restoration.

        Damage is measured as specks in the source (see `speck_map`). Clean
        paper and line art carry no damage, so a page with nothing to repair
        scores 0.0 however little the restoration changed it.
        """
        flagged = np.asarray(mask.convert("L")) >= 128
        if not flagged.any():
            return 0.0

        tolerance = self.config.damage_tolerance
        damaged = speck_map(to_luminance(original), tolerance) & flagged
        total = int(np.count_nonzero(damaged))
        if total == 0:
            return 0.0

        if restored.size != original.size:
            restored = restored.resize(original.size, Image.Resampling.LANCZOS)
        remaining = damaged & speck_map(to_luminance(restored), tolerance)
        return float(np.count_nonzero(remaining)) / total

    def evaluate(
        self,
        original: PixelBuffer,
        restored: PixelBuffer,
        mask: PixelBuffer | None = None,
        remediation_available: bool = True,
    ) -> QAReport:
        """Compute all metrics and the verdict for one attempt."""
        cfg = self.config
        sharpness = self.sharpness_ratio(original, restored)
        deviation, metrics = self.color_deviation(original, restored)
        residual = self.damage_residual(original, restored, mask) if mask is not None else None

        fail_reasons: list[str] = []
        retry_reasons: list[str] = []

        if residual is not None and residual > cfg.max_damage_residual:
            fail_reasons.append(
                f"damage residual {residual:.3f} above {cfg.max_damage_residual}"
            )
        if sharpness < cfg.min_sharpness_ratio:
            retry_reasons.append(
                f"sharpness ratio {sharpness:.3f} below {cfg.min_sharpness_ratio}"
            )
        if deviation > cfg.max_color_deviation:
            retry_reasons.append(
                f"color deviation {deviation:.3f} above {cfg.max_color_deviation}"
            )

        verdict: Verdict
        if not cfg.enabled:
            # Scores are still reported; the gate is open
            verdict = "pass"
            fail_reasons, retry_reasons = [], []
        elif fail_reasons:
            verdict = "fail"
        elif retry_reasons:
            verdict = "retry" if remediation_available else "fail"
        else:
            verdict = "pass"

        report = QAReport(
            sharpness_score=sharpness,
            color_deviation_score=deviation,
            damage_residual_score=residual,
            verdict=verdict,
            reasons=tuple(fail_reasons + retry_reasons),
            metrics=metrics,
        )
        log.debug(
            "QA evaluated",
            verdict=verdict,
            sharpness=round(sharpness, 3),
            color_deviation=round(deviation, 3),
            damage_residual=round(residual, 3) if residual is not None else None,
        )
        return report
