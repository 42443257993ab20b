"""Job, option, outcome and result datastructures."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

from PIL import Image
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from comicrestore.config.constants import (
    DEFAULT_BLEED_IN,
    DEFAULT_DPI,
    DEFAULT_MATTE_COMPENSATION,
    DEFAULT_PAGE_HEIGHT_IN,
    DEFAULT_PAGE_WIDTH_IN,
    DEFAULT_SCALE,
    DEFAULT_STRENGTH,
    MAX_MATTE_COMPENSATION,
)
from comicrestore.exceptions import ConfigurationError

if TYPE_CHECKING:
    from comicrestore.config.settings import RestoreSettings

# In-memory pixel buffer. RGB for page images, L for masks.
PixelBuffer = Image.Image

# A job source is either already decoded or a path the Source Adapter loads.
ImageSource = Path | Image.Image

JobStatus = Literal["pending", "completed", "failed", "skipped"]
Verdict = Literal["pass", "retry", "fail"]
ErrorKind = Literal["validation", "transient", "external", "qa", "io", "internal"]
FailureReason = Literal[
    "rate_limit_exhausted",
    "validation",
    "external_fatal",
    "qa_failed",
    "io_error",
    "internal",
]


class RestoreOptions(BaseModel):
    """Per-job restoration and print geometry options.

    Validated once when the job is created and immutable afterwards.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    scale_factor: Literal[1, 2, 4] = DEFAULT_SCALE
    matte_compensation: float = Field(default=DEFAULT_MATTE_COMPENSATION, ge=0, le=MAX_MATTE_COMPENSATION)
    face_restore: bool = False
    ocr: bool = False
    # Model aggressiveness sent upstream; lowered on QA remediation
    strength: float = Field(default=DEFAULT_STRENGTH, gt=0, le=1)
    page_width_in: float = Field(default=DEFAULT_PAGE_WIDTH_IN, gt=0)
    page_height_in: float = Field(default=DEFAULT_PAGE_HEIGHT_IN, gt=0)
    bleed_in: float = Field(default=DEFAULT_BLEED_IN, ge=0)
    dpi: int = Field(default=DEFAULT_DPI, gt=0)

    @classmethod
    def build(cls, **values: Any) -> RestoreOptions:
        """Validate options, reporting problems as a configuration error."""
        try:
            return cls(**values)
        except PydanticValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise ConfigurationError(f"Invalid restore options: {problems}") from e

    @classmethod
    def from_settings(cls, settings: RestoreSettings, **overrides: Any) -> RestoreOptions:
        """Build options from configured defaults, with explicit overrides (None = keep)."""
        values: dict[str, Any] = {
            "scale_factor": settings.restore.scale,
            "matte_compensation": settings.restore.matte_compensation,
            "face_restore": settings.restore.face_restore,
            "ocr": settings.restore.ocr,
            "strength": settings.restore.strength,
            "page_width_in": settings.page.width_in,
            "page_height_in": settings.page.height_in,
            "bleed_in": settings.page.bleed_in,
            "dpi": settings.page.dpi,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.build(**values)

    def remediated(self) -> RestoreOptions:
        """Options for the single QA remediation pass: half the aggressiveness."""
        return self.model_copy(
            update={
                "strength": self.strength / 2,
                "matte_compensation": self.matte_compensation / 2,
            }
        )

    def service_params(self) -> RestoreParams:
        """Parameters forwarded to the restoration service."""
        return RestoreParams(
            scale_factor=self.scale_factor,
            matte_compensation=self.matte_compensation,
            face_restore=self.face_restore,
            ocr=self.ocr,
            strength=self.strength,
        )


@dataclass(frozen=True)
class RestoreParams:
    """Parameters of one restoration call."""

    scale_factor: int
    matte_compensation: float
    face_restore: bool
    ocr: bool
    strength: float = DEFAULT_STRENGTH


# =============================================================================
# Restoration outcomes
# =============================================================================


@dataclass(frozen=True)
class Success:
    """Restoration returned a buffer."""

    buffer: PixelBuffer


@dataclass(frozen=True)
class TransientFailure:
    """Failure expected to succeed on retry (rate limit, timeout, 5xx)."""

    reason: str
    retry_after_ms: int | None = None


@dataclass(frozen=True)
class FatalFailure:
    """Failure retrying cannot fix (validation, auth, malformed request)."""

    reason: str
    kind: ErrorKind = "external"


RestorationOutcome = Success | TransientFailure | FatalFailure


# =============================================================================
# Jobs and results
# =============================================================================


@dataclass(frozen=True, eq=False)
class Job:
    """One input image (and optional mask) through the restore/QA pipeline."""

    id: str
    source: ImageSource
    options: RestoreOptions
    mask: ImageSource | None = None
    name: str | None = None

    @classmethod
    def create(
        cls,
        source: ImageSource,
        options: RestoreOptions | None = None,
        mask: ImageSource | None = None,
        job_id: str | None = None,
        name: str | None = None,
    ) -> Job:
        """Create a job with a generated id when none is given."""
        if name is None and isinstance(source, Path):
            name = source.stem
        return cls(
            id=job_id or uuid.uuid4().hex[:12],
            source=source,
            options=options or RestoreOptions(),
            mask=mask,
            name=name,
        )

    @property
    def label(self) -> str:
        """Human readable identifier for logs and reports."""
        return self.name or self.id

    @property
    def has_mask(self) -> bool:
        return self.mask is not None


@dataclass(frozen=True)
class QAReport:
    """Quality metrics and verdict for one restoration attempt."""

    sharpness_score: float
    color_deviation_score: float
    damage_residual_score: float | None
    verdict: Verdict
    reasons: tuple[str, ...] = ()
    metrics: dict[str, float] = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return self.verdict == "pass"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "sharpness_score": round(self.sharpness_score, 4),
            "color_deviation_score": round(self.color_deviation_score, 4),
            "damage_residual_score": (
                round(self.damage_residual_score, 4)
                if self.damage_residual_score is not None
                else None
            ),
            "verdict": self.verdict,
            "reasons": list(self.reasons),
            "metrics": {k: round(v, 4) for k, v in self.metrics.items()},
        }


@dataclass(frozen=True)
class ErrorRecord:
    """One error encountered while running a job."""

    kind: ErrorKind
    message: str
    attempt: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "attempt": self.attempt}


@dataclass
class JobResult:
    """Terminal outcome of one job.

    ``final_buffer`` is present if and only if ``status`` is ``completed``.
    """

    job_id: str
    index: int
    status: JobStatus
    name: str | None = None
    final_buffer: PixelBuffer | None = None
    qa_report: QAReport | None = None
    attempts: int = 0
    errors: list[ErrorRecord] = field(default_factory=list)
    failure_reason: FailureReason | None = None
    extracted_text: str | None = None
    duration: float = 0.0

    def __post_init__(self) -> None:
        if (self.final_buffer is not None) != (self.status == "completed"):
            raise ValueError(
                f"JobResult {self.job_id}: final_buffer must be set exactly when completed "
                f"(status={self.status})"
            )

    @classmethod
    def pending(cls, job: Job, index: int) -> JobResult:
        return cls(job_id=job.id, index=index, status="pending", name=job.name)

    @classmethod
    def skipped(cls, job: Job, index: int, reason: str) -> JobResult:
        return cls(
            job_id=job.id,
            index=index,
            status="skipped",
            name=job.name,
            errors=[ErrorRecord(kind="internal", message=reason)],
        )

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"

    @property
    def is_terminal(self) -> bool:
        return self.status != "pending"

    @property
    def label(self) -> str:
        return self.name or self.job_id

    @property
    def error(self) -> str | None:
        """Most recent error message, if any."""
        return self.errors[-1].message if self.errors else None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (pixel data excluded)."""
        data: dict[str, Any] = {
            "job_id": self.job_id,
            "index": self.index,
            "name": self.name,
            "status": self.status,
            "attempts": self.attempts,
            "failure_reason": self.failure_reason,
            "duration": round(self.duration, 3),
            "errors": [e.to_dict() for e in self.errors],
            "qa": self.qa_report.to_dict() if self.qa_report else None,
        }
        if self.final_buffer is not None:
            data["size"] = list(self.final_buffer.size)
        if self.extracted_text is not None:
            data["extracted_text_chars"] = len(self.extracted_text)
        return data
