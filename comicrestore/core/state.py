"""Batch run state and report persistence."""

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from comicrestore.core.models import Job, JobResult
from comicrestore.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class BatchRun:
    """Aggregated state of one batch.

    Only the batch processor mutates a run; everything else reads it.
    ``jobs`` always holds one entry per submitted job, in submission order.
    """

    batch_id: str
    jobs: list[JobResult]
    concurrency_limit: int
    stop_on_error: bool
    started_at: str
    completed_at: str | None = None
    stopped: bool = False
    stop_reason: str | None = None
    options: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def start(
        cls,
        jobs: list[Job],
        concurrency_limit: int,
        stop_on_error: bool,
        options: dict[str, Any] | None = None,
    ) -> "BatchRun":
        """Create a run with every job pending."""
        now = datetime.now().isoformat()
        seed = f"{now}:{','.join(job.id for job in jobs)}"
        return cls(
            batch_id=hashlib.sha256(seed.encode()).hexdigest()[:12],
            jobs=[JobResult.pending(job, i) for i, job in enumerate(jobs)],
            concurrency_limit=concurrency_limit,
            stop_on_error=stop_on_error,
            started_at=now,
            options=options or {},
        )

    def record(self, result: JobResult) -> None:
        """Store a terminal result at its submission index."""
        if not result.is_terminal:
            raise ValueError(f"Cannot record non-terminal result for {result.job_id}")
        self.jobs[result.index] = result

    def mark_stopped(self, reason: str) -> None:
        if not self.stopped:
            self.stopped = True
            self.stop_reason = reason

    def finish(self) -> None:
        self.completed_at = datetime.now().isoformat()

    @property
    def total(self) -> int:
        return len(self.jobs)

    @property
    def completed(self) -> list[JobResult]:
        return [r for r in self.jobs if r.status == "completed"]

    @property
    def failed(self) -> list[JobResult]:
        return [r for r in self.jobs if r.status == "failed"]

    @property
    def skipped(self) -> list[JobResult]:
        return [r for r in self.jobs if r.status == "skipped"]

    @property
    def pending(self) -> list[JobResult]:
        return [r for r in self.jobs if r.status == "pending"]

    @property
    def finished_count(self) -> int:
        return sum(1 for r in self.jobs if r.is_terminal)

    @property
    def progress(self) -> float:
        """Get current progress (0.0 to 1.0)."""
        if not self.jobs:
            return 0.0
        return self.finished_count / self.total

    @property
    def success_rate(self) -> float:
        """Completed share of finished jobs (0.0 to 1.0)."""
        finished = self.finished_count
        if finished == 0:
            return 0.0
        return len(self.completed) / finished

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "batch_id": self.batch_id,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "concurrency_limit": self.concurrency_limit,
            "stop_on_error": self.stop_on_error,
            "stopped": self.stopped,
            "stop_reason": self.stop_reason,
            "total": self.total,
            "completed": len(self.completed),
            "failed": len(self.failed),
            "skipped": len(self.skipped),
            "options": self.options,
            "jobs": [r.to_dict() for r in self.jobs],
        }

    def save_report(self, path: Path) -> Path:
        """Write the batch report as JSON."""
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)
        tmp_path.replace(path)
        log.info("Batch report written", path=str(path), jobs=self.total)
        return path
