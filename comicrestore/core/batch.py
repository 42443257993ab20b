"""Batch processor: bounded-concurrency job scheduling."""

import asyncio
from collections.abc import Callable
from typing import Any

from comicrestore.core.models import ErrorRecord, Job, JobResult
from comicrestore.core.runner import JobRunner
from comicrestore.core.state import BatchRun
from comicrestore.exceptions import ConfigurationError
from comicrestore.utils.logging import get_logger

log = get_logger(__name__)

# Called once per finished job (completed, failed or skipped)
ProgressCallback = Callable[[JobResult, BatchRun], None]


class CancelToken:
    """Cooperative stop signal for a running batch.

    Cancelling stops admission of queued jobs; in-flight jobs run to completion.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self.reason: str | None = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._cancelled:
            self._cancelled = True
            self.reason = reason

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled


class BatchProcessor:
    """Runs jobs through a fixed pool of workers fed by a FIFO queue.

    At most ``concurrency_limit`` jobs are in flight at once. Results land in
    ``BatchRun.jobs`` at their submission index. One job's failure never
    aborts its siblings; with ``stop_on_error`` a fatal failure only stops
    further admission.
    """

    def __init__(self, runner: JobRunner) -> None:
        self.runner = runner
        self.active = 0
        self.peak_active = 0

    async def run(
        self,
        jobs: list[Job],
        concurrency_limit: int = 1,
        stop_on_error: bool = False,
        on_job_complete: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
        options: dict[str, Any] | None = None,
    ) -> BatchRun:
        """Process all jobs and return the aggregated run.

        Raises:
            ConfigurationError: If ``concurrency_limit`` is below 1
        """
        if concurrency_limit < 1:
            raise ConfigurationError(f"Concurrency limit must be at least 1, got {concurrency_limit}")

        batch = BatchRun.start(jobs, concurrency_limit, stop_on_error, options)
        self.active = 0
        self.peak_active = 0

        queue: asyncio.Queue[tuple[int, Job]] = asyncio.Queue()
        for index, job in enumerate(jobs):
            queue.put_nowait((index, job))

        log.info(
            "Batch started",
            batch_id=batch.batch_id,
            jobs=len(jobs),
            concurrency=concurrency_limit,
            stop_on_error=stop_on_error,
        )

        def admission_closed() -> bool:
            return batch.stopped or (cancel is not None and cancel.is_cancelled)

        def complete(result: JobResult) -> None:
            batch.record(result)
            if on_job_complete is not None:
                on_job_complete(result, batch)

        async def worker(worker_id: int) -> None:
            while not admission_closed():
                try:
                    index, job = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return

                self.active += 1
                self.peak_active = max(self.peak_active, self.active)
                log.debug("Job admitted", worker=worker_id, job_id=job.id, index=index, active=self.active)
                try:
                    result = await self._run_job(job, index)
                finally:
                    self.active -= 1

                complete(result)

                if (
                    stop_on_error
                    and result.status == "failed"
                    and result.failure_reason != "rate_limit_exhausted"
                ):
                    batch.mark_stopped(f"stopped after {job.label} failed ({result.failure_reason})")
                    log.warning("Stopping batch admission", job_id=job.id, reason=result.failure_reason)

        workers = [
            asyncio.create_task(worker(i)) for i in range(min(concurrency_limit, len(jobs)))
        ]
        await asyncio.gather(*workers)

        if cancel is not None and cancel.is_cancelled:
            batch.mark_stopped(cancel.reason or "cancelled")

        for index, job in enumerate(jobs):
            if batch.jobs[index].status == "pending":
                complete(JobResult.skipped(job, index, batch.stop_reason or "not admitted"))

        batch.finish()
        log.info(
            "Batch finished",
            batch_id=batch.batch_id,
            completed=len(batch.completed),
            failed=len(batch.failed),
            skipped=len(batch.skipped),
            peak_active=self.peak_active,
        )
        return batch

    async def _run_job(self, job: Job, index: int) -> JobResult:
        """Run one job, converting anything the runner lets through into a failure."""
        try:
            return await self.runner.run(job, index)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.exception("Job runner raised", job_id=job.id)
            return JobResult(
                job_id=job.id,
                index=index,
                status="failed",
                name=job.name,
                errors=[ErrorRecord(kind="internal", message=f"{type(e).__name__}: {e}")],
                failure_reason="internal",
            )
