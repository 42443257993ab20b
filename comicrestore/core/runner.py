"""Per-job pipeline: restore, post-process, QA, with bounded retries."""

import asyncio
import random
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Literal

from comicrestore.config.constants import (
    DEFAULT_MAX_RESTORE_ATTEMPTS,
    DEFAULT_RETRY_BASE_DELAY,
    DEFAULT_RETRY_JITTER,
    DEFAULT_RETRY_MAX_DELAY,
)
from comicrestore.config.settings import RetryConfig
from comicrestore.core.models import (
    ErrorRecord,
    FailureReason,
    FatalFailure,
    Job,
    JobResult,
    QAReport,
    Success,
)
from comicrestore.exceptions import QAFailure, SourceReadError, StorageError, ValidationError
from comicrestore.image.postprocess import PostProcessor
from comicrestore.image.qa import QAChecker
from comicrestore.image.source import load_pair
from comicrestore.restoration.base import BaseRestorationClient
from comicrestore.utils.logging import get_logger

log = get_logger(__name__)

RunnerState = Literal[
    "pending",
    "restoring",
    "retrying",
    "post_processing",
    "qa_evaluating",
    "accepted",
    "failed",
]


@dataclass
class RetryPolicy:
    """Restore attempt budget and exponential backoff.

    ``backoff(n)`` is ``base_delay * 2**n`` with a symmetric jitter of
    ``jitter * delay``, never above ``max_delay``.
    """

    max_restore_attempts: int = DEFAULT_MAX_RESTORE_ATTEMPTS
    base_delay: float = DEFAULT_RETRY_BASE_DELAY
    max_delay: float = DEFAULT_RETRY_MAX_DELAY
    jitter: float = DEFAULT_RETRY_JITTER

    @classmethod
    def from_config(cls, config: RetryConfig) -> "RetryPolicy":
        return cls(
            max_restore_attempts=config.max_restore_attempts,
            base_delay=config.base_delay,
            max_delay=config.max_delay,
            jitter=config.jitter,
        )

    def backoff(
        self,
        attempt: int,
        retry_after: float | None = None,
        rng: Callable[[], float] = random.random,
    ) -> float:
        """Seconds to wait before the next restore attempt.

        Args:
            attempt: Zero-based index of the failed attempt
            retry_after: Server-provided delay, honoured when present
            rng: Source of uniform [0, 1) values
        """
        if retry_after is not None:
            return min(self.max_delay, max(0.0, retry_after))
        delay = min(self.max_delay, self.base_delay * (2**attempt))
        spread = delay * self.jitter
        delay += (rng() * 2 - 1) * spread
        return min(self.max_delay, max(0.0, delay))


@dataclass
class _JobProgress:
    """Mutable bookkeeping for one run; lives only inside ``JobRunner.run``."""

    attempts: int = 0
    errors: list[ErrorRecord] = field(default_factory=list)
    qa_report: QAReport | None = None


class JobRunner:
    """Runs one job through source loading, restoration, post-processing and QA.

    Transient restoration failures are retried with backoff until the attempt
    budget is spent. A QA ``retry`` verdict triggers one remediation pass with
    reduced aggressiveness, which adds one attempt to the budget. Every error
    is captured here and returned as a failed ``JobResult``.
    """

    def __init__(
        self,
        client: BaseRestorationClient,
        postprocessor: PostProcessor | None = None,
        qa_checker: QAChecker | None = None,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self.client = client
        self.postprocessor = postprocessor or PostProcessor()
        self.qa_checker = qa_checker or QAChecker()
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._rng = rng

    def _transition(self, job: Job, state: RunnerState, **context: object) -> None:
        log.debug("Job state", job_id=job.id, name=job.label, state=state, **context)

    async def run(self, job: Job, index: int = 0) -> JobResult:
        """Run a job to a terminal result. Never raises for per-job errors."""
        start = time.perf_counter()
        progress = _JobProgress()
        self._transition(job, "pending", index=index)

        try:
            result = await self._execute(job, index, progress)
        except asyncio.CancelledError:
            raise
        except (SourceReadError, StorageError) as e:
            progress.errors.append(ErrorRecord(kind="io", message=str(e), attempt=progress.attempts))
            result = self._failed(job, index, progress, "io_error")
        except ValidationError as e:
            progress.errors.append(
                ErrorRecord(kind="validation", message=str(e), attempt=progress.attempts)
            )
            result = self._failed(job, index, progress, "validation")
        except Exception as e:
            log.exception("Unexpected error in job", job_id=job.id, name=job.label)
            progress.errors.append(
                ErrorRecord(
                    kind="internal",
                    message=f"{type(e).__name__}: {e}",
                    attempt=progress.attempts,
                )
            )
            result = self._failed(job, index, progress, "internal")

        result.duration = time.perf_counter() - start
        if result.is_completed:
            log.info(
                "Job completed",
                job_id=job.id,
                name=job.label,
                attempts=result.attempts,
                duration=f"{result.duration:.2f}s",
            )
        else:
            log.warning(
                "Job failed",
                job_id=job.id,
                name=job.label,
                reason=result.failure_reason,
                attempts=result.attempts,
                error=result.error,
            )
        return result

    async def _execute(self, job: Job, index: int, progress: _JobProgress) -> JobResult:
        pair = load_pair(job.source, job.mask)
        options = job.options
        budget = self.policy.max_restore_attempts
        remediated = False

        while True:
            # Restoring, with transient retries
            while True:
                progress.attempts += 1
                self._transition(job, "restoring", attempt=progress.attempts, budget=budget)
                outcome = await self.client.submit(pair.image, pair.mask, options.service_params())

                if isinstance(outcome, Success):
                    break

                if isinstance(outcome, FatalFailure):
                    progress.errors.append(
                        ErrorRecord(
                            kind="validation" if outcome.kind == "validation" else "external",
                            message=outcome.reason,
                            attempt=progress.attempts,
                        )
                    )
                    reason: FailureReason = (
                        "validation" if outcome.kind == "validation" else "external_fatal"
                    )
                    return self._failed(job, index, progress, reason)

                progress.errors.append(
                    ErrorRecord(kind="transient", message=outcome.reason, attempt=progress.attempts)
                )
                if progress.attempts >= budget:
                    return self._failed(job, index, progress, "rate_limit_exhausted")

                retry_after = (
                    outcome.retry_after_ms / 1000 if outcome.retry_after_ms is not None else None
                )
                delay = self.policy.backoff(progress.attempts - 1, retry_after, self._rng)
                self._transition(job, "retrying", delay=round(delay, 2))
                log.warning(
                    "Transient restoration failure, backing off",
                    job_id=job.id,
                    name=job.label,
                    attempt=progress.attempts,
                    delay=f"{delay:.2f}s",
                    error=outcome.reason,
                )
                await self._sleep(delay)

            self._transition(job, "post_processing")
            processed = self.postprocessor.process(outcome.buffer, pair.size, options)

            self._transition(job, "qa_evaluating")
            report = self.qa_checker.evaluate(
                pair.image,
                processed.buffer,
                pair.mask,
                remediation_available=not remediated,
            )
            progress.qa_report = report

            if report.verdict == "pass":
                self._transition(job, "accepted")
                return JobResult(
                    job_id=job.id,
                    index=index,
                    status="completed",
                    name=job.name,
                    final_buffer=processed.buffer,
                    qa_report=report,
                    attempts=progress.attempts,
                    errors=progress.errors,
                    extracted_text=processed.extracted_text,
                )

            if report.verdict == "retry" and not remediated:
                remediated = True
                budget += 1
                options = options.remediated()
                progress.errors.append(
                    ErrorRecord(
                        kind="qa",
                        message="; ".join(report.reasons),
                        attempt=progress.attempts,
                    )
                )
                log.warning(
                    "QA requested remediation",
                    job_id=job.id,
                    name=job.label,
                    reasons=list(report.reasons),
                    strength=options.strength,
                )
                continue

            failure = QAFailure(list(report.reasons))
            progress.errors.append(
                ErrorRecord(kind="qa", message=str(failure), attempt=progress.attempts)
            )
            return self._failed(job, index, progress, "qa_failed")

    def _failed(
        self,
        job: Job,
        index: int,
        progress: _JobProgress,
        reason: FailureReason,
    ) -> JobResult:
        self._transition(job, "failed", reason=reason)
        return JobResult(
            job_id=job.id,
            index=index,
            status="failed",
            name=job.name,
            qa_report=progress.qa_report,
            attempts=progress.attempts,
            errors=progress.errors,
            failure_reason=reason,
        )
