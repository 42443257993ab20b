"""Tests for batch run state."""

import json
from pathlib import Path

import pytest
from PIL import Image

from comicrestore.core.models import Job, JobResult
from comicrestore.core.state import BatchRun


@pytest.fixture
def jobs():
    return [Job.create(Path(f"page{i:02d}.png")) for i in range(1, 4)]


def completed(job: Job, index: int) -> JobResult:
    return JobResult(
        job_id=job.id,
        index=index,
        status="completed",
        name=job.name,
        final_buffer=Image.new("RGB", (4, 4)),
        attempts=1,
    )


class TestBatchRun:
    """Tests for BatchRun."""

    def test_start_all_pending(self, jobs):
        run = BatchRun.start(jobs, concurrency_limit=2, stop_on_error=False)

        assert run.total == 3
        assert len(run.pending) == 3
        assert [r.job_id for r in run.jobs] == [j.id for j in jobs]
        assert len(run.batch_id) == 12
        assert run.completed_at is None

    def test_record_at_index(self, jobs):
        """Test results land at their submission index."""
        run = BatchRun.start(jobs, 1, False)

        run.record(completed(jobs[2], 2))

        assert run.jobs[2].is_completed
        assert run.jobs[0].status == "pending"

    def test_record_rejects_pending(self, jobs):
        run = BatchRun.start(jobs, 1, False)

        with pytest.raises(ValueError):
            run.record(JobResult.pending(jobs[0], 0))

    def test_mark_stopped_keeps_first_reason(self, jobs):
        run = BatchRun.start(jobs, 1, True)

        run.mark_stopped("first")
        run.mark_stopped("second")

        assert run.stopped is True
        assert run.stop_reason == "first"

    def test_counts_and_rates(self, jobs):
        run = BatchRun.start(jobs, 1, False)
        run.record(completed(jobs[0], 0))
        run.record(JobResult(job_id=jobs[1].id, index=1, status="failed", failure_reason="qa_failed"))

        assert run.finished_count == 2
        assert run.progress == pytest.approx(2 / 3)
        assert run.success_rate == pytest.approx(0.5)

    def test_empty_run(self):
        run = BatchRun.start([], 1, False)

        assert run.progress == 0.0
        assert run.success_rate == 0.0

    def test_save_report(self, jobs, tmp_path):
        """Test report is written as JSON with every job."""
        run = BatchRun.start(jobs, 2, False, options={"dpi": 300})
        run.record(completed(jobs[0], 0))
        for index in (1, 2):
            run.record(JobResult.skipped(jobs[index], index, "stopped"))
        run.finish()

        path = run.save_report(tmp_path / "reports" / "batch_report.json")

        data = json.loads(path.read_text())
        assert data["total"] == 3
        assert data["completed"] == 1
        assert data["skipped"] == 2
        assert data["options"] == {"dpi": 300}
        assert data["jobs"][0]["size"] == [4, 4]
        assert not list(path.parent.glob("*.tmp"))
