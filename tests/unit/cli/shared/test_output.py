"""Tests for writing run outputs."""

import os
import time
from pathlib import Path
from types import SimpleNamespace

import pymupdf
import pytest
from PIL import Image

from comicrestore.cli.shared.output import (
    PAGES_PREFIX,
    export_documents,
    output_stems,
    store_pages,
)
from comicrestore.config.settings import RestoreSettings
from comicrestore.core.models import Job, JobResult
from comicrestore.core.state import BatchRun
from comicrestore.pdf.compositor import PageGeometry
from comicrestore.pdf.exporter import PDFExporter
from comicrestore.storage.blob import LocalBlobStore


def finished_run(*names: str, text: str | None = None) -> BatchRun:
    jobs = [Job.create(Path(f"{name}.png")) for name in names]
    run = BatchRun.start(jobs, 1, False)
    for index, (job, name) in enumerate(zip(jobs, names)):
        run.record(
            JobResult(
                job_id=job.id,
                index=index,
                status="completed",
                name=name,
                final_buffer=Image.new("RGB", (16, 24), (200, 190, 180)),
                extracted_text=text,
            )
        )
    return run


def make_ctx(output_dir: Path, keep_pages_hours: float = 24.0) -> SimpleNamespace:
    settings = RestoreSettings()
    settings.output.keep_pages_hours = keep_pages_hours
    return SimpleNamespace(
        output_dir=output_dir,
        combine=False,
        geometry=PageGeometry(6.625, 10.25, 0.125, 20),
        settings=settings,
        create_exporter=PDFExporter,
        create_store=lambda: LocalBlobStore(output_dir),
    )


class TestOutputStems:
    """Tests for per-page output naming."""

    def test_unique_names_kept(self):
        run = finished_run("cover", "page1")

        stems = output_stems(run.completed)

        assert sorted(stems.values()) == ["cover", "page1"]

    def test_duplicate_names_numbered(self):
        run = finished_run("p1", "p1")

        stems = output_stems(run.completed)

        assert sorted(stems.values()) == ["001_p1", "002_p1"]

    def test_case_only_difference_numbered(self):
        """Test names that collide on case-insensitive filesystems are kept apart."""
        run = finished_run("Page", "page", "other")

        stems = output_stems(run.completed)

        assert sorted(stems.values()) == ["001_Page", "002_page", "other"]


class TestExportDocuments:
    """Tests for per-page PDF export."""

    @pytest.mark.asyncio
    async def test_same_named_pages_get_separate_pdfs(self, tmp_path):
        run = finished_run("p1", "p1")

        paths = await export_documents(make_ctx(tmp_path), run)

        assert [p.name for p in paths] == ["001_p1_restored.pdf", "002_p1_restored.pdf"]
        for path in paths:
            with pymupdf.open(path) as doc:
                assert doc.page_count == 1

    @pytest.mark.asyncio
    async def test_unique_page_names_unchanged(self, tmp_path):
        paths = await export_documents(make_ctx(tmp_path), finished_run("cover"))

        assert [p.name for p in paths] == ["cover_restored.pdf"]


class TestStorePages:
    """Tests for storing page images and text."""

    @pytest.mark.asyncio
    async def test_same_named_pages_keep_both_texts(self, tmp_path):
        run = finished_run("p1", "p1", text="BLAM!")

        urls = await store_pages(make_ctx(tmp_path), run)

        assert len(set(urls)) == 2
        assert (tmp_path / "001_p1_text.txt").read_text(encoding="utf-8") == "BLAM!"
        assert (tmp_path / "002_p1_text.txt").exists()
        assert not (tmp_path / "p1_text.txt").exists()

    @pytest.mark.asyncio
    async def test_stale_pages_pruned(self, tmp_path):
        """Test page images left by earlier runs are removed once past the retention window."""
        stale = tmp_path / PAGES_PREFIX / "001_old.png"
        stale.parent.mkdir(parents=True)
        stale.write_bytes(b"old")
        two_days_ago = time.time() - 48 * 3600
        os.utime(stale, (two_days_ago, two_days_ago))
        report = tmp_path / "batch_report.json"
        report.write_text("{}")
        os.utime(report, (two_days_ago, two_days_ago))

        await store_pages(make_ctx(tmp_path), finished_run("cover"))

        assert not stale.exists()
        assert report.exists()
        assert (tmp_path / PAGES_PREFIX / "001_cover.png").exists()

    @pytest.mark.asyncio
    async def test_pruning_disabled(self, tmp_path):
        stale = tmp_path / PAGES_PREFIX / "001_old.png"
        stale.parent.mkdir(parents=True)
        stale.write_bytes(b"old")
        two_days_ago = time.time() - 48 * 3600
        os.utime(stale, (two_days_ago, two_days_ago))

        await store_pages(make_ctx(tmp_path, keep_pages_hours=0), finished_run("cover"))

        assert stale.exists()
