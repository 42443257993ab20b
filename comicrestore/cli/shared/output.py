"""Writing restored pages, text and PDFs for a finished run."""

import re
from collections import Counter
from datetime import timedelta
from pathlib import Path

import anyio

from comicrestore.cli.shared.context import RestoreContext
from comicrestore.config.constants import DEFAULT_COMBINED_PDF, DEFAULT_REPORT_FILE
from comicrestore.core.models import JobResult
from comicrestore.core.state import BatchRun
from comicrestore.pdf.compositor import assemble
from comicrestore.utils.logging import get_logger

log = get_logger(__name__)

PAGES_PREFIX = "pages/"


def safe_stem(name: str) -> str:
    """Filesystem-safe version of a page name."""
    cleaned = re.sub(r"[^\w.-]+", "_", name).strip("._")
    return cleaned or "page"


def output_stems(results: list[JobResult]) -> dict[str, str]:
    """File stem per job id for per-page outputs.

    Pages keep their own name unless another page in the run maps to the
    same file name (``p1.png`` and ``p1.tif``, or names differing only in
    case); those get their page number as a prefix.
    """
    stems = {result.job_id: safe_stem(result.label) for result in results}
    counts = Counter(stem.casefold() for stem in stems.values())
    return {
        result.job_id: (
            f"{result.index + 1:03d}_{stems[result.job_id]}"
            if counts[stems[result.job_id].casefold()] > 1
            else stems[result.job_id]
        )
        for result in results
    }


async def store_pages(ctx: RestoreContext, batch: BatchRun) -> list[str]:
    """Persist restored page images and extracted text.

    Returns:
        URLs of the stored page images
    """
    store = ctx.create_store()
    keep_hours = ctx.settings.output.keep_pages_hours
    if keep_hours > 0:
        await store.cleanup_older_than(timedelta(hours=keep_hours), prefix=PAGES_PREFIX)

    completed = batch.completed
    stems = output_stems(completed)
    urls = []
    for result in completed:
        stem = safe_stem(result.label)
        key = f"{PAGES_PREFIX}{result.index + 1:03d}_{stem}.png"
        urls.append(await store.put(key, result.final_buffer))
        if result.extracted_text:
            text_path = ctx.output_dir / f"{stems[result.job_id]}_text.txt"
            await anyio.Path(text_path).write_text(result.extracted_text, encoding="utf-8")
            log.debug("Extracted text written", path=str(text_path))
    return urls


async def export_documents(ctx: RestoreContext, batch: BatchRun) -> list[Path]:
    """Assemble completed pages and write PDFs.

    Raises:
        EmptyDocumentError: If no page completed
    """
    combine = ctx.combine
    documents = assemble(
        batch.jobs,
        ctx.geometry,
        combine=combine,
        title=ctx.settings.output.title if combine else None,
    )
    exporter = ctx.create_exporter()
    stems = output_stems(batch.completed)

    paths = []
    for document in documents:
        if combine:
            path = ctx.output_dir / DEFAULT_COMBINED_PDF
        else:
            path = ctx.output_dir / f"{stems[document.pages[0].job_id]}_restored.pdf"
        paths.append(await exporter.export(document, path))
    return paths


def save_report(ctx: RestoreContext, batch: BatchRun) -> Path:
    return batch.save_report(ctx.output_dir / DEFAULT_REPORT_FILE)
