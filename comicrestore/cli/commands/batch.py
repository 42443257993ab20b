"""Batch command for restoring a directory of pages."""

import asyncio
from contextlib import nullcontext
from pathlib import Path
from typing import Annotated

import typer
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from comicrestore.cli.callbacks import validate_concurrency
from comicrestore.cli.shared.context import RestoreContext
from comicrestore.cli.shared.options import RestoreCLIOptions
from comicrestore.cli.shared.output import export_documents, save_report, store_pages
from comicrestore.cli.shared.params import (
    BleedOption,
    ConfigOption,
    DpiOption,
    FaceRestoreOption,
    HeightOption,
    MatteOption,
    OcrOption,
    OutputOption,
    ScaleOption,
    VerboseOption,
    WidthOption,
)
from comicrestore.config.constants import DEFAULT_REPORT_FILE
from comicrestore.core.batch import BatchProcessor
from comicrestore.core.models import Job, JobResult
from comicrestore.core.state import BatchRun
from comicrestore.exceptions import EmptyDocumentError, SourceReadError
from comicrestore.image.source import find_images, find_mask
from comicrestore.utils.logging import get_console, get_logger, quiet_console

console = get_console()
log = get_logger(__name__)


def batch(
    input_dir: Annotated[
        Path,
        typer.Argument(
            help="Directory of page images (processed in filename order).",
            exists=True,
            file_okay=False,
            dir_okay=True,
            readable=True,
            resolve_path=True,
        ),
    ],
    output: OutputOption = None,
    combine: Annotated[
        bool | None,
        typer.Option(
            "--combine/--no-combine",
            help="Write one multi-page PDF instead of one PDF per page.",
        ),
    ] = None,
    concurrency: Annotated[
        int | None,
        typer.Option(
            "--concurrency",
            "-j",
            help="Pages restored concurrently (the service rate-limits above 2).",
            callback=validate_concurrency,
        ),
    ] = None,
    stop_on_error: Annotated[
        bool | None,
        typer.Option(
            "--stop-on-error/--keep-going",
            help="Stop admitting pages after the first fatal failure.",
        ),
    ] = None,
    no_masks: Annotated[
        bool,
        typer.Option("--no-masks", help="Ignore mask files found next to pages."),
    ] = False,
    width: WidthOption = None,
    height: HeightOption = None,
    bleed: BleedOption = None,
    dpi: DpiOption = None,
    scale: ScaleOption = None,
    matte_compensation: MatteOption = None,
    face_restore: FaceRestoreOption = None,
    ocr: OcrOption = None,
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Restore every page in a directory.

    Masks named like page01_mask.png (or in a masks/ subdirectory) are used
    automatically.

    Examples:
        comic-restore batch ./scans
        comic-restore batch ./scans --combine -o ./print
        comic-restore batch ./scans -j 2 --stop-on-error
    """
    options = RestoreCLIOptions(
        output_dir=output,
        config_path=config,
        width=width,
        height=height,
        bleed=bleed,
        dpi=dpi,
        scale=scale,
        matte_compensation=matte_compensation,
        face_restore=face_restore,
        ocr=ocr,
        combine=combine,
        verbose=verbose,
    )
    ctx = RestoreContext.create(options, command_prefix="batch", console=console)
    settings = ctx.settings

    try:
        files = find_images(input_dir)
    except SourceReadError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    if not files:
        console.print("[yellow]No images to process.[/yellow]")
        return

    jobs = [
        Job.create(path, ctx.restore_options, mask=None if no_masks else find_mask(path))
        for path in files
    ]
    limit = concurrency or settings.batch.concurrency
    halt = settings.batch.stop_on_error if stop_on_error is None else stop_on_error

    log.info(
        "Starting batch restoration",
        input_dir=str(input_dir),
        output_dir=str(ctx.output_dir),
        pages=len(jobs),
        masks=sum(1 for job in jobs if job.has_mask),
        concurrency=limit,
        combine=ctx.combine,
    )

    try:
        run = asyncio.run(_execute_batch(ctx, jobs, limit, halt))
    except KeyboardInterrupt:
        console.print("\n[yellow]Batch interrupted.[/yellow]")
        raise typer.Exit(130) from None

    _display_summary(run)

    try:
        paths = asyncio.run(_write_outputs(ctx, run))
    except EmptyDocumentError as e:
        console.print(f"[red]No pages to export:[/red] {e}")
        raise typer.Exit(1) from e

    for path in paths:
        console.print(f"[green]PDF:[/green] {path}")
    console.print(f"[dim]Report: {ctx.output_dir / DEFAULT_REPORT_FILE}[/dim]")


async def _execute_batch(
    ctx: RestoreContext,
    jobs: list[Job],
    concurrency: int,
    stop_on_error: bool,
) -> BatchRun:
    """Run all jobs with a Rich progress display."""
    runner = ctx.create_runner()
    processor = BatchProcessor(runner)
    # Console logs would break the progress display; the task log file keeps them
    silence = nullcontext() if ctx.options.verbose else quiet_console(ctx.log_path)

    try:
        with silence, Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("({task.completed}/{task.total})"),
            TimeElapsedColumn(),
            console=console,
            transient=False,
        ) as progress:
            task_id = progress.add_task("[cyan]Restoring pages...", total=len(jobs))

            def on_job_complete(result: JobResult, _run: BatchRun) -> None:
                progress.advance(task_id)
                if result.is_completed:
                    progress.console.print(
                        f"  [green]✓[/green] {result.label} [dim]({result.attempts} attempt(s))[/dim]"
                    )
                elif result.status == "skipped":
                    progress.console.print(f"  [yellow]-[/yellow] {result.label} [dim](skipped)[/dim]")
                else:
                    progress.console.print(f"  [red]x[/red] {result.label}")
                    progress.console.print(f"    [dim]{result.failure_reason}: {result.error}[/dim]")

            run = await processor.run(
                jobs,
                concurrency_limit=concurrency,
                stop_on_error=stop_on_error,
                on_job_complete=on_job_complete,
                options=ctx.restore_options.model_dump(),
            )
    finally:
        await runner.client.aclose()

    save_report(ctx, run)
    return run


async def _write_outputs(ctx: RestoreContext, run: BatchRun) -> list[Path]:
    await store_pages(ctx, run)
    return await export_documents(ctx, run)


def _display_summary(run: BatchRun) -> None:
    """Display batch processing summary."""
    console.print()

    table = Table(title="Batch Summary", show_header=False)
    table.add_column("Metric", style="bold")
    table.add_column("Value")

    table.add_row("Total Pages", str(run.total))
    table.add_row("Completed", f"[green]{len(run.completed)}[/green]")
    table.add_row("Failed", f"[red]{len(run.failed)}[/red]")
    table.add_row("Skipped", f"[yellow]{len(run.skipped)}[/yellow]")
    if run.finished_count > 0:
        table.add_row("Success Rate", f"{run.success_rate * 100:.1f}%")
    if run.stopped:
        table.add_row("Stopped", run.stop_reason or "yes")

    console.print(table)

    failed = run.failed
    if failed:
        console.print()
        console.print("[bold red]Failed Pages:[/bold red]")
        for result in failed[:10]:
            console.print(f"  [dim]-[/dim] {result.label} [dim]({result.failure_reason})[/dim]")
            if result.error:
                console.print(f"    [dim]{result.error}[/dim]")
        if len(failed) > 10:
            console.print(f"  [dim]... and {len(failed) - 10} more[/dim]")

    console.print()
