"""Restore command for a single page."""

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from comicrestore.cli.callbacks import validate_input_file, validate_mask_file
from comicrestore.cli.shared.context import RestoreContext
from comicrestore.cli.shared.options import RestoreCLIOptions
from comicrestore.cli.shared.output import export_documents, store_pages
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
from comicrestore.core.batch import BatchProcessor
from comicrestore.core.models import Job, JobResult
from comicrestore.image.source import find_mask
from comicrestore.utils.logging import get_console, get_logger

console = get_console()
log = get_logger(__name__)


def restore(
    input_file: Annotated[
        Path,
        typer.Argument(
            help="Page image to restore.",
            callback=validate_input_file,
            resolve_path=True,
        ),
    ],
    mask: Annotated[
        Path | None,
        typer.Option(
            "--mask",
            "-m",
            help="Damage mask (white = repair). Auto-detected when omitted.",
            callback=validate_mask_file,
            resolve_path=True,
        ),
    ] = None,
    output: OutputOption = None,
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
    """Restore a single comic page and export it as a print-ready PDF.

    Examples:
        comic-restore restore page01.jpg
        comic-restore restore page01.jpg --mask page01_mask.png --scale 4
        comic-restore restore page01.jpg --dpi 600 --bleed 0.25 -o ./print
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
        combine=False,
        verbose=verbose,
    )
    ctx = RestoreContext.create(options, command_prefix="restore", console=console)

    mask_path = mask or find_mask(input_file)
    if mask_path is not None and mask is None:
        console.print(f"[dim]Using mask {mask_path.name}[/dim]")

    job = Job.create(input_file, ctx.restore_options, mask=mask_path)

    try:
        result = asyncio.run(_execute_restore(ctx, job))
    except KeyboardInterrupt:
        console.print("\n[yellow]Restore interrupted.[/yellow]")
        raise typer.Exit(130) from None

    if not result.is_completed:
        raise typer.Exit(1)


async def _execute_restore(ctx: RestoreContext, job: Job) -> JobResult:
    runner = ctx.create_runner()
    try:
        with console.status(f"[cyan]Restoring {job.label}..."):
            batch = await BatchProcessor(runner).run([job], concurrency_limit=1)
    finally:
        await runner.client.aclose()

    result = batch.jobs[0]
    if not result.is_completed:
        console.print(f"[red]x[/red] {job.label} [dim]({result.failure_reason})[/dim]")
        if result.error:
            console.print(f"    [dim]{result.error}[/dim]")
        return result

    await store_pages(ctx, batch)
    paths = await export_documents(ctx, batch)
    width, height = ctx.geometry.pixel_size()
    console.print(
        f"[green]✓[/green] {job.label} [dim]({result.attempts} attempt(s), "
        f"{width}x{height}px @ {ctx.geometry.dpi} DPI)[/dim]"
    )
    for path in paths:
        console.print(f"  [dim]->[/dim] {path}")
    if result.extracted_text:
        console.print(f"  [dim]text: {len(result.extracted_text)} chars[/dim]")
    return result
