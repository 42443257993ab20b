"""Config command for configuration management."""

import json
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.table import Table

from comicrestore.config.constants import DEFAULT_CONFIG_FILE
from comicrestore.config.settings import load_settings
from comicrestore.exceptions import ConfigurationError

# Create config sub-app
config_app = typer.Typer(help="Configuration management.")
console = Console()

# Default configuration template, written by `config init`
DEFAULT_CONFIG_TEMPLATE: dict[str, Any] = {
    "_comments": {
        "token": "Set REPLICATE_API_TOKEN in the environment or .env rather than here.",
        "scale": "1, 2 or 4",
        "matte_compensation": "0-10, midtone lift for matte paper",
        "concurrency": "1-2 recommended; the service rate-limits per account",
        "keep_pages_hours": "restored page PNGs older than this are pruned; 0 keeps them",
    },
    "restore": {
        "scale": 2,
        "matte_compensation": 5.0,
        "face_restore": False,
        "ocr": False,
    },
    "page": {
        "width_in": 6.625,
        "height_in": 10.25,
        "bleed_in": 0.125,
        "dpi": 300,
    },
    "qa": {
        "enabled": True,
        "min_sharpness_ratio": 0.6,
        "max_color_deviation": 0.35,
        "max_damage_residual": 0.5,
    },
    "retry": {
        "max_restore_attempts": 3,
        "base_delay": 2.0,
        "max_delay": 60.0,
    },
    "batch": {
        "concurrency": 1,
        "stop_on_error": False,
        "combine": False,
    },
    "output": {
        "directory": "output",
        "title": "Restored Comic Book",
        "author": "",
        "keep_pages_hours": 24,
    },
    "log_level": "INFO",
}


@config_app.command("show")
def show(
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to a config.json file."),
    ] = None,
) -> None:
    """Show current configuration."""
    try:
        settings = load_settings(config)
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    console.print("\n[bold blue]Current Configuration[/bold blue]\n")

    table = Table(show_header=True, header_style="bold")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Log Level", settings.log_level)
    table.add_row("Log Directory", settings.log_dir)
    table.add_row("Output Directory", settings.output.directory)
    table.add_row("Keep Page Images", f"{settings.output.keep_pages_hours:g} h")

    # Page geometry
    page = settings.page
    table.add_row("Trim Size", f"{page.width_in} x {page.height_in} in")
    table.add_row("Bleed", f"{page.bleed_in} in")
    table.add_row("DPI", str(page.dpi))

    # Restoration
    table.add_row("Scale", f"{settings.restore.scale}x")
    table.add_row("Matte Compensation", str(settings.restore.matte_compensation))
    table.add_row("Face Restore", str(settings.restore.face_restore))
    table.add_row("OCR", str(settings.restore.ocr))

    # QA and retry
    qa = settings.qa
    table.add_row("QA Enabled", str(qa.enabled))
    table.add_row(
        "QA Thresholds",
        f"sharpness>={qa.min_sharpness_ratio}, color<={qa.max_color_deviation}, "
        f"damage<={qa.max_damage_residual}",
    )
    table.add_row("Max Restore Attempts", str(settings.retry.max_restore_attempts))

    # Batch
    table.add_row("Concurrency", str(settings.batch.concurrency))
    table.add_row("Stop On Error", str(settings.batch.stop_on_error))
    table.add_row("Combine", str(settings.batch.combine))

    token = settings.get_api_token()
    table.add_row(
        "API Token",
        "[green]configured[/green]" if token else f"[yellow]missing ({settings.service.api_token_env})[/yellow]",
    )

    console.print(table)
    console.print()


@config_app.command("init")
def init(
    path: Annotated[
        Path | None,
        typer.Option(
            "--path",
            "-p",
            help="Path to create config file.",
        ),
    ] = None,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Overwrite existing config file.",
        ),
    ] = False,
) -> None:
    """Initialize a configuration file."""
    config_path = path or Path.cwd() / DEFAULT_CONFIG_FILE

    if config_path.exists() and not force:
        console.print(f"[red]Error:[/red] Config file already exists at {config_path}")
        console.print("Use --force to overwrite.")
        raise typer.Exit(1)

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(json.dumps(DEFAULT_CONFIG_TEMPLATE, indent=2) + "\n", encoding="utf-8")
    console.print(f"[green]Created config file at:[/green] {config_path}")
