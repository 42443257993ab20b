"""Check command: verify the environment before a run."""

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from comicrestore.config.settings import load_settings
from comicrestore.exceptions import ConfigurationError
from comicrestore.image.ocr import RapidOCRTextExtractor
from comicrestore.restoration.replicate import ReplicateClient

console = Console()


def check(
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to a config.json file."),
    ] = None,
    online: Annotated[
        bool,
        typer.Option("--online", help="Also verify the token against the service."),
    ] = False,
) -> None:
    """Check credentials and configuration."""
    try:
        settings = load_settings(config)
    except ConfigurationError as e:
        console.print(f"[red]x[/red] Configuration: {e}")
        raise typer.Exit(1) from e
    console.print("[green]✓[/green] Configuration loaded")

    problems = 0
    token = settings.get_api_token()
    if token:
        console.print(f"[green]✓[/green] API token found ({token[:4]}...)")
    else:
        console.print(
            f"[red]x[/red] API token missing. Set {settings.service.api_token_env} "
            "or service.api_token."
        )
        problems += 1

    if settings.restore.ocr:
        try:
            RapidOCRTextExtractor.ensure_available()
            console.print("[green]✓[/green] OCR engine available")
        except ConfigurationError as e:
            console.print(f"[red]x[/red] {e}")
            problems += 1

    if online and token:
        client = ReplicateClient.from_settings(settings)
        valid = asyncio.run(_validate(client))
        if valid:
            console.print("[green]✓[/green] Token accepted by the service")
        else:
            console.print("[red]x[/red] Token rejected by the service")
            problems += 1

    for note in settings.warnings():
        console.print(f"[yellow]![/yellow] {note}")

    if problems:
        raise typer.Exit(1)
    console.print("\n[bold green]Ready to restore.[/bold green]")


async def _validate(client: ReplicateClient) -> bool:
    try:
        return await client.validate()
    finally:
        await client.aclose()
