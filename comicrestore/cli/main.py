"""Main CLI application using Typer."""

from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console

from comicrestore import __version__
from comicrestore.cli.commands.batch import batch
from comicrestore.cli.commands.check import check
from comicrestore.cli.commands.config import config_app
from comicrestore.cli.commands.restore import restore

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="comic-restore",
    help="Restore scanned comic pages and export print-ready PDFs.",
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)

console = Console()

app.command(name="restore", help="Restore a single page.")(restore)
app.command(name="batch", help="Restore all pages in a directory.")(batch)
app.command(name="check", help="Check credentials and configuration.")(check)
app.add_typer(config_app, name="config")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]ComicRestore[/bold blue] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """ComicRestore - comic page restoration pipeline.

    Pages are upscaled and repaired by a hosted model, checked for quality,
    then laid out at print size with bleed.
    """
    pass


if __name__ == "__main__":
    app()
