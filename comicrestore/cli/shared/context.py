"""Restoration execution context - holds initialized state for commands."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import typer
from rich.console import Console

from comicrestore.cli.shared.options import RestoreCLIOptions
from comicrestore.config.settings import load_settings
from comicrestore.core.models import RestoreOptions
from comicrestore.core.runner import JobRunner, RetryPolicy
from comicrestore.exceptions import ConfigurationError
from comicrestore.image.ocr import RapidOCRTextExtractor
from comicrestore.image.postprocess import PostProcessor
from comicrestore.image.qa import QAChecker
from comicrestore.pdf.compositor import PageGeometry
from comicrestore.pdf.exporter import PDFExporter
from comicrestore.restoration.base import BaseRestorationClient
from comicrestore.restoration.replicate import ReplicateClient
from comicrestore.storage.blob import LocalBlobStore
from comicrestore.utils.logging import get_console, get_logger, setup_task_logging

if TYPE_CHECKING:
    from comicrestore.config.settings import RestoreSettings

log = get_logger(__name__)


def create_client(settings: "RestoreSettings") -> BaseRestorationClient:
    """Build the restoration client for the configured service.

    Raises:
        ConfigurationError: If no API token is available
    """
    return ReplicateClient.from_settings(settings)


def _mask_config(config: dict[str, Any]) -> dict[str, Any]:
    """Hide secrets before logging a config dump."""
    service = config.get("service")
    if isinstance(service, dict) and service.get("api_token"):
        service["api_token"] = "***"
    return config


def fail(console: Console, message: str, code: int = 1) -> typer.Exit:
    """Print an error and build the matching exit."""
    console.print(f"[red]Error:[/red] {message}")
    return typer.Exit(code)


@dataclass
class RestoreContext:
    """Execution context for the restore and batch commands.

    Encapsulates settings loading, logging setup, option validation and
    construction of the runner, exporter and blob store.
    """

    settings: "RestoreSettings"
    options: RestoreCLIOptions
    restore_options: RestoreOptions
    task_id: str
    log_path: Path
    output_dir: Path
    console: Console = field(default_factory=get_console)

    @classmethod
    def create(
        cls,
        options: RestoreCLIOptions,
        command_prefix: str = "task",
        console: Console | None = None,
    ) -> "RestoreContext":
        """Create and initialize a context.

        Raises:
            typer.Exit: If configuration is invalid
        """
        console = console or get_console()

        try:
            settings = load_settings(options.config_path)
        except ConfigurationError as e:
            raise fail(console, str(e)) from e

        task_id, log_path = setup_task_logging(
            log_dir=settings.log_dir,
            prefix=command_prefix,
            verbose=options.verbose,
        )
        if options.verbose:
            log.info("Logs will be saved to", log_file=str(log_path))
        log.info(
            "Task Configuration",
            task_id=task_id,
            config=_mask_config(settings.model_dump(mode="json")),
        )

        for note in settings.warnings():
            console.print(f"[yellow]Warning:[/yellow] {note}")

        try:
            restore_options = RestoreOptions.from_settings(settings, **options.overrides())
            # Validate geometry up front
            PageGeometry.from_options(restore_options)
            if restore_options.ocr:
                RapidOCRTextExtractor.ensure_available()
        except ConfigurationError as e:
            raise fail(console, str(e)) from e

        output_dir = options.resolve_output_dir(settings, Path.cwd())
        if output_dir.exists() and not output_dir.is_dir():
            raise fail(console, f"Output path exists but is not a directory: {output_dir}")
        output_dir.mkdir(parents=True, exist_ok=True)

        return cls(
            settings=settings,
            options=options,
            restore_options=restore_options,
            task_id=task_id,
            log_path=log_path,
            output_dir=output_dir,
            console=console,
        )

    @property
    def combine(self) -> bool:
        return self.options.resolve_combine(self.settings)

    @property
    def geometry(self) -> PageGeometry:
        return PageGeometry.from_options(self.restore_options)

    def create_runner(self) -> JobRunner:
        """Build the job runner.

        Raises:
            typer.Exit: If the restoration client cannot be configured
        """
        try:
            client = create_client(self.settings)
        except ConfigurationError as e:
            raise fail(self.console, str(e)) from e

        text_extractor = RapidOCRTextExtractor() if self.restore_options.ocr else None
        return JobRunner(
            client=client,
            postprocessor=PostProcessor(text_extractor=text_extractor),
            qa_checker=QAChecker(self.settings.qa),
            policy=RetryPolicy.from_config(self.settings.retry),
        )

    def create_exporter(self) -> PDFExporter:
        return PDFExporter(author=self.settings.output.author or None)

    def create_store(self) -> LocalBlobStore:
        return LocalBlobStore(self.output_dir)
