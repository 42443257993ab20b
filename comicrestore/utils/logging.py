"""Logging configuration using structlog.

Log records from structlog and the standard library share one processor chain
and are rendered by `structlog.stdlib.ProcessorFormatter`. The console handler
writes to a swappable stream so a Rich progress display can silence it while
the per-run log file keeps recording.
"""

import logging
import os
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any, TextIO

import numpy as np
import structlog
from PIL import Image
from rich.console import Console

if TYPE_CHECKING:
    from structlog.typing import EventDict, WrappedLogger

_console: Console | None = None
_log_output: TextIO = sys.stderr

# Clamped to WARNING unless running at DEBUG
_NOISY_LOGGERS = ("httpcore", "httpx", "PIL", "asyncio")

_INTERNAL_KEYS = {"event", "level", "timestamp", "_record", "_from_structlog"}

_MAX_VALUE_LENGTH = 500
_LOG_RETENTION_DAYS = 7


def get_console() -> Console:
    """Get the shared Rich console used by CLI output and progress bars."""
    global _console
    if _console is None:
        _console = Console(stderr=True)
    return _console


def set_log_output(output: TextIO) -> None:
    """Point the console handler at another stream on the next setup."""
    global _log_output
    _log_output = output


def _summarize(value: Any) -> Any:
    if isinstance(value, str) and len(value) > _MAX_VALUE_LENGTH:
        return value[:_MAX_VALUE_LENGTH] + f"... [{len(value)} chars total]"
    if isinstance(value, (bytes, bytearray)):
        return f"[BINARY DATA: {len(value)} bytes]"
    if isinstance(value, Image.Image):
        return f"[IMAGE {value.mode} {value.width}x{value.height}]"
    if isinstance(value, np.ndarray):
        return f"[ARRAY {value.dtype} {tuple(value.shape)}]"
    return value


def _filter_event_dict(
    _logger: "WrappedLogger", _method_name: str, event_dict: "EventDict"
) -> "EventDict":
    """Truncate long strings and replace pixel buffers with a short description."""
    for key, value in list(event_dict.items()):
        event_dict[key] = _summarize(value)
    return event_dict


def _add_separator(
    _logger: "WrappedLogger", _method_name: str, event_dict: "EventDict"
) -> "EventDict":
    """Add a visual separator between event message and context variables."""
    if "event" in event_dict and any(k not in _INTERNAL_KEYS for k in event_dict):
        event_dict["event"] = f"{event_dict['event']} |"
    return event_dict


def _level(name: str | None, default: int) -> int:
    if not name:
        return default
    return getattr(logging, name.upper(), default)


def _formatter(
    shared: list[structlog.types.Processor], renderer: structlog.types.Processor
) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )


def _renderer(json_format: bool, colors: bool) -> structlog.types.Processor:
    if json_format:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=colors,
        exception_formatter=structlog.dev.plain_traceback,
        pad_event_to=0,
        pad_level=False,
    )


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    json_format: bool = False,
    console: Console | None = None,
    console_level: str | None = None,
    file_level: str | None = None,
) -> None:
    """Configure structlog and the root logger.

    Args:
        level: Root log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path, rotated at midnight
        json_format: Render JSON lines instead of key/value text
        console: Optional Rich Console shared with progress displays
        console_level: Optional override for the console handler level
        file_level: Optional override for the file handler level
    """
    global _console

    root_level = _level(level, logging.INFO)
    if console is not None:
        _console = console

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(root_level)

    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(max(root_level, logging.WARNING))

    shared: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _filter_event_dict,
        _add_separator,
    ]

    console_handler = logging.StreamHandler(_log_output)
    console_handler.setLevel(_level(console_level, root_level))
    console_handler.setFormatter(_formatter(shared, _renderer(json_format, colors=True)))
    root_logger.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            log_file,
            when="midnight",
            backupCount=_LOG_RETENTION_DAYS,
            encoding="utf-8",
        )
        file_handler.suffix = "%Y-%m-%d"
        file_handler.setLevel(_level(file_level, root_level))
        file_handler.setFormatter(_formatter(shared, _renderer(json_format, colors=False)))
        root_logger.addHandler(file_handler)

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog bound logger."""
    return structlog.get_logger(name)


def create_task_log_path(log_dir: str | Path, prefix: str = "task") -> tuple[str, Path]:
    """Create a unique log file path for one run.

    Example:
        >>> task_id, log_path = create_task_log_path(".logs", "batch")
        >>> print(log_path)  # .logs/batch_20260109_143052_a1b2c3d4.log
    """
    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)

    task_id = uuid.uuid4().hex[:8]
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return task_id, directory / f"{prefix}_{stamp}_{task_id}.log"


def setup_task_logging(
    log_dir: str | Path,
    prefix: str = "task",
    verbose: bool = False,
) -> tuple[str, Path]:
    """Set up logging for one CLI invocation.

    The console shows WARNING and above (DEBUG with ``verbose``); the task
    log file always records DEBUG.

    Returns:
        Tuple of (task_id, log_file_path)
    """
    task_id, log_path = create_task_log_path(log_dir, prefix)
    _configure_task(log_path, verbose)
    return task_id, log_path


def _configure_task(log_path: Path, verbose: bool) -> None:
    setup_logging(
        level="DEBUG",
        log_file=str(log_path),
        console_level="DEBUG" if verbose else "WARNING",
        file_level="DEBUG",
    )


@contextmanager
def quiet_console(log_path: Path) -> Iterator[None]:
    """Silence console logging while a progress display owns the terminal.

    The task log file at ``log_path`` keeps receiving every record. Console
    output goes back to the previous stream on exit.
    """
    previous = _log_output
    with open(os.devnull, "w", encoding="utf-8") as devnull:
        set_log_output(devnull)
        _configure_task(log_path, verbose=False)
        try:
            yield
        finally:
            set_log_output(previous)
            _configure_task(log_path, verbose=False)
