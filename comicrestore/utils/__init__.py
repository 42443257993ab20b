"""Utility module for ComicRestore."""

from comicrestore.utils.logging import get_console, get_logger, setup_logging, setup_task_logging

__all__ = ["get_console", "get_logger", "setup_logging", "setup_task_logging"]
