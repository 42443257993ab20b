"""Shared CLI components."""

from comicrestore.cli.shared.context import RestoreContext
from comicrestore.cli.shared.options import RestoreCLIOptions

__all__ = ["RestoreCLIOptions", "RestoreContext"]
