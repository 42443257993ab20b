"""ComicRestore - print-ready restoration of scanned comic pages."""

__version__ = "0.1.0"
