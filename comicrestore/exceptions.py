"""Custom exceptions for ComicRestore."""

from pathlib import Path


class ComicRestoreError(Exception):
    """Base exception class for ComicRestore."""

    pass


class ConfigurationError(ComicRestoreError):
    """Configuration error (missing credential, invalid geometry or options)."""

    pass


class ValidationError(ComicRestoreError):
    """Input rejected before any external call (dimensions, mask, size)."""

    pass


class ExternalServiceError(ComicRestoreError):
    """Error returned by the hosted inference service."""

    def __init__(
        self,
        message: str,
        transient: bool,
        status_code: int | None = None,
        retry_after: float | None = None,
    ) -> None:
        self.transient = transient
        self.status_code = status_code
        self.retry_after = retry_after
        super().__init__(message)


class RateLimitError(ExternalServiceError):
    """Rate limit exceeded."""

    def __init__(self, retry_after: float | None = None) -> None:
        message = f"Rate limited, retry after {retry_after}s" if retry_after else "Rate limited"
        super().__init__(message, transient=True, status_code=429, retry_after=retry_after)


class SourceReadError(ComicRestoreError):
    """Input image or mask could not be read."""

    def __init__(self, path: Path | str, message: str, cause: Exception | None = None) -> None:
        self.path = Path(path)
        self.cause = cause
        super().__init__(f"Cannot read {path}: {message}")


class StorageError(ComicRestoreError):
    """Blob storage read, write or delete failure."""

    pass


class QAFailure(ComicRestoreError):
    """Restored page rejected by quality assurance."""

    def __init__(self, reasons: list[str]) -> None:
        self.reasons = reasons
        super().__init__(f"QA failed: {'; '.join(reasons) or 'unknown reason'}")


class EmptyDocumentError(ComicRestoreError):
    """No accepted pages were available for assembly."""

    def __init__(self, total_results: int = 0) -> None:
        self.total_results = total_results
        super().__init__(f"No completed pages to assemble ({total_results} results submitted)")
