"""Core datastructures for ComicRestore."""

from comicrestore.core.models import (
    FatalFailure,
    Job,
    JobResult,
    QAReport,
    RestoreOptions,
    Success,
    TransientFailure,
)
from comicrestore.core.state import BatchRun

__all__ = [
    "BatchRun",
    "FatalFailure",
    "Job",
    "JobResult",
    "QAReport",
    "RestoreOptions",
    "Success",
    "TransientFailure",
]
