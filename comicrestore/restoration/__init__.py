"""Restoration client boundary."""

from comicrestore.restoration.base import BaseRestorationClient, classify_status, validate_inputs
from comicrestore.restoration.replicate import ReplicateClient

__all__ = ["BaseRestorationClient", "ReplicateClient", "classify_status", "validate_inputs"]
