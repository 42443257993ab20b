"""Blob storage boundary."""

from comicrestore.storage.blob import BlobInfo, BlobStore, LocalBlobStore

__all__ = ["BlobInfo", "BlobStore", "LocalBlobStore"]
