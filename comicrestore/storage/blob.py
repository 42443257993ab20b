"""Blob storage for intermediate and final page buffers."""

from __future__ import annotations

import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path, PurePosixPath
from urllib.parse import unquote, urlparse

import anyio

from comicrestore.core.models import PixelBuffer
from comicrestore.exceptions import StorageError
from comicrestore.image.source import decode_image, encode_png
from comicrestore.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_MAX_AGE = timedelta(hours=24)


@dataclass(frozen=True)
class BlobInfo:
    """Listing entry for a stored blob."""

    key: str
    size: int
    uploaded_at: datetime
    url: str


class BlobStore(ABC):
    """Storage boundary: put/get/delete/list keyed blobs."""

    @abstractmethod
    async def put(self, key: str, data: bytes | PixelBuffer) -> str:
        """Store data under ``key`` and return its URL. Images are stored as PNG."""
        ...

    @abstractmethod
    async def get(self, url: str) -> bytes:
        """Fetch blob bytes by URL (or key)."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a blob. Missing blobs are ignored."""
        ...

    @abstractmethod
    async def list(self, prefix: str = "") -> list[BlobInfo]:
        """List blobs whose key starts with ``prefix``."""
        ...

    async def get_image(self, url: str) -> PixelBuffer:
        """Fetch and decode an image blob."""
        return decode_image(await self.get(url), name=url)

    async def cleanup_older_than(self, max_age: timedelta = DEFAULT_MAX_AGE, prefix: str = "") -> int:
        """Delete blobs uploaded more than ``max_age`` ago.

        Returns:
            Number of blobs deleted
        """
        cutoff = datetime.now() - max_age
        stale = [info for info in await self.list(prefix) if info.uploaded_at < cutoff]
        for info in stale:
            await self.delete(info.key)
        if stale:
            log.info("Old blobs removed", count=len(stale), prefix=prefix or None)
        return len(stale)


def _normalize_key(key: str) -> str:
    """Validate a blob key and return it in POSIX form."""
    path = PurePosixPath(key.replace("\\", "/"))
    if not key or path.is_absolute() or ".." in path.parts:
        raise StorageError(f"Invalid blob key: {key!r}")
    return str(path)


class LocalBlobStore(BlobStore):
    """Blob store backed by a local directory; URLs are ``file://`` URIs."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root).resolve()

    def _path(self, key: str) -> Path:
        return self.root / _normalize_key(key)

    def _key_from_url(self, url: str) -> str:
        if url.startswith("file://"):
            path = Path(unquote(urlparse(url).path))
            try:
                return path.resolve().relative_to(self.root).as_posix()
            except ValueError as e:
                raise StorageError(f"URL is outside the store: {url}") from e
        return _normalize_key(url)

    def _put_sync(self, key: str, data: bytes) -> str:
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
            tmp_path = Path(tmp_name)
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                tmp_path.replace(path)
            except BaseException:
                tmp_path.unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageError(f"Failed to store {key}: {e}") from e
        return path.as_uri()

    async def put(self, key: str, data: bytes | PixelBuffer) -> str:
        payload = data if isinstance(data, bytes) else encode_png(data)
        url = await anyio.to_thread.run_sync(self._put_sync, key, payload)
        log.debug("Blob stored", key=key, size=len(payload))
        return url

    def _get_sync(self, url: str) -> bytes:
        path = self._path(self._key_from_url(url))
        try:
            return path.read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to read {url}: {e}") from e

    async def get(self, url: str) -> bytes:
        return await anyio.to_thread.run_sync(self._get_sync, url)

    def _delete_sync(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete {key}: {e}") from e

    async def delete(self, key: str) -> None:
        await anyio.to_thread.run_sync(self._delete_sync, key)
        log.debug("Blob deleted", key=key)

    def _list_sync(self, prefix: str) -> list[BlobInfo]:
        if not self.root.is_dir():
            return []
        entries = []
        for path in sorted(self.root.rglob("*")):
            if not path.is_file() or path.name.startswith("."):
                continue
            key = path.relative_to(self.root).as_posix()
            if not key.startswith(prefix):
                continue
            stat = path.stat()
            entries.append(
                BlobInfo(
                    key=key,
                    size=stat.st_size,
                    uploaded_at=datetime.fromtimestamp(stat.st_mtime),
                    url=path.as_uri(),
                )
            )
        return entries

    async def list(self, prefix: str = "") -> list[BlobInfo]:
        return await anyio.to_thread.run_sync(self._list_sync, prefix)

