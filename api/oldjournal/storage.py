"""Blob storage for uploaded files (avatars).

Files live under STORAGE_ROOT in a hash-based folder structure derived from
the storage key, and are served from STORAGE_URL_PREFIX.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Protocol
from urllib.parse import urlparse

from . import settings

logger = logging.getLogger(__name__)


class StorageAdapter(Protocol):
    def upload(self, content: bytes, key: str) -> str:
        """Store content under key and return its public URL."""
        ...

    def delete(self, url_or_key: str) -> None:
        """Remove a stored file. Missing files are not an error."""
        ...


class LocalStorageAdapter:
    """Filesystem storage with sharded folders: <root>/<aa>/<bb>/<key>."""

    def __init__(self, root: str | Path | None = None, url_prefix: str | None = None) -> None:
        self.root = Path(root or settings.STORAGE_ROOT)
        self.url_prefix = (url_prefix or settings.STORAGE_URL_PREFIX).rstrip("/")

    @staticmethod
    def _shard(key: str) -> tuple[str, str]:
        digest = hashlib.sha256(key.encode()).hexdigest()
        return digest[0:2], digest[2:4]

    def _validate_key(self, key: str) -> str:
        name = Path(key).name
        if not name or name != key or name in (".", ".."):
            raise ValueError(f"Invalid storage key: {key!r}")
        return name

    def path_for(self, key: str) -> Path:
        key = self._validate_key(key)
        chunk1, chunk2 = self._shard(key)
        return self.root / chunk1 / chunk2 / key

    def url_for(self, key: str) -> str:
        chunk1, chunk2 = self._shard(key)
        return f"{self.url_prefix}/{chunk1}/{chunk2}/{key}"

    def upload(self, content: bytes, key: str) -> str:
        file_path = self.path_for(key)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_bytes(content)
        logger.info(f"Stored {len(content)} bytes at {file_path}")
        return self.url_for(key)

    def key_from_url(self, url_or_key: str) -> str | None:
        """Extract the storage key from one of our URLs, or accept a bare key."""
        path = urlparse(url_or_key).path if "://" in url_or_key else url_or_key
        if "/" not in path:
            return path or None

        prefix = f"{self.url_prefix}/"
        if not path.startswith(prefix):
            return None
        parts = path[len(prefix):].split("/")
        if len(parts) != 3:
            return None
        chunk1, chunk2, key = parts
        if (chunk1, chunk2) != self._shard(key):
            return None
        return key

    def delete(self, url_or_key: str) -> None:
        key = self.key_from_url(url_or_key)
        if key is None:
            logger.debug(f"Not a local storage reference, skipping delete: {url_or_key}")
            return
        self.path_for(key).unlink(missing_ok=True)
        logger.info(f"Deleted stored file {key}")


def try_delete(storage: StorageAdapter, url_or_key: str | None) -> bool:
    """
    Best-effort delete of a superseded file.

    Failures are logged and swallowed; the caller's operation has already
    succeeded by the time old files are cleaned up.
    """
    if not url_or_key:
        return False
    try:
        storage.delete(url_or_key)
        return True
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to delete stored file {url_or_key}: {e}")
        return False


def get_storage() -> StorageAdapter:
    return LocalStorageAdapter()
