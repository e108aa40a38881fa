from __future__ import annotations

import os
import re
import tempfile
from abc import ABC, abstractmethod
from typing import Dict, Optional

from .settings import Settings, get_settings


# PUBLIC_INTERFACE
class BlobStore(ABC):
    """Key-value store of opaque text blobs. `set` fully overwrites the previous value."""

    name: str = "blob"

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the blob stored under key, or None if absent."""

    @abstractmethod
    def set(self, key: str, blob: str) -> None:
        """Store blob under key, replacing any previous value."""


class MemoryBlobStore(BlobStore):
    """
    Process-local store suitable for testing and default runtime.
    """

    name = "memory"

    def __init__(self) -> None:
        self._blobs: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._blobs.get(key)

    def set(self, key: str, blob: str) -> None:
        self._blobs[key] = blob


_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class FileBlobStore(BlobStore):
    """
    One UTF-8 file per key inside a directory. Writes go through a temporary
    file and os.replace, so a reader sees either the old or the new blob.
    """

    name = "file"

    def __init__(self, directory: str) -> None:
        os.makedirs(directory or ".", exist_ok=True)
        self._directory = directory or "."

    def path_for(self, key: str) -> str:
        return os.path.join(self._directory, _UNSAFE_CHARS.sub("_", key) + ".json")

    def get(self, key: str) -> Optional[str]:
        try:
            with open(self.path_for(key), "r", encoding="utf-8") as f:
                return f.read()
        except FileNotFoundError:
            return None

    def set(self, key: str, blob: str) -> None:
        path = self.path_for(key)
        fd, tmp_path = tempfile.mkstemp(dir=self._directory, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(blob)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise


# PUBLIC_INTERFACE
def get_blob_store(settings: Optional[Settings] = None) -> BlobStore:
    """
    Factory to return the configured blob store based on settings.
    - memory: MemoryBlobStore
    - file: FileBlobStore rooted at STORAGE_DIR
    - sqlite: SQLiteBlobStore at SQLITE_DB_PATH
    """
    settings = settings or get_settings()
    if settings.storage_backend == "sqlite":
        from .db import SQLiteBlobStore

        return SQLiteBlobStore(settings.sqlite_db_path)
    if settings.storage_backend == "file":
        return FileBlobStore(settings.storage_dir)
    return MemoryBlobStore()
