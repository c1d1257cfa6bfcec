"""Filesystem-backed blob store addressed by relative keys."""
from __future__ import annotations

import logging
import os
from pathlib import Path

from app.core.config import get_settings
from app.core.errors import StorageError

logger = logging.getLogger(__name__)


class LocalBlobStorage:
    """
    Keys are POSIX-style relative paths (e.g. "dc-installations/DC-2025-0001/x.pdf").
    A key may never resolve outside the storage root.
    """

    def __init__(self, root: str | os.PathLike):
        self.root = Path(root).resolve()

    def _resolve(self, key: str) -> Path:
        if not key or key.startswith("/") or "\\" in key:
            raise StorageError(f"Invalid storage key: {key!r}")
        path = (self.root / key).resolve()
        if self.root not in path.parents:
            raise StorageError(f"Storage key escapes root: {key!r}")
        return path

    def put(self, key: str, content: bytes) -> None:
        path = self._resolve(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        except OSError as exc:
            logger.error("storage write failed", extra={"key": key, "error": str(exc)})
            raise StorageError(f"Could not write {key}") from exc

    def exists(self, key: str) -> bool:
        return self._resolve(key).is_file()

    def local_path(self, key: str) -> Path:
        return self._resolve(key)

    def delete(self, key: str) -> bool:
        """Returns False when the blob was already gone."""
        path = self._resolve(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.error("storage delete failed", extra={"key": key, "error": str(exc)})
            raise StorageError(f"Could not delete {key}") from exc
        return True


def get_storage() -> LocalBlobStorage:
    return LocalBlobStorage(get_settings().storage_root)
