"""Local filesystem object store implementation."""

from __future__ import annotations

import asyncio
import os
import pathlib  # noqa: TC003 - used at runtime for Path operations
import tempfile

import structlog

from pixelguard.exceptions import StorageError
from pixelguard.storage.object_store import ObjectStore

logger = structlog.get_logger(__name__)


def _atomic_write(path: pathlib.Path, data: bytes) -> None:
    """Write to a sibling temp file and rename it over the target."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


class LocalObjectStore(ObjectStore):
    """Object store backed by local filesystem with path traversal protection."""

    def __init__(self, base_dir: pathlib.Path) -> None:
        self._base = base_dir.resolve()
        self._base.mkdir(parents=True, exist_ok=True)

    @property
    def base_dir(self) -> pathlib.Path:
        return self._base

    def _resolve_path(self, key: str) -> pathlib.Path:
        """Resolve key to absolute path with traversal protection."""
        path = (self._base / key).resolve()
        if not path.is_relative_to(self._base) or path == self._base:
            msg = f"Path traversal detected: {key}"
            raise ValueError(msg)
        return path

    async def put(self, key: str, data: bytes) -> None:
        path = self._resolve_path(key)
        try:
            await asyncio.to_thread(_atomic_write, path, data)
        except OSError as e:
            raise StorageError(f"Failed to write {key}: {e}") from e
        logger.debug("local_store_put", key=key, size=len(data))

    async def get(self, key: str) -> bytes | None:
        path = self._resolve_path(key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Failed to read {key}: {e}") from e

    async def exists(self, key: str) -> bool:
        path = self._resolve_path(key)
        return await asyncio.to_thread(path.is_file)

    async def delete(self, key: str) -> None:
        path = self._resolve_path(key)
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete {key}: {e}") from e
