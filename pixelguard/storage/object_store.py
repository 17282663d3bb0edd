"""Abstract object store interface for binary artifact storage."""

from __future__ import annotations

from abc import ABC, abstractmethod


class ObjectStore(ABC):
    """Abstract base class for object/blob storage.

    Implementations must make ``put`` atomic: a concurrent ``get`` sees either
    the previous bytes or the new bytes, never a partial write.
    """

    @abstractmethod
    async def put(self, key: str, data: bytes) -> None:
        """Store binary data at the given key, replacing any previous object."""

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """Retrieve binary data by key. Returns None if not found."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Return True if an object is stored at the key."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete the object at the given key. Missing keys are ignored."""


def create_object_store() -> ObjectStore:
    """Factory: create the appropriate ObjectStore based on settings."""
    from pixelguard.config.settings import get_settings

    settings = get_settings()
    if settings.use_s3:
        from pixelguard.storage.s3_store import S3ObjectStore

        return S3ObjectStore(
            bucket=settings.s3_bucket or "",
            endpoint_url=settings.s3_endpoint_url,
            access_key_id=settings.s3_access_key_id,
            secret_access_key=settings.s3_secret_access_key,
            region=settings.s3_region,
        )

    from pathlib import Path

    from pixelguard.storage.local_store import LocalObjectStore

    return LocalObjectStore(base_dir=Path(settings.artifacts_dir).expanduser())
