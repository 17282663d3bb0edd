"""Artifact storage for the baseline, latest and diff images of a visual test.

Every test owns exactly three slots. Keys are a pure function of
``(test_id, slot)`` so writing a slot again overwrites it in place.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from pixelguard.exceptions import ArtifactNotFoundError, StorageError
from pixelguard.types import ArtifactSlot

if TYPE_CHECKING:
    from pixelguard.storage.object_store import ObjectStore

logger = structlog.get_logger(__name__)

KEY_PREFIX = "visual-tests"


def artifact_key(test_id: str, slot: ArtifactSlot | str) -> str:
    """Build the storage key for a test's slot."""
    if not test_id or "/" in test_id or "\\" in test_id or test_id in {".", ".."}:
        msg = f"Invalid test id for artifact key: {test_id!r}"
        raise ValueError(msg)
    return f"{KEY_PREFIX}/{test_id}/{ArtifactSlot(slot).value}.png"


class ArtifactStore:
    """Stores the three image slots of each visual test in an ObjectStore."""

    def __init__(self, store: ObjectStore) -> None:
        self._store = store

    async def put(self, test_id: str, slot: ArtifactSlot, data: bytes) -> None:
        key = artifact_key(test_id, slot)
        await self._store.put(key, data)
        logger.debug("artifact_saved", test_id=test_id, slot=str(slot), size=len(data))

    async def get(self, test_id: str, slot: ArtifactSlot) -> bytes:
        data = await self._store.get(artifact_key(test_id, slot))
        if data is None:
            raise ArtifactNotFoundError(test_id, str(slot))
        return data

    async def get_optional(self, test_id: str, slot: ArtifactSlot) -> bytes | None:
        return await self._store.get(artifact_key(test_id, slot))

    async def exists(self, test_id: str, slot: ArtifactSlot) -> bool:
        return await self._store.exists(artifact_key(test_id, slot))

    async def delete(self, test_id: str, slot: ArtifactSlot) -> None:
        await self._store.delete(artifact_key(test_id, slot))
        logger.debug("artifact_deleted", test_id=test_id, slot=str(slot))

    async def delete_all(self, test_id: str) -> list[ArtifactSlot]:
        """Delete every slot of a test, continuing past failures.

        Returns the slots that could not be deleted.
        """
        failed: list[ArtifactSlot] = []
        for slot in ArtifactSlot:
            try:
                await self.delete(test_id, slot)
            except (StorageError, OSError, ValueError) as e:
                logger.warning(
                    "artifact_cleanup_failed", test_id=test_id, slot=str(slot), error=str(e)
                )
                failed.append(slot)
        if not failed:
            logger.info("test_artifacts_cleaned", test_id=test_id)
        return failed
