"""Lifecycle controller for visual tests.

The controller is the only component that touches both the artifact store
and the diff engine, and the only writer of a test's status. Every mutating
operation runs under the test's own lock, so two runs of the same test are
serialized while unrelated tests proceed in parallel.

State machine::

    run (no baseline)        -> new
    run (baseline, 0 diff)   -> pass
    run (baseline, diff > 0) -> fail
    run (size mismatch)      -> fail, match 0, no diff artifact
    promote / approve        -> pass, match 100
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from pixelguard.comparison.diff import DEFAULT_THRESHOLD, DiffResult, VisualDiff
from pixelguard.comparison.images import RasterImage
from pixelguard.config.settings import SENTINEL_PROJECT_ID
from pixelguard.exceptions import (
    CaptureError,
    ConfigError,
    NoLatestCaptureError,
    PixelGuardError,
    StorageError,
    TestNotFoundError,
)
from pixelguard.lifecycle.locks import KeyedLocks
from pixelguard.models.domain import SnapshotRecord
from pixelguard.types import ArtifactSlot, VisualTestStatus

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from pixelguard.capture.driver import CaptureDriver
    from pixelguard.models.domain import VisualTest
    from pixelguard.storage.artifacts import ArtifactStore
    from pixelguard.storage.repositories.snapshots import SnapshotLedger
    from pixelguard.storage.repositories.visual_tests import VisualTestRegistry

logger = structlog.get_logger(__name__)

PROMOTED_MATCH_PERCENTAGE = 100.0


@dataclass(frozen=True)
class RunOutcome:
    """Test state after a run; ``diff`` is None when no baseline existed."""

    test: VisualTest
    diff: DiffResult | None = None


class _SlotJournal:
    """Remembers the prior bytes of every slot it writes so they can be restored."""

    def __init__(self, artifacts: ArtifactStore, test_id: str) -> None:
        self._artifacts = artifacts
        self._test_id = test_id
        self._saved: dict[ArtifactSlot, bytes | None] = {}

    async def _remember(self, slot: ArtifactSlot) -> None:
        if slot not in self._saved:
            self._saved[slot] = await self._artifacts.get_optional(self._test_id, slot)

    async def put(self, slot: ArtifactSlot, data: bytes) -> None:
        await self._remember(slot)
        await self._artifacts.put(self._test_id, slot, data)

    async def delete(self, slot: ArtifactSlot) -> None:
        await self._remember(slot)
        await self._artifacts.delete(self._test_id, slot)

    async def restore(self) -> None:
        for slot, data in reversed(list(self._saved.items())):
            try:
                if data is None:
                    await self._artifacts.delete(self._test_id, slot)
                else:
                    await self._artifacts.put(self._test_id, slot, data)
            except PixelGuardError as e:
                logger.error(
                    "artifact_rollback_failed",
                    test_id=self._test_id,
                    slot=str(slot),
                    error=str(e),
                )


class LifecycleController:
    """Orchestrates capture, comparison, promotion and deletion of visual tests."""

    def __init__(
        self,
        registry: VisualTestRegistry,
        ledger: SnapshotLedger,
        artifacts: ArtifactStore,
        capture_driver: CaptureDriver | None = None,
        threshold: float = DEFAULT_THRESHOLD,
        snapshot_retention: int = 0,
    ) -> None:
        self._registry = registry
        self._ledger = ledger
        self._artifacts = artifacts
        self._capture_driver = capture_driver
        self._differ = VisualDiff(threshold)
        self._retention = snapshot_retention
        self._locks = KeyedLocks()

    @property
    def locks(self) -> KeyedLocks:
        return self._locks

    # --- Registry passthroughs ---

    async def create_test(
        self, name: str, target_reference: str = "", project_id: str = SENTINEL_PROJECT_ID
    ) -> VisualTest:
        return await self._registry.create(
            name=name, target_reference=target_reference, project_id=project_id
        )

    async def list_tests(self, project_id: str | None = None) -> list[VisualTest]:
        return await self._registry.list_all(project_id=project_id)

    async def get_status(self, test_id: str, project_id: str | None = None) -> VisualTest:
        return await self._registry.require(test_id, project_id)

    async def update_test(
        self,
        test_id: str,
        name: str | None = None,
        target_reference: str | None = None,
        project_id: str | None = None,
    ) -> VisualTest:
        async with self._locks.hold(test_id):
            await self._registry.require(test_id, project_id)
            return await self._registry.update_details(
                test_id, name=name, target_reference=target_reference
            )

    async def get_artifact(
        self, test_id: str, slot: ArtifactSlot, project_id: str | None = None
    ) -> bytes:
        await self._registry.require(test_id, project_id)
        return await self._artifacts.get(test_id, slot)

    async def list_history(
        self, test_id: str, limit: int | None = None, project_id: str | None = None
    ) -> list[SnapshotRecord]:
        await self._registry.require(test_id, project_id)
        return await self._ledger.list(test_id, limit=limit)

    # --- State transitions ---

    async def run_and_compare(
        self, test_id: str, captured: bytes, project_id: str | None = None
    ) -> RunOutcome:
        """Store a capture as latest and compare it with the baseline, if any."""
        async with self._locks.hold(test_id):
            await self._registry.require(test_id, project_id)
            return await self._run_locked(test_id, captured)

    async def capture_and_compare(
        self, test_id: str, timeout: float | None = None, project_id: str | None = None
    ) -> RunOutcome:
        """Capture the test's target through the driver, then run and compare.

        A timeout or driver failure raises CaptureError and leaves the test
        untouched.
        """
        if self._capture_driver is None:
            raise ConfigError("No capture driver configured")

        async with self._locks.hold(test_id):
            test = await self._registry.require(test_id, project_id)
            if not test.target_reference:
                raise CaptureError(f"Visual test {test_id} has no target reference")
            try:
                async with asyncio.timeout(timeout):
                    captured = await self._capture_driver.capture(test.target_reference, timeout)
            except TimeoutError as e:
                logger.warning("capture_timeout", test_id=test_id, timeout=timeout)
                raise CaptureError(
                    f"Capture of {test.target_reference} timed out after {timeout}s",
                    timed_out=True,
                ) from e
            return await self._run_locked(test_id, captured)

    async def promote(self, test_id: str, project_id: str | None = None) -> VisualTest:
        """Copy the latest capture over the baseline."""
        async with self._locks.hold(test_id):
            await self._registry.require(test_id, project_id)
            latest = await self._artifacts.get_optional(test_id, ArtifactSlot.LATEST)
            if latest is None:
                raise NoLatestCaptureError(test_id)
            test = await self._accept_baseline(test_id, latest)
            logger.info("baseline_promoted", test_id=test_id)
            return test

    async def approve(self, test_id: str, project_id: str | None = None) -> VisualTest:
        return await self.promote(test_id, project_id=project_id)

    async def upload_baseline(
        self, test_id: str, data: bytes, project_id: str | None = None
    ) -> VisualTest:
        """Replace the baseline with externally supplied PNG bytes."""
        async with self._locks.hold(test_id):
            await self._registry.require(test_id, project_id)
            RasterImage.from_png(data)
            test = await self._accept_baseline(test_id, data)
            logger.info("baseline_uploaded", test_id=test_id, size=len(data))
            return test

    async def delete_test(self, test_id: str, project_id: str | None = None) -> None:
        """Delete a test with its artifacts and history. Idempotent.

        Artifact and ledger cleanup is best-effort; failures are logged.
        """
        async with self._locks.hold(test_id):
            existing = await self._registry.get(test_id)
            if existing is None:
                logger.debug("visual_test_already_deleted", test_id=test_id)
                return
            if project_id is not None and existing.project_id != project_id:
                raise TestNotFoundError(test_id)

            await self._artifacts.delete_all(test_id)
            try:
                removed = await self._ledger.delete_for_test(test_id)
                logger.debug("snapshot_history_deleted", test_id=test_id, removed=removed)
            except (StorageError, OSError) as e:
                logger.warning("snapshot_cleanup_failed", test_id=test_id, error=str(e))
            await self._registry.delete(test_id)

    # --- Internals ---

    @asynccontextmanager
    async def _transaction(self, test_id: str) -> AsyncIterator[_SlotJournal]:
        journal = _SlotJournal(self._artifacts, test_id)
        try:
            yield journal
        except BaseException:
            await journal.restore()
            raise

    async def _run_locked(self, test_id: str, captured: bytes) -> RunOutcome:
        latest = RasterImage.from_png(captured)
        baseline_bytes = await self._artifacts.get_optional(test_id, ArtifactSlot.BASELINE)

        if baseline_bytes is None:
            async with self._transaction(test_id) as journal:
                await journal.put(ArtifactSlot.LATEST, captured)
                await journal.delete(ArtifactSlot.DIFF)
                test = await self._registry.update_status(test_id, VisualTestStatus.NEW, None)
            logger.info("new_capture_without_baseline", test_id=test_id)
            return RunOutcome(test=test)

        baseline = RasterImage.from_png(baseline_bytes)
        result = await asyncio.to_thread(self._differ.compare, baseline, latest)
        status = VisualTestStatus.PASS if result.passed else VisualTestStatus.FAIL

        async with self._transaction(test_id) as journal:
            await journal.put(ArtifactSlot.LATEST, captured)
            if result.diff_image is not None:
                await journal.put(ArtifactSlot.DIFF, result.diff_image)
            else:
                await journal.delete(ArtifactSlot.DIFF)
            test = await self._registry.update_status(test_id, status, result.match_percentage)

        await self._record(
            SnapshotRecord(
                test_id=test_id,
                status=status,
                match_percentage=result.match_percentage,
                mismatch_count=result.mismatch_count,
                total_pixels=result.total_pixels,
                dimension_mismatch=result.dimension_mismatch,
            )
        )
        logger.info(
            "visual_test_compared",
            test_id=test_id,
            status=str(status),
            mismatch_pct=result.match_percentage,
            dimension_mismatch=result.dimension_mismatch,
        )
        return RunOutcome(test=test, diff=result)

    async def _accept_baseline(self, test_id: str, data: bytes) -> VisualTest:
        async with self._transaction(test_id) as journal:
            await journal.put(ArtifactSlot.BASELINE, data)
            await journal.delete(ArtifactSlot.DIFF)
            test = await self._registry.update_status(
                test_id, VisualTestStatus.PASS, PROMOTED_MATCH_PERCENTAGE
            )
        await self._record(
            SnapshotRecord(
                test_id=test_id,
                is_baseline=True,
                status=VisualTestStatus.PASS,
                match_percentage=PROMOTED_MATCH_PERCENTAGE,
            )
        )
        return test

    async def _record(self, record: SnapshotRecord) -> None:
        """Append to the ledger; errors are logged and never fail a committed transition."""
        try:
            await self._ledger.append(record)
            if self._retention > 0:
                await self._ledger.prune(record.test_id, self._retention)
        except (PixelGuardError, OSError, ValueError, RuntimeError) as e:
            logger.warning("snapshot_append_failed", test_id=record.test_id, error=str(e))
