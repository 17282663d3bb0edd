"""FastAPI dependency injection and shared state."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

import structlog

from pixelguard.config.settings import get_settings
from pixelguard.lifecycle.controller import LifecycleController
from pixelguard.storage.artifacts import ArtifactStore
from pixelguard.storage.object_store import create_object_store
from pixelguard.storage.repositories.snapshots import InMemorySnapshotLedger
from pixelguard.storage.repositories.visual_tests import InMemoryVisualTestRepository

logger = structlog.get_logger(__name__)


def _create_registry() -> Any:
    """Create the appropriate visual test registry based on settings."""
    settings = get_settings()
    if settings.use_database:
        from pixelguard.storage.database import get_engine
        from pixelguard.storage.repositories.visual_tests import (
            DatabaseVisualTestRepository,
        )

        return DatabaseVisualTestRepository(get_engine())
    return InMemoryVisualTestRepository()


def _create_ledger() -> Any:
    """Create the appropriate snapshot ledger based on settings."""
    settings = get_settings()
    if settings.use_database:
        from pixelguard.storage.database import get_engine
        from pixelguard.storage.repositories.snapshots import DatabaseSnapshotLedger

        return DatabaseSnapshotLedger(get_engine())
    return InMemorySnapshotLedger()


@lru_cache
def get_controller() -> LifecycleController:
    """Return the process-wide lifecycle controller."""
    from pixelguard.capture.driver import create_capture_driver

    settings = get_settings()
    controller = LifecycleController(
        registry=_create_registry(),
        ledger=_create_ledger(),
        artifacts=ArtifactStore(create_object_store()),
        capture_driver=create_capture_driver(),
        threshold=settings.diff_threshold,
        snapshot_retention=settings.snapshot_retention,
    )
    logger.info(
        "lifecycle_controller_ready",
        use_database=settings.use_database,
        use_s3=settings.use_s3,
        threshold=settings.diff_threshold,
    )
    return controller
