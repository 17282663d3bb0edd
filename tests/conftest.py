"""Shared test fixtures."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from pixelguard.lifecycle.controller import LifecycleController
from pixelguard.storage.artifacts import ArtifactStore
from pixelguard.storage.database import init_db
from pixelguard.storage.local_store import LocalObjectStore
from pixelguard.storage.repositories.snapshots import InMemorySnapshotLedger
from pixelguard.storage.repositories.visual_tests import InMemoryVisualTestRepository
from pixelguard.web.app import create_app
from pixelguard.web.dependencies import get_controller

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture()
async def async_engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture()
def object_store(tmp_path: Path) -> LocalObjectStore:
    return LocalObjectStore(base_dir=tmp_path / "artifacts")


@pytest.fixture()
def artifacts(object_store: LocalObjectStore) -> ArtifactStore:
    return ArtifactStore(object_store)


@pytest.fixture()
def registry() -> InMemoryVisualTestRepository:
    return InMemoryVisualTestRepository()


@pytest.fixture()
def ledger() -> InMemorySnapshotLedger:
    return InMemorySnapshotLedger()


@pytest.fixture()
def controller(
    registry: InMemoryVisualTestRepository,
    ledger: InMemorySnapshotLedger,
    artifacts: ArtifactStore,
) -> LifecycleController:
    return LifecycleController(registry=registry, ledger=ledger, artifacts=artifacts)


@pytest.fixture()
def app(controller: LifecycleController):
    """A fresh app wired to the per-test controller."""
    application = create_app()
    application.dependency_overrides[get_controller] = lambda: controller
    return application


@pytest.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
