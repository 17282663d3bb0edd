"""Snapshot ledger: append-only comparison history per visual test."""

from __future__ import annotations

import itertools
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Protocol

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col, delete, select
from sqlmodel.ext.asyncio.session import AsyncSession

from pixelguard.exceptions import StorageError
from pixelguard.models.database import SnapshotRow
from pixelguard.models.domain import SnapshotRecord
from pixelguard.types import VisualTestStatus

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine
    from sqlmodel.sql.expression import SelectOfScalar

logger = structlog.get_logger(__name__)


class SnapshotLedger(Protocol):
    async def append(self, record: SnapshotRecord) -> SnapshotRecord: ...

    async def list(self, test_id: str, limit: int | None = None) -> list[SnapshotRecord]: ...

    async def prune(self, test_id: str, keep: int) -> int: ...

    async def delete_for_test(self, test_id: str) -> int: ...


class InMemorySnapshotLedger:
    """In-memory ledger for dev/testing without a database."""

    def __init__(self) -> None:
        self._records: dict[str, list[SnapshotRecord]] = defaultdict(list)
        self._ids = itertools.count(1)

    async def append(self, record: SnapshotRecord) -> SnapshotRecord:
        stored = record.model_copy(update={"id": next(self._ids)})
        self._records[record.test_id].append(stored)
        return stored.model_copy()

    async def list(self, test_id: str, limit: int | None = None) -> list[SnapshotRecord]:
        newest_first = [r.model_copy() for r in reversed(self._records.get(test_id, []))]
        return newest_first if limit is None else newest_first[:limit]

    async def prune(self, test_id: str, keep: int) -> int:
        records = self._records.get(test_id, [])
        excess = max(len(records) - keep, 0)
        if excess:
            del records[:excess]
        return excess

    async def delete_for_test(self, test_id: str) -> int:
        return len(self._records.pop(test_id, []))


class DatabaseSnapshotLedger:
    """PostgreSQL-backed ledger using SQLModel."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with AsyncSession(self._engine, expire_on_commit=False) as session:
                yield session
        except SQLAlchemyError as e:
            raise StorageError(f"Snapshot ledger unavailable: {e}") from e

    def _to_domain(self, row: SnapshotRow) -> SnapshotRecord:
        return SnapshotRecord(
            id=row.id,
            test_id=row.test_id,
            is_baseline=row.is_baseline,
            status=VisualTestStatus(row.status),
            match_percentage=row.match_percentage,
            mismatch_count=row.mismatch_count,
            total_pixels=row.total_pixels,
            dimension_mismatch=row.dimension_mismatch,
            created_at=row.created_at,
        )

    async def append(self, record: SnapshotRecord) -> SnapshotRecord:
        async with self._session() as session:
            row = SnapshotRow(
                test_id=record.test_id,
                is_baseline=record.is_baseline,
                status=VisualTestStatus(record.status).value,
                match_percentage=record.match_percentage,
                mismatch_count=record.mismatch_count,
                total_pixels=record.total_pixels,
                dimension_mismatch=record.dimension_mismatch,
                created_at=record.created_at,
            )
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return self._to_domain(row)

    def _newest_first(self, test_id: str) -> SelectOfScalar[SnapshotRow]:
        return (
            select(SnapshotRow)
            .where(col(SnapshotRow.test_id) == test_id)
            .order_by(col(SnapshotRow.created_at).desc(), col(SnapshotRow.id).desc())
        )

    async def list(self, test_id: str, limit: int | None = None) -> list[SnapshotRecord]:
        async with self._session() as session:
            statement = self._newest_first(test_id)
            if limit is not None:
                statement = statement.limit(limit)
            results = await session.execute(statement)
            return [self._to_domain(r) for r in results.scalars().all()]

    async def prune(self, test_id: str, keep: int) -> int:
        async with self._session() as session:
            results = await session.execute(
                select(SnapshotRow.id)
                .where(col(SnapshotRow.test_id) == test_id)
                .order_by(col(SnapshotRow.created_at).desc(), col(SnapshotRow.id).desc())
                .offset(keep)
            )
            stale = [r for (r,) in results.all()]
            if stale:
                await session.execute(delete(SnapshotRow).where(col(SnapshotRow.id).in_(stale)))
                await session.commit()
                logger.debug("snapshot_ledger_pruned", test_id=test_id, removed=len(stale))
            return len(stale)

    async def delete_for_test(self, test_id: str) -> int:
        async with self._session() as session:
            result = await session.execute(
                delete(SnapshotRow).where(col(SnapshotRow.test_id) == test_id)
            )
            await session.commit()
            return result.rowcount or 0
