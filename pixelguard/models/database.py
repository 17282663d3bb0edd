"""SQLModel database table models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from pixelguard.config.settings import SENTINEL_PROJECT_ID
from pixelguard.models.domain import utc_now


def _new_uuid() -> str:
    return str(uuid.uuid4())


class VisualTestRow(SQLModel, table=True):
    __tablename__ = "visual_tests"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    project_id: str = Field(default=SENTINEL_PROJECT_ID, index=True)
    name: str
    target_reference: str = ""
    status: str = Field(default="new")  # new | pass | fail
    match_percentage: float | None = None
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))


class SnapshotRow(SQLModel, table=True):
    __tablename__ = "snapshot_records"

    id: int | None = Field(default=None, primary_key=True)
    # No FK: ledger rows are removed by the delete cascade, best-effort
    test_id: str = Field(index=True)
    is_baseline: bool = Field(default=False)
    status: str
    match_percentage: float | None = None
    mismatch_count: int | None = None
    total_pixels: int | None = None
    dimension_mismatch: bool = Field(default=False)
    created_at: datetime = Field(
        default_factory=utc_now, sa_type=DateTime(timezone=True), index=True
    )
