"""Inter-module data contracts for visual tests and their history."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field, field_validator

from pixelguard.config.settings import SENTINEL_PROJECT_ID
from pixelguard.types import VisualTestStatus


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive values; some drivers (SQLite) drop the offset on read."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class VisualTest(BaseModel):
    id: str
    project_id: str = SENTINEL_PROJECT_ID
    name: str
    target_reference: str = ""  # URL handed to the capture driver
    status: VisualTestStatus = VisualTestStatus.NEW
    match_percentage: float | None = None  # mismatch share of the last comparison
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("created_at", "updated_at")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        return as_utc(value)


class SnapshotRecord(BaseModel):
    """One ledger entry: a comparison or a baseline promotion."""

    id: int | None = None
    test_id: str
    is_baseline: bool = False
    status: VisualTestStatus
    match_percentage: float | None = None
    mismatch_count: int | None = None
    total_pixels: int | None = None
    dimension_mismatch: bool = False
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("created_at")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        return as_utc(value)
