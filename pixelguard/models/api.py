"""API request/response schemas for FastAPI endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from pixelguard.types import VisualTestStatus


class CreateVisualTestRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    target_reference: str = Field(default="", max_length=2048)


class UpdateVisualTestRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    target_reference: str | None = Field(default=None, max_length=2048)


class CaptureRequest(BaseModel):
    timeout: float | None = Field(default=None, gt=0, le=600)


class VisualTestResponse(BaseModel):
    id: str
    project_id: str
    name: str
    target_reference: str
    status: VisualTestStatus
    match_percentage: float | None
    created_at: datetime
    updated_at: datetime


class RunOutcomeResponse(BaseModel):
    test: VisualTestResponse
    compared: bool
    mismatch_count: int | None = None
    total_pixels: int | None = None
    match_percentage: float | None = None
    dimension_mismatch: bool = False
    has_diff: bool = False


class SnapshotRecordResponse(BaseModel):
    id: int | None
    test_id: str
    is_baseline: bool
    status: VisualTestStatus
    match_percentage: float | None
    mismatch_count: int | None
    total_pixels: int | None
    dimension_mismatch: bool
    created_at: datetime
