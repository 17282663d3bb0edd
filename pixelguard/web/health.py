"""Health check endpoint logic."""

from __future__ import annotations

import os
from pathlib import Path

import structlog

from pixelguard.config.settings import Settings, get_settings

logger = structlog.get_logger(__name__)

VERSION = "0.1.0"


def _storage_details(settings: Settings) -> dict[str, object]:
    if settings.use_s3:
        return {"backend": "s3", "bucket": settings.s3_bucket}

    # The artifacts dir is created on first write; check the nearest existing ancestor
    path = Path(settings.artifacts_dir).expanduser()
    probe = path
    while not probe.exists() and probe != probe.parent:
        probe = probe.parent
    return {"backend": "local", "path": str(path), "writable": os.access(probe, os.W_OK)}


async def check_health() -> dict[str, object]:
    """Return application health, artifact storage details and an optional DB probe."""
    settings = get_settings()
    storage = _storage_details(settings)
    result: dict[str, object] = {
        "status": "healthy" if storage.get("writable", True) else "degraded",
        "version": VERSION,
        "storage": storage,
        "diff_threshold": settings.diff_threshold,
        "database": "disabled",
    }
    if not settings.use_database:
        return result

    try:
        from sqlalchemy import text

        from pixelguard.storage.database import get_engine

        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        result["database"] = "connected"
    except Exception as exc:
        logger.warning("health_check_db_failed", error=str(exc))
        result["database"] = "unavailable"
        result["status"] = "degraded"

    return result
