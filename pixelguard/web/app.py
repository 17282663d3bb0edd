"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pixelguard.config.logging import setup_logging
from pixelguard.config.settings import get_settings
from pixelguard.exceptions import (
    CaptureError,
    ConfigError,
    InvalidImageError,
    NoLatestCaptureError,
    NotFoundError,
    PixelGuardError,
    StorageError,
)
from pixelguard.web.health import VERSION, check_health
from pixelguard.web.middleware import RequestIDMiddleware
from pixelguard.web.routes.visual_tests import router as visual_tests_router

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import Request

logger = structlog.get_logger(__name__)

# Resolved along the MRO of the raised error
_STATUS_CODES: dict[type[PixelGuardError], int] = {
    NotFoundError: 404,
    NoLatestCaptureError: 409,
    InvalidImageError: 422,
    CaptureError: 502,
    StorageError: 503,
    ConfigError: 501,
}


def _status_for(exc: PixelGuardError) -> int:
    if isinstance(exc, CaptureError) and exc.timed_out:
        return 504
    for cls in type(exc).__mro__:
        if cls in _STATUS_CODES:
            return _STATUS_CODES[cls]
    return 500


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    setup_logging(log_level=settings.log_level, json_output=not settings.debug)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if settings.use_database:
            from pixelguard.storage.database import init_db

            await init_db()
        yield

    app = FastAPI(
        title="PixelGuard",
        description="Visual regression testing engine",
        version=VERSION,
        lifespan=lifespan,
    )

    @app.exception_handler(PixelGuardError)
    async def pixelguard_error_handler(request: Request, exc: PixelGuardError) -> JSONResponse:
        status_code = _status_for(exc)
        log = logger.error if status_code >= 500 else logger.info
        log(
            "request_failed",
            path=request.url.path,
            error_type=type(exc).__name__,
            error=str(exc),
            status_code=status_code,
        )
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID", "X-Project-ID"],
    )
    app.add_middleware(RequestIDMiddleware)

    @app.get("/api/health")
    async def health_check() -> dict[str, object]:
        return await check_health()

    app.include_router(visual_tests_router)

    logger.info("app_created")
    return app
