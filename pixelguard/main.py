"""PixelGuard entrypoint."""

import uvicorn

from pixelguard.config.settings import get_settings


def cli() -> None:
    """Serve the visual regression API."""
    settings = get_settings()
    uvicorn.run(
        "pixelguard.web.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    cli()
