"""Capture driver boundary: turns a target reference into PNG screenshot bytes."""

from __future__ import annotations

from typing import Protocol

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from pixelguard.exceptions import CaptureError

logger = structlog.get_logger(__name__)


class CaptureDriver(Protocol):
    async def capture(self, target_reference: str, timeout: float | None = None) -> bytes:
        """Return PNG bytes for the target, raising CaptureError on failure."""
        ...


class PlaywrightCaptureDriver:
    """Screenshots a URL in a fresh headless Chromium per capture."""

    def __init__(
        self,
        headless: bool = True,
        viewport_width: int = 1280,
        viewport_height: int = 720,
        full_page: bool = True,
    ) -> None:
        self._headless = headless
        self._viewport = {"width": viewport_width, "height": viewport_height}
        self._full_page = full_page

    async def capture(self, target_reference: str, timeout: float | None = None) -> bytes:
        # Playwright treats 0 as "no timeout"
        timeout_ms = timeout * 1000 if timeout else 0
        try:
            async with async_playwright() as playwright:
                browser = await playwright.chromium.launch(headless=self._headless)
                try:
                    context = await browser.new_context(viewport=self._viewport)  # type: ignore[arg-type]
                    page = await context.new_page()
                    await page.goto(target_reference, wait_until="networkidle", timeout=timeout_ms)
                    data = await page.screenshot(
                        full_page=self._full_page,
                        type="png",
                        animations="disabled",
                        timeout=timeout_ms,
                    )
                finally:
                    await browser.close()
        except PlaywrightTimeoutError as e:
            logger.warning("capture_timeout", target=target_reference, timeout=timeout)
            raise CaptureError(f"Capture of {target_reference} timed out", timed_out=True) from e
        except PlaywrightError as e:
            logger.warning("capture_failed", target=target_reference, error=str(e))
            raise CaptureError(f"Capture of {target_reference} failed: {e}") from e

        logger.debug("capture_complete", target=target_reference, size=len(data))
        return data


def create_capture_driver() -> CaptureDriver:
    """Factory: build the default capture driver from settings."""
    from pixelguard.config.settings import get_settings

    settings = get_settings()
    return PlaywrightCaptureDriver(
        headless=settings.capture_headless,
        viewport_width=settings.viewport_width,
        viewport_height=settings.viewport_height,
    )
