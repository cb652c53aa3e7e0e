"""
Browser rendering service using Playwright.
Renders generated pages at several viewport widths and captures DOM signals
and full-page screenshots for quality scoring.
"""
import base64
from pathlib import Path
from typing import Optional

from playwright.async_api import (
    async_playwright,
    Browser,
    Error as PlaywrightError,
    TimeoutError as PlaywrightTimeout,
)
import structlog

from quality.signals import PageSignals, SIGNALS_SCRIPT
from schemas.errors import RenderError, RenderTimeout

logger = structlog.get_logger()

VIEWPORT_HEIGHTS = {
    390: 844,    # iPhone 14 Pro
    768: 1024,   # iPad portrait
    1440: 900,   # Laptop
}


class PlaywrightRenderer:
    """
    Headless Chromium renderer.

    Use as an async context manager so the browser is closed on every exit
    path, including timeouts and task cancellation.
    """

    def __init__(self, timeout_ms: int = 30000, capture_screenshots: bool = True):
        self.timeout_ms = timeout_ms
        self.capture_screenshots = capture_screenshots
        self._browser: Optional[Browser] = None
        self._playwright = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    async def start(self):
        """Start browser instance."""
        if self._browser is None:
            try:
                self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(
                    headless=True,
                    args=[
                        "--no-sandbox",
                        "--disable-setuid-sandbox",
                        "--disable-dev-shm-usage",
                        "--disable-gpu",
                    ]
                )
            except PlaywrightError as e:
                await self.stop()
                raise RenderError(f"Browser failed to start: {e}") from e
            logger.info("Browser started")

    async def stop(self):
        """Stop browser instance."""
        try:
            if self._browser:
                await self._browser.close()
        finally:
            self._browser = None
            if self._playwright:
                await self._playwright.stop()
                self._playwright = None
                logger.info("Browser stopped")

    async def render(
        self,
        site_dir: Path,
        pages: list[str],
        viewports: tuple[int, ...],
    ) -> list[PageSignals]:
        """
        Render every page at every viewport width.

        Raises:
            RenderTimeout: if any navigation exceeds the timeout
            RenderError: on any other browser failure
        """
        if not self._browser:
            await self.start()

        captures = []
        for rel_path in pages:
            url = (Path(site_dir) / rel_path).resolve().as_uri()
            for width in viewports:
                captures.append(await self._capture(url, rel_path, width))
        return captures

    async def _capture(self, url: str, rel_path: str, width: int) -> PageSignals:
        page = await self._browser.new_page(
            viewport={"width": width, "height": VIEWPORT_HEIGHTS.get(width, 900)}
        )
        try:
            await page.goto(url, wait_until="load", timeout=self.timeout_ms)
            data = await page.evaluate(SIGNALS_SCRIPT)
            signals = PageSignals.from_dict(rel_path, width, data)

            if self.capture_screenshots:
                shot = await page.screenshot(full_page=True, type="png", timeout=self.timeout_ms)
                signals.screenshot_base64 = base64.b64encode(shot).decode("utf-8")

            logger.debug("Page captured", page=rel_path, viewport=width)
            return signals
        except PlaywrightTimeout as e:
            logger.warning("Page render timed out", page=rel_path, viewport=width)
            raise RenderTimeout(f"Render of {rel_path} at {width}px timed out") from e
        except PlaywrightError as e:
            logger.error("Page render failed", page=rel_path, viewport=width, error=str(e))
            raise RenderError(f"Render of {rel_path} at {width}px failed: {e}") from e
        finally:
            await page.close()
