"""
Playwright browser session owned by one run.
"""

import re
import time
from pathlib import Path
from typing import Any, List, Optional, Pattern

from playwright.async_api import Browser, BrowserContext, Page, async_playwright

from hazelpilot.config.settings import Settings, get_settings
from hazelpilot.error_handling.exceptions import LaunchError
from hazelpilot.monitoring.logger import get_logger, log_performance_metric


class BrowserSession:
    """
    One isolated Chromium context with a single page.

    Records video into the run directory, aborts requests to blocked hosts,
    dismisses dialogs and logs console/page errors/failed requests. Torn down
    exactly once, however many times :meth:`stop` is called.
    """

    def __init__(
        self,
        run_dir: Path,
        settings: Optional[Settings] = None,
        headless: Optional[bool] = None,
    ) -> None:
        """
        Initialize the session.

        Args:
            run_dir: Directory receiving the raw video recording
            settings: Settings (defaults to the cached settings)
            headless: Override ``browser_headless``
        """
        self.settings = settings or get_settings()
        self.run_dir = Path(run_dir)
        self.headless = headless if headless is not None else self.settings.browser_headless
        self.blocked_patterns: List[Pattern[str]] = [
            re.compile(pattern, re.IGNORECASE)
            for pattern in self.settings.blocked_request_patterns
        ]

        self.logger = get_logger("browser.session")
        self.page_logger = get_logger("browser.page")
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self._started = False
        self._stopped = False
        self.video: Any = None

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("Browser session not started. Call start() first.")
        return self._page

    @property
    def stopped(self) -> bool:
        return self._stopped

    def should_block(self, url: str) -> bool:
        return any(pattern.search(url) for pattern in self.blocked_patterns)

    async def start(self) -> Page:
        """
        Launch the browser and open the page.

        Raises:
            LaunchError: If any part of the session cannot be created
        """
        if self._started:
            return self.page
        self._started = True

        settings = self.settings
        viewport = {
            "width": settings.browser_viewport_width,
            "height": settings.browser_viewport_height,
        }
        self.logger.info(
            "Starting browser",
            extra={
                "headless": self.headless,
                "viewport": f"{viewport['width']}x{viewport['height']}",
                "record_video": settings.record_video,
            },
        )
        start_time = time.monotonic()

        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=list(settings.browser_launch_args),
            )

            context_options = {
                "ignore_https_errors": settings.browser_ignore_https_errors,
                "viewport": viewport,
            }
            if settings.record_video:
                self.run_dir.mkdir(parents=True, exist_ok=True)
                context_options["record_video_dir"] = str(self.run_dir)
                context_options["record_video_size"] = viewport
            self._context = await self._browser.new_context(**context_options)

            if self.blocked_patterns:
                await self._context.route("**/*", self._route)

            self._page = await self._context.new_page()
            self._page.set_default_timeout(settings.default_timeout_ms)
            self._page.set_default_navigation_timeout(settings.navigation_timeout_ms)
            self._attach_page_listeners(self._page)
            self.video = self._page.video
        except Exception as e:
            self.logger.error(f"Browser launch failed: {e}")
            await self.stop()
            raise LaunchError(f"Could not start browser session: {e}", cause=e) from e

        elapsed_ms = (time.monotonic() - start_time) * 1000
        log_performance_metric("browser_launch", elapsed_ms)
        return self._page

    async def close_context(self) -> None:
        """
        Close the browser context, which finalizes the video file.

        The browser and Playwright stay up so the recording can still be
        located through ``video.path()``; :meth:`stop` finishes the teardown.
        """
        if self._context is None:
            return
        context, self._context = self._context, None
        self._page = None
        try:
            await context.close()
        except Exception as e:
            self.logger.warning("Failed to close context", extra={"error": str(e)})

    async def stop(self) -> None:
        """Close context, browser and Playwright; safe to call repeatedly."""
        if self._stopped:
            return
        self._stopped = True

        await self.close_context()
        for name, closer in (
            ("browser", self._browser.close if self._browser else None),
            ("playwright", self._playwright.stop if self._playwright else None),
        ):
            if closer is None:
                continue
            try:
                await closer()
            except Exception as e:
                self.logger.warning(f"Failed to close {name}", extra={"error": str(e)})

        self._browser = None
        self._playwright = None
        self.logger.info("Browser stopped")

    async def _route(self, route: Any) -> None:
        if self.should_block(route.request.url):
            await route.abort()
        else:
            await route.continue_()

    def _attach_page_listeners(self, page: Page) -> None:
        page.on("console", self._on_console)
        page.on("pageerror", self._on_page_error)
        page.on("requestfailed", self._on_request_failed)
        page.on("dialog", self._on_dialog)

    def _on_console(self, message: Any) -> None:
        self.page_logger.info(f"console:{message.type}: {message.text}")

    def _on_page_error(self, error: Any) -> None:
        self.page_logger.info(f"pageerror: {getattr(error, 'message', None) or error}")

    def _on_request_failed(self, request: Any) -> None:
        if self.should_block(request.url):
            return
        self.page_logger.info(
            f"requestfailed: {request.method} {request.url} -> {request.failure}"
        )

    async def _on_dialog(self, dialog: Any) -> None:
        try:
            await dialog.dismiss()
        except Exception as e:
            self.logger.debug("Dialog dismiss failed", extra={"error": str(e)})

    async def __aenter__(self) -> "BrowserSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()
