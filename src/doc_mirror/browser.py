"""Playwright-based fetcher for pages that need a rendered DOM."""

from __future__ import annotations

import logging
import time

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from .http_client import DEFAULT_USER_AGENT, FetchError, PageResponse

logger = logging.getLogger(__name__)

LAUNCH_TIMEOUT_MS = 60_000
NETWORK_IDLE_TIMEOUT_MS = 30_000
VIEWPORT = {"width": 1920, "height": 1080}


class BrowserPageFetcher:
    """Render pages with a headless Chromium browser.

    Probe mode only waits for ``domcontentloaded``; content mode additionally
    waits (best effort) for network idle before capturing the DOM.
    """

    def __init__(
        self,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        headless: bool = True,
        network_idle_timeout_ms: int = NETWORK_IDLE_TIMEOUT_MS,
    ) -> None:
        self._user_agent = user_agent
        self._headless = headless
        self._network_idle_timeout_ms = network_idle_timeout_ms
        self._playwright = None
        self._browser = None
        self._context = None

    def start(self) -> None:
        try:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(
                headless=self._headless,
                timeout=LAUNCH_TIMEOUT_MS,
                args=["--disable-dev-shm-usage", "--disable-gpu"],
            )
            self._context = self._browser.new_context(
                viewport=VIEWPORT,
                user_agent=self._user_agent,
            )
        except PlaywrightError as e:
            self.close()
            raise FetchError(f"Failed to launch browser: {e}") from e

    def fetch(
        self, url: str, *, timeout_s: float, probe: bool = False
    ) -> PageResponse:
        if self._context is None:
            raise FetchError("Browser context not initialized")

        try:
            page = self._context.new_page()
        except PlaywrightError as e:
            raise FetchError(f"Failed to open a page for {url}: {e}") from e

        try:
            try:
                response = page.goto(
                    url,
                    wait_until="domcontentloaded",
                    timeout=timeout_s * 1000,
                )
            except PlaywrightError as e:
                raise FetchError(f"Failed to load {url}: {e}") from e

            status = response.status if response is not None else 0
            html = ""
            if not probe:
                try:
                    page.wait_for_load_state(
                        "networkidle", timeout=self._network_idle_timeout_ms
                    )
                except PlaywrightTimeoutError:
                    logger.warning("Network idle timeout, proceeding anyway: %s", url)
                try:
                    html = page.content()
                except PlaywrightError as e:
                    raise FetchError(f"Failed to read DOM of {url}: {e}") from e

            return PageResponse(
                url=url,
                final_url=page.url,
                status_code=status,
                html=html,
                fetched_at=time.time(),
            )
        finally:
            try:
                page.close()
            except PlaywrightError as e:
                logger.warning("Failed to close page for %s: %s", url, e)

    def close(self) -> None:
        context, browser, playwright = self._context, self._browser, self._playwright
        self._context = self._browser = self._playwright = None
        try:
            if context is not None:
                context.close()
            if browser is not None:
                browser.close()
        finally:
            if playwright is not None:
                playwright.stop()
