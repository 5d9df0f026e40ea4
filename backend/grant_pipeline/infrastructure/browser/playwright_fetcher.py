"""Playwright fetcher for script-rendered (SPA) listing pages.

Uses one headless Chromium per worker process. Each fetch opens a fresh
browser context, navigates with progressive fallback, and returns the
rendered DOM.
"""

import logging
from typing import Any

from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeout,
)

from grant_pipeline.application.interfaces.page_fetcher import PageFetcher
from grant_pipeline.domain.entities.project_attachment import ParseErrorKind
from grant_pipeline.domain.exceptions import CrawlSourceUnreachableError, DocumentFetchError

logger = logging.getLogger(__name__)

_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]

_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)


class PlaywrightPageFetcher(PageFetcher):
    """Infrastructure adapter rendering pages in headless Chromium.

    Lifecycle:
        - ``start()`` launches the browser (worker startup)
        - ``fetch_html()`` renders one page
        - ``stop()`` closes the browser (worker shutdown)
    """

    def __init__(self, timeout_ms: int = 30_000) -> None:
        self._timeout_ms = timeout_ms
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None

    @property
    def is_started(self) -> bool:
        return self._browser is not None

    async def start(self) -> None:
        """Launch the headless Chromium browser."""
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=True, args=_LAUNCH_ARGS)
        logger.info("PlaywrightPageFetcher started (timeout=%dms)", self._timeout_ms)

    async def stop(self) -> None:
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
        logger.info("PlaywrightPageFetcher stopped")

    async def fetch_html(self, url: str) -> str:
        if not self._browser:
            raise CrawlSourceUnreachableError(url, "headless browser is not running")

        context: BrowserContext = await self._browser.new_context(
            user_agent=_USER_AGENT,
            viewport={"width": 1920, "height": 1080},
            locale="ko-KR",
            timezone_id="Asia/Seoul",
            extra_http_headers={"Accept-Language": "ko-KR,ko;q=0.9,en-US;q=0.8,en;q=0.7"},
        )
        try:
            page = await context.new_page()
            page.set_default_timeout(self._timeout_ms)
            await self._navigate_with_fallback(page, url)

            # Let client-side rendering settle; a busy page is not an error.
            try:
                await page.wait_for_load_state("networkidle", timeout=5000)
            except PlaywrightTimeout:
                logger.debug("Network idle timeout for %s, using current DOM", url)

            html = await page.content()
            logger.info("Rendered %s (%d chars)", url, len(html))
            return html
        finally:
            await context.close()

    async def fetch_json(self, url: str) -> Any:
        raise CrawlSourceUnreachableError(url, "JSON sources are fetched over plain HTTP")

    async def download(self, url: str, referer: str | None = None) -> bytes:
        raise DocumentFetchError(
            "Attachment downloads are not supported by the browser fetcher",
            kind=ParseErrorKind.DOWNLOAD_FAILED,
        )

    # ── Navigation ──────────────────────────────────────────────────

    async def _navigate_with_fallback(self, page: Page, url: str) -> None:
        """Try progressively looser wait conditions before giving up."""
        strategies = [
            ("networkidle", self._timeout_ms // 2),
            ("load", self._timeout_ms),
            ("domcontentloaded", self._timeout_ms),
        ]

        for wait_until, timeout in strategies:
            try:
                response = await page.goto(url, wait_until=wait_until, timeout=timeout)
            except PlaywrightTimeout:
                logger.warning("Navigation strategy=%s timed out for %s, trying next", wait_until, url)
                continue
            if response and response.status >= 400:
                raise CrawlSourceUnreachableError(url, f"HTTP {response.status}")
            logger.debug("Navigation succeeded with strategy=%s", wait_until)
            return

        raise CrawlSourceUnreachableError(url, "timeout")
