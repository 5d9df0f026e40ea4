"""httpx-based fetcher for listing pages, detail pages and attachment files."""

import logging
from typing import Any

import httpx

from grant_pipeline.application.interfaces.page_fetcher import PageFetcher
from grant_pipeline.domain.entities.project_attachment import ParseErrorKind
from grant_pipeline.domain.exceptions import CrawlSourceUnreachableError, DocumentFetchError

logger = logging.getLogger(__name__)

_PAGE_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "ko-KR,ko;q=0.9,en-US;q=0.8,en;q=0.7",
}


class HttpPageFetcher(PageFetcher):
    """Infrastructure adapter for outbound HTTP.

    Page failures surface as ``CrawlSourceUnreachableError``; download
    failures as ``DocumentFetchError`` with the kind set by failure mode.
    """

    def __init__(
        self,
        user_agent: str,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._user_agent = user_agent
        self._timeout = timeout
        self._http_client = http_client

    async def fetch_html(self, url: str) -> str:
        response = await self._get_page(url, {"Accept": _PAGE_HEADERS["Accept"]})
        return response.text

    async def fetch_json(self, url: str) -> Any:
        response = await self._get_page(url, {"Accept": "application/json"})
        try:
            return response.json()
        except ValueError as exc:
            raise CrawlSourceUnreachableError(url, "Response is not valid JSON") from exc

    async def download(self, url: str, referer: str | None = None) -> bytes:
        headers = {"User-Agent": self._user_agent, "Accept": "*/*"}
        if referer:
            headers["Referer"] = referer

        try:
            response = await self._request(url, headers)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise DocumentFetchError(f"Download timed out: {url}", kind=ParseErrorKind.TIMEOUT) from exc
        except httpx.HTTPStatusError as exc:
            raise DocumentFetchError(
                f"Download failed: HTTP {exc.response.status_code}",
                kind=ParseErrorKind.DOWNLOAD_FAILED,
            ) from exc
        except httpx.HTTPError as exc:
            raise DocumentFetchError(f"Network error: {exc}", kind=ParseErrorKind.NETWORK_ERROR) from exc

        content = response.content
        if not content:
            raise DocumentFetchError("File is empty (0 bytes)", kind=ParseErrorKind.EMPTY_FILE)
        logger.debug("Downloaded %s (%d bytes)", url, len(content))
        return content

    # ── Transport ────────────────────────────────────────────────────

    async def _get_page(self, url: str, extra_headers: dict[str, str]) -> httpx.Response:
        headers = {**_PAGE_HEADERS, **extra_headers, "User-Agent": self._user_agent}
        try:
            response = await self._request(url, headers)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise CrawlSourceUnreachableError(url, "timeout") from exc
        except httpx.HTTPStatusError as exc:
            raise CrawlSourceUnreachableError(url, f"HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise CrawlSourceUnreachableError(url, str(exc) or type(exc).__name__) from exc
        return response

    async def _request(self, url: str, headers: dict[str, str]) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.get(
                url, headers=headers, timeout=self._timeout, follow_redirects=True
            )
        async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
            return await client.get(url, headers=headers)
