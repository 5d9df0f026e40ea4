"""Abstract interface (port) for fetching remote pages and files."""

from abc import ABC, abstractmethod
from typing import Any


class PageFetcher(ABC):
    """Port for outbound HTTP used by the crawler and the parse recovery job.

    Implementations raise ``CrawlSourceUnreachableError`` for listing pages
    and ``DocumentFetchError`` for file downloads.
    """

    @abstractmethod
    async def fetch_html(self, url: str) -> str:
        ...

    @abstractmethod
    async def fetch_json(self, url: str) -> Any:
        ...

    @abstractmethod
    async def download(self, url: str, referer: str | None = None) -> bytes:
        ...
