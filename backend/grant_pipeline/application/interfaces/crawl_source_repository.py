"""Abstract repository interface (port) for crawl sources."""

from abc import ABC, abstractmethod

from grant_pipeline.domain.entities.crawl_source import CrawlSource


class CrawlSourceRepository(ABC):
    """Port for crawl source persistence — implemented in the infrastructure layer."""

    @abstractmethod
    async def get_by_id(self, source_id: str) -> CrawlSource | None:
        ...

    @abstractmethod
    async def get_all(self) -> list[CrawlSource]:
        ...

    @abstractmethod
    async def get_active(self) -> list[CrawlSource]:
        """Sources with ``is_active`` set, ordered by name."""
        ...

    @abstractmethod
    async def create(self, source: CrawlSource) -> CrawlSource:
        ...

    @abstractmethod
    async def update(self, source: CrawlSource) -> CrawlSource:
        """Update an existing source. Raises ValueError if the row is missing."""
        ...
