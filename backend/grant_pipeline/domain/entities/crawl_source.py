"""Domain entity for crawl sources — scrapeable origins of grant listings."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class CrawlSourceType(str, Enum):
    """Structural hint telling the crawler how a listing page is laid out."""

    TABLE = "table"   # <table> rows, one listing per row
    LIST = "list"     # <ul>/<div> item lists
    SPA = "spa"       # script-rendered, needs a headless browser
    API = "api"       # JSON endpoint

    @property
    def needs_browser(self) -> bool:
        return self is CrawlSourceType.SPA


@dataclass
class CrawlSource:
    """A configured external site the crawler scrapes for grant listings."""

    name: str
    url: str
    type: CrawlSourceType = CrawlSourceType.TABLE
    id: str | None = None
    is_active: bool = True
    schedule: str | None = None  # cron expression, UTC
    last_crawled: datetime | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
