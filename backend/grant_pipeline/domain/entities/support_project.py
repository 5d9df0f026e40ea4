"""Domain entities for support-program listings discovered by the crawler."""

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class SupportProject:
    """A government support program (grant) listing.

    ``needs_embedding`` marks the vector representation as stale or absent.
    The claim fields hold the lease of whichever embedding run is currently
    working on the row.
    """

    name: str
    id: str | None = None
    external_id: str | None = None
    organization: str = ""
    category: str = ""
    region: str = ""
    target: str = ""
    summary: str = ""
    description: str | None = None
    eligibility: str | None = None
    application_process: str | None = None
    evaluation_criteria: str | None = None
    detail_url: str | None = None
    source_url: str | None = None
    needs_embedding: bool = True
    embedding_claim_token: str | None = None
    embedding_claimed_at: datetime | None = None
    crawled_at: datetime | None = None
    deleted_at: datetime | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class CrawledProject:
    """A listing as scraped from a source page, before it is upserted."""

    name: str
    source_url: str
    external_id: str | None = None
    organization: str = ""
    category: str = ""
    region: str = ""
    target: str = ""
    summary: str = ""
    description: str | None = None
    eligibility: str | None = None
    application_process: str | None = None
    detail_url: str | None = None
    attachment_urls: list[str] = field(default_factory=list)

    @property
    def dedupe_key(self) -> tuple[str, str]:
        """Stable external key: external id, else detail URL, else name + organization."""
        if self.external_id:
            return ("external_id", self.external_id)
        if self.detail_url:
            return ("detail_url", self.detail_url)
        return ("name_org", f"{self.name}\x1f{self.organization}")

