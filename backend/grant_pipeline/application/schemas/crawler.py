"""Pydantic schemas for the admin crawler API (sources, jobs, live status)."""

from datetime import datetime
from typing import Literal

from pydantic import Field

from grant_pipeline.application.schemas.base import CamelModel
from grant_pipeline.domain.entities.crawl_source import CrawlSourceType
from grant_pipeline.domain.entities.pipeline_job import JobStatus


# ── Sources ──────────────────────────────────────────────────────────


class CreateCrawlSourceRequest(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    url: str = Field(min_length=1, max_length=2000)
    type: CrawlSourceType = CrawlSourceType.TABLE
    schedule: str | None = None
    is_active: bool = True


class UpdateCrawlSourceRequest(CamelModel):
    is_active: bool


class CrawlSourceResponse(CamelModel):
    id: str
    name: str
    url: str
    type: CrawlSourceType
    is_active: bool
    schedule: str | None = None
    last_crawled: datetime | None = None
    created_at: datetime
    updated_at: datetime


class CrawlSourceListResponse(CamelModel):
    sources: list[CrawlSourceResponse]


# ── Crawl jobs ───────────────────────────────────────────────────────


class StartCrawlRequest(CamelModel):
    source_id: str = Field(min_length=1)


class StartCrawlResponse(CamelModel):
    success: bool
    job_id: str
    status: JobStatus
    already_running: bool = False
    message: str


class CrawlJobResponse(CamelModel):
    """A crawl job with its crawl counters lifted out of ``result``."""

    id: str
    source_id: str | None = None
    source_name: str | None = None
    status: JobStatus
    projects_found: int = 0
    projects_new: int = 0
    projects_updated: int = 0
    error: str | None = None
    triggered_by: str
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime
    duration: int | None = None


class CrawlJobListResponse(CamelModel):
    jobs: list[CrawlJobResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class CancelJobsResponse(CamelModel):
    success: bool = True
    cancelled_count: int
    job_ids: list[str] = Field(default_factory=list)


class CrawlJobsActionRequest(CamelModel):
    action: Literal["cleanup"]
    stuck_minutes: int | None = Field(default=None, ge=1)
    reset_pending: bool = False


class CleanupResponse(CamelModel):
    success: bool = True
    stuck_jobs_cancelled: int
    pending_jobs_cancelled: int
    message: str


# ── Live status ──────────────────────────────────────────────────────


class RunningCrawlResponse(CamelModel):
    id: str
    source_name: str | None = None
    source_url: str | None = None
    status: JobStatus
    started_at: datetime | None = None
    duration: int  # seconds elapsed so far
    projects_found: int = 0
    projects_new: int = 0
    projects_updated: int = 0


class SourceStatusResponse(CamelModel):
    id: str
    name: str
    url: str
    type: CrawlSourceType
    is_active: bool
    last_crawled: datetime | None = None
    last_job_status: JobStatus | None = None
    schedule: str | None = None


class LiveStatusSummary(CamelModel):
    total_sources: int
    active_sources: int
    running_jobs: int
    pending_jobs: int
    completed_today: int
    failed_today: int


class LiveStatusResponse(CamelModel):
    running_jobs: list[RunningCrawlResponse]
    recent_jobs: list[CrawlJobResponse]
    sources: list[SourceStatusResponse]
    summary: LiveStatusSummary
    timestamp: datetime
