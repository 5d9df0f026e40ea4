"""Pydantic schemas for the admin pipeline API (embed, parse, stats, jobs, settings)."""

from datetime import datetime
from typing import Any

from pydantic import Field

from grant_pipeline.application.schemas.base import CamelModel
from grant_pipeline.domain.entities.pipeline_job import JobStatus, JobType


# ── Jobs ─────────────────────────────────────────────────────────────


class PipelineJobResponse(CamelModel):
    """A job ledger row with its computed duration in seconds."""

    id: str
    type: JobType
    status: JobStatus
    target_count: int
    success_count: int
    fail_count: int
    params: dict[str, Any] = Field(default_factory=dict)
    result: dict[str, Any] | None = None
    error: str | None = None
    triggered_by: str
    source_id: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime
    duration: int | None = None


class PipelineJobListResponse(CamelModel):
    jobs: list[PipelineJobResponse]
    total: int
    limit: int
    offset: int


# ── Embed / Parse triggers ───────────────────────────────────────────


class EmbedRequest(CamelModel):
    """Request body for an embedding run."""

    batch_size: int = Field(default=50, ge=0, le=1000)
    project_ids: list[str] | None = None
    force: bool = False


class EmbedResponse(CamelModel):
    job_id: str
    mode: str  # "worker" | "local"
    processed: int
    success: int
    failed: int
    message: str
    details: list[dict[str, Any]] | None = None
    remaining: int | None = None


class ParseRequest(CamelModel):
    """Request body for a parse recovery run.

    ``error_type`` takes a category value (``timeout``) or label (``Timeout``);
    ``"No Error"`` selects attachments that never failed.
    """

    batch_size: int = Field(default=20, ge=0, le=200)
    error_type: str | None = None
    attachment_ids: list[str] | None = None


class ParseResponse(CamelModel):
    job_id: str
    processed: int
    success: int
    failed: int
    skipped: int
    details: list[dict[str, Any]] = Field(default_factory=list)


# ── Stats ────────────────────────────────────────────────────────────


class ParseStatsResponse(CamelModel):
    total: int
    parsable: int
    parsed: int
    unparsed: int
    with_error: int
    by_file_type: dict[str, int]
    error_types: dict[str, int]


class EmbedStatsResponse(CamelModel):
    total: int
    embedded: int
    pending: int
    embedding_count: int


class AttachmentStatsResponse(CamelModel):
    total_projects: int
    with_attachments: int
    without_attachments: int
    recrawlable: int


class PipelineStatsResponse(CamelModel):
    parse: ParseStatsResponse
    embed: EmbedStatsResponse
    attachment: AttachmentStatsResponse
    recent_jobs: list[PipelineJobResponse]
    timestamp: datetime


# ── Settings ─────────────────────────────────────────────────────────


class PipelineSettingResponse(CamelModel):
    type: JobType
    enabled: bool
    schedule: str
    batch_size: int
    max_retries: int
    timeout: int  # milliseconds
    options: dict[str, Any] = Field(default_factory=dict)
    updated_at: datetime | None = None


class PipelineSettingsResponse(CamelModel):
    settings: list[PipelineSettingResponse]


class PipelineSettingUpdateRequest(CamelModel):
    """Partial update of one step's settings; range checks happen in the service."""

    type: JobType
    enabled: bool | None = None
    schedule: str | None = None
    batch_size: int | None = None
    max_retries: int | None = None
    timeout: int | None = None
    options: dict[str, Any] | None = None


class PipelineSettingUpdateResponse(CamelModel):
    success: bool = True
    setting: PipelineSettingResponse
