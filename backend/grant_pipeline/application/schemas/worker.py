"""Pydantic schemas for the worker's HTTP surface."""

from datetime import datetime
from typing import Any

from pydantic import Field, StrictStr

from grant_pipeline.application.schemas.base import CamelModel


class CrawlJobRequest(CamelModel):
    job_id: StrictStr = Field(min_length=1)


class CrawlBatchRequest(CamelModel):
    job_ids: list[StrictStr] = Field(min_length=1)


class CrawlAcceptedResponse(CamelModel):
    accepted: bool = True
    job_id: str
    message: str
    timestamp: datetime


class CrawlBatchAcceptedResponse(CamelModel):
    accepted: bool = True
    job_ids: list[str]
    count: int
    message: str
    timestamp: datetime


class GenerateEmbeddingsRequest(CamelModel):
    batch_size: int = Field(default=50, ge=0, le=1000)
    project_ids: list[str] | None = None
    force: bool = False
    pipeline_job_id: str | None = None


class GenerateEmbeddingsResponse(CamelModel):
    """Batch summary; ``success`` is the call outcome, counts are separate."""

    success: bool = True
    job_id: str | None = None
    message: str
    processed: int
    success_count: int
    errors: int
    skipped: int
    error_details: list[dict[str, Any]] | None = None
    duration: int  # milliseconds
    timestamp: datetime


class EmbeddingStatsResponse(CamelModel):
    total_projects: int
    needs_embedding: int
    has_embeddings: int
    completion_rate: int
    timestamp: datetime


class WorkerHealthResponse(CamelModel):
    status: str
    uptime: float  # seconds
    memory: dict[str, float]
    background_tasks: int
    timestamp: datetime
