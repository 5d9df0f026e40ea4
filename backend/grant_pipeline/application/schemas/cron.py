"""Pydantic schemas for the scheduled trigger endpoints."""

from grant_pipeline.application.schemas.base import CamelModel


class CrawlAllResponse(CamelModel):
    success: bool
    job_ids: list[str]
    count: int
    message: str
