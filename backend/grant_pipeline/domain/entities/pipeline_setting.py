"""Domain entity for per-step pipeline schedule settings."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from grant_pipeline.domain.entities.pipeline_job import JobType


@dataclass
class PipelineSetting:
    """Schedule and batch configuration for one pipeline step."""

    type: JobType
    enabled: bool = True
    schedule: str = "0 0 * * *"  # cron expression, UTC
    batch_size: int = 50
    max_retries: int = 3
    timeout_ms: int = 300_000
    options: dict[str, Any] = field(default_factory=dict)
    updated_at: datetime | None = None


def default_pipeline_settings() -> dict[JobType, PipelineSetting]:
    """Settings used for any step that has no stored row yet."""
    return {
        JobType.CRAWL: PipelineSetting(
            type=JobType.CRAWL, schedule="0 16 * * *", batch_size=10, timeout_ms=300_000,
        ),
        JobType.PARSE: PipelineSetting(
            type=JobType.PARSE, schedule="30 16 * * *", batch_size=50, timeout_ms=120_000,
        ),
        JobType.EMBED: PipelineSetting(
            type=JobType.EMBED, schedule="0 20 * * *", batch_size=50, timeout_ms=300_000,
        ),
    }
