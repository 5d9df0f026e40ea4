"""Pipeline Settings Service — per-step schedule, batch and retry configuration."""

import logging
import re
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from grant_pipeline.application.interfaces.pipeline_setting_repository import PipelineSettingRepository
from grant_pipeline.domain.entities.pipeline_job import JobType
from grant_pipeline.domain.entities.pipeline_setting import PipelineSetting, default_pipeline_settings

logger = logging.getLogger(__name__)

BATCH_SIZE_RANGE = (1, 1000)
MAX_RETRIES_RANGE = (0, 10)
TIMEOUT_MS_RANGE = (10_000, 3_600_000)

_CRON_FIELD = r"(\*|[0-9]{1,2}(-[0-9]{1,2})?(,[0-9]{1,2}(-[0-9]{1,2})?)*)(/[0-9]{1,2})?"
_CRON_WEEKDAY = r"(\*|[0-7](-[0-7])?(,[0-7](-[0-7])?)*)(/[0-7])?"
_CRON_PATTERNS = [re.compile(f"^{p}$") for p in (_CRON_FIELD,) * 4 + (_CRON_WEEKDAY,)]


def is_valid_cron(expression: str) -> bool:
    """Five whitespace-separated fields: minute hour day month weekday (UTC)."""
    parts = expression.split()
    if len(parts) != 5:
        return False
    return all(pattern.match(part) for pattern, part in zip(_CRON_PATTERNS, parts))


class PipelineSettingsService:
    """Reads and validates persisted pipeline settings, seeding defaults."""

    def __init__(self, repository: PipelineSettingRepository) -> None:
        self._repository = repository

    async def get_settings(self) -> list[PipelineSetting]:
        """All three steps, creating rows for any step that has none yet."""
        stored = await self._repository.get_all()
        for job_type, default in default_pipeline_settings().items():
            if job_type not in stored:
                default.updated_at = datetime.now(timezone.utc)
                stored[job_type] = await self._repository.upsert(default)
                logger.info("Seeded default %s pipeline setting", job_type.value)
        return [stored[t] for t in JobType]

    async def update_setting(
        self,
        job_type: JobType,
        enabled: bool | None = None,
        schedule: str | None = None,
        batch_size: int | None = None,
        max_retries: int | None = None,
        timeout_ms: int | None = None,
        options: dict[str, Any] | None = None,
    ) -> PipelineSetting:
        """Apply a partial update.

        Raises:
            ValueError: a value is outside its allowed range.
        """
        if schedule is not None and not is_valid_cron(schedule):
            raise ValueError("Invalid cron expression")
        _check_range("batchSize", batch_size, BATCH_SIZE_RANGE)
        _check_range("maxRetries", max_retries, MAX_RETRIES_RANGE)
        _check_range("timeout", timeout_ms, TIMEOUT_MS_RANGE)

        stored = await self._repository.get_all()
        setting = stored.get(job_type) or default_pipeline_settings()[job_type]

        changes: dict[str, Any] = {
            "enabled": enabled,
            "schedule": schedule,
            "batch_size": batch_size,
            "max_retries": max_retries,
            "timeout_ms": timeout_ms,
            "options": options,
        }
        setting = replace(setting, **{k: v for k, v in changes.items() if v is not None})
        setting.updated_at = datetime.now(timezone.utc)
        return await self._repository.upsert(setting)


def _check_range(name: str, value: int | None, bounds: tuple[int, int]) -> None:
    if value is None:
        return
    low, high = bounds
    if not low <= value <= high:
        raise ValueError(f"{name} must be between {low} and {high}")
