"""Job Ledger Service — the single record of every crawl, parse and embed run."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from grant_pipeline.application.interfaces.pipeline_job_repository import PipelineJobRepository
from grant_pipeline.application.interfaces.unit_of_work import Commit, no_commit
from grant_pipeline.domain.entities.pipeline_job import (
    JobStatus,
    JobType,
    PipelineJob,
    TriggerSource,
)
from grant_pipeline.domain.exceptions import EntityNotFoundError, InvalidJobTransitionError

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 20


def stuck_message(stuck_minutes: int) -> str:
    return f"Cancelled: stuck in running state for more than {stuck_minutes} minutes"


def stale_pending_message(stuck_minutes: int) -> str:
    return f"Cancelled: stale pending job older than {stuck_minutes} minutes"


@dataclass
class StuckJobSweep:
    """Outcome of a stuck-job cleanup sweep."""

    stuck_cancelled: int = 0
    pending_cancelled: int = 0
    job_ids: list[str] = field(default_factory=list)


class JobLedgerService:
    """Creates, mutates and queries pipeline jobs.

    All status changes go through the entity's forward-only transition rules,
    so a finished job can never be reopened from here.
    """

    def __init__(self, job_repo: PipelineJobRepository, commit: Commit | None = None) -> None:
        self._job_repo = job_repo
        self._commit = commit or no_commit

    # ── Create / update ─────────────────────────────────────────────

    async def create_job(
        self,
        job_type: JobType,
        params: dict[str, Any] | None = None,
        target_count: int = 0,
        triggered_by: str = TriggerSource.MANUAL.value,
        status: JobStatus = JobStatus.PENDING,
        source_id: str | None = None,
    ) -> PipelineJob:
        """Persist a new job in ``pending`` or ``running`` and publish it."""
        job = PipelineJob(
            type=job_type,
            params=params or {},
            target_count=target_count,
            triggered_by=triggered_by,
            source_id=source_id,
        )
        if status is JobStatus.RUNNING:
            job.mark_running()
        elif status is not JobStatus.PENDING:
            raise InvalidJobTransitionError(None, "new", status.value)

        job = await self._job_repo.create(job)
        await self._commit()
        logger.info("Created %s job %s (%s, target=%d)", job_type.value, job.id, status.value, target_count)
        return job

    async def get_job(self, job_id: str) -> PipelineJob:
        job = await self._job_repo.get_by_id(job_id)
        if job is None:
            raise EntityNotFoundError("PipelineJob", job_id)
        return job

    async def update_job(
        self,
        job_id: str,
        status: JobStatus | None = None,
        success_count: int | None = None,
        fail_count: int | None = None,
        target_count: int | None = None,
        result: dict[str, Any] | None = None,
        error: str | None = None,
        completed_at: datetime | None = None,
    ) -> PipelineJob:
        """Apply a partial update to an existing job.

        Raises:
            EntityNotFoundError: unknown ``job_id``.
            InvalidJobTransitionError: ``status`` would move the job backwards.
        """
        job = await self.get_job(job_id)

        if success_count is not None:
            job.success_count = success_count
        if fail_count is not None:
            job.fail_count = fail_count
        if target_count is not None:
            job.target_count = target_count
        if result is not None:
            job.result = result

        if status is not None and status is not job.status:
            if status is JobStatus.RUNNING:
                job.mark_running()
            elif status is JobStatus.COMPLETED:
                job.mark_completed()
            elif status is JobStatus.FAILED:
                job.mark_failed(error or job.error or "Job failed")
            else:
                raise InvalidJobTransitionError(job.id, job.status.value, status.value)

        if error is not None:
            job.error = error
        if completed_at is not None:
            job.completed_at = completed_at

        job = await self._job_repo.update(job)
        await self._commit()
        return job

    async def save(self, job: PipelineJob) -> PipelineJob:
        """Persist a job whose state was changed through its entity methods."""
        job = await self._job_repo.update(job)
        await self._commit()
        return job

    # ── Queries ─────────────────────────────────────────────────────

    async def list_jobs(
        self,
        job_type: str | None = None,
        status: str | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> tuple[list[PipelineJob], int]:
        """List jobs newest first. Unknown type or status filters are ignored."""
        type_filter = _parse_enum(JobType, job_type)
        status_filter = _parse_enum(JobStatus, status)
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        offset = max(0, offset)

        jobs = await self._job_repo.list_jobs(type_filter, status_filter, limit, offset)
        total = await self._job_repo.count(type_filter, status_filter)
        return jobs, total

    async def running_jobs(
        self, job_type: JobType | None = None, source_id: str | None = None
    ) -> list[PipelineJob]:
        return await self._job_repo.find_by_status(
            JobStatus.RUNNING, job_type=job_type, source_id=source_id
        )

    @staticmethod
    def get_job_duration(job: PipelineJob) -> int | None:
        return job.duration_seconds

    # ── Cancellation & stuck-job sweep ──────────────────────────────

    async def cancel_job(self, job_id: str, reason: str = "Cancelled by administrator") -> PipelineJob:
        """Fail a pending or running job.

        Raises:
            EntityNotFoundError: unknown ``job_id``.
            InvalidJobTransitionError: the job already finished.
        """
        job = await self.get_job(job_id)
        job.mark_failed(reason)
        job = await self._job_repo.update(job)
        await self._commit()
        logger.warning("Cancelled job %s: %s", job_id, reason)
        return job

    async def cancel_all_running(
        self,
        job_type: JobType | None = None,
        reason: str = "Cancelled by administrator",
    ) -> list[str]:
        """Fail every running job, optionally of one type. Returns the ids."""
        jobs = await self._job_repo.find_by_status(JobStatus.RUNNING, job_type=job_type)
        cancelled = []
        for job in jobs:
            job.mark_failed(reason)
            await self._job_repo.update(job)
            cancelled.append(job.id)
        await self._commit()
        if cancelled:
            logger.warning("Cancelled %d running job(s)", len(cancelled))
        return cancelled

    async def cleanup_stuck(
        self,
        stuck_minutes: int = 60,
        reset_pending: bool = False,
        job_type: JobType | None = None,
        now: datetime | None = None,
    ) -> StuckJobSweep:
        """Fail running jobs started more than ``stuck_minutes`` ago.

        With ``reset_pending`` also fails pending jobs created before the same
        cutoff; those were never picked up by a worker.
        """
        if stuck_minutes < 1:
            raise ValueError("stuck_minutes must be at least 1")

        cutoff = (now or datetime.now(timezone.utc)) - timedelta(minutes=stuck_minutes)
        sweep = StuckJobSweep()

        for job in await self._job_repo.find_stuck(JobStatus.RUNNING, cutoff, job_type):
            job.mark_failed(stuck_message(stuck_minutes))
            await self._job_repo.update(job)
            sweep.stuck_cancelled += 1
            sweep.job_ids.append(job.id)

        if reset_pending:
            for job in await self._job_repo.find_stuck(JobStatus.PENDING, cutoff, job_type):
                job.mark_failed(stale_pending_message(stuck_minutes))
                await self._job_repo.update(job)
                sweep.pending_cancelled += 1
                sweep.job_ids.append(job.id)

        await self._commit()
        logger.info(
            "Stuck-job sweep (%d min): %d running, %d pending cancelled",
            stuck_minutes,
            sweep.stuck_cancelled,
            sweep.pending_cancelled,
        )
        return sweep


def _parse_enum(enum_cls, value: str | None):
    if not value:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        return None
