"""Crawl Dispatch Service — crawl source registry and hand-off to the worker."""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from grant_pipeline.application.interfaces.crawl_source_repository import CrawlSourceRepository
from grant_pipeline.application.interfaces.worker_client import WorkerClient
from grant_pipeline.application.services.job_ledger_service import JobLedgerService
from grant_pipeline.domain.entities.crawl_source import CrawlSource, CrawlSourceType
from grant_pipeline.domain.entities.pipeline_job import (
    JobStatus,
    JobType,
    PipelineJob,
    TriggerSource,
)
from grant_pipeline.domain.exceptions import (
    EntityNotFoundError,
    InactiveSourceError,
    WorkerUnavailableError,
)

logger = logging.getLogger(__name__)


@dataclass
class CrawlDispatch:
    """A crawl job handed to the worker, or the one already running for the source."""

    job: PipelineJob
    already_running: bool = False

    @property
    def delivered(self) -> bool:
        return self.job.status is not JobStatus.FAILED


class CrawlDispatchService:
    """Manages crawl sources and starts crawl jobs on the out-of-process worker."""

    def __init__(
        self,
        source_repo: CrawlSourceRepository,
        ledger: JobLedgerService,
        worker: WorkerClient,
    ) -> None:
        self._source_repo = source_repo
        self._ledger = ledger
        self._worker = worker

    # ── Source registry ─────────────────────────────────────────────

    async def list_active_sources(self) -> list[CrawlSource]:
        return await self._source_repo.get_active()

    async def list_sources(self) -> list[CrawlSource]:
        return await self._source_repo.get_all()

    async def get_source(self, source_id: str) -> CrawlSource:
        source = await self._source_repo.get_by_id(source_id)
        if source is None:
            raise EntityNotFoundError("CrawlSource", source_id)
        return source

    async def create_source(
        self,
        name: str,
        url: str,
        source_type: CrawlSourceType = CrawlSourceType.TABLE,
        schedule: str | None = None,
        is_active: bool = True,
    ) -> CrawlSource:
        now = datetime.now(timezone.utc)
        source = CrawlSource(
            id=str(uuid.uuid4()),
            name=name,
            url=url,
            type=source_type,
            schedule=schedule,
            is_active=is_active,
            created_at=now,
            updated_at=now,
        )
        return await self._source_repo.create(source)

    async def set_source_active(self, source_id: str, is_active: bool) -> CrawlSource:
        source = await self.get_source(source_id)
        source.is_active = is_active
        source.updated_at = datetime.now(timezone.utc)
        return await self._source_repo.update(source)

    # ── Dispatch ────────────────────────────────────────────────────

    async def start_crawl(
        self, source_id: str, triggered_by: str = TriggerSource.MANUAL.value
    ) -> CrawlDispatch:
        """Create a pending crawl job for an active source and notify the worker.

        Raises:
            EntityNotFoundError: the source does not exist.
            InactiveSourceError: the source is deactivated; no job is created.
        """
        source = await self.get_source(source_id)
        if not source.is_active:
            raise InactiveSourceError(source_id)

        running = await self._ledger.running_jobs(JobType.CRAWL, source_id=source_id)
        if running:
            logger.info("Crawl for source %s already running as job %s", source_id, running[0].id)
            return CrawlDispatch(job=running[0], already_running=True)

        job = await self._create_crawl_job(source, triggered_by)
        try:
            await self._worker.dispatch_crawl(job.id)
        except WorkerUnavailableError as exc:
            logger.error("Crawl job %s could not be delivered: %s", job.id, exc)
            job = await self._ledger.update_job(
                job.id, status=JobStatus.FAILED, error=f"Worker dispatch failed: {exc}"
            )
        else:
            logger.info("Crawl job %s dispatched for source '%s'", job.id, source.name)
        return CrawlDispatch(job=job)

    async def start_all_active(
        self, triggered_by: str = TriggerSource.CRON.value
    ) -> list[PipelineJob]:
        """Create one pending job per idle active source and deliver them as one batch.

        Sources that already have a running crawl are left out. The worker runs
        a batch sequentially in list order. When the batch cannot be delivered
        every job in it is failed.
        """
        sources = []
        for source in await self.list_active_sources():
            running = await self._ledger.running_jobs(JobType.CRAWL, source_id=source.id)
            if running:
                logger.info("Skipping source %s: crawl job %s still running", source.id, running[0].id)
                continue
            sources.append(source)
        if not sources:
            return []

        jobs = [await self._create_crawl_job(source, triggered_by) for source in sources]
        try:
            await self._worker.dispatch_crawl_batch([job.id for job in jobs])
        except WorkerUnavailableError as exc:
            logger.error("Crawl batch of %d job(s) could not be delivered: %s", len(jobs), exc)
            jobs = [
                await self._ledger.update_job(
                    job.id, status=JobStatus.FAILED, error=f"Worker dispatch failed: {exc}"
                )
                for job in jobs
            ]
        else:
            logger.info("Dispatched crawl batch of %d job(s)", len(jobs))
        return jobs

    async def _create_crawl_job(self, source: CrawlSource, triggered_by: str) -> PipelineJob:
        return await self._ledger.create_job(
            JobType.CRAWL,
            params={"source_name": source.name, "url": source.url, "type": source.type.value},
            triggered_by=triggered_by,
            source_id=source.id,
        )
