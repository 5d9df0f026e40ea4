"""Crawl Runner — executes one crawl job end to end inside the worker.

Pipeline per job:
    1. Claim the pending job (→ running)
    2. Fetch the source listing (httpx, or a headless browser for SPA sources)
    3. Parse listings per source type
    4. Visit detail pages for HWP/HWPX/PDF attachment links
    5. Upsert projects, flag them for embedding, register attachments
    6. Complete the job with counts and stamp ``source.last_crawled``
"""

import asyncio
import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime, timezone

from grant_pipeline.application.interfaces.attachment_repository import AttachmentRepository
from grant_pipeline.application.interfaces.crawl_source_repository import CrawlSourceRepository
from grant_pipeline.application.interfaces.page_fetcher import PageFetcher
from grant_pipeline.application.interfaces.support_project_repository import SupportProjectRepository
from grant_pipeline.application.services.job_ledger_service import JobLedgerService
from grant_pipeline.application.services.listing_parser import (
    attachment_file_name,
    attachment_file_type,
    extract_attachment_urls,
    parse_listing,
)
from grant_pipeline.domain.entities.crawl_source import CrawlSource, CrawlSourceType
from grant_pipeline.domain.entities.pipeline_job import JobStatus, JobType, PipelineJob
from grant_pipeline.domain.entities.support_project import CrawledProject, SupportProject
from grant_pipeline.domain.exceptions import CrawlSourceUnreachableError, EntityNotFoundError
from grant_pipeline.infrastructure.logging.colored_logger import PipelineLogger, PipelineStage

logger = logging.getLogger(__name__)
plog = PipelineLogger("CrawlRunner")


class CrawlRunner:
    """Runs crawl jobs against one database session."""

    def __init__(
        self,
        ledger: JobLedgerService,
        source_repo: CrawlSourceRepository,
        project_repo: SupportProjectRepository,
        attachment_repo: AttachmentRepository,
        fetcher: PageFetcher,
        browser_fetcher: PageFetcher | None = None,
        fetch_details: bool = True,
        detail_delay: float = 0.5,
    ) -> None:
        self._ledger = ledger
        self._source_repo = source_repo
        self._project_repo = project_repo
        self._attachment_repo = attachment_repo
        self._fetcher = fetcher
        self._browser_fetcher = browser_fetcher
        self._fetch_details = fetch_details
        self._detail_delay = detail_delay

    async def process_crawl_job(self, job_id: str) -> PipelineJob | None:
        """Execute a pending crawl job.

        Unreachable sources fail the job here. Any other exception propagates
        so the caller can roll back and fail the job in a fresh transaction.
        """
        try:
            job = await self._ledger.get_job(job_id)
        except EntityNotFoundError:
            logger.error("Crawl job %s does not exist; nothing to run", job_id)
            return None

        if job.type is not JobType.CRAWL:
            logger.error("Job %s is a %s job, not a crawl job", job_id, job.type.value)
            return job
        if job.status is not JobStatus.PENDING:
            logger.info("Skipping crawl job %s: already %s", job_id, job.status.value)
            return job

        source = await self._source_repo.get_by_id(job.source_id) if job.source_id else None
        job.mark_running()
        if source is None:
            job.mark_failed(f"Crawl source '{job.source_id}' not found")
            return await self._ledger.save(job)
        await self._ledger.save(job)

        plog.separator(f"Crawl {source.name}")
        try:
            crawled = await self._crawl(source)
        except CrawlSourceUnreachableError as exc:
            plog.step_error(PipelineStage.CRAWL, f"Source unreachable: {source.url}", error=exc)
            job.mark_failed(str(exc))
            return await self._ledger.save(job)

        new_count, updated_count, failed_count, attachment_count = await self._save_projects(crawled)

        job.target_count = len(crawled)
        job.mark_completed(
            success_count=new_count + updated_count,
            fail_count=failed_count,
            result={
                "projects_found": len(crawled),
                "projects_new": new_count,
                "projects_updated": updated_count,
                "attachments_found": attachment_count,
            },
        )
        source.last_crawled = job.completed_at
        source.updated_at = datetime.now(timezone.utc)
        await self._source_repo.update(source)
        job = await self._ledger.save(job)

        plog.step_complete(
            PipelineStage.COMPLETE,
            f"Crawl of '{source.name}' finished",
            found=len(crawled),
            new=new_count,
            updated=updated_count,
            duration=f"{job.duration_seconds}s",
        )
        return job

    async def fail_job(self, job_id: str, error: str) -> None:
        """Fail a job that crashed mid-run, unless it already finished."""
        job = await self._ledger.get_job(job_id)
        if job.status.is_terminal:
            return
        job.mark_failed(error)
        await self._ledger.save(job)

    # ── Fetch + parse ───────────────────────────────────────────────

    async def _crawl(self, source: CrawlSource) -> list[CrawledProject]:
        with plog.timed_step(PipelineStage.CRAWL, "Fetching listing", url=source.url, type=source.type.value):
            if source.type is CrawlSourceType.API:
                content = await self._fetcher.fetch_json(source.url)
            elif source.type.needs_browser and self._browser_fetcher is not None:
                content = await self._browser_fetcher.fetch_html(source.url)
            else:
                content = await self._fetcher.fetch_html(source.url)

        projects = parse_listing(content, source.url, source.type)
        plog.detail(f"{len(projects)} listing(s) parsed")

        if self._fetch_details:
            await self._collect_attachments(projects)
        return projects

    async def _collect_attachments(self, projects: list[CrawledProject]) -> None:
        total = len(projects)
        for idx, project in enumerate(projects, start=1):
            if not project.detail_url:
                continue
            try:
                html = await self._fetcher.fetch_html(project.detail_url)
                project.attachment_urls = extract_attachment_urls(html, project.detail_url)
            except CrawlSourceUnreachableError as exc:
                plog.step_warning(PipelineStage.DETAIL, f"[{idx}/{total}] detail page skipped", error=exc.reason)
            else:
                if project.attachment_urls:
                    plog.detail(f"[{idx}/{total}] {project.name}", files=len(project.attachment_urls))

            if self._detail_delay > 0:
                await asyncio.sleep(self._detail_delay)

    # ── Upsert ──────────────────────────────────────────────────────

    async def _save_projects(self, crawled: list[CrawledProject]) -> tuple[int, int, int, int]:
        new_count = updated_count = failed_count = attachment_count = 0
        now = datetime.now(timezone.utc)

        for item in crawled:
            try:
                existing = await self._project_repo.find_for_crawled(item)
                if existing is None:
                    project = await self._project_repo.create(_new_project(item, now))
                    new_count += 1
                else:
                    _apply_crawled(existing, item, now)
                    project = await self._project_repo.update(existing)
                    updated_count += 1
            except ValueError as exc:
                plog.step_warning(PipelineStage.UPSERT, f"Could not save '{item.name}'", error=str(exc))
                failed_count += 1
                continue

            for url in item.attachment_urls:
                registered = await self._attachment_repo.register(
                    project_id=project.id,
                    source_url=url,
                    file_name=attachment_file_name(url),
                    file_type=attachment_file_type(url),
                )
                if registered:
                    attachment_count += 1

        plog.stats(new=new_count, updated=updated_count, failed=failed_count, attachments=attachment_count)
        return new_count, updated_count, failed_count, attachment_count


class CrawlJobExecutor:
    """Runs crawl jobs from the worker's background tasks.

    ``runner_scope`` opens a transaction and yields a bound ``CrawlRunner``;
    it commits on a clean exit and rolls back on an exception.
    """

    def __init__(self, runner_scope: Callable[[], AbstractAsyncContextManager[CrawlRunner]]) -> None:
        self._runner_scope = runner_scope

    async def run_job(self, job_id: str) -> None:
        try:
            async with self._runner_scope() as runner:
                await runner.process_crawl_job(job_id)
        except Exception as exc:
            logger.exception("Crawl job %s crashed", job_id)
            async with self._runner_scope() as runner:
                await runner.fail_job(job_id, f"Crawl failed: {exc}")

    async def run_batch(self, job_ids: list[str]) -> None:
        """Run jobs one after another in list order."""
        for job_id in job_ids:
            await self.run_job(job_id)


def _new_project(item: CrawledProject, now: datetime) -> SupportProject:
    return SupportProject(
        name=item.name,
        external_id=item.external_id,
        organization=item.organization,
        category=item.category,
        region=item.region,
        target=item.target,
        summary=item.summary,
        description=item.description,
        eligibility=item.eligibility,
        application_process=item.application_process,
        detail_url=item.detail_url,
        source_url=item.source_url,
        needs_embedding=True,
        crawled_at=now,
        created_at=now,
        updated_at=now,
    )


def _apply_crawled(project: SupportProject, item: CrawledProject, now: datetime) -> None:
    project.name = item.name
    project.organization = item.organization
    project.category = item.category
    project.region = item.region
    project.target = item.target
    project.summary = item.summary
    project.source_url = item.source_url
    if item.external_id:
        project.external_id = item.external_id
    if item.detail_url:
        project.detail_url = item.detail_url
    if item.description is not None:
        project.description = item.description
    if item.eligibility is not None:
        project.eligibility = item.eligibility
    if item.application_process is not None:
        project.application_process = item.application_process

    # A run holding a claim on the old text must not clear the new flag.
    project.needs_embedding = True
    project.embedding_claim_token = None
    project.embedding_claimed_at = None
    project.crawled_at = now
    project.updated_at = now
