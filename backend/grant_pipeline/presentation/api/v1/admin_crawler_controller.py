"""Admin Crawler API controller — sources, crawl dispatch, job cancellation, live status."""

import logging
import math
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status

from grant_pipeline.application.schemas.crawler import (
    CancelJobsResponse,
    CleanupResponse,
    CrawlJobListResponse,
    CrawlJobResponse,
    CrawlJobsActionRequest,
    CrawlSourceListResponse,
    CrawlSourceResponse,
    CreateCrawlSourceRequest,
    LiveStatusResponse,
    LiveStatusSummary,
    RunningCrawlResponse,
    SourceStatusResponse,
    StartCrawlRequest,
    StartCrawlResponse,
    UpdateCrawlSourceRequest,
)
from grant_pipeline.application.services import (
    CrawlDispatchService,
    JobLedgerService,
    PipelineStatsService,
)
from grant_pipeline.application.services.job_ledger_service import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from grant_pipeline.config import get_settings
from grant_pipeline.domain.entities.crawl_source import CrawlSource
from grant_pipeline.domain.entities.pipeline_job import JobType, PipelineJob, TriggerSource
from grant_pipeline.domain.exceptions import (
    EntityNotFoundError,
    InactiveSourceError,
    InvalidJobTransitionError,
)
from grant_pipeline.infrastructure.dependencies import (
    get_crawl_dispatch_service,
    get_job_ledger,
    get_pipeline_stats_service,
)
from grant_pipeline.presentation.api.v1.auth import require_admin

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin/crawler",
    tags=["Admin Crawler"],
    dependencies=[Depends(require_admin)],
)


# ── Helpers ──────────────────────────────────────────────────────────


def _source_to_response(source: CrawlSource) -> CrawlSourceResponse:
    return CrawlSourceResponse(
        id=source.id,
        name=source.name,
        url=source.url,
        type=source.type,
        is_active=source.is_active,
        schedule=source.schedule,
        last_crawled=source.last_crawled,
        created_at=source.created_at,
        updated_at=source.updated_at,
    )


def _crawl_job_to_response(job: PipelineJob, source_names: dict[str, str]) -> CrawlJobResponse:
    """Lift the crawl counters out of the job's ``result``."""
    result = job.result or {}
    return CrawlJobResponse(
        id=job.id,
        source_id=job.source_id,
        source_name=source_names.get(job.source_id) if job.source_id else None,
        status=job.status,
        projects_found=result.get("projects_found", 0),
        projects_new=result.get("projects_new", 0),
        projects_updated=result.get("projects_updated", 0),
        error=job.error,
        triggered_by=job.triggered_by,
        started_at=job.started_at,
        completed_at=job.completed_at,
        created_at=job.created_at,
        duration=JobLedgerService.get_job_duration(job),
    )


# ── Sources ──────────────────────────────────────────────────────────


@router.get("/sources", response_model=CrawlSourceListResponse)
async def list_sources(
    service: CrawlDispatchService = Depends(get_crawl_dispatch_service),
) -> CrawlSourceListResponse:
    sources = await service.list_sources()
    return CrawlSourceListResponse(sources=[_source_to_response(s) for s in sources])


@router.post("/sources", response_model=CrawlSourceResponse, status_code=status.HTTP_201_CREATED)
async def create_source(
    request: CreateCrawlSourceRequest,
    service: CrawlDispatchService = Depends(get_crawl_dispatch_service),
) -> CrawlSourceResponse:
    """Register a new crawl source."""
    source = await service.create_source(
        name=request.name,
        url=request.url,
        source_type=request.type,
        schedule=request.schedule,
        is_active=request.is_active,
    )
    return _source_to_response(source)


@router.patch("/sources/{source_id}", response_model=CrawlSourceResponse)
async def update_source(
    source_id: str,
    request: UpdateCrawlSourceRequest,
    service: CrawlDispatchService = Depends(get_crawl_dispatch_service),
) -> CrawlSourceResponse:
    """Activate or deactivate a crawl source."""
    try:
        source = await service.set_source_active(source_id, request.is_active)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _source_to_response(source)


# ── Crawl dispatch ───────────────────────────────────────────────────


@router.post("/start", response_model=StartCrawlResponse, status_code=status.HTTP_201_CREATED)
async def start_crawl(
    request: StartCrawlRequest,
    service: CrawlDispatchService = Depends(get_crawl_dispatch_service),
) -> StartCrawlResponse:
    """Create a crawl job for one source and hand it to the worker."""
    try:
        dispatch = await service.start_crawl(request.source_id, triggered_by=TriggerSource.MANUAL.value)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InactiveSourceError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if dispatch.already_running:
        message = "A crawl for this source is already running"
    elif dispatch.delivered:
        message = "Crawl job started"
    else:
        message = dispatch.job.error or "Crawl job could not be delivered to the worker"

    return StartCrawlResponse(
        success=dispatch.delivered,
        job_id=dispatch.job.id,
        status=dispatch.job.status,
        already_running=dispatch.already_running,
        message=message,
    )


# ── Crawl jobs ───────────────────────────────────────────────────────


@router.get("/jobs", response_model=CrawlJobListResponse)
async def list_crawl_jobs(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, alias="pageSize"),
    status_filter: str | None = Query(default=None, alias="status"),
    ledger: JobLedgerService = Depends(get_job_ledger),
    service: CrawlDispatchService = Depends(get_crawl_dispatch_service),
) -> CrawlJobListResponse:
    """Crawl jobs newest first, with their source names."""
    jobs, total = await ledger.list_jobs(
        job_type=JobType.CRAWL.value,
        status=status_filter,
        limit=page_size,
        offset=(page - 1) * page_size,
    )
    source_names = {s.id: s.name for s in await service.list_sources()}
    return CrawlJobListResponse(
        jobs=[_crawl_job_to_response(j, source_names) for j in jobs],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size),
    )


@router.delete("/jobs", response_model=CancelJobsResponse)
async def cancel_crawl_jobs(
    job_id: str | None = Query(default=None, alias="jobId"),
    all_running: bool = Query(default=False, alias="all"),
    stuck_minutes: int | None = Query(default=None, alias="stuckMinutes", ge=1),
    ledger: JobLedgerService = Depends(get_job_ledger),
) -> CancelJobsResponse:
    """Cancel one job, every running crawl, or crawls running longer than a threshold."""
    if job_id:
        try:
            job = await ledger.cancel_job(job_id, reason="Cancelled by administrator")
        except EntityNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except InvalidJobTransitionError:
            raise HTTPException(status_code=400, detail="Job has already finished")
        return CancelJobsResponse(cancelled_count=1, job_ids=[job.id])

    if all_running:
        ids = await ledger.cancel_all_running(JobType.CRAWL, reason="Cancelled by administrator (bulk)")
        return CancelJobsResponse(cancelled_count=len(ids), job_ids=ids)

    if stuck_minutes is not None:
        sweep = await ledger.cleanup_stuck(stuck_minutes=stuck_minutes, job_type=JobType.CRAWL)
        return CancelJobsResponse(cancelled_count=sweep.stuck_cancelled, job_ids=sweep.job_ids)

    raise HTTPException(status_code=400, detail="Provide jobId, all=true or stuckMinutes")


@router.post("/jobs", response_model=CleanupResponse)
async def crawl_jobs_action(
    request: CrawlJobsActionRequest,
    ledger: JobLedgerService = Depends(get_job_ledger),
) -> CleanupResponse:
    """Bulk cleanup of stuck running (and optionally stale pending) crawl jobs."""
    stuck_minutes = request.stuck_minutes or get_settings().default_stuck_minutes
    sweep = await ledger.cleanup_stuck(
        stuck_minutes=stuck_minutes,
        reset_pending=request.reset_pending,
        job_type=JobType.CRAWL,
    )
    return CleanupResponse(
        stuck_jobs_cancelled=sweep.stuck_cancelled,
        pending_jobs_cancelled=sweep.pending_cancelled,
        message=(
            f"Cleaned up {sweep.stuck_cancelled} stuck and "
            f"{sweep.pending_cancelled} stale pending job(s)"
        ),
    )


# ── Live status ──────────────────────────────────────────────────────


@router.get("/live-status", response_model=LiveStatusResponse)
async def live_status(
    service: PipelineStatsService = Depends(get_pipeline_stats_service),
) -> LiveStatusResponse:
    now = datetime.now(timezone.utc)
    live = await service.crawler_live_status(now=now)
    sources_by_id = {s.source.id: s.source for s in live.sources}

    running = []
    for job in live.running_jobs:
        source = sources_by_id.get(job.source_id)
        result = job.result or {}
        minutes = job.running_minutes(now) or 0
        running.append(
            RunningCrawlResponse(
                id=job.id,
                source_name=source.name if source else None,
                source_url=source.url if source else None,
                status=job.status,
                started_at=job.started_at,
                duration=round(minutes * 60),
                projects_found=result.get("projects_found", 0),
                projects_new=result.get("projects_new", 0),
                projects_updated=result.get("projects_updated", 0),
            )
        )

    return LiveStatusResponse(
        running_jobs=running,
        recent_jobs=[_crawl_job_to_response(j, live.source_names) for j in live.recent_jobs],
        sources=[
            SourceStatusResponse(
                id=s.source.id,
                name=s.source.name,
                url=s.source.url,
                type=s.source.type,
                is_active=s.source.is_active,
                last_crawled=s.source.last_crawled,
                last_job_status=s.last_job_status,
                schedule=s.source.schedule,
            )
            for s in live.sources
        ],
        summary=LiveStatusSummary(
            total_sources=live.total_sources,
            active_sources=live.active_sources,
            running_jobs=len(live.running_jobs),
            pending_jobs=live.pending_jobs,
            completed_today=live.completed_today,
            failed_today=live.failed_today,
        ),
        timestamp=live.timestamp,
    )
