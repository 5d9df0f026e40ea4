"""Cron API controller — scheduled crawl, embedding and stuck-job sweep triggers.

Schedulers call these with ``Authorization: Bearer <cron_secret>``; an
administrator can call them with ``x-api-key``. GET and POST behave the same
because different schedulers use different methods.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from grant_pipeline.application.schemas.crawler import CleanupResponse
from grant_pipeline.application.schemas.cron import CrawlAllResponse
from grant_pipeline.application.schemas.pipeline import EmbedResponse
from grant_pipeline.application.services import (
    CrawlDispatchService,
    JobLedgerService,
    PipelineOrchestrator,
    PipelineSettingsService,
)
from grant_pipeline.config import get_settings
from grant_pipeline.domain.entities.pipeline_job import JobStatus, JobType
from grant_pipeline.infrastructure.dependencies import (
    get_crawl_dispatch_service,
    get_job_ledger,
    get_pipeline_orchestrator,
    get_pipeline_settings_service,
)
from grant_pipeline.presentation.api.v1.auth import verify_trigger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["Cron"])


@router.api_route("/crawl-all", methods=["GET", "POST"], response_model=CrawlAllResponse)
async def crawl_all(
    triggered_by: str = Depends(verify_trigger),
    dispatch: CrawlDispatchService = Depends(get_crawl_dispatch_service),
    settings_service: PipelineSettingsService = Depends(get_pipeline_settings_service),
) -> CrawlAllResponse:
    """Create one crawl job per active source and deliver them as a batch."""
    settings = {s.type: s for s in await settings_service.get_settings()}
    if not settings[JobType.CRAWL].enabled:
        return CrawlAllResponse(success=True, job_ids=[], count=0, message="Crawl pipeline is disabled")

    jobs = await dispatch.start_all_active(triggered_by=triggered_by)
    if not jobs:
        return CrawlAllResponse(
            success=True, job_ids=[], count=0, message="No active sources without a running crawl"
        )

    delivered = [j for j in jobs if j.status is not JobStatus.FAILED]
    logger.info("Cron crawl-all (%s): %d of %d job(s) delivered", triggered_by, len(delivered), len(jobs))
    return CrawlAllResponse(
        success=bool(delivered),
        job_ids=[j.id for j in jobs],
        count=len(jobs),
        message=(
            f"Started {len(jobs)} crawl job(s)"
            if delivered
            else f"Worker dispatch failed for {len(jobs)} job(s)"
        ),
    )


@router.api_route("/generate-embeddings", methods=["GET", "POST"], response_model=EmbedResponse)
async def generate_embeddings(
    triggered_by: str = Depends(verify_trigger),
    orchestrator: PipelineOrchestrator = Depends(get_pipeline_orchestrator),
    settings_service: PipelineSettingsService = Depends(get_pipeline_settings_service),
) -> EmbedResponse:
    """Run one embedding batch sized by the stored embed setting."""
    settings = {s.type: s for s in await settings_service.get_settings()}
    embed_setting = settings[JobType.EMBED]
    if not embed_setting.enabled:
        raise HTTPException(status_code=409, detail="Embedding pipeline is disabled")

    try:
        result = await orchestrator.trigger_embedding(
            batch_size=embed_setting.batch_size,
            triggered_by=triggered_by,
        )
    except Exception as e:
        logger.exception("Scheduled embedding run failed")
        raise HTTPException(status_code=500, detail=f"Embedding run failed: {e}")

    return EmbedResponse(
        job_id=result.job_id,
        mode=result.mode,
        processed=result.processed,
        success=result.success,
        failed=result.failed,
        message=result.message,
        details=result.details,
        remaining=result.remaining,
    )


@router.api_route("/cleanup-stuck-jobs", methods=["GET", "POST"], response_model=CleanupResponse)
async def cleanup_stuck_jobs(
    triggered_by: str = Depends(verify_trigger),
    ledger: JobLedgerService = Depends(get_job_ledger),
) -> CleanupResponse:
    """Fail jobs of any type stuck in ``running`` past the default threshold."""
    stuck_minutes = get_settings().default_stuck_minutes
    sweep = await ledger.cleanup_stuck(stuck_minutes=stuck_minutes)
    logger.info("Stuck-job sweep triggered by %s", triggered_by)
    return CleanupResponse(
        stuck_jobs_cancelled=sweep.stuck_cancelled,
        pending_jobs_cancelled=sweep.pending_cancelled,
        message=f"Cancelled {sweep.stuck_cancelled} job(s) running longer than {stuck_minutes} minutes",
    )
