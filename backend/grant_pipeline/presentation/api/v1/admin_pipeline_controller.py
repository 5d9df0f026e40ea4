"""Admin Pipeline API controller — embed / parse triggers, stats, job history, settings."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from grant_pipeline.application.schemas.pipeline import (
    AttachmentStatsResponse,
    EmbedRequest,
    EmbedResponse,
    EmbedStatsResponse,
    ParseRequest,
    ParseResponse,
    ParseStatsResponse,
    PipelineJobListResponse,
    PipelineJobResponse,
    PipelineSettingResponse,
    PipelineSettingsResponse,
    PipelineSettingUpdateRequest,
    PipelineSettingUpdateResponse,
    PipelineStatsResponse,
)
from grant_pipeline.application.services import (
    JobLedgerService,
    PipelineOrchestrator,
    PipelineSettingsService,
    PipelineStatsService,
)
from grant_pipeline.application.services.job_ledger_service import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from grant_pipeline.domain.entities.pipeline_job import PipelineJob, TriggerSource
from grant_pipeline.domain.entities.pipeline_setting import PipelineSetting
from grant_pipeline.infrastructure.dependencies import (
    get_job_ledger,
    get_pipeline_orchestrator,
    get_pipeline_settings_service,
    get_pipeline_stats_service,
)
from grant_pipeline.presentation.api.v1.auth import require_admin

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin/pipeline",
    tags=["Admin Pipeline"],
    dependencies=[Depends(require_admin)],
)


# ── Helpers ──────────────────────────────────────────────────────────


def _job_to_response(job: PipelineJob) -> PipelineJobResponse:
    return PipelineJobResponse(
        id=job.id,
        type=job.type,
        status=job.status,
        target_count=job.target_count,
        success_count=job.success_count,
        fail_count=job.fail_count,
        params=job.params,
        result=job.result,
        error=job.error,
        triggered_by=job.triggered_by,
        source_id=job.source_id,
        started_at=job.started_at,
        completed_at=job.completed_at,
        created_at=job.created_at,
        duration=JobLedgerService.get_job_duration(job),
    )


def _setting_to_response(setting: PipelineSetting) -> PipelineSettingResponse:
    return PipelineSettingResponse(
        type=setting.type,
        enabled=setting.enabled,
        schedule=setting.schedule,
        batch_size=setting.batch_size,
        max_retries=setting.max_retries,
        timeout=setting.timeout_ms,
        options=setting.options,
        updated_at=setting.updated_at,
    )


# ── Triggers ─────────────────────────────────────────────────────────


@router.post("/embed", response_model=EmbedResponse)
async def trigger_embedding(
    request: EmbedRequest,
    orchestrator: PipelineOrchestrator = Depends(get_pipeline_orchestrator),
) -> EmbedResponse:
    """Start an embedding run, delegated to the worker when it is reachable."""
    try:
        result = await orchestrator.trigger_embedding(
            batch_size=request.batch_size,
            project_ids=request.project_ids,
            force=request.force,
            triggered_by=TriggerSource.MANUAL.value,
        )
    except Exception as e:
        logger.exception("Embedding trigger failed")
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


@router.post("/parse", response_model=ParseResponse)
async def trigger_parse(
    request: ParseRequest,
    orchestrator: PipelineOrchestrator = Depends(get_pipeline_orchestrator),
) -> ParseResponse:
    """Retry text extraction for a bounded batch of unparsed attachments."""
    try:
        result = await orchestrator.trigger_parse_recovery(
            batch_size=request.batch_size,
            error_filter=request.error_type,
            attachment_ids=request.attachment_ids,
            triggered_by=TriggerSource.MANUAL.value,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Parse recovery trigger failed")
        raise HTTPException(status_code=500, detail=f"Parse recovery failed: {e}")

    return ParseResponse(
        job_id=result.job_id,
        processed=result.processed,
        success=result.success,
        failed=result.failed,
        skipped=result.skipped,
        details=[d.to_dict() for d in result.details],
    )


# ── Stats & history ──────────────────────────────────────────────────


@router.get("/stats", response_model=PipelineStatsResponse)
async def get_stats(
    service: PipelineStatsService = Depends(get_pipeline_stats_service),
) -> PipelineStatsResponse:
    stats = await service.get_stats()
    return PipelineStatsResponse(
        parse=ParseStatsResponse(
            total=stats.parse.total,
            parsable=stats.parse.parsable,
            parsed=stats.parse.parsed,
            unparsed=stats.parse.unparsed,
            with_error=stats.parse.with_error,
            by_file_type=stats.parse.by_file_type,
            error_types=stats.error_types,
        ),
        embed=EmbedStatsResponse(
            total=stats.embed.total,
            embedded=stats.embed.embedded,
            pending=stats.embed.pending,
            embedding_count=stats.embed.embedding_count,
        ),
        attachment=AttachmentStatsResponse(
            total_projects=stats.attachment.total_projects,
            with_attachments=stats.attachment.with_attachments,
            without_attachments=stats.attachment.without_attachments,
            recrawlable=stats.attachment.recrawlable,
        ),
        recent_jobs=[_job_to_response(j) for j in stats.recent_jobs],
        timestamp=stats.timestamp,
    )


@router.get("/jobs", response_model=PipelineJobListResponse)
async def list_jobs(
    type: str | None = Query(default=None),
    status: str | None = Query(default=None),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(default=0, ge=0),
    ledger: JobLedgerService = Depends(get_job_ledger),
) -> PipelineJobListResponse:
    """Job history, newest first. Unknown filters are ignored."""
    jobs, total = await ledger.list_jobs(job_type=type, status=status, limit=limit, offset=offset)
    return PipelineJobListResponse(
        jobs=[_job_to_response(j) for j in jobs],
        total=total,
        limit=limit,
        offset=offset,
    )


# ── Settings ─────────────────────────────────────────────────────────


@router.get("/settings", response_model=PipelineSettingsResponse)
async def get_settings(
    service: PipelineSettingsService = Depends(get_pipeline_settings_service),
) -> PipelineSettingsResponse:
    settings = await service.get_settings()
    return PipelineSettingsResponse(settings=[_setting_to_response(s) for s in settings])


@router.patch("/settings", response_model=PipelineSettingUpdateResponse)
async def update_settings(
    request: PipelineSettingUpdateRequest,
    service: PipelineSettingsService = Depends(get_pipeline_settings_service),
) -> PipelineSettingUpdateResponse:
    try:
        setting = await service.update_setting(
            request.type,
            enabled=request.enabled,
            schedule=request.schedule,
            batch_size=request.batch_size,
            max_retries=request.max_retries,
            timeout_ms=request.timeout,
            options=request.options,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return PipelineSettingUpdateResponse(setting=_setting_to_response(setting))
