"""Worker HTTP surface — accepts crawl jobs and runs embedding batches.

Everything except ``/health`` requires ``Authorization: Bearer <worker_api_key>``.
Authentication is checked before the request body is read, so a bad secret
is always a 401 even when the body is malformed too.
"""

import hmac
import logging
import resource
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from pydantic import BaseModel, ValidationError

from grant_pipeline.application.schemas.worker import (
    CrawlAcceptedResponse,
    CrawlBatchAcceptedResponse,
    CrawlBatchRequest,
    CrawlJobRequest,
    EmbeddingStatsResponse,
    GenerateEmbeddingsRequest,
    GenerateEmbeddingsResponse,
    WorkerHealthResponse,
)
from grant_pipeline.application.services import (
    BackgroundTaskRunner,
    CrawlJobExecutor,
    EmbeddingGenerationService,
)
from grant_pipeline.config import get_settings
from grant_pipeline.domain.entities.pipeline_job import TriggerSource
from grant_pipeline.infrastructure.dependencies import get_embedding_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Worker"])


# ── Auth ─────────────────────────────────────────────────────────────


class WorkerAuth:
    """Shared-secret check for calls from the serving tier."""

    def __init__(self, api_key: str):
        self._api_key = api_key

    def is_authorized(self, authorization: str | None) -> bool:
        if not self._api_key or not authorization:
            return False
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer":
            return False
        return hmac.compare_digest(token.strip().encode(), self._api_key.encode())


def get_worker_auth() -> WorkerAuth:
    return WorkerAuth(get_settings().worker_api_key.strip())


async def require_worker_auth(
    authorization: str | None = Header(default=None),
    auth: WorkerAuth = Depends(get_worker_auth),
) -> None:
    if not auth.is_authorized(authorization):
        logger.warning("Rejected worker request with missing or invalid credentials")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


# ── App-state accessors ──────────────────────────────────────────────


def get_task_runner(request: Request) -> BackgroundTaskRunner:
    return request.app.state.task_runner


def get_crawl_executor(request: Request) -> CrawlJobExecutor:
    return request.app.state.crawl_executor


# ── Helpers ──────────────────────────────────────────────────────────


async def _read_body(request: Request, model: type[BaseModel], message: str):
    """Validate the JSON body by hand so auth failures win over bad input."""
    try:
        return model.model_validate(await request.json())
    except (ValidationError, ValueError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _memory_usage() -> dict[str, float]:
    usage = resource.getrusage(resource.RUSAGE_SELF)
    # ru_maxrss is reported in kilobytes on Linux
    return {"maxRssMb": round(usage.ru_maxrss / 1024, 1)}


# ── Endpoints ────────────────────────────────────────────────────────


@router.get("/health", response_model=WorkerHealthResponse)
async def health(
    request: Request,
    runner: BackgroundTaskRunner = Depends(get_task_runner),
) -> WorkerHealthResponse:
    """Liveness only; no auth."""
    return WorkerHealthResponse(
        status="healthy" if runner.is_running else "starting",
        uptime=round(time.monotonic() - request.app.state.started_at, 1),
        memory=_memory_usage(),
        background_tasks=runner.active_count,
        timestamp=_now(),
    )


@router.post(
    "/crawl",
    response_model=CrawlAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[Depends(require_worker_auth)],
)
async def accept_crawl(
    request: Request,
    runner: BackgroundTaskRunner = Depends(get_task_runner),
    executor: CrawlJobExecutor = Depends(get_crawl_executor),
) -> CrawlAcceptedResponse:
    """Acknowledge a crawl job and run it in the background."""
    body = await _read_body(request, CrawlJobRequest, "jobId is required and must be a string")
    try:
        runner.submit(f"crawl-{body.job_id}", lambda: executor.run_job(body.job_id))
    except RuntimeError as e:
        logger.error("Could not schedule crawl job %s: %s", body.job_id, e)
        raise HTTPException(status_code=500, detail=str(e))

    logger.info("Accepted crawl job %s", body.job_id)
    return CrawlAcceptedResponse(
        job_id=body.job_id,
        message="Crawl job accepted and processing started",
        timestamp=_now(),
    )


@router.post(
    "/crawl/batch",
    response_model=CrawlBatchAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[Depends(require_worker_auth)],
)
async def accept_crawl_batch(
    request: Request,
    runner: BackgroundTaskRunner = Depends(get_task_runner),
    executor: CrawlJobExecutor = Depends(get_crawl_executor),
) -> CrawlBatchAcceptedResponse:
    """Acknowledge several crawl jobs; they run one after another in list order."""
    body = await _read_body(request, CrawlBatchRequest, "jobIds must be a non-empty array of strings")
    job_ids = list(body.job_ids)
    try:
        runner.submit(f"crawl-batch-{job_ids[0]}", lambda: executor.run_batch(job_ids))
    except RuntimeError as e:
        logger.error("Could not schedule crawl batch: %s", e)
        raise HTTPException(status_code=500, detail=str(e))

    logger.info("Accepted crawl batch of %d job(s)", len(job_ids))
    return CrawlBatchAcceptedResponse(
        job_ids=job_ids,
        count=len(job_ids),
        message=f"{len(job_ids)} crawl job(s) accepted for sequential processing",
        timestamp=_now(),
    )


@router.post(
    "/generate-embeddings",
    response_model=GenerateEmbeddingsResponse,
    dependencies=[Depends(require_worker_auth)],
)
async def generate_embeddings(
    request: Request,
    service: EmbeddingGenerationService = Depends(get_embedding_service),
) -> GenerateEmbeddingsResponse:
    """Run one embedding batch to completion and return its summary.

    With ``pipelineJobId`` the caller already owns a ledger job, so no second
    job is created here.
    """
    body = await _read_body(
        request, GenerateEmbeddingsRequest, "batchSize must be a number between 0 and 1000"
    )
    try:
        if body.pipeline_job_id:
            result = await service.process_batch(body.batch_size, body.project_ids, body.force)
            result.job_id = body.pipeline_job_id
        else:
            result = await service.run_embedding_batch(
                body.batch_size,
                project_ids=body.project_ids,
                force=body.force,
                triggered_by=TriggerSource.WORKER.value,
            )
    except Exception as e:
        logger.exception("Embedding batch failed")
        raise HTTPException(status_code=500, detail=f"Embedding generation failed: {e}")

    return GenerateEmbeddingsResponse(
        job_id=result.job_id,
        message=(
            f"Processed {result.processed} project(s): "
            f"{result.success} succeeded, {result.failed} failed, {result.skipped} skipped"
        ),
        processed=result.processed,
        success_count=result.success,
        errors=result.failed,
        skipped=result.skipped,
        error_details=result.error_details or None,
        duration=result.duration_ms,
        timestamp=_now(),
    )


@router.get(
    "/embedding-stats",
    response_model=EmbeddingStatsResponse,
    dependencies=[Depends(require_worker_auth)],
)
async def embedding_stats(
    service: EmbeddingGenerationService = Depends(get_embedding_service),
) -> EmbeddingStatsResponse:
    stats = await service.embedding_stats()
    return EmbeddingStatsResponse(
        total_projects=stats.total_projects,
        needs_embedding=stats.needs_embedding,
        has_embeddings=stats.has_embeddings,
        completion_rate=stats.completion_rate,
        timestamp=_now(),
    )
