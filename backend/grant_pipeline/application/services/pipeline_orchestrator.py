"""Pipeline Orchestrator — dispatches embedding and parse runs from the serving tier.

Embedding runs are delegated whole to the worker, which has no execution
time limit. When the worker is unconfigured or unreachable the orchestrator
falls back to a small in-process batch and reports what is left.
"""

import logging
from dataclasses import dataclass

from grant_pipeline.application.interfaces.worker_client import WorkerClient
from grant_pipeline.application.services.embedding_generation_service import (
    EmbeddingGenerationService,
    summarize,
)
from grant_pipeline.application.services.job_ledger_service import JobLedgerService
from grant_pipeline.application.services.parse_recovery_service import (
    ParseRecoveryResult,
    ParseRecoveryService,
)
from grant_pipeline.domain.entities.pipeline_job import JobStatus, JobType, TriggerSource
from grant_pipeline.domain.exceptions import WorkerUnavailableError
from grant_pipeline.infrastructure.logging.colored_logger import PipelineLogger, PipelineStage

logger = logging.getLogger(__name__)
plog = PipelineLogger("PipelineOrchestrator")

DEFAULT_EMBED_BATCH_SIZE = 50
MODE_WORKER = "worker"
MODE_LOCAL = "local"


@dataclass
class EmbedDispatchResult:
    job_id: str
    mode: str
    processed: int = 0
    success: int = 0
    failed: int = 0
    message: str = ""
    details: list[dict] | None = None
    remaining: int | None = None


class PipelineOrchestrator:
    """Creates the job record, delegates, and finalizes it exactly once."""

    def __init__(
        self,
        ledger: JobLedgerService,
        embedding_service: EmbeddingGenerationService,
        worker: WorkerClient,
        parse_service: ParseRecoveryService | None = None,
        local_batch_limit: int = 10,
    ) -> None:
        self.ledger = ledger
        self.embedding_service = embedding_service
        self.worker = worker
        self.parse_service = parse_service
        self.local_batch_limit = local_batch_limit

    async def trigger_embedding(
        self,
        batch_size: int = DEFAULT_EMBED_BATCH_SIZE,
        project_ids: list[str] | None = None,
        force: bool = False,
        triggered_by: str = TriggerSource.MANUAL.value,
    ) -> EmbedDispatchResult:
        pending = await self.embedding_service.count_pending(project_ids, force)
        job = await self.ledger.create_job(
            JobType.EMBED,
            params={"batch_size": batch_size, "project_ids": project_ids, "force": force},
            target_count=max(0, min(pending, batch_size)),
            triggered_by=triggered_by,
            status=JobStatus.RUNNING,
        )

        try:
            if self.worker.is_configured:
                try:
                    return await self._delegate_embedding(job.id, batch_size, project_ids, force)
                except WorkerUnavailableError as exc:
                    plog.step_error(PipelineStage.DISPATCH, "Worker unavailable, running locally", error=exc)
            else:
                plog.detail("Worker not configured, running locally")
            return await self._run_local_embedding(job.id, pending, batch_size, project_ids, force)
        except Exception as exc:
            logger.exception("Embedding dispatch for job %s failed", job.id)
            await self.ledger.update_job(job.id, status=JobStatus.FAILED, error=str(exc))
            raise

    async def trigger_parse_recovery(
        self,
        batch_size: int = 20,
        error_filter: str | None = None,
        attachment_ids: list[str] | None = None,
        triggered_by: str = TriggerSource.MANUAL.value,
    ) -> ParseRecoveryResult:
        """Parse recovery always runs in-process with a bounded batch."""
        if self.parse_service is None:
            raise RuntimeError("PipelineOrchestrator was built without a parse service")
        return await self.parse_service.run_parse_recovery(
            batch_size=batch_size,
            error_filter=error_filter,
            attachment_ids=attachment_ids,
            triggered_by=triggered_by,
        )

    # ── Embedding paths ─────────────────────────────────────────────

    async def _delegate_embedding(
        self,
        job_id: str,
        batch_size: int,
        project_ids: list[str] | None,
        force: bool,
    ) -> EmbedDispatchResult:
        plog.step_start(PipelineStage.DISPATCH, "Delegating embedding batch to worker", job=job_id, batch=batch_size)
        summary = await self.worker.generate_embeddings(
            batch_size, project_ids=project_ids, force=force, pipeline_job_id=job_id
        )
        await self.ledger.update_job(
            job_id,
            status=JobStatus.COMPLETED,
            success_count=summary.success,
            fail_count=summary.failed,
            result={
                "mode": MODE_WORKER,
                "processed": summary.processed,
                "success": summary.success,
                "failed": summary.failed,
                "duration_ms": summary.duration_ms,
                "error_details": summary.error_details,
            },
        )
        plog.step_complete(PipelineStage.DISPATCH, "Worker finished embedding batch", processed=summary.processed)
        return EmbedDispatchResult(
            job_id=job_id,
            mode=MODE_WORKER,
            processed=summary.processed,
            success=summary.success,
            failed=summary.failed,
            message=summary.message or "Embedding generation delegated to worker",
        )

    async def _run_local_embedding(
        self,
        job_id: str,
        pending: int,
        batch_size: int,
        project_ids: list[str] | None,
        force: bool,
    ) -> EmbedDispatchResult:
        local_size = max(0, min(batch_size, self.local_batch_limit))
        result = await self.embedding_service.process_batch(local_size, project_ids, force)
        remaining = max(0, pending - result.processed)

        summary = summarize(result)
        summary.update({"mode": MODE_LOCAL, "remaining": remaining})
        await self.ledger.update_job(
            job_id,
            status=JobStatus.COMPLETED,
            success_count=result.success,
            fail_count=result.failed,
            result=summary,
        )
        return EmbedDispatchResult(
            job_id=job_id,
            mode=MODE_LOCAL,
            processed=result.processed,
            success=result.success,
            failed=result.failed,
            message=f"Local processing completed. {remaining} projects remaining.",
            details=[d.to_dict() for d in result.details],
            remaining=remaining,
        )
