"""Embedding Generation Service — vectors for support projects flagged ``needs_embedding``.

Rows are claimed atomically before any work, so overlapping runs never
process the same project. The flag is cleared only by the run holding the
claim, and only when the vector was stored or the text is too short to
ever produce a useful one. Provider failures release the claim and leave
the flag set for the next run.
"""

import logging
import re
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum

from grant_pipeline.application.interfaces.attachment_repository import AttachmentRepository
from grant_pipeline.application.interfaces.document_embedding_repository import DocumentEmbeddingRepository
from grant_pipeline.application.interfaces.embedding_provider import EmbeddingProvider
from grant_pipeline.application.interfaces.support_project_repository import SupportProjectRepository
from grant_pipeline.application.interfaces.unit_of_work import Commit, no_commit
from grant_pipeline.application.services.job_ledger_service import JobLedgerService
from grant_pipeline.domain.entities.document_embedding import SUPPORT_PROJECT_SOURCE, DocumentEmbedding
from grant_pipeline.domain.entities.pipeline_job import JobStatus, JobType, TriggerSource
from grant_pipeline.domain.entities.support_project import SupportProject
from grant_pipeline.domain.exceptions import EmbeddingProviderError
from grant_pipeline.infrastructure.logging.colored_logger import PipelineLogger, PipelineStage

logger = logging.getLogger(__name__)
plog = PipelineLogger("EmbeddingGenerationService")

DEFAULT_MIN_CHARS = 100
DEFAULT_MAX_CHARS = 8000
STORED_CONTENT_CHARS = 5000
MAX_KEYWORDS = 50

STOP_WORDS = frozenset({
    "의", "가", "이", "은", "들", "는", "좀", "잘", "걍", "과", "도", "를", "으로",
    "자", "에", "와", "한", "하다", "및", "등", "위", "수", "것", "더", "년", "월",
    "the", "a", "an", "is", "are", "was", "were", "be", "been", "being",
    "have", "has", "had", "do", "does", "did", "will", "would", "could", "should",
    "and", "or", "but", "if", "then", "else", "when", "where", "what", "which",
    "who", "whom", "this", "that", "these", "those", "am", "for", "on", "in", "to",
})

_NON_WORD = re.compile(r"[^\w\s]")


class EmbedOutcome(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class EmbedItemResult:
    id: str
    name: str
    status: EmbedOutcome
    message: str | None = None

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "status": self.status.value, "message": self.message}


@dataclass
class EmbeddingBatchResult:
    job_id: str | None = None
    processed: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0
    duration_ms: int = 0
    details: list[EmbedItemResult] = field(default_factory=list)

    @property
    def error_details(self) -> list[dict]:
        return [d.to_dict() for d in self.details if d.status is EmbedOutcome.FAILED]


@dataclass
class EmbeddingStats:
    total_projects: int
    needs_embedding: int
    has_embeddings: int

    @property
    def completion_rate(self) -> int:
        """Embedded share of live projects, as a rounded percentage."""
        if self.total_projects <= 0:
            return 0
        return round(self.has_embeddings / self.total_projects * 100)


def build_embedding_text(
    project: SupportProject, attachment_texts: list[str], max_chars: int = DEFAULT_MAX_CHARS
) -> str:
    """Join the project's descriptive fields and parsed attachments."""
    parts = [
        project.name,
        project.summary,
        project.description,
        project.organization,
        project.category,
        project.region,
        project.target,
        project.eligibility,
        project.application_process,
        project.evaluation_criteria,
        *attachment_texts,
    ]
    seen: list[str] = []
    for part in parts:
        if part and part.strip() and part.strip() not in seen:
            seen.append(part.strip())
    return "\n\n".join(seen)[:max_chars]


def extract_keywords(text: str, limit: int = MAX_KEYWORDS) -> list[str]:
    """Unique non-stop-word terms in order of first appearance."""
    words = _NON_WORD.sub(" ", text.lower()).split()
    keywords: list[str] = []
    for word in words:
        if len(word) > 1 and word not in STOP_WORDS and word not in keywords:
            keywords.append(word)
            if len(keywords) >= limit:
                break
    return keywords


class EmbeddingGenerationService:
    """Claims flagged projects, embeds them, and stores one vector per project."""

    def __init__(
        self,
        project_repo: SupportProjectRepository,
        attachment_repo: AttachmentRepository,
        embedding_repo: DocumentEmbeddingRepository,
        provider: EmbeddingProvider | None,
        ledger: JobLedgerService | None = None,
        commit: Commit | None = None,
        min_chars: int = DEFAULT_MIN_CHARS,
        max_chars: int = DEFAULT_MAX_CHARS,
        claim_lease_seconds: int = 900,
    ) -> None:
        self._project_repo = project_repo
        self._attachment_repo = attachment_repo
        self._embedding_repo = embedding_repo
        self._provider = provider
        self._ledger = ledger
        self._commit = commit or no_commit
        self._min_chars = min_chars
        self._max_chars = max_chars
        self._claim_lease_seconds = claim_lease_seconds

    async def count_pending(self, project_ids: list[str] | None = None, force: bool = False) -> int:
        return await self._project_repo.count_needing_embedding(project_ids, force)

    async def process_batch(
        self,
        batch_size: int,
        project_ids: list[str] | None = None,
        force: bool = False,
    ) -> EmbeddingBatchResult:
        """Embed up to ``batch_size`` claimed projects without touching the job ledger."""
        result = EmbeddingBatchResult()
        if batch_size <= 0:
            return result

        start = time.monotonic()
        token = uuid.uuid4().hex
        claimed = await self._project_repo.claim_for_embedding(
            limit=batch_size,
            token=token,
            lease_seconds=self._claim_lease_seconds,
            project_ids=project_ids or None,
            force=force,
        )
        await self._commit()
        plog.separator(f"Embedding batch ({len(claimed)} claimed)")

        for project in claimed:
            try:
                item = await self._embed_project(project, token)
            except Exception as exc:
                logger.exception("Unexpected error embedding project %s", project.id)
                await self._project_repo.release_claim(project.id, token)
                item = EmbedItemResult(project.id, project.name, EmbedOutcome.FAILED, str(exc) or repr(exc))
            await self._commit()
            result.details.append(item)
            if item.status is EmbedOutcome.SUCCESS:
                result.success += 1
            elif item.status is EmbedOutcome.FAILED:
                result.failed += 1
            else:
                result.skipped += 1

        result.processed = len(result.details)
        result.duration_ms = int((time.monotonic() - start) * 1000)
        plog.stats(
            processed=result.processed,
            success=result.success,
            failed=result.failed,
            skipped=result.skipped,
            ms=result.duration_ms,
        )
        return result

    async def run_embedding_batch(
        self,
        batch_size: int,
        project_ids: list[str] | None = None,
        force: bool = False,
        triggered_by: str = TriggerSource.MANUAL.value,
    ) -> EmbeddingBatchResult:
        """Run ``process_batch`` under its own pipeline job."""
        if self._ledger is None:
            raise RuntimeError("EmbeddingGenerationService was built without a job ledger")

        target = 0
        if batch_size > 0:
            target = min(await self.count_pending(project_ids, force), batch_size)
        job = await self._ledger.create_job(
            JobType.EMBED,
            params={"batch_size": batch_size, "project_ids": project_ids, "force": force},
            target_count=target,
            triggered_by=triggered_by,
            status=JobStatus.RUNNING,
        )

        try:
            result = await self.process_batch(batch_size, project_ids, force)
        except Exception as exc:
            logger.exception("Embedding job %s failed", job.id)
            await self._ledger.update_job(job.id, status=JobStatus.FAILED, error=str(exc))
            raise

        result.job_id = job.id
        await self._ledger.update_job(
            job.id,
            status=JobStatus.COMPLETED,
            success_count=result.success,
            fail_count=result.failed,
            result=summarize(result),
        )
        return result

    async def embedding_stats(self) -> EmbeddingStats:
        return EmbeddingStats(
            total_projects=await self._project_repo.count_live(),
            needs_embedding=await self._project_repo.count_needing_embedding(),
            has_embeddings=await self._embedding_repo.count_sources(SUPPORT_PROJECT_SOURCE),
        )

    # ── Per-project processing ──────────────────────────────────────

    async def _embed_project(self, project: SupportProject, token: str) -> EmbedItemResult:
        attachments = await self._attachment_repo.parsed_contents(project.id)
        text = build_embedding_text(project, attachments, self._max_chars)

        if len(text) < self._min_chars:
            await self._project_repo.complete_embedding(project.id, token)
            plog.detail(f"Skipped {project.name}: content too short", chars=len(text))
            return EmbedItemResult(project.id, project.name, EmbedOutcome.SKIPPED, "Content too short")

        try:
            if self._provider is None:
                raise EmbeddingProviderError("Embedding provider is not configured")
            vectors = await self._provider.generate_embeddings([text])
            if not vectors or not vectors[0]:
                raise EmbeddingProviderError("Provider returned no embedding")
        except EmbeddingProviderError as exc:
            await self._project_repo.release_claim(project.id, token)
            plog.step_error(PipelineStage.EMBED, f"Embedding failed for {project.name}", error=exc)
            return EmbedItemResult(project.id, project.name, EmbedOutcome.FAILED, str(exc))

        await self._embedding_repo.upsert(
            DocumentEmbedding(
                source_id=project.id,
                content=text[:STORED_CONTENT_CHARS],
                embedding=vectors[0],
                keywords=extract_keywords(text),
                metadata={"name": project.name, "organization": project.organization},
            )
        )
        cleared = await self._project_repo.complete_embedding(project.id, token)
        if not cleared:
            # The crawler updated the row mid-run; its new flag stays.
            plog.detail(f"{project.name} changed during embedding; left flagged")
            return EmbedItemResult(project.id, project.name, EmbedOutcome.SUCCESS, "Re-flagged by a newer crawl")

        plog.step_complete(PipelineStage.EMBED, project.name, chars=len(text))
        return EmbedItemResult(project.id, project.name, EmbedOutcome.SUCCESS)


def summarize(result: EmbeddingBatchResult) -> dict:
    return {
        "processed": result.processed,
        "success": result.success,
        "failed": result.failed,
        "skipped": result.skipped,
        "duration_ms": result.duration_ms,
        "details": [d.to_dict() for d in result.details],
    }
