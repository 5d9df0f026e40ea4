"""Parse Recovery Service — retries text extraction for unparsed attachments.

Each run is one pipeline job. Every selected attachment ends in exactly one
outcome:

    success — text stored, ``is_parsed`` set
    failed  — structured error kind + message stored, retried on a later run
    skipped — permanent condition (empty file, unknown format), never retried
"""

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from enum import Enum

from grant_pipeline.application.interfaces.attachment_repository import AttachmentRepository
from grant_pipeline.application.interfaces.blob_storage import BlobStorage
from grant_pipeline.application.interfaces.document_parser import DocumentParser
from grant_pipeline.application.interfaces.page_fetcher import PageFetcher
from grant_pipeline.application.services.job_ledger_service import JobLedgerService
from grant_pipeline.domain.entities.pipeline_job import JobStatus, JobType, TriggerSource
from grant_pipeline.domain.entities.project_attachment import (
    DocumentType,
    ParseErrorKind,
    ProjectAttachment,
)
from grant_pipeline.domain.exceptions import DocumentFetchError, DocumentParseError
from grant_pipeline.infrastructure.logging.colored_logger import PipelineLogger, PipelineStage

logger = logging.getLogger(__name__)
plog = PipelineLogger("ParseRecoveryService")

DEFAULT_BATCH_SIZE = 20
MIN_TEXT_LENGTH = 50
MAX_STORED_CHARS = 10_000

# Accepted by the error filter to select attachments that never failed.
NO_ERROR_FILTER = "No Error"


class ParseOutcome(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class ParseItemResult:
    id: str
    file_name: str
    status: ParseOutcome
    message: str | None = None
    error_kind: ParseErrorKind | None = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        data["error_kind"] = self.error_kind.value if self.error_kind else None
        return data


@dataclass
class ParseRecoveryResult:
    job_id: str
    processed: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0
    details: list[ParseItemResult] = field(default_factory=list)


def resolve_error_filter(value: str | None) -> tuple[ParseErrorKind | None, bool]:
    """Map a filter given as a kind value or label to ``(kind, never_attempted)``.

    Raises:
        ValueError: the value names no known category.
    """
    if not value:
        return None, False
    if value == NO_ERROR_FILTER:
        return None, True
    for kind in ParseErrorKind:
        if value in (kind.value, kind.label):
            return kind, False
    raise ValueError(f"Unknown parse error category: {value}")


class ParseRecoveryService:
    """Re-fetches and re-parses attachments that are still unparsed."""

    def __init__(
        self,
        ledger: JobLedgerService,
        attachment_repo: AttachmentRepository,
        blob_storage: BlobStorage,
        fetcher: PageFetcher,
        parsers: list[DocumentParser],
        item_delay: float = 0.2,
    ) -> None:
        self._ledger = ledger
        self._attachment_repo = attachment_repo
        self._blob_storage = blob_storage
        self._fetcher = fetcher
        self._parsers = parsers
        self._item_delay = item_delay

    async def run_parse_recovery(
        self,
        batch_size: int = DEFAULT_BATCH_SIZE,
        error_filter: str | None = None,
        attachment_ids: list[str] | None = None,
        triggered_by: str = TriggerSource.MANUAL.value,
    ) -> ParseRecoveryResult:
        """Run one bounded recovery batch under a single pipeline job.

        Raises:
            ValueError: unknown ``error_filter`` (before any job is created).
        """
        error_kind, never_attempted = resolve_error_filter(error_filter)

        job = await self._ledger.create_job(
            JobType.PARSE,
            params={
                "batch_size": batch_size,
                "error_filter": error_filter,
                "attachment_ids": attachment_ids,
            },
            triggered_by=triggered_by,
            status=JobStatus.RUNNING,
        )
        result = ParseRecoveryResult(job_id=job.id)

        try:
            candidates = []
            if batch_size > 0:
                candidates = await self._attachment_repo.list_parse_candidates(
                    limit=batch_size,
                    error_kind=error_kind,
                    never_attempted=never_attempted,
                    attachment_ids=attachment_ids,
                )
            await self._ledger.update_job(job.id, target_count=len(candidates))
            plog.separator(f"Parse recovery ({len(candidates)} files)")

            for idx, attachment in enumerate(candidates):
                item = await self._process(attachment)
                result.details.append(item)
                if item.status is ParseOutcome.SUCCESS:
                    result.success += 1
                elif item.status is ParseOutcome.FAILED:
                    result.failed += 1
                else:
                    result.skipped += 1
                if self._item_delay > 0 and idx < len(candidates) - 1:
                    await asyncio.sleep(self._item_delay)
        except Exception as exc:
            logger.exception("Parse recovery job %s failed", job.id)
            await self._ledger.update_job(
                job.id,
                status=JobStatus.FAILED,
                success_count=result.success,
                fail_count=result.failed,
                error=str(exc),
            )
            raise

        result.processed = len(result.details)
        await self._ledger.update_job(
            job.id,
            status=JobStatus.COMPLETED,
            success_count=result.success,
            fail_count=result.failed,
            result={
                "processed": result.processed,
                "skipped": result.skipped,
                "details": [d.to_dict() for d in result.details],
            },
        )
        plog.stats(processed=result.processed, success=result.success, failed=result.failed, skipped=result.skipped)
        return result

    # ── Per-attachment processing ───────────────────────────────────

    async def _process(self, attachment: ProjectAttachment) -> ParseItemResult:
        try:
            content = await self._fetch(attachment)
        except DocumentFetchError as exc:
            if exc.kind is ParseErrorKind.EMPTY_FILE:
                return await self._skip(attachment, exc.kind, str(exc))
            return await self._fail(attachment, exc.kind, str(exc))

        if not content:
            return await self._skip(attachment, ParseErrorKind.EMPTY_FILE, "File is empty (0 bytes)")

        document_type = DocumentType.detect(content)
        if document_type is DocumentType.UNKNOWN:
            return await self._skip(attachment, ParseErrorKind.UNKNOWN_FILE_TYPE, "Unknown file type")

        try:
            text = await self._extract(content, attachment.file_name, document_type)
        except DocumentParseError as exc:
            return await self._fail(attachment, exc.kind, str(exc))
        except Exception as exc:
            logger.exception("Unexpected parser error for attachment %s", attachment.id)
            return await self._fail(attachment, ParseErrorKind.OTHER, f"Retry error: {exc}")

        attachment.file_type = document_type.value
        attachment.mark_parsed(text[:MAX_STORED_CHARS])
        await self._attachment_repo.update(attachment)
        plog.step_complete(PipelineStage.PARSE, attachment.file_name, chars=len(text), type=document_type.value)
        return ParseItemResult(
            id=attachment.id,
            file_name=attachment.file_name,
            status=ParseOutcome.SUCCESS,
            message=f"Parsed {len(text)} chars",
        )

    async def _fetch(self, attachment: ProjectAttachment) -> bytes:
        """Blob storage first, then the original URL."""
        if attachment.storage_path:
            stored = await self._blob_storage.read(attachment.storage_path)
            if stored is not None:
                return stored

        if not attachment.source_url:
            raise DocumentFetchError(
                "No stored copy and no source URL", kind=ParseErrorKind.DOWNLOAD_FAILED
            )
        referer = attachment.project_detail_url or attachment.source_url
        plog.step_start(PipelineStage.DOWNLOAD, attachment.file_name, url=attachment.source_url)
        return await self._fetcher.download(attachment.source_url, referer=referer)

    async def _extract(self, content: bytes, file_name: str, document_type: DocumentType) -> str:
        """Try each capable parser in order until one yields enough text."""
        last_error = DocumentParseError(
            f"No parser available for {document_type.value}", kind=ParseErrorKind.PARSE_FAILED
        )
        for parser in self._parsers:
            if not parser.supports(document_type):
                continue
            try:
                text = (await parser.extract_text(content, file_name, document_type)).strip()
            except DocumentParseError as exc:
                last_error = exc
                continue
            if len(text) > MIN_TEXT_LENGTH:
                return text
            last_error = DocumentParseError(
                f"No text extracted ({len(text)} chars)", kind=ParseErrorKind.NO_TEXT_EXTRACTED
            )
        raise last_error

    async def _fail(self, attachment: ProjectAttachment, kind: ParseErrorKind, message: str) -> ParseItemResult:
        attachment.mark_parse_failed(kind, message)
        await self._attachment_repo.update(attachment)
        plog.step_warning(PipelineStage.PARSE, f"{attachment.file_name}: {message}", kind=kind.value)
        return ParseItemResult(
            id=attachment.id,
            file_name=attachment.file_name,
            status=ParseOutcome.FAILED,
            message=message,
            error_kind=kind,
        )

    async def _skip(self, attachment: ProjectAttachment, kind: ParseErrorKind, message: str) -> ParseItemResult:
        attachment.mark_skipped(kind, message)
        await self._attachment_repo.update(attachment)
        plog.detail(f"Skipped {attachment.file_name}: {message}")
        return ParseItemResult(
            id=attachment.id,
            file_name=attachment.file_name,
            status=ParseOutcome.SKIPPED,
            message=message,
            error_kind=kind,
        )
