"""Unit tests for attachment parse recovery."""

import pytest

from grant_pipeline.application.services import JobLedgerService, ParseRecoveryService
from grant_pipeline.application.services.parse_recovery_service import (
    MAX_STORED_CHARS,
    ParseOutcome,
    resolve_error_filter,
)
from grant_pipeline.domain.entities import DocumentType, JobStatus, JobType, ParseErrorKind, ProjectAttachment
from grant_pipeline.domain.exceptions import DocumentParseError
from tests.fakes import (
    FakeAttachmentRepository,
    FakeBlobStorage,
    FakeDocumentParser,
    FakePageFetcher,
    FakePipelineJobRepository,
)

PDF_BYTES = b"%PDF-1.7\n1 0 obj\n<<>>\nendobj\n"
HWP_BYTES = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1" + b"\x00" * 32
LONG_TEXT = "사업 개요 및 지원 내용에 관한 안내문입니다. " * 10


class Harness:
    def __init__(self, parsers=None, blobs=None, downloads=None):
        self.jobs = FakePipelineJobRepository()
        self.attachments = FakeAttachmentRepository()
        self.blobs = FakeBlobStorage(blobs or {})
        self.fetcher = FakePageFetcher(downloads=downloads or {})
        self.parsers = parsers if parsers is not None else [
            FakeDocumentParser({DocumentType.PDF, DocumentType.HWP, DocumentType.HWPX}, text=LONG_TEXT)
        ]
        self.service = ParseRecoveryService(
            JobLedgerService(self.jobs),
            self.attachments,
            self.blobs,
            self.fetcher,
            self.parsers,
            item_delay=0,
        )

    def stored(self, name: str, content: bytes, **kwargs) -> ProjectAttachment:
        path = f"attachments/{name}"
        self.blobs.blobs[path] = content
        return self.attachments.add(
            ProjectAttachment(project_id="p-1", file_name=name, storage_path=path, **kwargs)
        )


# ── Error filter ─────────────────────────────────────────────────────


def test_error_filter_accepts_values_labels_and_no_error():
    assert resolve_error_filter(None) == (None, False)
    assert resolve_error_filter("download_failed") == (ParseErrorKind.DOWNLOAD_FAILED, False)
    assert resolve_error_filter("HWP Parse Error") == (ParseErrorKind.HWP_PARSE_ERROR, False)
    assert resolve_error_filter("No Error") == (None, True)
    with pytest.raises(ValueError):
        resolve_error_filter("Cosmic Rays")


@pytest.mark.asyncio
async def test_unknown_filter_creates_no_job():
    harness = Harness()
    with pytest.raises(ValueError):
        await harness.service.run_parse_recovery(error_filter="Cosmic Rays")
    assert harness.jobs.jobs == {}


# ── Batches ──────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_empty_files_are_skipped_and_never_retried():
    harness = Harness()
    for i in range(15):
        harness.stored(f"ok-{i}.pdf", PDF_BYTES, file_size=1000 + i)
    empties = [harness.stored(f"empty-{i}.hwp", b"", file_size=i) for i in range(5)]

    result = await harness.service.run_parse_recovery(batch_size=20)

    assert (result.processed, result.success, result.failed, result.skipped) == (20, 15, 0, 5)
    for attachment in empties:
        stored = harness.attachments.attachments[attachment.id]
        assert stored.should_parse is False
        assert stored.parse_error_kind is ParseErrorKind.EMPTY_FILE

    job = harness.jobs.jobs[result.job_id]
    assert job.type is JobType.PARSE
    assert job.status is JobStatus.COMPLETED
    assert (job.target_count, job.success_count, job.fail_count) == (20, 15, 0)
    assert job.result["skipped"] == 5
    assert len(job.result["details"]) == 20

    again = await harness.service.run_parse_recovery(batch_size=20)
    assert again.processed == 0


@pytest.mark.asyncio
async def test_successful_parse_stores_truncated_text():
    long_text = "가" * (MAX_STORED_CHARS + 500)
    harness = Harness(parsers=[FakeDocumentParser({DocumentType.PDF}, text=long_text)])
    attachment = harness.stored("big.pdf", PDF_BYTES, file_type="unknown")

    result = await harness.service.run_parse_recovery()

    assert result.details[0].status is ParseOutcome.SUCCESS
    stored = harness.attachments.attachments[attachment.id]
    assert stored.is_parsed
    assert stored.parse_error is None
    assert stored.file_type == "pdf"
    assert len(stored.parsed_content) == MAX_STORED_CHARS


@pytest.mark.asyncio
async def test_short_text_is_a_retryable_failure():
    harness = Harness(parsers=[FakeDocumentParser({DocumentType.PDF}, text="too short")])
    attachment = harness.stored("thin.pdf", PDF_BYTES)

    result = await harness.service.run_parse_recovery()

    assert result.failed == 1
    stored = harness.attachments.attachments[attachment.id]
    assert stored.parse_error_kind is ParseErrorKind.NO_TEXT_EXTRACTED
    assert stored.should_parse is True
    assert stored.is_parsed is False


@pytest.mark.asyncio
async def test_next_parser_is_tried_after_failure():
    broken = FakeDocumentParser(
        {DocumentType.HWP}, error=DocumentParseError("bad stream", kind=ParseErrorKind.HWP_PARSE_ERROR)
    )
    fallback = FakeDocumentParser({DocumentType.HWP}, text=LONG_TEXT)
    harness = Harness(parsers=[broken, fallback])
    harness.stored("form.hwp", HWP_BYTES)

    result = await harness.service.run_parse_recovery()

    assert result.success == 1
    assert broken.calls == fallback.calls == ["form.hwp"]


@pytest.mark.asyncio
async def test_parser_error_kind_is_recorded():
    broken = FakeDocumentParser(
        {DocumentType.HWP}, error=DocumentParseError("bad stream", kind=ParseErrorKind.HWP_PARSE_ERROR)
    )
    harness = Harness(parsers=[broken])
    attachment = harness.stored("form.hwp", HWP_BYTES)

    await harness.service.run_parse_recovery()

    stored = harness.attachments.attachments[attachment.id]
    assert stored.parse_error_kind is ParseErrorKind.HWP_PARSE_ERROR
    assert stored.parse_error == "bad stream"


@pytest.mark.asyncio
async def test_unknown_format_is_skipped():
    harness = Harness()
    attachment = harness.stored("notes.txt", b"plain text file, not a document")

    result = await harness.service.run_parse_recovery()

    assert result.skipped == 1
    assert harness.attachments.attachments[attachment.id].parse_error_kind is ParseErrorKind.UNKNOWN_FILE_TYPE


@pytest.mark.asyncio
async def test_download_fallback_and_failure():
    url_ok = "https://files.example/ok.pdf"
    url_missing = "https://files.example/missing.pdf"
    harness = Harness(downloads={url_ok: PDF_BYTES})
    ok = harness.attachments.add(
        ProjectAttachment(
            project_id="p-1",
            file_name="ok.pdf",
            source_url=url_ok,
            project_detail_url="https://alpha.example/view?id=1",
            file_size=10,
        )
    )
    missing = harness.attachments.add(
        ProjectAttachment(project_id="p-1", file_name="missing.pdf", source_url=url_missing, file_size=5)
    )

    result = await harness.service.run_parse_recovery()

    assert (result.success, result.failed) == (1, 1)
    assert harness.attachments.attachments[ok.id].is_parsed
    failed = harness.attachments.attachments[missing.id]
    assert failed.parse_error_kind is ParseErrorKind.DOWNLOAD_FAILED
    assert failed.should_parse is True


@pytest.mark.asyncio
async def test_error_filter_selects_matching_attachments():
    harness = Harness()
    timed_out = harness.stored("a.pdf", PDF_BYTES)
    timed_out.mark_parse_failed(ParseErrorKind.TIMEOUT, "timed out")
    harness.stored("b.pdf", PDF_BYTES)

    result = await harness.service.run_parse_recovery(error_filter="Timeout")

    assert [d.id for d in result.details] == [timed_out.id]

    result = await harness.service.run_parse_recovery(error_filter="No Error")
    assert len(result.details) == 1
    assert result.details[0].file_name == "b.pdf"


@pytest.mark.asyncio
async def test_zero_batch_completes_with_nothing_processed():
    harness = Harness()
    harness.stored("a.pdf", PDF_BYTES)

    result = await harness.service.run_parse_recovery(batch_size=0)

    assert result.processed == 0
    assert harness.jobs.jobs[result.job_id].status is JobStatus.COMPLETED
