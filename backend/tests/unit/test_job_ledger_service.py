"""Unit tests for the JobLedgerService and PipelineJob lifecycle."""

from datetime import datetime, timedelta, timezone

import pytest

from grant_pipeline.application.services import JobLedgerService
from grant_pipeline.domain.entities import JobStatus, JobType, PipelineJob
from grant_pipeline.domain.exceptions import EntityNotFoundError, InvalidJobTransitionError
from tests.fakes import CommitCounter, FakePipelineJobRepository


@pytest.fixture
def repo() -> FakePipelineJobRepository:
    return FakePipelineJobRepository()


@pytest.fixture
def ledger(repo: FakePipelineJobRepository) -> JobLedgerService:
    return JobLedgerService(repo)


# ── Lifecycle ────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_job_defaults_to_pending_and_commits(repo):
    commits = CommitCounter()
    ledger = JobLedgerService(repo, commit=commits)

    job = await ledger.create_job(JobType.CRAWL, params={"url": "https://example.go.kr"}, source_id="src-1")

    assert job.id in repo.jobs
    assert job.status is JobStatus.PENDING
    assert job.started_at is None
    assert job.source_id == "src-1"
    assert commits.count == 1


@pytest.mark.asyncio
async def test_create_running_job_stamps_started_at(ledger):
    job = await ledger.create_job(JobType.EMBED, target_count=5, status=JobStatus.RUNNING)
    assert job.status is JobStatus.RUNNING
    assert job.started_at is not None
    assert job.target_count == 5


@pytest.mark.asyncio
async def test_create_job_rejects_terminal_initial_status(ledger):
    with pytest.raises(InvalidJobTransitionError):
        await ledger.create_job(JobType.PARSE, status=JobStatus.COMPLETED)


@pytest.mark.asyncio
async def test_update_job_completes_running_job(ledger):
    job = await ledger.create_job(JobType.PARSE, status=JobStatus.RUNNING)

    updated = await ledger.update_job(
        job.id, status=JobStatus.COMPLETED, success_count=3, fail_count=1, result={"processed": 4}
    )

    assert updated.status is JobStatus.COMPLETED
    assert updated.success_count == 3
    assert updated.fail_count == 1
    assert updated.result == {"processed": 4}
    assert updated.completed_at >= updated.started_at


@pytest.mark.asyncio
async def test_update_unknown_job_raises_not_found(ledger):
    with pytest.raises(EntityNotFoundError):
        await ledger.update_job("missing", status=JobStatus.FAILED)


@pytest.mark.asyncio
async def test_terminal_job_never_moves_backwards(ledger):
    job = await ledger.create_job(JobType.EMBED, status=JobStatus.RUNNING)
    await ledger.update_job(job.id, status=JobStatus.COMPLETED)

    with pytest.raises(InvalidJobTransitionError):
        await ledger.update_job(job.id, status=JobStatus.RUNNING)
    with pytest.raises(InvalidJobTransitionError):
        await ledger.update_job(job.id, status=JobStatus.PENDING)

    assert (await ledger.get_job(job.id)).status is JobStatus.COMPLETED


@pytest.mark.asyncio
async def test_pending_job_cannot_complete_without_running(ledger):
    job = await ledger.create_job(JobType.CRAWL)
    with pytest.raises(InvalidJobTransitionError):
        await ledger.update_job(job.id, status=JobStatus.COMPLETED)


@pytest.mark.asyncio
async def test_pending_job_can_fail_on_delivery_error(ledger):
    job = await ledger.create_job(JobType.CRAWL)
    failed = await ledger.update_job(job.id, status=JobStatus.FAILED, error="Worker unreachable")
    assert failed.status is JobStatus.FAILED
    assert failed.error == "Worker unreachable"


def test_job_duration_is_rounded_seconds():
    started = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
    job = PipelineJob(
        type=JobType.CRAWL,
        status=JobStatus.COMPLETED,
        started_at=started,
        completed_at=started + timedelta(seconds=90, milliseconds=600),
    )
    assert JobLedgerService.get_job_duration(job) == 91
    assert JobLedgerService.get_job_duration(PipelineJob(type=JobType.CRAWL)) is None


# ── Listing ──────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_list_jobs_filters_and_ignores_unknown_values(repo, ledger):
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    for idx, job_type in enumerate([JobType.CRAWL, JobType.PARSE, JobType.EMBED, JobType.EMBED]):
        repo.add(PipelineJob(type=job_type, created_at=base + timedelta(minutes=idx)))

    embeds, total = await ledger.list_jobs(job_type="embed")
    assert total == 2
    assert all(j.type is JobType.EMBED for j in embeds)

    everything, total = await ledger.list_jobs(job_type="bogus", status="nope")
    assert total == 4
    assert [j.created_at for j in everything] == sorted((j.created_at for j in everything), reverse=True)


@pytest.mark.asyncio
async def test_list_jobs_clamps_page_size(repo, ledger):
    for _ in range(3):
        repo.add(PipelineJob(type=JobType.PARSE))

    jobs, total = await ledger.list_jobs(limit=0)
    assert len(jobs) == 1
    assert total == 3


# ── Cancellation & sweep ─────────────────────────────────────────────


@pytest.mark.asyncio
async def test_cleanup_cancels_only_jobs_past_threshold(repo, ledger):
    now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    stuck = repo.add(
        PipelineJob(type=JobType.CRAWL, status=JobStatus.RUNNING, started_at=now - timedelta(minutes=90))
    )
    fresh = repo.add(
        PipelineJob(type=JobType.CRAWL, status=JobStatus.RUNNING, started_at=now - timedelta(minutes=10))
    )

    sweep = await ledger.cleanup_stuck(stuck_minutes=60, now=now)

    assert sweep.stuck_cancelled == 1
    assert sweep.job_ids == [stuck.id]
    cancelled = await ledger.get_job(stuck.id)
    assert cancelled.status is JobStatus.FAILED
    assert cancelled.error == "Cancelled: stuck in running state for more than 60 minutes"
    assert (await ledger.get_job(fresh.id)).status is JobStatus.RUNNING


@pytest.mark.asyncio
async def test_cleanup_resets_stale_pending_only_when_asked(repo, ledger):
    now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    stale = repo.add(PipelineJob(type=JobType.CRAWL, created_at=now - timedelta(hours=3)))

    sweep = await ledger.cleanup_stuck(stuck_minutes=60, now=now)
    assert sweep.pending_cancelled == 0
    assert (await ledger.get_job(stale.id)).status is JobStatus.PENDING

    sweep = await ledger.cleanup_stuck(stuck_minutes=60, reset_pending=True, now=now)
    assert sweep.pending_cancelled == 1
    job = await ledger.get_job(stale.id)
    assert job.status is JobStatus.FAILED
    assert "stale pending" in job.error


@pytest.mark.asyncio
async def test_cleanup_rejects_non_positive_threshold(ledger):
    with pytest.raises(ValueError):
        await ledger.cleanup_stuck(stuck_minutes=0)


@pytest.mark.asyncio
async def test_cancel_all_running_by_type(repo, ledger):
    crawl = repo.add(PipelineJob(type=JobType.CRAWL, status=JobStatus.RUNNING))
    embed = repo.add(PipelineJob(type=JobType.EMBED, status=JobStatus.RUNNING))

    ids = await ledger.cancel_all_running(JobType.CRAWL)

    assert ids == [crawl.id]
    assert (await ledger.get_job(crawl.id)).status is JobStatus.FAILED
    assert (await ledger.get_job(embed.id)).status is JobStatus.RUNNING


@pytest.mark.asyncio
async def test_cancel_finished_job_is_rejected(ledger):
    job = await ledger.create_job(JobType.PARSE, status=JobStatus.RUNNING)
    await ledger.update_job(job.id, status=JobStatus.COMPLETED)
    with pytest.raises(InvalidJobTransitionError):
        await ledger.cancel_job(job.id)
