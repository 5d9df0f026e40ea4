"""Unit tests for crawl source management and worker dispatch."""

import pytest

from grant_pipeline.application.services import CrawlDispatchService, JobLedgerService
from grant_pipeline.domain.entities import CrawlSource, CrawlSourceType, JobStatus, JobType, PipelineJob
from grant_pipeline.domain.exceptions import EntityNotFoundError, InactiveSourceError
from tests.fakes import FakeCrawlSourceRepository, FakePipelineJobRepository, FakeWorkerClient


@pytest.fixture
def job_repo():
    return FakePipelineJobRepository()


@pytest.fixture
def sources():
    return FakeCrawlSourceRepository(
        [
            CrawlSource(id="src-a", name="Alpha Agency", url="https://alpha.example/list"),
            CrawlSource(id="src-b", name="Beta Board", url="https://beta.example/list", type=CrawlSourceType.SPA),
            CrawlSource(id="src-off", name="Closed Office", url="https://off.example/list", is_active=False),
        ]
    )


def _service(sources, job_repo, worker):
    return CrawlDispatchService(sources, JobLedgerService(job_repo), worker)


@pytest.mark.asyncio
async def test_start_crawl_dispatches_pending_job(sources, job_repo):
    worker = FakeWorkerClient()
    dispatch = await _service(sources, job_repo, worker).start_crawl("src-a")

    assert dispatch.delivered
    assert not dispatch.already_running
    assert dispatch.job.status is JobStatus.PENDING
    assert dispatch.job.type is JobType.CRAWL
    assert dispatch.job.source_id == "src-a"
    assert dispatch.job.params["url"] == "https://alpha.example/list"
    assert worker.crawls == [dispatch.job.id]


@pytest.mark.asyncio
async def test_inactive_source_creates_no_job(sources, job_repo):
    worker = FakeWorkerClient()
    with pytest.raises(InactiveSourceError):
        await _service(sources, job_repo, worker).start_crawl("src-off")

    assert job_repo.jobs == {}
    assert worker.crawls == []


@pytest.mark.asyncio
async def test_unknown_source_raises_not_found(sources, job_repo):
    with pytest.raises(EntityNotFoundError):
        await _service(sources, job_repo, FakeWorkerClient()).start_crawl("nope")


@pytest.mark.asyncio
async def test_delivery_failure_fails_the_job(sources, job_repo):
    dispatch = await _service(sources, job_repo, FakeWorkerClient(fail=True)).start_crawl("src-a")

    assert not dispatch.delivered
    stored = job_repo.jobs[dispatch.job.id]
    assert stored.status is JobStatus.FAILED
    assert stored.error.startswith("Worker dispatch failed")


@pytest.mark.asyncio
async def test_running_crawl_is_returned_instead_of_duplicated(sources, job_repo):
    existing = job_repo.add(PipelineJob(type=JobType.CRAWL, status=JobStatus.RUNNING, source_id="src-a"))
    worker = FakeWorkerClient()

    dispatch = await _service(sources, job_repo, worker).start_crawl("src-a")

    assert dispatch.already_running
    assert dispatch.job.id == existing.id
    assert len(job_repo.jobs) == 1
    assert worker.crawls == []


@pytest.mark.asyncio
async def test_start_all_active_sends_one_batch(sources, job_repo):
    worker = FakeWorkerClient()
    jobs = await _service(sources, job_repo, worker).start_all_active(triggered_by="cron")

    assert len(jobs) == 2
    assert {j.source_id for j in jobs} == {"src-a", "src-b"}
    assert all(j.triggered_by == "cron" for j in jobs)
    assert worker.batches == [[j.id for j in jobs]]


@pytest.mark.asyncio
async def test_start_all_active_skips_sources_still_crawling(sources, job_repo):
    existing = job_repo.add(PipelineJob(type=JobType.CRAWL, status=JobStatus.RUNNING, source_id="src-a"))
    worker = FakeWorkerClient()

    jobs = await _service(sources, job_repo, worker).start_all_active()

    assert [j.source_id for j in jobs] == ["src-b"]
    assert worker.batches == [[jobs[0].id]]
    assert [j.id for j in job_repo.jobs.values() if j.source_id == "src-a"] == [existing.id]


@pytest.mark.asyncio
async def test_start_all_active_sends_nothing_when_every_source_is_busy(sources, job_repo):
    for source_id in ("src-a", "src-b"):
        job_repo.add(PipelineJob(type=JobType.CRAWL, status=JobStatus.RUNNING, source_id=source_id))
    worker = FakeWorkerClient()

    jobs = await _service(sources, job_repo, worker).start_all_active()

    assert jobs == []
    assert worker.batches == []
    assert len(job_repo.jobs) == 2


@pytest.mark.asyncio
async def test_start_all_active_fails_every_job_when_batch_undeliverable(sources, job_repo):
    jobs = await _service(sources, job_repo, FakeWorkerClient(configured=False)).start_all_active()

    assert len(jobs) == 2
    assert all(j.status is JobStatus.FAILED for j in jobs)
    assert all(job_repo.jobs[j.id].status is JobStatus.FAILED for j in jobs)


@pytest.mark.asyncio
async def test_start_all_active_without_sources_does_nothing(job_repo):
    worker = FakeWorkerClient()
    jobs = await _service(FakeCrawlSourceRepository(), job_repo, worker).start_all_active()
    assert jobs == []
    assert worker.batches == []


@pytest.mark.asyncio
async def test_source_registry_create_and_toggle(job_repo):
    repo = FakeCrawlSourceRepository()
    service = _service(repo, job_repo, FakeWorkerClient())

    source = await service.create_source("Gamma", "https://gamma.example", CrawlSourceType.API)
    assert source.id in repo.sources
    assert source.is_active

    toggled = await service.set_source_active(source.id, False)
    assert not toggled.is_active
    assert await service.list_active_sources() == []
