"""Integration tests for the scheduled trigger endpoints."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from grant_pipeline.domain.entities import CrawlSource, JobStatus, JobType, PipelineJob, SupportProject
from grant_pipeline.main import app
from tests.fakes import FakeWorkerClient
from tests.integration.app_harness import ADMIN_HEADERS, CRON_HEADERS, PipelineHarness


def _harness(**kwargs) -> PipelineHarness:
    sources = [
        CrawlSource(id="src-a", name="Alpha", url="https://alpha.example/list"),
        CrawlSource(id="src-b", name="Beta", url="https://beta.example/list"),
    ]
    harness = PipelineHarness(sources=sources, **kwargs)
    harness.install(app)
    return harness


@pytest.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


# ── Auth ─────────────────────────────────────────────────────────────


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/crawl-all", "/generate-embeddings", "/cleanup-stuck-jobs"])
async def test_missing_secret_is_rejected_before_any_job(client, path):
    harness = _harness()

    anonymous = await client.post(f"/api/v1/cron{path}")
    wrong = await client.get(f"/api/v1/cron{path}", headers={"Authorization": "Bearer nope"})

    assert anonymous.status_code == 401
    assert wrong.status_code == 401
    assert harness.jobs.jobs == {}
    assert harness.worker.batches == []


# ── Crawl all ────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_crawl_all_dispatches_one_batch(client):
    harness = _harness()

    response = await client.get("/api/v1/cron/crawl-all", headers=CRON_HEADERS)

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["count"] == 2
    assert harness.worker.batches == [data["jobIds"]]
    assert all(harness.jobs.jobs[i].triggered_by == "cron" for i in data["jobIds"])


@pytest.mark.asyncio
async def test_crawl_all_leaves_out_sources_still_crawling(client):
    harness = _harness()
    busy = harness.jobs.add(PipelineJob(type=JobType.CRAWL, status=JobStatus.RUNNING, source_id="src-a"))

    response = await client.post("/api/v1/cron/crawl-all", headers=CRON_HEADERS)

    data = response.json()
    assert data["count"] == 1
    assert harness.jobs.jobs[data["jobIds"][0]].source_id == "src-b"
    assert busy.id not in data["jobIds"]
    assert len(harness.jobs.jobs) == 2


@pytest.mark.asyncio
async def test_crawl_all_by_admin_records_trigger(client):
    harness = _harness()

    response = await client.post("/api/v1/cron/crawl-all", headers=ADMIN_HEADERS)

    job_ids = response.json()["jobIds"]
    assert all(harness.jobs.jobs[i].triggered_by == "admin" for i in job_ids)


@pytest.mark.asyncio
async def test_crawl_all_reports_dispatch_failure(client):
    harness = _harness(worker=FakeWorkerClient(fail=True))

    response = await client.post("/api/v1/cron/crawl-all", headers=CRON_HEADERS)

    data = response.json()
    assert data["success"] is False
    assert data["message"] == "Worker dispatch failed for 2 job(s)"
    assert all(j.status is JobStatus.FAILED for j in harness.jobs.jobs.values())


@pytest.mark.asyncio
async def test_crawl_all_respects_disabled_setting(client):
    harness = _harness()
    await harness.settings_service.update_setting(JobType.CRAWL, enabled=False)

    response = await client.post("/api/v1/cron/crawl-all", headers=CRON_HEADERS)

    assert response.json()["message"] == "Crawl pipeline is disabled"
    assert harness.jobs.jobs == {}


# ── Embeddings ───────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_generate_embeddings_uses_stored_batch_size(client):
    harness = _harness()
    await harness.settings_service.update_setting(JobType.EMBED, batch_size=7)
    harness.projects.add(SupportProject(name="Grant"))

    response = await client.post("/api/v1/cron/generate-embeddings", headers=CRON_HEADERS)

    assert response.status_code == 200
    assert response.json()["mode"] == "worker"
    assert harness.worker.embed_calls[0]["batch_size"] == 7
    (job,) = harness.jobs.jobs.values()
    assert job.triggered_by == "cron"
    assert job.status is JobStatus.COMPLETED


@pytest.mark.asyncio
async def test_generate_embeddings_disabled_returns_conflict(client):
    harness = _harness()
    await harness.settings_service.update_setting(JobType.EMBED, enabled=False)

    response = await client.get("/api/v1/cron/generate-embeddings", headers=CRON_HEADERS)

    assert response.status_code == 409
    assert harness.jobs.jobs == {}


# ── Stuck-job sweep ──────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_cleanup_stuck_jobs_sweeps_every_type(client):
    harness = _harness()
    long_ago = datetime.now(timezone.utc) - timedelta(hours=3)
    crawl = harness.jobs.add(PipelineJob(type=JobType.CRAWL, status=JobStatus.RUNNING, started_at=long_ago))
    embed = harness.jobs.add(PipelineJob(type=JobType.EMBED, status=JobStatus.RUNNING, started_at=long_ago))
    fresh = harness.jobs.add(
        PipelineJob(type=JobType.PARSE, status=JobStatus.RUNNING, started_at=datetime.now(timezone.utc))
    )

    response = await client.get("/api/v1/cron/cleanup-stuck-jobs", headers=CRON_HEADERS)

    assert response.status_code == 200
    assert response.json()["stuckJobsCancelled"] == 2
    assert harness.jobs.jobs[crawl.id].status is JobStatus.FAILED
    assert harness.jobs.jobs[embed.id].status is JobStatus.FAILED
    assert harness.jobs.jobs[fresh.id].status is JobStatus.RUNNING
