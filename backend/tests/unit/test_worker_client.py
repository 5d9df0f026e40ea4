"""Unit tests for the HTTP worker client."""

import json

import httpx
import pytest

from grant_pipeline.config import WorkerConnection
from grant_pipeline.domain.exceptions import WorkerUnavailableError
from grant_pipeline.infrastructure.http import HttpWorkerClient

CONNECTION = WorkerConnection(base_url="https://worker.example", api_key="s3cret")


# ── Helpers ──


def _client(handler, connection: WorkerConnection = CONNECTION) -> HttpWorkerClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpWorkerClient(connection, http_client=http_client)


def _recording_handler(sent: list[httpx.Request], status_code: int = 202, body: dict | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(request)
        return httpx.Response(status_code, json=body or {"success": True})

    return handler


# ── Tests ──


@pytest.mark.asyncio
async def test_dispatch_crawl_posts_job_id_with_bearer_secret():
    sent: list[httpx.Request] = []
    await _client(_recording_handler(sent)).dispatch_crawl("job-1")

    (request,) = sent
    assert str(request.url) == "https://worker.example/crawl"
    assert request.headers["Authorization"] == "Bearer s3cret"
    assert json.loads(request.content) == {"jobId": "job-1"}


@pytest.mark.asyncio
async def test_dispatch_batch_posts_ordered_ids():
    sent: list[httpx.Request] = []
    await _client(_recording_handler(sent)).dispatch_crawl_batch(["a", "b", "c"])

    assert str(sent[0].url) == "https://worker.example/crawl/batch"
    assert json.loads(sent[0].content) == {"jobIds": ["a", "b", "c"]}


@pytest.mark.asyncio
async def test_generate_embeddings_reads_worker_summary():
    sent: list[httpx.Request] = []
    body = {
        "success": True,
        "processed": 3,
        "successCount": 2,
        "errors": 1,
        "duration": 4200,
        "message": "Processed 3 project(s)",
        "errorDetails": [{"id": "p3", "status": "failed"}],
    }
    client = _client(_recording_handler(sent, status_code=200, body=body))

    summary = await client.generate_embeddings(25, project_ids=["p1"], pipeline_job_id="job-9")

    assert json.loads(sent[0].content) == {
        "batchSize": 25,
        "force": False,
        "projectIds": ["p1"],
        "pipelineJobId": "job-9",
    }
    assert (summary.processed, summary.success, summary.failed) == (3, 2, 1)
    assert summary.duration_ms == 4200
    assert summary.error_details == [{"id": "p3", "status": "failed"}]


@pytest.mark.asyncio
async def test_error_status_raises_unavailable():
    def handler(request):
        return httpx.Response(401, json={"error": "Unauthorized"})

    with pytest.raises(WorkerUnavailableError) as exc_info:
        await _client(handler).dispatch_crawl("job-1")
    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_network_error_raises_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(WorkerUnavailableError, match="unreachable"):
        await _client(handler).dispatch_crawl("job-1")


@pytest.mark.asyncio
async def test_unconfigured_worker_never_sends():
    sent: list[httpx.Request] = []
    client = _client(_recording_handler(sent), WorkerConnection(base_url="", api_key=""))

    assert not client.is_configured
    with pytest.raises(WorkerUnavailableError):
        await client.dispatch_crawl("job-1")
    assert sent == []
