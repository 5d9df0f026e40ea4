"""HTTP client for the out-of-process worker (crawl + embedding execution)."""

import logging
from typing import Any

import httpx

from grant_pipeline.application.interfaces.worker_client import RemoteEmbeddingSummary, WorkerClient
from grant_pipeline.config import WorkerConnection
from grant_pipeline.domain.exceptions import WorkerUnavailableError

logger = logging.getLogger(__name__)


class HttpWorkerClient(WorkerClient):
    """Infrastructure adapter — talks to the worker over HTTP with a bearer secret.

    Crawl dispatches only wait for the worker's ``202`` acknowledgement.
    Embedding batches wait for the worker's summary, bounded by the longer
    ``embed_timeout``.
    """

    def __init__(
        self,
        connection: WorkerConnection,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._connection = connection
        self._http_client = http_client

    @property
    def is_configured(self) -> bool:
        return self._connection.is_configured

    async def dispatch_crawl(self, job_id: str) -> None:
        await self._post("/crawl", {"jobId": job_id}, self._connection.dispatch_timeout)
        logger.info("Crawl job %s handed to worker", job_id)

    async def dispatch_crawl_batch(self, job_ids: list[str]) -> None:
        await self._post("/crawl/batch", {"jobIds": job_ids}, self._connection.dispatch_timeout)
        logger.info("%d crawl job(s) handed to worker", len(job_ids))

    async def generate_embeddings(
        self,
        batch_size: int,
        project_ids: list[str] | None = None,
        force: bool = False,
        pipeline_job_id: str | None = None,
    ) -> RemoteEmbeddingSummary:
        payload: dict[str, Any] = {"batchSize": batch_size, "force": force}
        if project_ids:
            payload["projectIds"] = project_ids
        if pipeline_job_id:
            payload["pipelineJobId"] = pipeline_job_id

        data = await self._post("/generate-embeddings", payload, self._connection.embed_timeout)
        return RemoteEmbeddingSummary(
            processed=int(data.get("processed", 0)),
            success=int(data.get("successCount", 0)),
            failed=int(data.get("errors", 0)),
            duration_ms=data.get("duration"),
            message=data.get("message"),
            error_details=data.get("errorDetails") or [],
        )

    # ── Transport ────────────────────────────────────────────────────

    async def _post(self, path: str, payload: dict[str, Any], timeout: float) -> dict[str, Any]:
        if not self.is_configured:
            raise WorkerUnavailableError("Worker is not configured")

        url = f"{self._connection.base_url}{path}"
        headers = {
            "Authorization": f"Bearer {self._connection.api_key}",
            "Content-Type": "application/json",
        }

        client = self._http_client or httpx.AsyncClient()
        should_close = self._http_client is None
        try:
            response = await client.post(url, headers=headers, json=payload, timeout=timeout)
        except httpx.HTTPError as exc:
            logger.warning("Worker request to %s failed: %s", path, exc)
            raise WorkerUnavailableError(f"Worker unreachable: {exc}") from exc
        finally:
            if should_close:
                await client.aclose()

        if response.status_code >= 400:
            error_text = response.text[:500]
            logger.error("Worker %s returned %d: %s", path, response.status_code, error_text)
            raise WorkerUnavailableError(
                f"Worker returned {response.status_code}: {error_text}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError:
            return {}
