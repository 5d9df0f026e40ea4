"""OpenAI-compatible embedding provider — calls the /embeddings endpoint.

Default model: text-embedding-3-small (1536 dimensions), matching the
``document_embeddings.embedding`` column.
"""

import logging
from typing import Any

import httpx

from grant_pipeline.application.interfaces.embedding_provider import EmbeddingProvider
from grant_pipeline.domain.exceptions import EmbeddingProviderError

logger = logging.getLogger(__name__)


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """Infrastructure adapter — generates embeddings via an OpenAI-style /embeddings API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        model: str = "text-embedding-3-small",
        model_dimensions: int = 1536,
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._dimensions = model_dimensions
        self._timeout = timeout
        self._http_client = http_client

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def _get_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    async def generate_embeddings(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        url = f"{self._base_url}/embeddings"
        payload: dict[str, Any] = {
            "model": self._model,
            "input": texts,
            "dimensions": self._dimensions,
        }

        client = self._http_client or httpx.AsyncClient(timeout=self._timeout)
        should_close = self._http_client is None

        try:
            response = await client.post(url, headers=self._get_headers(), json=payload)
        except httpx.HTTPError as exc:
            logger.error("Embedding API request failed: %s", exc)
            raise EmbeddingProviderError(f"Embedding API request failed: {exc}") from exc
        finally:
            if should_close:
                await client.aclose()

        if response.status_code != 200:
            error_text = response.text[:500]
            logger.error("Embedding API error %d: %s", response.status_code, error_text)
            raise EmbeddingProviderError(
                f"Embedding API returned {response.status_code}: {error_text}",
                status_code=response.status_code,
            )

        try:
            embeddings_data = response.json().get("data", [])
            embeddings_data.sort(key=lambda x: x.get("index", 0))
            result = [item["embedding"] for item in embeddings_data]
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.error("Embedding API returned a malformed body: %s", response.text[:500])
            raise EmbeddingProviderError(f"Embedding API returned a malformed body: {exc!r}") from exc

        if len(result) != len(texts):
            raise EmbeddingProviderError(
                f"Embedding API returned {len(result)} vectors for {len(texts)} inputs"
            )

        logger.info(
            "Generated %d embeddings (model=%s, dims=%d)",
            len(result),
            self._model,
            len(result[0]) if result else 0,
        )
        return result
