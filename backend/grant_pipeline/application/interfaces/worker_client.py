"""Abstract interface (port) for dispatching work to the out-of-process worker."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class RemoteEmbeddingSummary:
    """Summary the worker returns for a delegated embedding batch."""

    processed: int = 0
    success: int = 0
    failed: int = 0
    duration_ms: int | None = None
    message: str | None = None
    error_details: list[dict[str, Any]] = field(default_factory=list)


class WorkerClient(ABC):
    """Port for the worker's HTTP surface.

    Every method raises ``WorkerUnavailableError`` when the worker is not
    configured, cannot be reached, or answers with an error status.
    """

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        ...

    @abstractmethod
    async def dispatch_crawl(self, job_id: str) -> None:
        ...

    @abstractmethod
    async def dispatch_crawl_batch(self, job_ids: list[str]) -> None:
        ...

    @abstractmethod
    async def generate_embeddings(
        self,
        batch_size: int,
        project_ids: list[str] | None = None,
        force: bool = False,
        pipeline_job_id: str | None = None,
    ) -> RemoteEmbeddingSummary:
        ...
