"""Abstract repository interface (port) for the keyed embedding store."""

from abc import ABC, abstractmethod

from grant_pipeline.domain.entities.document_embedding import DocumentEmbedding


class DocumentEmbeddingRepository(ABC):
    """Port for embedding persistence — implemented in the infrastructure layer."""

    @abstractmethod
    async def upsert(self, embedding: DocumentEmbedding) -> None:
        """Insert or replace the row keyed by (source_type, source_id, chunk_index)."""
        ...

    @abstractmethod
    async def count_sources(self, source_type: str) -> int:
        """Number of distinct source ids holding an embedding."""
        ...
