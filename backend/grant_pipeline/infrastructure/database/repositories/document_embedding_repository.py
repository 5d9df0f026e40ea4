"""SQLAlchemy implementation of the DocumentEmbeddingRepository (pgvector)."""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from grant_pipeline.application.interfaces.document_embedding_repository import DocumentEmbeddingRepository
from grant_pipeline.domain.entities.document_embedding import DocumentEmbedding
from grant_pipeline.infrastructure.database.models.embedding_models import DocumentEmbeddingModel

logger = logging.getLogger(__name__)


class PgDocumentEmbeddingRepository(DocumentEmbeddingRepository):
    """Keyed embedding store; a second upsert for the same key replaces the row."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def upsert(self, embedding: DocumentEmbedding) -> None:
        now = datetime.now(timezone.utc)
        table = DocumentEmbeddingModel.__table__
        stmt = insert(table).values(
            id=embedding.id or str(uuid.uuid4()),
            source_type=embedding.source_type,
            source_id=embedding.source_id,
            chunk_index=embedding.chunk_index,
            content=embedding.content,
            embedding=embedding.embedding,
            keywords=embedding.keywords,
            metadata=embedding.metadata,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            constraint="uq_embedding_identity",
            set_={
                "content": stmt.excluded.content,
                "embedding": stmt.excluded.embedding,
                "keywords": stmt.excluded.keywords,
                "metadata": stmt.excluded["metadata"],
                "updated_at": now,
            },
        )
        await self._session.execute(stmt)
        logger.debug("Stored embedding for %s %s", embedding.source_type, embedding.source_id)

    async def count_sources(self, source_type: str) -> int:
        stmt = select(func.count(func.distinct(DocumentEmbeddingModel.source_id))).where(
            DocumentEmbeddingModel.source_type == source_type
        )
        return (await self._session.execute(stmt)).scalar_one()
