"""SQLAlchemy ORM model for the keyed pgvector embedding store."""

import uuid

from sqlalchemy import (
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB

from pgvector.sqlalchemy import Vector

from grant_pipeline.infrastructure.database.base import Base

EMBEDDING_DIMENSIONS = 1536


def _generate_uuid() -> str:
    return str(uuid.uuid4())


class DocumentEmbeddingModel(Base):
    """One embedding row per (source_type, source_id, chunk_index).

    Re-embedding a source replaces its row in place, so retried runs never
    leave duplicates behind.
    """

    __tablename__ = "document_embeddings"

    id = Column(String(36), primary_key=True, default=_generate_uuid)
    source_type = Column(String(50), nullable=False)
    source_id = Column(String(36), nullable=False, index=True)
    chunk_index = Column(Integer, nullable=False, default=0)
    content = Column(Text, nullable=False)
    embedding = Column(Vector(EMBEDDING_DIMENSIONS), nullable=False)
    keywords = Column(JSONB, nullable=False, server_default="[]")
    metadata_ = Column("metadata", JSONB, nullable=False, server_default="{}")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("source_type", "source_id", "chunk_index", name="uq_embedding_identity"),
        Index("idx_embeddings_hnsw", embedding, postgresql_using="hnsw",
              postgresql_ops={"embedding": "vector_cosine_ops"}),
    )
