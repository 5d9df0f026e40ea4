"""Domain entity for document embeddings — one vector per support project."""

from dataclasses import dataclass, field
from datetime import datetime, timezone

SUPPORT_PROJECT_SOURCE = "support_project"


@dataclass
class DocumentEmbedding:
    """A stored vector representation of a support project's text.

    Keyed by ``(source_type, source_id, chunk_index)``; projects are embedded
    as a single chunk, so ``chunk_index`` is always 0.
    """

    source_id: str
    content: str
    embedding: list[float] = field(default_factory=list)
    source_type: str = SUPPORT_PROJECT_SOURCE
    chunk_index: int = 0
    keywords: list[str] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)
    id: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
