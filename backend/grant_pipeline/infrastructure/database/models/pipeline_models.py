"""SQLAlchemy ORM models for crawl sources, the pipeline job ledger and step settings."""

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB

from grant_pipeline.infrastructure.database.base import Base


def _generate_uuid() -> str:
    return str(uuid.uuid4())


class CrawlSourceModel(Base):
    """An external site the crawler scrapes for grant listings."""

    __tablename__ = "crawl_sources"

    id = Column(String(36), primary_key=True, default=_generate_uuid)
    name = Column(String(255), nullable=False)
    url = Column(String(2000), nullable=False)
    type = Column(String(20), nullable=False, default="table")  # table | list | spa | api
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    schedule = Column(String(100), nullable=True)
    last_crawled = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())


class PipelineJobModel(Base):
    """One crawl, parse or embed run in the shared job ledger."""

    __tablename__ = "pipeline_jobs"

    id = Column(String(36), primary_key=True, default=_generate_uuid)
    type = Column(String(20), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="pending", index=True)
    target_count = Column(Integer, nullable=False, default=0)
    success_count = Column(Integer, nullable=False, default=0)
    fail_count = Column(Integer, nullable=False, default=0)
    params = Column(JSONB, nullable=False, server_default="{}")
    result = Column(JSONB, nullable=True)
    error = Column(Text, nullable=True)
    triggered_by = Column(String(50), nullable=False, default="manual")
    source_id = Column(
        String(36),
        ForeignKey("crawl_sources.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("idx_pipeline_jobs_type_status", "type", "status"),
        Index("idx_pipeline_jobs_created", "created_at"),
    )


class PipelineSettingModel(Base):
    """Schedule and batch configuration, one row per pipeline step."""

    __tablename__ = "pipeline_settings"

    id = Column(String(36), primary_key=True, default=_generate_uuid)
    type = Column(String(20), nullable=False, unique=True)
    enabled = Column(Boolean, nullable=False, default=True)
    schedule = Column(String(100), nullable=False)
    batch_size = Column(Integer, nullable=False, default=50)
    max_retries = Column(Integer, nullable=False, default=3)
    timeout_ms = Column(Integer, nullable=False, default=300000)
    options = Column(JSONB, nullable=False, server_default="{}")
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
