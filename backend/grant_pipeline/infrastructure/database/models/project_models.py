"""SQLAlchemy ORM models for support projects and their attachments."""

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
    UniqueConstraint,
    func,
)

from grant_pipeline.infrastructure.database.base import Base


def _generate_uuid() -> str:
    return str(uuid.uuid4())


class SupportProjectModel(Base):
    """A crawled grant listing.

    ``embedding_claim_token``/``embedding_claimed_at`` hold the lease of the
    embedding run currently working on the row; both are NULL when unclaimed.
    """

    __tablename__ = "support_projects"

    id = Column(String(36), primary_key=True, default=_generate_uuid)
    external_id = Column(String(255), nullable=True, index=True)
    name = Column(String(500), nullable=False)
    organization = Column(String(255), nullable=False, server_default="")
    category = Column(String(255), nullable=False, server_default="")
    region = Column(String(100), nullable=False, server_default="")
    target = Column(String(255), nullable=False, server_default="")
    summary = Column(Text, nullable=False, server_default="")
    description = Column(Text, nullable=True)
    eligibility = Column(Text, nullable=True)
    application_process = Column(Text, nullable=True)
    evaluation_criteria = Column(Text, nullable=True)
    detail_url = Column(String(2000), nullable=True, index=True)
    source_url = Column(String(2000), nullable=True)
    needs_embedding = Column(Boolean, nullable=False, default=True)
    embedding_claim_token = Column(String(64), nullable=True)
    embedding_claimed_at = Column(DateTime(timezone=True), nullable=True)
    crawled_at = Column(DateTime(timezone=True), nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_projects_needs_embedding", "needs_embedding", "created_at"),
        Index("idx_projects_name_org", "name", "organization"),
    )


class ProjectAttachmentModel(Base):
    """An HWP/HWPX/PDF file linked from a project's detail page."""

    __tablename__ = "project_attachments"

    id = Column(String(36), primary_key=True, default=_generate_uuid)
    project_id = Column(
        String(36),
        ForeignKey("support_projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    file_name = Column(String(500), nullable=False)
    file_type = Column(String(20), nullable=False, default="unknown")
    file_size = Column(Integer, nullable=False, default=0)
    storage_path = Column(String(1000), nullable=True)
    source_url = Column(String(2000), nullable=True)
    should_parse = Column(Boolean, nullable=False, default=True)
    is_parsed = Column(Boolean, nullable=False, default=False)
    parsed_content = Column(Text, nullable=True)
    parse_error = Column(Text, nullable=True)
    parse_error_kind = Column(String(40), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("project_id", "source_url", name="uq_attachment_source"),
        Index("idx_attachments_parse_queue", "should_parse", "is_parsed"),
    )
