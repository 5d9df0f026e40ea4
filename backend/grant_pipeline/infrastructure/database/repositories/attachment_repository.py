"""SQLAlchemy implementation of the AttachmentRepository."""

import uuid

from sqlalchemy import and_, func, or_, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from grant_pipeline.application.interfaces.attachment_repository import (
    AttachmentParseStats,
    AttachmentRepository,
)
from grant_pipeline.domain.entities.project_attachment import ParseErrorKind, ProjectAttachment
from grant_pipeline.infrastructure.database.models.project_models import (
    ProjectAttachmentModel,
    SupportProjectModel,
)


class SQLAlchemyAttachmentRepository(AttachmentRepository):
    """Concrete attachment repository backed by PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def list_parse_candidates(
        self,
        limit: int,
        error_kind: ParseErrorKind | None = None,
        never_attempted: bool = False,
        attachment_ids: list[str] | None = None,
    ) -> list[ProjectAttachment]:
        stmt = (
            select(ProjectAttachmentModel, SupportProjectModel.detail_url)
            .join(SupportProjectModel, SupportProjectModel.id == ProjectAttachmentModel.project_id)
            .where(
                ProjectAttachmentModel.should_parse.is_(True),
                ProjectAttachmentModel.is_parsed.is_(False),
            )
        )
        if attachment_ids:
            stmt = stmt.where(ProjectAttachmentModel.id.in_(attachment_ids))
        if never_attempted:
            stmt = stmt.where(ProjectAttachmentModel.parse_error.is_(None))
        elif error_kind is ParseErrorKind.OTHER:
            # Rows recorded before error kinds existed count as "other".
            stmt = stmt.where(
                or_(
                    ProjectAttachmentModel.parse_error_kind == error_kind.value,
                    and_(
                        ProjectAttachmentModel.parse_error_kind.is_(None),
                        ProjectAttachmentModel.parse_error.is_not(None),
                    ),
                )
            )
        elif error_kind is not None:
            stmt = stmt.where(ProjectAttachmentModel.parse_error_kind == error_kind.value)

        result = await self._session.execute(
            stmt.order_by(ProjectAttachmentModel.file_size.desc()).limit(limit)
        )
        return [self._to_domain(model, detail_url) for model, detail_url in result.all()]

    async def update(self, attachment: ProjectAttachment) -> ProjectAttachment:
        result = await self._session.execute(
            select(ProjectAttachmentModel).where(ProjectAttachmentModel.id == attachment.id)
        )
        model = result.scalar_one_or_none()
        if model is None:
            raise ValueError(f"ProjectAttachment with id {attachment.id} not found")

        model.file_type = attachment.file_type
        model.file_size = attachment.file_size
        model.storage_path = attachment.storage_path
        model.should_parse = attachment.should_parse
        model.is_parsed = attachment.is_parsed
        model.parsed_content = attachment.parsed_content
        model.parse_error = attachment.parse_error
        model.parse_error_kind = attachment.parse_error_kind.value if attachment.parse_error_kind else None
        model.updated_at = attachment.updated_at
        await self._session.flush()
        return attachment

    async def register(
        self, project_id: str, source_url: str, file_name: str, file_type: str
    ) -> bool:
        stmt = (
            insert(ProjectAttachmentModel)
            .values(
                id=str(uuid.uuid4()),
                project_id=project_id,
                source_url=source_url,
                file_name=file_name[:500],
                file_type=file_type,
            )
            .on_conflict_do_nothing(index_elements=["project_id", "source_url"])
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def parsed_contents(self, project_id: str) -> list[str]:
        result = await self._session.execute(
            select(ProjectAttachmentModel.parsed_content)
            .where(
                ProjectAttachmentModel.project_id == project_id,
                ProjectAttachmentModel.is_parsed.is_(True),
                ProjectAttachmentModel.parsed_content.is_not(None),
            )
            .order_by(ProjectAttachmentModel.created_at.asc())
        )
        return [text for text in result.scalars().all() if text]

    async def parse_stats(self) -> AttachmentParseStats:
        m = ProjectAttachmentModel
        totals = (
            await self._session.execute(
                select(
                    func.count(m.id),
                    func.count(m.id).filter(m.should_parse.is_(True)),
                    func.count(m.id).filter(m.is_parsed.is_(True)),
                    func.count(m.id).filter(m.should_parse.is_(True), m.is_parsed.is_(False)),
                    func.count(m.id).filter(m.parse_error.is_not(None)),
                )
            )
        ).one()

        by_type = await self._session.execute(
            select(m.file_type, func.count(m.id)).group_by(m.file_type)
        )
        by_kind = await self._session.execute(
            select(func.coalesce(m.parse_error_kind, ParseErrorKind.OTHER.value), func.count(m.id))
            .where(m.parse_error.is_not(None))
            .group_by(func.coalesce(m.parse_error_kind, ParseErrorKind.OTHER.value))
        )

        total, parsable, parsed, unparsed, with_error = totals
        return AttachmentParseStats(
            total=total,
            parsable=parsable,
            parsed=parsed,
            unparsed=unparsed,
            with_error=with_error,
            by_file_type={file_type or "unknown": count for file_type, count in by_type.all()},
            by_error_kind={kind: count for kind, count in by_kind.all()},
        )

    # ── Mapping ──────────────────────────────────────────────────────

    @staticmethod
    def _to_domain(model: ProjectAttachmentModel, detail_url: str | None = None) -> ProjectAttachment:
        kind = None
        if model.parse_error_kind:
            try:
                kind = ParseErrorKind(model.parse_error_kind)
            except ValueError:
                kind = ParseErrorKind.OTHER
        return ProjectAttachment(
            id=model.id,
            project_id=model.project_id,
            file_name=model.file_name,
            file_type=model.file_type,
            file_size=model.file_size or 0,
            storage_path=model.storage_path,
            source_url=model.source_url,
            should_parse=model.should_parse,
            is_parsed=model.is_parsed,
            parsed_content=model.parsed_content,
            parse_error=model.parse_error,
            parse_error_kind=kind,
            project_detail_url=detail_url,
            updated_at=model.updated_at,
        )
