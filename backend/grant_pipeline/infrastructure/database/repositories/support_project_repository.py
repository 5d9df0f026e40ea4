"""SQLAlchemy implementation of the SupportProjectRepository.

Embedding claims are taken with a single ``UPDATE … WHERE id IN (SELECT …
FOR UPDATE SKIP LOCKED) RETURNING``, so two overlapping runs can never hold
the same project.
"""

import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import and_, exists, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from grant_pipeline.application.interfaces.support_project_repository import SupportProjectRepository
from grant_pipeline.domain.entities.support_project import CrawledProject, SupportProject
from grant_pipeline.infrastructure.database.models.project_models import (
    ProjectAttachmentModel,
    SupportProjectModel,
)

_FIELDS = (
    "external_id",
    "name",
    "organization",
    "category",
    "region",
    "target",
    "summary",
    "description",
    "eligibility",
    "application_process",
    "evaluation_criteria",
    "detail_url",
    "source_url",
    "needs_embedding",
    "embedding_claim_token",
    "embedding_claimed_at",
    "crawled_at",
    "deleted_at",
    "updated_at",
)


class SQLAlchemySupportProjectRepository(SupportProjectRepository):
    """Concrete support project repository backed by PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, project_id: str) -> SupportProject | None:
        model = await self._get_model(project_id)
        return self._to_domain(model) if model else None

    async def find_for_crawled(self, crawled: CrawledProject) -> SupportProject | None:
        kind, value = crawled.dedupe_key
        stmt = select(SupportProjectModel).where(SupportProjectModel.deleted_at.is_(None))
        if kind == "external_id":
            stmt = stmt.where(SupportProjectModel.external_id == value)
        elif kind == "detail_url":
            stmt = stmt.where(SupportProjectModel.detail_url == value)
        else:
            name, organization = value.split("\x1f", 1)
            stmt = stmt.where(
                SupportProjectModel.name == name,
                SupportProjectModel.organization == organization,
            )
        result = await self._session.execute(
            stmt.order_by(SupportProjectModel.created_at.asc()).limit(1)
        )
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def create(self, project: SupportProject) -> SupportProject:
        if not project.id:
            project.id = str(uuid.uuid4())

        model = SupportProjectModel(id=project.id, created_at=project.created_at)
        for name in _FIELDS:
            setattr(model, name, getattr(project, name))
        self._session.add(model)
        await self._session.flush()
        return project

    async def update(self, project: SupportProject) -> SupportProject:
        model = await self._get_model(project.id)
        if model is None:
            raise ValueError(f"SupportProject with id {project.id} not found")
        for name in _FIELDS:
            setattr(model, name, getattr(project, name))
        await self._session.flush()
        return project

    # ── Embedding claims ─────────────────────────────────────────────

    async def count_needing_embedding(
        self, project_ids: list[str] | None = None, force: bool = False
    ) -> int:
        stmt = select(func.count(SupportProjectModel.id)).where(
            *self._eligible(project_ids, force)
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def count_live(self) -> int:
        stmt = select(func.count(SupportProjectModel.id)).where(
            SupportProjectModel.deleted_at.is_(None)
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def count_without_attachments(self) -> tuple[int, int]:
        has_attachment = exists().where(ProjectAttachmentModel.project_id == SupportProjectModel.id)
        stmt = select(
            func.count(SupportProjectModel.id),
            func.count(SupportProjectModel.detail_url),
        ).where(SupportProjectModel.deleted_at.is_(None), ~has_attachment)
        without, recrawlable = (await self._session.execute(stmt)).one()
        return without, recrawlable

    async def claim_for_embedding(
        self,
        limit: int,
        token: str,
        lease_seconds: int,
        project_ids: list[str] | None = None,
        force: bool = False,
    ) -> list[SupportProject]:
        if limit <= 0:
            return []
        now = datetime.now(timezone.utc)
        lease_expired = now - timedelta(seconds=lease_seconds)

        candidates = (
            select(SupportProjectModel.id)
            .where(
                *self._eligible(project_ids, force),
                or_(
                    SupportProjectModel.embedding_claim_token.is_(None),
                    SupportProjectModel.embedding_claimed_at < lease_expired,
                ),
            )
            .order_by(SupportProjectModel.created_at.desc())
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        result = await self._session.execute(
            update(SupportProjectModel)
            .where(SupportProjectModel.id.in_(candidates.scalar_subquery()))
            .values(embedding_claim_token=token, embedding_claimed_at=now)
            .returning(SupportProjectModel)
            .execution_options(synchronize_session=False)
        )
        claimed = [self._to_domain(m) for m in result.scalars().all()]
        claimed.sort(key=lambda p: p.created_at, reverse=True)
        return claimed

    async def complete_embedding(self, project_id: str, token: str) -> bool:
        result = await self._session.execute(
            update(SupportProjectModel)
            .where(
                SupportProjectModel.id == project_id,
                SupportProjectModel.embedding_claim_token == token,
            )
            .values(needs_embedding=False, embedding_claim_token=None, embedding_claimed_at=None)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def release_claim(self, project_id: str, token: str) -> None:
        await self._session.execute(
            update(SupportProjectModel)
            .where(
                SupportProjectModel.id == project_id,
                SupportProjectModel.embedding_claim_token == token,
            )
            .values(embedding_claim_token=None, embedding_claimed_at=None)
            .execution_options(synchronize_session=False)
        )

    # ── Helpers ──────────────────────────────────────────────────────

    async def _get_model(self, project_id: str | None) -> SupportProjectModel | None:
        result = await self._session.execute(
            select(SupportProjectModel).where(SupportProjectModel.id == project_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _eligible(project_ids: list[str] | None, force: bool) -> list:
        conditions = [SupportProjectModel.deleted_at.is_(None)]
        if project_ids:
            conditions.append(SupportProjectModel.id.in_(project_ids))
        if not (force and project_ids):
            conditions.append(SupportProjectModel.needs_embedding.is_(True))
        return [and_(*conditions)]

    # ── Mapping ──────────────────────────────────────────────────────

    @staticmethod
    def _to_domain(model: SupportProjectModel) -> SupportProject:
        return SupportProject(
            id=model.id,
            external_id=model.external_id,
            name=model.name,
            organization=model.organization or "",
            category=model.category or "",
            region=model.region or "",
            target=model.target or "",
            summary=model.summary or "",
            description=model.description,
            eligibility=model.eligibility,
            application_process=model.application_process,
            evaluation_criteria=model.evaluation_criteria,
            detail_url=model.detail_url,
            source_url=model.source_url,
            needs_embedding=model.needs_embedding,
            embedding_claim_token=model.embedding_claim_token,
            embedding_claimed_at=model.embedding_claimed_at,
            crawled_at=model.crawled_at,
            deleted_at=model.deleted_at,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
