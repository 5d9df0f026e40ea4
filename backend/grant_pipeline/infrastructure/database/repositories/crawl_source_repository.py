"""SQLAlchemy implementation of the CrawlSourceRepository."""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from grant_pipeline.application.interfaces.crawl_source_repository import CrawlSourceRepository
from grant_pipeline.domain.entities.crawl_source import CrawlSource, CrawlSourceType
from grant_pipeline.infrastructure.database.models.pipeline_models import CrawlSourceModel


class SQLAlchemyCrawlSourceRepository(CrawlSourceRepository):
    """Concrete crawl source repository backed by PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, source_id: str) -> CrawlSource | None:
        result = await self._session.execute(
            select(CrawlSourceModel).where(CrawlSourceModel.id == source_id)
        )
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def get_all(self) -> list[CrawlSource]:
        result = await self._session.execute(
            select(CrawlSourceModel).order_by(CrawlSourceModel.created_at.desc())
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    async def get_active(self) -> list[CrawlSource]:
        result = await self._session.execute(
            select(CrawlSourceModel)
            .where(CrawlSourceModel.is_active.is_(True))
            .order_by(CrawlSourceModel.name.asc())
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    async def create(self, source: CrawlSource) -> CrawlSource:
        if not source.id:
            source.id = str(uuid.uuid4())

        model = CrawlSourceModel(
            id=source.id,
            name=source.name,
            url=source.url,
            type=source.type.value,
            is_active=source.is_active,
            schedule=source.schedule,
            last_crawled=source.last_crawled,
            created_at=source.created_at,
            updated_at=source.updated_at,
        )
        self._session.add(model)
        await self._session.flush()
        return source

    async def update(self, source: CrawlSource) -> CrawlSource:
        result = await self._session.execute(
            select(CrawlSourceModel).where(CrawlSourceModel.id == source.id)
        )
        model = result.scalar_one_or_none()
        if model is None:
            raise ValueError(f"CrawlSource with id {source.id} not found")

        model.name = source.name
        model.url = source.url
        model.type = source.type.value
        model.is_active = source.is_active
        model.schedule = source.schedule
        model.last_crawled = source.last_crawled
        model.updated_at = source.updated_at
        await self._session.flush()
        return source

    # ── Mapping ──────────────────────────────────────────────────────

    @staticmethod
    def _to_domain(model: CrawlSourceModel) -> CrawlSource:
        return CrawlSource(
            id=model.id,
            name=model.name,
            url=model.url,
            type=CrawlSourceType(model.type),
            is_active=model.is_active,
            schedule=model.schedule,
            last_crawled=model.last_crawled,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
