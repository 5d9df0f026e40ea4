"""SQLAlchemy implementation of the PipelineJobRepository."""

import uuid
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from grant_pipeline.application.interfaces.pipeline_job_repository import PipelineJobRepository
from grant_pipeline.domain.entities.pipeline_job import JobStatus, JobType, PipelineJob
from grant_pipeline.infrastructure.database.models.pipeline_models import PipelineJobModel


class SQLAlchemyPipelineJobRepository(PipelineJobRepository):
    """Concrete job ledger backed by PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, job_id: str) -> PipelineJob | None:
        model = await self._get_model(job_id)
        return self._to_domain(model) if model else None

    async def get_many(self, job_ids: list[str]) -> list[PipelineJob]:
        if not job_ids:
            return []
        result = await self._session.execute(
            select(PipelineJobModel).where(PipelineJobModel.id.in_(job_ids))
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    async def create(self, job: PipelineJob) -> PipelineJob:
        if not job.id:
            job.id = str(uuid.uuid4())

        model = PipelineJobModel(id=job.id, type=job.type.value, created_at=job.created_at)
        self._apply(model, job)
        self._session.add(model)
        await self._session.flush()
        return job

    async def update(self, job: PipelineJob) -> PipelineJob:
        model = await self._get_model(job.id)
        if model is None:
            raise ValueError(f"PipelineJob with id {job.id} not found")
        self._apply(model, job)
        await self._session.flush()
        return job

    async def list_jobs(
        self,
        job_type: JobType | None = None,
        status: JobStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[PipelineJob]:
        stmt = self._filtered(select(PipelineJobModel), job_type, status)
        result = await self._session.execute(
            stmt.order_by(PipelineJobModel.created_at.desc()).limit(limit).offset(offset)
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    async def count(
        self, job_type: JobType | None = None, status: JobStatus | None = None
    ) -> int:
        stmt = self._filtered(select(func.count(PipelineJobModel.id)), job_type, status)
        return (await self._session.execute(stmt)).scalar_one()

    async def find_by_status(
        self,
        status: JobStatus,
        job_type: JobType | None = None,
        source_id: str | None = None,
    ) -> list[PipelineJob]:
        stmt = self._filtered(select(PipelineJobModel), job_type, status)
        if source_id is not None:
            stmt = stmt.where(PipelineJobModel.source_id == source_id)
        result = await self._session.execute(stmt.order_by(PipelineJobModel.created_at.desc()))
        return [self._to_domain(m) for m in result.scalars().all()]

    async def find_stuck(
        self,
        status: JobStatus,
        older_than: datetime,
        job_type: JobType | None = None,
    ) -> list[PipelineJob]:
        if status is JobStatus.RUNNING:
            reference = PipelineJobModel.started_at
        else:
            reference = PipelineJobModel.created_at
        stmt = self._filtered(select(PipelineJobModel), job_type, status).where(
            reference < older_than
        )
        result = await self._session.execute(stmt.order_by(reference.asc()))
        return [self._to_domain(m) for m in result.scalars().all()]

    async def latest_per_source(self) -> dict[str, PipelineJob]:
        latest = (
            select(
                PipelineJobModel.source_id,
                func.max(PipelineJobModel.created_at).label("created_at"),
            )
            .where(
                PipelineJobModel.type == JobType.CRAWL.value,
                PipelineJobModel.source_id.is_not(None),
            )
            .group_by(PipelineJobModel.source_id)
            .subquery()
        )
        result = await self._session.execute(
            select(PipelineJobModel).join(
                latest,
                (PipelineJobModel.source_id == latest.c.source_id)
                & (PipelineJobModel.created_at == latest.c.created_at),
            )
        )
        return {m.source_id: self._to_domain(m) for m in result.scalars().all()}

    async def count_finished_since(
        self, status: JobStatus, since: datetime, job_type: JobType | None = None
    ) -> int:
        stmt = self._filtered(select(func.count(PipelineJobModel.id)), job_type, status).where(
            PipelineJobModel.completed_at >= since
        )
        return (await self._session.execute(stmt)).scalar_one()

    # ── Helpers ──────────────────────────────────────────────────────

    async def _get_model(self, job_id: str | None) -> PipelineJobModel | None:
        result = await self._session.execute(
            select(PipelineJobModel).where(PipelineJobModel.id == job_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _filtered(stmt, job_type: JobType | None, status: JobStatus | None):
        if job_type is not None:
            stmt = stmt.where(PipelineJobModel.type == job_type.value)
        if status is not None:
            stmt = stmt.where(PipelineJobModel.status == status.value)
        return stmt

    @staticmethod
    def _apply(model: PipelineJobModel, job: PipelineJob) -> None:
        model.status = job.status.value
        model.target_count = job.target_count
        model.success_count = job.success_count
        model.fail_count = job.fail_count
        model.params = job.params or {}
        model.result = job.result
        model.error = job.error
        model.triggered_by = job.triggered_by
        model.source_id = job.source_id
        model.started_at = job.started_at
        model.completed_at = job.completed_at

    # ── Mapping ──────────────────────────────────────────────────────

    @staticmethod
    def _to_domain(model: PipelineJobModel) -> PipelineJob:
        return PipelineJob(
            id=model.id,
            type=JobType(model.type),
            status=JobStatus(model.status),
            target_count=model.target_count or 0,
            success_count=model.success_count or 0,
            fail_count=model.fail_count or 0,
            params=model.params or {},
            result=model.result,
            error=model.error,
            triggered_by=model.triggered_by,
            source_id=model.source_id,
            started_at=model.started_at,
            completed_at=model.completed_at,
            created_at=model.created_at,
        )
