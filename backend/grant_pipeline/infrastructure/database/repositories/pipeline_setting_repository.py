"""SQLAlchemy implementation of the PipelineSettingRepository."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from grant_pipeline.application.interfaces.pipeline_setting_repository import PipelineSettingRepository
from grant_pipeline.domain.entities.pipeline_job import JobType
from grant_pipeline.domain.entities.pipeline_setting import PipelineSetting
from grant_pipeline.infrastructure.database.models.pipeline_models import PipelineSettingModel


class SQLAlchemyPipelineSettingRepository(PipelineSettingRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_all(self) -> dict[JobType, PipelineSetting]:
        result = await self._session.execute(select(PipelineSettingModel))
        settings: dict[JobType, PipelineSetting] = {}
        for model in result.scalars().all():
            try:
                job_type = JobType(model.type)
            except ValueError:
                continue
            settings[job_type] = self._to_domain(model, job_type)
        return settings

    async def upsert(self, setting: PipelineSetting) -> PipelineSetting:
        result = await self._session.execute(
            select(PipelineSettingModel).where(PipelineSettingModel.type == setting.type.value)
        )
        model = result.scalar_one_or_none()
        if model is None:
            model = PipelineSettingModel(type=setting.type.value)
            self._session.add(model)

        model.enabled = setting.enabled
        model.schedule = setting.schedule
        model.batch_size = setting.batch_size
        model.max_retries = setting.max_retries
        model.timeout_ms = setting.timeout_ms
        model.options = setting.options or {}
        if setting.updated_at is not None:
            model.updated_at = setting.updated_at
        await self._session.flush()
        return setting

    @staticmethod
    def _to_domain(model: PipelineSettingModel, job_type: JobType) -> PipelineSetting:
        return PipelineSetting(
            type=job_type,
            enabled=model.enabled,
            schedule=model.schedule,
            batch_size=model.batch_size,
            max_retries=model.max_retries,
            timeout_ms=model.timeout_ms,
            options=model.options or {},
            updated_at=model.updated_at,
        )
