"""Abstract repository interface (port) for pipeline schedule settings."""

from abc import ABC, abstractmethod

from grant_pipeline.domain.entities.pipeline_job import JobType
from grant_pipeline.domain.entities.pipeline_setting import PipelineSetting


class PipelineSettingRepository(ABC):
    """Port for pipeline setting persistence — implemented in the infrastructure layer."""

    @abstractmethod
    async def get_all(self) -> dict[JobType, PipelineSetting]:
        """Stored settings keyed by step; missing steps are absent."""
        ...

    @abstractmethod
    async def upsert(self, setting: PipelineSetting) -> PipelineSetting:
        ...
