"""Abstract repository interface (port) for the pipeline job ledger."""

from abc import ABC, abstractmethod
from datetime import datetime

from grant_pipeline.domain.entities.pipeline_job import JobStatus, JobType, PipelineJob


class PipelineJobRepository(ABC):
    """Port for pipeline job persistence — implemented in the infrastructure layer."""

    @abstractmethod
    async def get_by_id(self, job_id: str) -> PipelineJob | None:
        """Retrieve a single job by ID."""
        ...

    @abstractmethod
    async def get_many(self, job_ids: list[str]) -> list[PipelineJob]:
        """Retrieve the given jobs; unknown ids are omitted."""
        ...

    @abstractmethod
    async def create(self, job: PipelineJob) -> PipelineJob:
        """Persist a new job and return it with the generated ID."""
        ...

    @abstractmethod
    async def update(self, job: PipelineJob) -> PipelineJob:
        """Update an existing job. Raises ValueError if the row is missing."""
        ...

    @abstractmethod
    async def list_jobs(
        self,
        job_type: JobType | None = None,
        status: JobStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[PipelineJob]:
        """List jobs newest first, optionally filtered by type and status."""
        ...

    @abstractmethod
    async def count(
        self, job_type: JobType | None = None, status: JobStatus | None = None
    ) -> int:
        """Count jobs matching the optional filters."""
        ...

    @abstractmethod
    async def find_by_status(
        self,
        status: JobStatus,
        job_type: JobType | None = None,
        source_id: str | None = None,
    ) -> list[PipelineJob]:
        """Find every job currently in ``status``, newest first."""
        ...

    @abstractmethod
    async def find_stuck(
        self,
        status: JobStatus,
        older_than: datetime,
        job_type: JobType | None = None,
    ) -> list[PipelineJob]:
        """Find jobs in ``status`` whose reference time is before ``older_than``.

        Running jobs are aged by ``started_at``; pending jobs by ``created_at``.
        """
        ...

    @abstractmethod
    async def latest_per_source(self) -> dict[str, PipelineJob]:
        """Most recent crawl job for every source that has one."""
        ...

    @abstractmethod
    async def count_finished_since(
        self, status: JobStatus, since: datetime, job_type: JobType | None = None
    ) -> int:
        """Count jobs that reached ``status`` at or after ``since``."""
        ...
