"""Pipeline Stats Service — dashboard aggregates for the admin surface."""

from dataclasses import dataclass, field
from datetime import datetime, timezone

from grant_pipeline.application.interfaces.attachment_repository import (
    AttachmentParseStats,
    AttachmentRepository,
)
from grant_pipeline.application.interfaces.crawl_source_repository import CrawlSourceRepository
from grant_pipeline.application.interfaces.document_embedding_repository import DocumentEmbeddingRepository
from grant_pipeline.application.interfaces.pipeline_job_repository import PipelineJobRepository
from grant_pipeline.application.interfaces.support_project_repository import SupportProjectRepository
from grant_pipeline.domain.entities.crawl_source import CrawlSource
from grant_pipeline.domain.entities.document_embedding import SUPPORT_PROJECT_SOURCE
from grant_pipeline.domain.entities.pipeline_job import JobStatus, JobType, PipelineJob
from grant_pipeline.domain.entities.project_attachment import ParseErrorKind

RECENT_PIPELINE_JOBS = 10
RECENT_CRAWL_JOBS = 20


@dataclass
class EmbedCoverage:
    total: int
    embedded: int
    pending: int
    embedding_count: int


@dataclass
class AttachmentCoverage:
    total_projects: int
    with_attachments: int
    without_attachments: int
    recrawlable: int


@dataclass
class PipelineStats:
    parse: AttachmentParseStats
    error_types: dict[str, int]
    embed: EmbedCoverage
    attachment: AttachmentCoverage
    recent_jobs: list[PipelineJob]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class SourceStatus:
    source: CrawlSource
    last_job_status: JobStatus | None


@dataclass
class CrawlerLiveStatus:
    running_jobs: list[PipelineJob]
    recent_jobs: list[PipelineJob]
    sources: list[SourceStatus]
    source_names: dict[str, str]
    pending_jobs: int
    completed_today: int
    failed_today: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total_sources(self) -> int:
        return len(self.sources)

    @property
    def active_sources(self) -> int:
        return sum(1 for s in self.sources if s.source.is_active)


class PipelineStatsService:
    def __init__(
        self,
        job_repo: PipelineJobRepository,
        source_repo: CrawlSourceRepository,
        project_repo: SupportProjectRepository,
        attachment_repo: AttachmentRepository,
        embedding_repo: DocumentEmbeddingRepository,
    ) -> None:
        self._job_repo = job_repo
        self._source_repo = source_repo
        self._project_repo = project_repo
        self._attachment_repo = attachment_repo
        self._embedding_repo = embedding_repo

    async def get_stats(self) -> PipelineStats:
        parse = await self._attachment_repo.parse_stats()
        total_projects = await self._project_repo.count_live()
        pending = await self._project_repo.count_needing_embedding()
        embedding_count = await self._embedding_repo.count_sources(SUPPORT_PROJECT_SOURCE)
        without, recrawlable = await self._project_repo.count_without_attachments()
        recent = await self._job_repo.list_jobs(limit=RECENT_PIPELINE_JOBS)

        return PipelineStats(
            parse=parse,
            error_types=_label_error_kinds(parse.by_error_kind),
            embed=EmbedCoverage(
                total=total_projects,
                embedded=total_projects - pending,
                pending=pending,
                embedding_count=embedding_count,
            ),
            attachment=AttachmentCoverage(
                total_projects=total_projects,
                with_attachments=total_projects - without,
                without_attachments=without,
                recrawlable=recrawlable,
            ),
            recent_jobs=recent,
        )

    async def crawler_live_status(self, now: datetime | None = None) -> CrawlerLiveStatus:
        now = now or datetime.now(timezone.utc)
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)

        sources = await self._source_repo.get_all()
        latest = await self._job_repo.latest_per_source()

        return CrawlerLiveStatus(
            running_jobs=await self._job_repo.find_by_status(JobStatus.RUNNING, job_type=JobType.CRAWL),
            recent_jobs=await self._job_repo.list_jobs(job_type=JobType.CRAWL, limit=RECENT_CRAWL_JOBS),
            sources=[
                SourceStatus(source=s, last_job_status=latest[s.id].status if s.id in latest else None)
                for s in sorted(sources, key=lambda s: s.name)
            ],
            source_names={s.id: s.name for s in sources},
            pending_jobs=await self._job_repo.count(JobType.CRAWL, JobStatus.PENDING),
            completed_today=await self._job_repo.count_finished_since(
                JobStatus.COMPLETED, start_of_day, JobType.CRAWL
            ),
            failed_today=await self._job_repo.count_finished_since(
                JobStatus.FAILED, start_of_day, JobType.CRAWL
            ),
            timestamp=now,
        )


def _label_error_kinds(by_kind: dict[str, int]) -> dict[str, int]:
    labelled: dict[str, int] = {}
    for raw, count in by_kind.items():
        try:
            label = ParseErrorKind(raw).label
        except ValueError:
            label = ParseErrorKind.OTHER.label
        labelled[label] = labelled.get(label, 0) + count
    return labelled
