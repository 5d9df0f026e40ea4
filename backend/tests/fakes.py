"""In-memory fakes of the application ports, shared by unit and API tests."""

import copy
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from grant_pipeline.application.interfaces import (
    AttachmentParseStats,
    AttachmentRepository,
    BlobStorage,
    CrawlSourceRepository,
    DocumentEmbeddingRepository,
    DocumentParser,
    EmbeddingProvider,
    PageFetcher,
    PipelineJobRepository,
    PipelineSettingRepository,
    RemoteEmbeddingSummary,
    SupportProjectRepository,
    WorkerClient,
)
from grant_pipeline.domain.entities import (
    CrawledProject,
    CrawlSource,
    DocumentEmbedding,
    DocumentType,
    JobStatus,
    JobType,
    ParseErrorKind,
    PipelineJob,
    PipelineSetting,
    ProjectAttachment,
    SupportProject,
)
from grant_pipeline.domain.exceptions import (
    CrawlSourceUnreachableError,
    DocumentFetchError,
    DocumentParseError,
    EmbeddingProviderError,
    WorkerUnavailableError,
)


def _new_id() -> str:
    return str(uuid.uuid4())


# ── Repositories ─────────────────────────────────────────────────────


class FakePipelineJobRepository(PipelineJobRepository):
    """Stores copies so callers only see state they explicitly persisted."""

    def __init__(self):
        self.jobs: dict[str, PipelineJob] = {}

    def add(self, job: PipelineJob) -> PipelineJob:
        job.id = job.id or _new_id()
        self.jobs[job.id] = copy.deepcopy(job)
        return job

    async def get_by_id(self, job_id: str) -> PipelineJob | None:
        job = self.jobs.get(job_id)
        return copy.deepcopy(job) if job else None

    async def get_many(self, job_ids: list[str]) -> list[PipelineJob]:
        return [copy.deepcopy(self.jobs[i]) for i in job_ids if i in self.jobs]

    async def create(self, job: PipelineJob) -> PipelineJob:
        return copy.deepcopy(self.add(job))

    async def update(self, job: PipelineJob) -> PipelineJob:
        if job.id not in self.jobs:
            raise ValueError(f"PipelineJob {job.id} not found")
        self.jobs[job.id] = copy.deepcopy(job)
        return copy.deepcopy(job)

    def _matching(self, job_type, status, source_id=None) -> list[PipelineJob]:
        jobs = [
            j for j in self.jobs.values()
            if (job_type is None or j.type is job_type)
            and (status is None or j.status is status)
            and (source_id is None or j.source_id == source_id)
        ]
        return sorted(jobs, key=lambda j: j.created_at, reverse=True)

    async def list_jobs(self, job_type=None, status=None, limit=20, offset=0) -> list[PipelineJob]:
        return [copy.deepcopy(j) for j in self._matching(job_type, status)[offset:offset + limit]]

    async def count(self, job_type=None, status=None) -> int:
        return len(self._matching(job_type, status))

    async def find_by_status(self, status, job_type=None, source_id=None) -> list[PipelineJob]:
        return [copy.deepcopy(j) for j in self._matching(job_type, status, source_id)]

    async def find_stuck(self, status, older_than, job_type=None) -> list[PipelineJob]:
        stuck = []
        for job in self._matching(job_type, status):
            reference = job.started_at if status is JobStatus.RUNNING else job.created_at
            if reference is not None and reference < older_than:
                stuck.append(copy.deepcopy(job))
        return stuck

    async def latest_per_source(self) -> dict[str, PipelineJob]:
        latest: dict[str, PipelineJob] = {}
        for job in self._matching(None, None):
            if job.source_id and job.source_id not in latest:
                latest[job.source_id] = copy.deepcopy(job)
        return latest

    async def count_finished_since(self, status, since, job_type=None) -> int:
        return sum(
            1 for j in self._matching(job_type, status)
            if j.completed_at is not None and j.completed_at >= since
        )


class FakeCrawlSourceRepository(CrawlSourceRepository):
    def __init__(self, sources: list[CrawlSource] | None = None):
        self.sources: dict[str, CrawlSource] = {}
        for source in sources or []:
            source.id = source.id or _new_id()
            self.sources[source.id] = source

    async def get_by_id(self, source_id: str) -> CrawlSource | None:
        return self.sources.get(source_id)

    async def get_all(self) -> list[CrawlSource]:
        return list(self.sources.values())

    async def get_active(self) -> list[CrawlSource]:
        return sorted((s for s in self.sources.values() if s.is_active), key=lambda s: s.name)

    async def create(self, source: CrawlSource) -> CrawlSource:
        source.id = source.id or _new_id()
        self.sources[source.id] = source
        return source

    async def update(self, source: CrawlSource) -> CrawlSource:
        if source.id not in self.sources:
            raise ValueError(f"CrawlSource {source.id} not found")
        self.sources[source.id] = source
        return source


class FakeSupportProjectRepository(SupportProjectRepository):
    def __init__(self, attachments: "FakeAttachmentRepository | None" = None):
        self.projects: dict[str, SupportProject] = {}
        self._attachments = attachments

    def add(self, project: SupportProject) -> SupportProject:
        project.id = project.id or _new_id()
        self.projects[project.id] = project
        return project

    async def get_by_id(self, project_id: str) -> SupportProject | None:
        return self.projects.get(project_id)

    async def find_for_crawled(self, crawled: CrawledProject) -> SupportProject | None:
        kind, value = crawled.dedupe_key
        for project in self.projects.values():
            if kind == "external_id" and project.external_id == value:
                return project
            if kind == "detail_url" and project.detail_url == value:
                return project
            if kind == "name_org" and f"{project.name}\x1f{project.organization}" == value:
                return project
        return None

    async def create(self, project: SupportProject) -> SupportProject:
        return self.add(project)

    async def update(self, project: SupportProject) -> SupportProject:
        if project.id not in self.projects:
            raise ValueError(f"SupportProject {project.id} not found")
        self.projects[project.id] = project
        return project

    def _eligible(self, project_ids, force) -> list[SupportProject]:
        rows = [p for p in self.projects.values() if p.deleted_at is None]
        if project_ids:
            rows = [p for p in rows if p.id in project_ids]
        if not (force and project_ids):
            rows = [p for p in rows if p.needs_embedding]
        return rows

    async def count_needing_embedding(self, project_ids=None, force=False) -> int:
        return len(self._eligible(project_ids, force))

    async def count_live(self) -> int:
        return sum(1 for p in self.projects.values() if p.deleted_at is None)

    async def count_without_attachments(self) -> tuple[int, int]:
        with_files = set()
        if self._attachments is not None:
            with_files = {a.project_id for a in self._attachments.attachments.values()}
        bare = [p for p in self.projects.values() if p.deleted_at is None and p.id not in with_files]
        return len(bare), sum(1 for p in bare if p.detail_url)

    async def claim_for_embedding(self, limit, token, lease_seconds, project_ids=None, force=False):
        now = datetime.now(timezone.utc)
        expired_before = now - timedelta(seconds=lease_seconds)
        free = [
            p for p in self._eligible(project_ids, force)
            if p.embedding_claim_token is None
            or (p.embedding_claimed_at is not None and p.embedding_claimed_at < expired_before)
        ]
        claimed = sorted(free, key=lambda p: p.created_at, reverse=True)[:limit]
        for project in claimed:
            project.embedding_claim_token = token
            project.embedding_claimed_at = now
        return [copy.deepcopy(p) for p in claimed]

    async def complete_embedding(self, project_id: str, token: str) -> bool:
        project = self.projects.get(project_id)
        if project is None or project.embedding_claim_token != token:
            return False
        project.needs_embedding = False
        project.embedding_claim_token = None
        project.embedding_claimed_at = None
        return True

    async def release_claim(self, project_id: str, token: str) -> None:
        project = self.projects.get(project_id)
        if project is not None and project.embedding_claim_token == token:
            project.embedding_claim_token = None
            project.embedding_claimed_at = None


class FakeAttachmentRepository(AttachmentRepository):
    def __init__(self):
        self.attachments: dict[str, ProjectAttachment] = {}

    def add(self, attachment: ProjectAttachment) -> ProjectAttachment:
        attachment.id = attachment.id or _new_id()
        self.attachments[attachment.id] = attachment
        return attachment

    async def list_parse_candidates(self, limit, error_kind=None, never_attempted=False, attachment_ids=None):
        rows = [a for a in self.attachments.values() if a.should_parse and not a.is_parsed]
        if attachment_ids:
            rows = [a for a in rows if a.id in attachment_ids]
        if never_attempted:
            rows = [a for a in rows if a.parse_error is None]
        elif error_kind is ParseErrorKind.OTHER:
            rows = [
                a for a in rows
                if a.parse_error_kind is ParseErrorKind.OTHER
                or (a.parse_error is not None and a.parse_error_kind is None)
            ]
        elif error_kind is not None:
            rows = [a for a in rows if a.parse_error_kind is error_kind]
        rows.sort(key=lambda a: a.file_size, reverse=True)
        return [copy.deepcopy(a) for a in rows[:limit]]

    async def update(self, attachment: ProjectAttachment) -> ProjectAttachment:
        if attachment.id not in self.attachments:
            raise ValueError(f"ProjectAttachment {attachment.id} not found")
        self.attachments[attachment.id] = copy.deepcopy(attachment)
        return attachment

    async def register(self, project_id, source_url, file_name, file_type) -> bool:
        for existing in self.attachments.values():
            if existing.project_id == project_id and existing.source_url == source_url:
                return False
        self.add(
            ProjectAttachment(
                project_id=project_id,
                file_name=file_name,
                file_type=file_type,
                source_url=source_url,
            )
        )
        return True

    async def parsed_contents(self, project_id: str) -> list[str]:
        return [
            a.parsed_content for a in self.attachments.values()
            if a.project_id == project_id and a.is_parsed and a.parsed_content
        ]

    async def parse_stats(self) -> AttachmentParseStats:
        stats = AttachmentParseStats()
        for a in self.attachments.values():
            stats.total += 1
            stats.by_file_type[a.file_type] = stats.by_file_type.get(a.file_type, 0) + 1
            if a.should_parse:
                stats.parsable += 1
            if a.is_parsed:
                stats.parsed += 1
            elif a.should_parse:
                stats.unparsed += 1
            if a.parse_error is not None:
                stats.with_error += 1
                kind = a.parse_error_kind.value if a.parse_error_kind else "other"
                stats.by_error_kind[kind] = stats.by_error_kind.get(kind, 0) + 1
        return stats


class FakeDocumentEmbeddingRepository(DocumentEmbeddingRepository):
    def __init__(self):
        self.rows: dict[tuple[str, str, int], DocumentEmbedding] = {}

    async def upsert(self, embedding: DocumentEmbedding) -> None:
        self.rows[(embedding.source_type, embedding.source_id, embedding.chunk_index)] = embedding

    async def count_sources(self, source_type: str) -> int:
        return len({sid for (stype, sid, _) in self.rows if stype == source_type})


class FakePipelineSettingRepository(PipelineSettingRepository):
    def __init__(self):
        self.settings: dict[JobType, PipelineSetting] = {}

    async def get_all(self) -> dict[JobType, PipelineSetting]:
        return dict(self.settings)

    async def upsert(self, setting: PipelineSetting) -> PipelineSetting:
        self.settings[setting.type] = setting
        return setting


# ── Outbound adapters ────────────────────────────────────────────────


class FakeEmbeddingProvider(EmbeddingProvider):
    """Returns a fixed vector; texts containing ``fail_marker`` raise."""

    def __init__(self, fail_marker: str | None = None, dims: int = 4):
        self.fail_marker = fail_marker
        self.dims = dims
        self.calls: list[list[str]] = []

    async def generate_embeddings(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(texts)
        if self.fail_marker and any(self.fail_marker in t for t in texts):
            raise EmbeddingProviderError("Embedding API returned 500: boom", status_code=500)
        return [[0.1] * self.dims for _ in texts]

    @property
    def dimensions(self) -> int:
        return self.dims


class FakeWorkerClient(WorkerClient):
    def __init__(self, configured: bool = True, fail: bool = False, summary: RemoteEmbeddingSummary | None = None):
        self.configured = configured
        self.fail = fail
        self.summary = summary or RemoteEmbeddingSummary()
        self.crawls: list[str] = []
        self.batches: list[list[str]] = []
        self.embed_calls: list[dict[str, Any]] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    def _check(self) -> None:
        if not self.configured:
            raise WorkerUnavailableError("Worker is not configured")
        if self.fail:
            raise WorkerUnavailableError("Worker unreachable: connection refused")

    async def dispatch_crawl(self, job_id: str) -> None:
        self._check()
        self.crawls.append(job_id)

    async def dispatch_crawl_batch(self, job_ids: list[str]) -> None:
        self._check()
        self.batches.append(list(job_ids))

    async def generate_embeddings(self, batch_size, project_ids=None, force=False, pipeline_job_id=None):
        self._check()
        self.embed_calls.append(
            {"batch_size": batch_size, "project_ids": project_ids, "force": force, "pipeline_job_id": pipeline_job_id}
        )
        return self.summary


class FakePageFetcher(PageFetcher):
    """Serves canned pages; values that are exceptions are raised."""

    def __init__(self, pages: dict[str, Any] | None = None, downloads: dict[str, Any] | None = None):
        self.pages = pages or {}
        self.downloads = downloads or {}
        self.requested: list[str] = []

    def _lookup(self, table: dict[str, Any], url: str):
        self.requested.append(url)
        value = table.get(url)
        if isinstance(value, Exception):
            raise value
        return value

    async def fetch_html(self, url: str) -> str:
        value = self._lookup(self.pages, url)
        if value is None:
            raise CrawlSourceUnreachableError(url, "HTTP 404")
        return value

    async def fetch_json(self, url: str) -> Any:
        value = self._lookup(self.pages, url)
        if value is None:
            raise CrawlSourceUnreachableError(url, "HTTP 404")
        return value

    async def download(self, url: str, referer: str | None = None) -> bytes:
        value = self._lookup(self.downloads, url)
        if value is None:
            raise DocumentFetchError("Download failed: HTTP 404", kind=ParseErrorKind.DOWNLOAD_FAILED)
        if not value:
            raise DocumentFetchError("File is empty (0 bytes)", kind=ParseErrorKind.EMPTY_FILE)
        return value


class FakeBlobStorage(BlobStorage):
    def __init__(self, blobs: dict[str, bytes] | None = None):
        self.blobs = blobs or {}

    async def read(self, storage_path: str) -> bytes | None:
        return self.blobs.get(storage_path)


class FakeDocumentParser(DocumentParser):
    """Returns ``text`` for supported types, or raises ``error`` if given."""

    def __init__(self, types: set[DocumentType], text: str = "", error: DocumentParseError | None = None):
        self.types = types
        self.text = text
        self.error = error
        self.calls: list[str] = []

    def supports(self, document_type: DocumentType) -> bool:
        return document_type in self.types

    async def extract_text(self, content: bytes, file_name: str, document_type: DocumentType) -> str:
        self.calls.append(file_name)
        if self.error is not None:
            raise self.error
        return self.text


class CommitCounter:
    """Commit hook that counts how often a service published its writes."""

    def __init__(self):
        self.count = 0

    async def __call__(self) -> None:
        self.count += 1
