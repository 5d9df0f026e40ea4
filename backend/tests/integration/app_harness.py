"""Wires the serving-tier app to in-memory fakes through dependency overrides."""

from fastapi import FastAPI

from grant_pipeline.application.services import (
    CrawlDispatchService,
    EmbeddingGenerationService,
    JobLedgerService,
    ParseRecoveryService,
    PipelineOrchestrator,
    PipelineSettingsService,
    PipelineStatsService,
    TriggerAuthorizer,
)
from grant_pipeline.domain.entities import CrawlSource, DocumentType
from grant_pipeline.infrastructure.dependencies import (
    get_crawl_dispatch_service,
    get_embedding_service,
    get_job_ledger,
    get_parse_recovery_service,
    get_pipeline_orchestrator,
    get_pipeline_settings_service,
    get_pipeline_stats_service,
    get_trigger_authorizer,
)
from tests.fakes import (
    FakeAttachmentRepository,
    FakeBlobStorage,
    FakeCrawlSourceRepository,
    FakeDocumentEmbeddingRepository,
    FakeDocumentParser,
    FakeEmbeddingProvider,
    FakePageFetcher,
    FakePipelineJobRepository,
    FakePipelineSettingRepository,
    FakeSupportProjectRepository,
    FakeWorkerClient,
)

CRON_SECRET = "cron-secret"
ADMIN_KEY = "admin-key"

CRON_HEADERS = {"Authorization": f"Bearer {CRON_SECRET}"}
ADMIN_HEADERS = {"x-api-key": ADMIN_KEY}


class PipelineHarness:
    """One set of fakes shared by every service an endpoint can reach."""

    def __init__(self, worker: FakeWorkerClient | None = None, sources: list[CrawlSource] | None = None):
        self.jobs = FakePipelineJobRepository()
        self.sources = FakeCrawlSourceRepository(sources)
        self.attachments = FakeAttachmentRepository()
        self.projects = FakeSupportProjectRepository(self.attachments)
        self.embeddings = FakeDocumentEmbeddingRepository()
        self.settings = FakePipelineSettingRepository()
        self.worker = worker or FakeWorkerClient()
        self.provider = FakeEmbeddingProvider()

        self.ledger = JobLedgerService(self.jobs)
        self.authorizer = TriggerAuthorizer(cron_secret=CRON_SECRET, admin_api_key=ADMIN_KEY)
        self.dispatch = CrawlDispatchService(self.sources, self.ledger, self.worker)
        self.embedding = EmbeddingGenerationService(
            self.projects, self.attachments, self.embeddings, self.provider, ledger=self.ledger
        )
        self.parse = ParseRecoveryService(
            self.ledger,
            self.attachments,
            FakeBlobStorage(),
            FakePageFetcher(),
            [FakeDocumentParser({DocumentType.PDF}, text="x" * 200)],
            item_delay=0,
        )
        self.orchestrator = PipelineOrchestrator(self.ledger, self.embedding, self.worker, self.parse)
        self.settings_service = PipelineSettingsService(self.settings)
        self.stats = PipelineStatsService(
            self.jobs, self.sources, self.projects, self.attachments, self.embeddings
        )

    def install(self, app: FastAPI) -> None:
        app.dependency_overrides.update(
            {
                get_trigger_authorizer: lambda: self.authorizer,
                get_job_ledger: lambda: self.ledger,
                get_crawl_dispatch_service: lambda: self.dispatch,
                get_embedding_service: lambda: self.embedding,
                get_parse_recovery_service: lambda: self.parse,
                get_pipeline_orchestrator: lambda: self.orchestrator,
                get_pipeline_settings_service: lambda: self.settings_service,
                get_pipeline_stats_service: lambda: self.stats,
            }
        )
