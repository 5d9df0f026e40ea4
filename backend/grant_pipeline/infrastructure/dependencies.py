"""FastAPI dependency injection — wires infrastructure to application layer."""

from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from grant_pipeline.config import Settings, WorkerConnection, get_settings
from grant_pipeline.application.interfaces.embedding_provider import EmbeddingProvider
from grant_pipeline.application.interfaces.page_fetcher import PageFetcher
from grant_pipeline.application.services import (
    CrawlDispatchService,
    CrawlRunner,
    EmbeddingGenerationService,
    JobLedgerService,
    ParseRecoveryService,
    PipelineOrchestrator,
    PipelineSettingsService,
    PipelineStatsService,
    TriggerAuthorizer,
)
from grant_pipeline.infrastructure.database.session import async_session_factory, get_db_session
from grant_pipeline.infrastructure.database.repositories import (
    PgDocumentEmbeddingRepository,
    SQLAlchemyAttachmentRepository,
    SQLAlchemyCrawlSourceRepository,
    SQLAlchemyPipelineJobRepository,
    SQLAlchemyPipelineSettingRepository,
    SQLAlchemySupportProjectRepository,
)
from grant_pipeline.infrastructure.embeddings import OpenAIEmbeddingProvider
from grant_pipeline.infrastructure.http import HttpPageFetcher, HttpWorkerClient
from grant_pipeline.infrastructure.parsing.pdf_text_parser import PdfTextParser
from grant_pipeline.infrastructure.parsing.text_parser_client import TextParserClient
from grant_pipeline.infrastructure.storage.local_blob_storage import LocalBlobStorage


# ── Builders shared by both apps ─────────────────────────────────────


def build_embedding_provider(settings: Settings) -> EmbeddingProvider | None:
    """None when no API key is configured; items then fail and stay flagged."""
    if not settings.embedding_api_key.strip():
        return None
    return OpenAIEmbeddingProvider(
        api_key=settings.embedding_api_key.strip(),
        base_url=settings.embedding_base_url,
        model=settings.embedding_model,
        model_dimensions=settings.embedding_dimensions,
    )


def build_embedding_service(
    session: AsyncSession,
    ledger: JobLedgerService,
    settings: Settings,
) -> EmbeddingGenerationService:
    return EmbeddingGenerationService(
        project_repo=SQLAlchemySupportProjectRepository(session),
        attachment_repo=SQLAlchemyAttachmentRepository(session),
        embedding_repo=PgDocumentEmbeddingRepository(session),
        provider=build_embedding_provider(settings),
        ledger=ledger,
        commit=session.commit,
        min_chars=settings.embedding_min_chars,
        max_chars=settings.embedding_max_chars,
        claim_lease_seconds=settings.embedding_claim_lease_seconds,
    )


def build_page_fetcher(settings: Settings) -> HttpPageFetcher:
    return HttpPageFetcher(
        user_agent=settings.crawler_user_agent,
        timeout=settings.crawler_timeout,
    )


# ── Serving tier ─────────────────────────────────────────────────────


async def get_job_ledger(
    session: AsyncSession = Depends(get_db_session),
) -> AsyncGenerator[JobLedgerService, None]:
    """Provides a JobLedgerService that commits each job it publishes."""
    yield JobLedgerService(SQLAlchemyPipelineJobRepository(session), commit=session.commit)


def get_worker_client() -> HttpWorkerClient:
    return HttpWorkerClient(WorkerConnection.from_settings(get_settings()))


def get_trigger_authorizer() -> TriggerAuthorizer:
    settings = get_settings()
    return TriggerAuthorizer(
        cron_secret=settings.cron_secret.strip(),
        admin_api_key=settings.admin_api_key.strip(),
    )


async def get_crawl_dispatch_service(
    session: AsyncSession = Depends(get_db_session),
    ledger: JobLedgerService = Depends(get_job_ledger),
    worker: HttpWorkerClient = Depends(get_worker_client),
) -> AsyncGenerator[CrawlDispatchService, None]:
    """Provides a CrawlDispatchService bound to the request session."""
    yield CrawlDispatchService(SQLAlchemyCrawlSourceRepository(session), ledger, worker)


async def get_embedding_service(
    session: AsyncSession = Depends(get_db_session),
    ledger: JobLedgerService = Depends(get_job_ledger),
) -> AsyncGenerator[EmbeddingGenerationService, None]:
    yield build_embedding_service(session, ledger, get_settings())


async def get_parse_recovery_service(
    session: AsyncSession = Depends(get_db_session),
    ledger: JobLedgerService = Depends(get_job_ledger),
) -> AsyncGenerator[ParseRecoveryService, None]:
    """Provides parse recovery with local PDF parsing ahead of the remote parser."""
    settings = get_settings()
    yield ParseRecoveryService(
        ledger=ledger,
        attachment_repo=SQLAlchemyAttachmentRepository(session),
        blob_storage=LocalBlobStorage(root_dir=settings.blob_storage_dir),
        fetcher=build_page_fetcher(settings),
        parsers=[
            PdfTextParser(),
            TextParserClient(base_url=settings.text_parser_url, timeout=settings.text_parser_timeout),
        ],
    )


async def get_pipeline_orchestrator(
    ledger: JobLedgerService = Depends(get_job_ledger),
    embedding_service: EmbeddingGenerationService = Depends(get_embedding_service),
    parse_service: ParseRecoveryService = Depends(get_parse_recovery_service),
    worker: HttpWorkerClient = Depends(get_worker_client),
) -> AsyncGenerator[PipelineOrchestrator, None]:
    yield PipelineOrchestrator(
        ledger=ledger,
        embedding_service=embedding_service,
        worker=worker,
        parse_service=parse_service,
        local_batch_limit=get_settings().local_embed_batch_limit,
    )


async def get_pipeline_stats_service(
    session: AsyncSession = Depends(get_db_session),
) -> AsyncGenerator[PipelineStatsService, None]:
    yield PipelineStatsService(
        job_repo=SQLAlchemyPipelineJobRepository(session),
        source_repo=SQLAlchemyCrawlSourceRepository(session),
        project_repo=SQLAlchemySupportProjectRepository(session),
        attachment_repo=SQLAlchemyAttachmentRepository(session),
        embedding_repo=PgDocumentEmbeddingRepository(session),
    )


async def get_pipeline_settings_service(
    session: AsyncSession = Depends(get_db_session),
) -> AsyncGenerator[PipelineSettingsService, None]:
    yield PipelineSettingsService(SQLAlchemyPipelineSettingRepository(session))


# ── Worker ───────────────────────────────────────────────────────────


def make_crawl_runner_scope(browser_fetcher: PageFetcher | None = None):
    """Factory for ``CrawlJobExecutor``: one session and transaction per use.

    Each background crawl gets its own session so a failure in one job
    never poisons another job's transaction.
    """
    settings = get_settings()

    @asynccontextmanager
    async def runner_scope() -> AsyncIterator[CrawlRunner]:
        async with async_session_factory() as session:
            try:
                yield CrawlRunner(
                    ledger=JobLedgerService(SQLAlchemyPipelineJobRepository(session), commit=session.commit),
                    source_repo=SQLAlchemyCrawlSourceRepository(session),
                    project_repo=SQLAlchemySupportProjectRepository(session),
                    attachment_repo=SQLAlchemyAttachmentRepository(session),
                    fetcher=build_page_fetcher(settings),
                    browser_fetcher=browser_fetcher,
                    fetch_details=settings.crawler_fetch_details,
                    detail_delay=settings.crawler_detail_delay,
                )
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return runner_scope
