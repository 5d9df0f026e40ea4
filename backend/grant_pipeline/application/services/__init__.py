from .job_ledger_service import JobLedgerService, StuckJobSweep
from .crawl_dispatch_service import CrawlDispatchService, CrawlDispatch
from .crawl_runner import CrawlRunner, CrawlJobExecutor
from .background_tasks import BackgroundTaskRunner
from .parse_recovery_service import ParseRecoveryService, ParseRecoveryResult
from .embedding_generation_service import (
    EmbeddingGenerationService,
    EmbeddingBatchResult,
    EmbeddingStats,
)
from .pipeline_orchestrator import PipelineOrchestrator, EmbedDispatchResult
from .pipeline_settings_service import PipelineSettingsService
from .pipeline_stats_service import PipelineStatsService
from .trigger_auth import TriggerAuthorizer

__all__ = [
    "JobLedgerService",
    "StuckJobSweep",
    "CrawlDispatchService",
    "CrawlDispatch",
    "CrawlRunner",
    "CrawlJobExecutor",
    "BackgroundTaskRunner",
    "ParseRecoveryService",
    "ParseRecoveryResult",
    "EmbeddingGenerationService",
    "EmbeddingBatchResult",
    "EmbeddingStats",
    "PipelineOrchestrator",
    "EmbedDispatchResult",
    "PipelineSettingsService",
    "PipelineStatsService",
    "TriggerAuthorizer",
]
