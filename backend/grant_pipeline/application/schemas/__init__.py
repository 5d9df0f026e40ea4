from .base import CamelModel
from .pipeline import (
    PipelineJobResponse,
    PipelineJobListResponse,
    EmbedRequest,
    EmbedResponse,
    ParseRequest,
    ParseResponse,
    PipelineStatsResponse,
    PipelineSettingResponse,
    PipelineSettingsResponse,
    PipelineSettingUpdateRequest,
    PipelineSettingUpdateResponse,
)
from .crawler import (
    CreateCrawlSourceRequest,
    UpdateCrawlSourceRequest,
    CrawlSourceResponse,
    CrawlSourceListResponse,
    StartCrawlRequest,
    StartCrawlResponse,
    CrawlJobResponse,
    CrawlJobListResponse,
    CancelJobsResponse,
    CrawlJobsActionRequest,
    CleanupResponse,
    LiveStatusResponse,
)
from .cron import CrawlAllResponse
from .worker import (
    CrawlJobRequest,
    CrawlBatchRequest,
    CrawlAcceptedResponse,
    CrawlBatchAcceptedResponse,
    GenerateEmbeddingsRequest,
    GenerateEmbeddingsResponse,
    EmbeddingStatsResponse,
    WorkerHealthResponse,
)

__all__ = [
    "CamelModel",
    "PipelineJobResponse",
    "PipelineJobListResponse",
    "EmbedRequest",
    "EmbedResponse",
    "ParseRequest",
    "ParseResponse",
    "PipelineStatsResponse",
    "PipelineSettingResponse",
    "PipelineSettingsResponse",
    "PipelineSettingUpdateRequest",
    "PipelineSettingUpdateResponse",
    "CreateCrawlSourceRequest",
    "UpdateCrawlSourceRequest",
    "CrawlSourceResponse",
    "CrawlSourceListResponse",
    "StartCrawlRequest",
    "StartCrawlResponse",
    "CrawlJobResponse",
    "CrawlJobListResponse",
    "CancelJobsResponse",
    "CrawlJobsActionRequest",
    "CleanupResponse",
    "LiveStatusResponse",
    "CrawlAllResponse",
    "CrawlJobRequest",
    "CrawlBatchRequest",
    "CrawlAcceptedResponse",
    "CrawlBatchAcceptedResponse",
    "GenerateEmbeddingsRequest",
    "GenerateEmbeddingsResponse",
    "EmbeddingStatsResponse",
    "WorkerHealthResponse",
]
