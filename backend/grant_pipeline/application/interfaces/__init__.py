from .pipeline_job_repository import PipelineJobRepository
from .crawl_source_repository import CrawlSourceRepository
from .support_project_repository import SupportProjectRepository
from .attachment_repository import AttachmentRepository, AttachmentParseStats
from .document_embedding_repository import DocumentEmbeddingRepository
from .pipeline_setting_repository import PipelineSettingRepository
from .embedding_provider import EmbeddingProvider
from .document_parser import DocumentParser
from .blob_storage import BlobStorage
from .page_fetcher import PageFetcher
from .worker_client import WorkerClient, RemoteEmbeddingSummary
from .unit_of_work import Commit, no_commit

__all__ = [
    "PipelineJobRepository",
    "CrawlSourceRepository",
    "SupportProjectRepository",
    "AttachmentRepository",
    "AttachmentParseStats",
    "DocumentEmbeddingRepository",
    "PipelineSettingRepository",
    "EmbeddingProvider",
    "DocumentParser",
    "BlobStorage",
    "PageFetcher",
    "WorkerClient",
    "RemoteEmbeddingSummary",
    "Commit",
    "no_commit",
]
