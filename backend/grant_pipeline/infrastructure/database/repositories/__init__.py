from .pipeline_job_repository import SQLAlchemyPipelineJobRepository
from .crawl_source_repository import SQLAlchemyCrawlSourceRepository
from .support_project_repository import SQLAlchemySupportProjectRepository
from .attachment_repository import SQLAlchemyAttachmentRepository
from .document_embedding_repository import PgDocumentEmbeddingRepository
from .pipeline_setting_repository import SQLAlchemyPipelineSettingRepository

__all__ = [
    "SQLAlchemyPipelineJobRepository",
    "SQLAlchemyCrawlSourceRepository",
    "SQLAlchemySupportProjectRepository",
    "SQLAlchemyAttachmentRepository",
    "PgDocumentEmbeddingRepository",
    "SQLAlchemyPipelineSettingRepository",
]
