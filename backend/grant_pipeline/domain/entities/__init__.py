from .pipeline_job import PipelineJob, JobType, JobStatus, TriggerSource
from .crawl_source import CrawlSource, CrawlSourceType
from .support_project import SupportProject, CrawledProject
from .project_attachment import ProjectAttachment, ParseErrorKind, DocumentType
from .document_embedding import DocumentEmbedding, SUPPORT_PROJECT_SOURCE
from .pipeline_setting import PipelineSetting, default_pipeline_settings

__all__ = [
    "PipelineJob",
    "JobType",
    "JobStatus",
    "TriggerSource",
    "CrawlSource",
    "CrawlSourceType",
    "SupportProject",
    "CrawledProject",
    "ProjectAttachment",
    "ParseErrorKind",
    "DocumentType",
    "DocumentEmbedding",
    "SUPPORT_PROJECT_SOURCE",
    "PipelineSetting",
    "default_pipeline_settings",
]
