from .pipeline_models import CrawlSourceModel, PipelineJobModel, PipelineSettingModel
from .project_models import SupportProjectModel, ProjectAttachmentModel
from .embedding_models import DocumentEmbeddingModel

__all__ = [
    "CrawlSourceModel",
    "PipelineJobModel",
    "PipelineSettingModel",
    "SupportProjectModel",
    "ProjectAttachmentModel",
    "DocumentEmbeddingModel",
]
