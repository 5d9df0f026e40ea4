"""Abstract interface (port) for attachment text extraction."""

from abc import ABC, abstractmethod

from grant_pipeline.domain.entities.project_attachment import DocumentType


class DocumentParser(ABC):
    """Port for turning attachment bytes into plain text."""

    @abstractmethod
    def supports(self, document_type: DocumentType) -> bool:
        ...

    @abstractmethod
    async def extract_text(
        self, content: bytes, file_name: str, document_type: DocumentType
    ) -> str:
        """Extract plain text.

        Raises:
            DocumentParseError: with the failure category set.
        """
        ...
