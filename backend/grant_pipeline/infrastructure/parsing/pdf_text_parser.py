"""Local PDF text extraction with PyMuPDF."""

import logging

import fitz  # PyMuPDF

from grant_pipeline.application.interfaces.document_parser import DocumentParser
from grant_pipeline.domain.entities.project_attachment import DocumentType, ParseErrorKind
from grant_pipeline.domain.exceptions import DocumentParseError

logger = logging.getLogger(__name__)


class PdfTextParser(DocumentParser):
    """Extracts the text layer of a PDF; scanned pages contribute nothing."""

    def supports(self, document_type: DocumentType) -> bool:
        return document_type is DocumentType.PDF

    async def extract_text(
        self, content: bytes, file_name: str, document_type: DocumentType
    ) -> str:
        try:
            doc = fitz.open(stream=content, filetype="pdf")
        except Exception as exc:
            raise DocumentParseError(
                f"PDF could not be opened: {exc}", kind=ParseErrorKind.PDF_PARSE_ERROR
            ) from exc

        pages: list[str] = []
        try:
            for page_num, page in enumerate(doc):
                text = page.get_text("text")
                if text.strip():
                    pages.append(text)
                else:
                    logger.debug("Page %d of %s has no text layer", page_num + 1, file_name)
        except Exception as exc:
            raise DocumentParseError(
                f"PDF text extraction failed: {exc}", kind=ParseErrorKind.PDF_PARSE_ERROR
            ) from exc
        finally:
            doc.close()

        if not pages:
            logger.warning("PDF has no extractable text (may be scanned): %s", file_name)
        return "\n\n".join(pages)
