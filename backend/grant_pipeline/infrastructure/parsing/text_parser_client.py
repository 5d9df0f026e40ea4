"""Client for the remote text-parser API (HWP/HWPX, and PDF as a fallback).

Files are uploaded as multipart form data to
``/api/v1/extract/hwp-to-text``. The service answers with the text in one
of several shapes: ``text``, ``content`` as a string, ``content.text`` or
``content.paragraphs[].text``.
"""

import logging
from typing import Any

import httpx

from grant_pipeline.application.interfaces.document_parser import DocumentParser
from grant_pipeline.domain.entities.project_attachment import DocumentType, ParseErrorKind
from grant_pipeline.domain.exceptions import DocumentParseError

logger = logging.getLogger(__name__)

EXTRACT_TEXT_PATH = "/api/v1/extract/hwp-to-text"

_MIME_TYPES = {
    DocumentType.PDF: "application/pdf",
    DocumentType.HWP: "application/x-hwp",
    DocumentType.HWPX: "application/vnd.hancom.hwpx",
}


def extract_text_from_response(data: Any) -> str:
    if isinstance(data, str):
        return data
    if not isinstance(data, dict):
        return ""
    if data.get("text"):
        return data["text"]

    content = data.get("content")
    if isinstance(content, str):
        return content
    if isinstance(content, dict):
        if content.get("text"):
            return content["text"]
        paragraphs = content.get("paragraphs") or []
        return "\n\n".join(
            p["text"] for p in paragraphs if isinstance(p, dict) and (p.get("text") or "").strip()
        )
    return ""


class TextParserClient(DocumentParser):
    """Infrastructure adapter for the hosted HWP text extractor."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._http_client = http_client

    def supports(self, document_type: DocumentType) -> bool:
        return bool(self._base_url) and document_type in _MIME_TYPES

    async def extract_text(
        self, content: bytes, file_name: str, document_type: DocumentType
    ) -> str:
        error_kind = (
            ParseErrorKind.PDF_PARSE_ERROR
            if document_type is DocumentType.PDF
            else ParseErrorKind.HWP_PARSE_ERROR
        )
        upload_name = f"document.{document_type.value}"
        files = {"file": (upload_name, content, _MIME_TYPES[document_type])}
        url = f"{self._base_url}{EXTRACT_TEXT_PATH}"

        client = self._http_client or httpx.AsyncClient(timeout=self._timeout)
        should_close = self._http_client is None
        try:
            logger.info("Parsing %s file %s at %s", document_type.value.upper(), file_name, url)
            response = await client.post(url, files=files, timeout=self._timeout)
        except httpx.TimeoutException as exc:
            raise DocumentParseError(f"Parser timed out: {exc}", kind=ParseErrorKind.TIMEOUT) from exc
        except httpx.HTTPError as exc:
            raise DocumentParseError(
                f"Upload to parser failed: {exc}", kind=ParseErrorKind.UPLOAD_FAILED
            ) from exc
        finally:
            if should_close:
                await client.aclose()

        if response.status_code >= 400:
            logger.error(
                "%s parser error %d: %s",
                document_type.value.upper(), response.status_code, response.text[:500],
            )
            raise DocumentParseError(
                f"Parser failed: {response.status_code} {response.reason_phrase}", kind=error_kind
            )

        try:
            data = response.json()
        except ValueError:
            data = response.text

        if isinstance(data, dict) and (
            data.get("success") is False
            or data.get("status") == "error"
            or data.get("error")
            or data.get("detail")
        ):
            message = data.get("error") or data.get("detail") or data.get("message") or "Unknown parser error"
            raise DocumentParseError(f"Parser error: {message}", kind=error_kind)

        text = extract_text_from_response(data)
        logger.info("Extracted %d characters from %s", len(text), file_name)
        return text
