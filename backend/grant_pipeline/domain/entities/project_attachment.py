"""Domain entity for project attachments — downloadable HWP/HWPX/PDF files."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class ParseErrorKind(str, Enum):
    """Structured failure category, recorded where the failure happens."""

    DOWNLOAD_FAILED = "download_failed"
    UPLOAD_FAILED = "upload_failed"
    TIMEOUT = "timeout"
    PARSE_FAILED = "parse_failed"
    HWP_PARSE_ERROR = "hwp_parse_error"
    PDF_PARSE_ERROR = "pdf_parse_error"
    EMPTY_FILE = "empty_file"
    NETWORK_ERROR = "network_error"
    NO_TEXT_EXTRACTED = "no_text_extracted"
    UNKNOWN_FILE_TYPE = "unknown_file_type"
    OTHER = "other"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS: dict[ParseErrorKind, str] = {
    ParseErrorKind.DOWNLOAD_FAILED: "Download Failed",
    ParseErrorKind.UPLOAD_FAILED: "Upload Failed",
    ParseErrorKind.TIMEOUT: "Timeout",
    ParseErrorKind.PARSE_FAILED: "Parse Failed",
    ParseErrorKind.HWP_PARSE_ERROR: "HWP Parse Error",
    ParseErrorKind.PDF_PARSE_ERROR: "PDF Parse Error",
    ParseErrorKind.EMPTY_FILE: "Empty File",
    ParseErrorKind.NETWORK_ERROR: "Network Error",
    ParseErrorKind.NO_TEXT_EXTRACTED: "No Text Extracted",
    ParseErrorKind.UNKNOWN_FILE_TYPE: "Unknown File Type",
    ParseErrorKind.OTHER: "Other",
}


class DocumentType(str, Enum):
    """Attachment formats the parsers understand."""

    PDF = "pdf"
    HWP = "hwp"
    HWPX = "hwpx"
    UNKNOWN = "unknown"

    @classmethod
    def detect(cls, content: bytes) -> "DocumentType":
        """Detect the format from the file's magic bytes."""
        if len(content) < 8:
            return cls.UNKNOWN
        if content.startswith(b"%PDF"):
            return cls.PDF
        if content.startswith(b"\xd0\xcf\x11\xe0"):  # OLE compound document
            return cls.HWP
        if content.startswith(b"PK"):
            return cls.HWPX
        return cls.UNKNOWN


@dataclass
class ProjectAttachment:
    """A file attached to a support project listing.

    Parse state is only changed through the ``mark_*`` methods so that
    ``is_parsed`` implies content without error, and an error implies
    the file is not parsed.
    """

    project_id: str
    file_name: str
    id: str | None = None
    file_type: str = DocumentType.UNKNOWN.value
    file_size: int = 0
    storage_path: str | None = None
    source_url: str | None = None
    should_parse: bool = True
    is_parsed: bool = False
    parsed_content: str | None = None
    parse_error: str | None = None
    parse_error_kind: ParseErrorKind | None = None
    project_detail_url: str | None = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def mark_parsed(self, content: str) -> None:
        self.is_parsed = True
        self.parsed_content = content
        self.parse_error = None
        self.parse_error_kind = None
        self.updated_at = datetime.now(timezone.utc)

    def mark_parse_failed(self, kind: ParseErrorKind, message: str) -> None:
        """Record a retryable failure; the attachment stays eligible."""
        self.is_parsed = False
        self.parsed_content = None
        self.parse_error = message
        self.parse_error_kind = kind
        self.updated_at = datetime.now(timezone.utc)

    def mark_skipped(self, kind: ParseErrorKind, message: str) -> None:
        """Record a permanent condition and stop retrying this attachment."""
        self.mark_parse_failed(kind, message)
        self.should_parse = False
