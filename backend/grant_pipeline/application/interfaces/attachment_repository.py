"""Abstract repository interface (port) for project attachments."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from grant_pipeline.domain.entities.project_attachment import ParseErrorKind, ProjectAttachment


@dataclass
class AttachmentParseStats:
    """Aggregate parse state of all attachments."""

    total: int = 0
    parsable: int = 0
    parsed: int = 0
    unparsed: int = 0
    with_error: int = 0
    by_file_type: dict[str, int] = field(default_factory=dict)
    by_error_kind: dict[str, int] = field(default_factory=dict)


class AttachmentRepository(ABC):
    """Port for attachment persistence — implemented in the infrastructure layer."""

    @abstractmethod
    async def list_parse_candidates(
        self,
        limit: int,
        error_kind: ParseErrorKind | None = None,
        never_attempted: bool = False,
        attachment_ids: list[str] | None = None,
    ) -> list[ProjectAttachment]:
        """Attachments with ``should_parse`` and not ``is_parsed``, largest first.

        ``error_kind`` restricts to one stored failure category;
        ``never_attempted`` restricts to rows with no recorded error.
        Returned attachments carry their project's detail URL.
        """
        ...

    @abstractmethod
    async def update(self, attachment: ProjectAttachment) -> ProjectAttachment:
        """Persist parse state. Raises ValueError if the row is missing."""
        ...

    @abstractmethod
    async def register(
        self, project_id: str, source_url: str, file_name: str, file_type: str
    ) -> bool:
        """Register an attachment URL for a project. Returns False if already known."""
        ...

    @abstractmethod
    async def parsed_contents(self, project_id: str) -> list[str]:
        """Parsed text of a project's attachments, in insertion order."""
        ...

    @abstractmethod
    async def parse_stats(self) -> AttachmentParseStats:
        ...
