"""Domain-specific exceptions — framework-independent."""

from grant_pipeline.domain.entities.project_attachment import ParseErrorKind


class EntityNotFoundError(Exception):
    """Raised when a requested entity does not exist."""

    def __init__(self, entity_type: str, entity_id: int | str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} with id '{entity_id}' not found")


class InactiveSourceError(Exception):
    """Raised when a crawl is requested for a deactivated source."""

    def __init__(self, source_id: str):
        self.source_id = source_id
        super().__init__(f"Crawl source '{source_id}' is inactive")


class InvalidJobTransitionError(Exception):
    """Raised when a pipeline job is moved backwards or out of a terminal state."""

    def __init__(self, job_id: str | None, current: str, requested: str):
        self.job_id = job_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Pipeline job '{job_id}' cannot move from {current} to {requested}"
        )


class WorkerUnavailableError(Exception):
    """Raised when the out-of-process worker is unconfigured or unreachable."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class CrawlSourceUnreachableError(Exception):
    """Raised when a crawl source's listing page cannot be fetched at all."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to crawl {url}: {reason}")


class DocumentFetchError(Exception):
    """Raised when an attachment cannot be downloaded from storage or its origin."""

    def __init__(self, message: str, kind: ParseErrorKind = ParseErrorKind.DOWNLOAD_FAILED):
        self.kind = kind
        super().__init__(message)


class DocumentParseError(Exception):
    """Raised by document parsers; carries the failure category."""

    def __init__(self, message: str, kind: ParseErrorKind = ParseErrorKind.PARSE_FAILED):
        self.kind = kind
        super().__init__(message)


class EmbeddingProviderError(Exception):
    """Raised when the embedding provider returns an error or no vector."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class UnauthorizedTriggerError(Exception):
    """Raised when a trigger request carries no valid shared secret."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)
