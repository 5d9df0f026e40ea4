"""Abstract repository interface (port) for support projects and their embedding claims."""

from abc import ABC, abstractmethod

from grant_pipeline.domain.entities.support_project import CrawledProject, SupportProject


class SupportProjectRepository(ABC):
    """Port for support project persistence — implemented in the infrastructure layer."""

    @abstractmethod
    async def get_by_id(self, project_id: str) -> SupportProject | None:
        ...

    @abstractmethod
    async def find_for_crawled(self, crawled: CrawledProject) -> SupportProject | None:
        """Find the live project matching a crawled listing's dedupe key."""
        ...

    @abstractmethod
    async def create(self, project: SupportProject) -> SupportProject:
        ...

    @abstractmethod
    async def update(self, project: SupportProject) -> SupportProject:
        """Update an existing project. Raises ValueError if the row is missing."""
        ...

    # ── Embedding claims ─────────────────────────────────────────────

    @abstractmethod
    async def count_needing_embedding(
        self, project_ids: list[str] | None = None, force: bool = False
    ) -> int:
        """Live projects an embedding run would pick up.

        Flagged projects, or with ``force`` every live project in ``project_ids``.
        """
        ...

    @abstractmethod
    async def count_live(self) -> int:
        """Projects that are not soft-deleted."""
        ...

    @abstractmethod
    async def count_without_attachments(self) -> tuple[int, int]:
        """Return ``(without_attachments, recrawlable)`` for live projects.

        Recrawlable projects have no attachments but do have a detail URL.
        """
        ...

    @abstractmethod
    async def claim_for_embedding(
        self,
        limit: int,
        token: str,
        lease_seconds: int,
        project_ids: list[str] | None = None,
        force: bool = False,
    ) -> list[SupportProject]:
        """Atomically claim up to ``limit`` projects for an embedding run.

        Eligible rows are live, flagged (unless ``force`` is combined with
        explicit ``project_ids``), restricted to ``project_ids`` when given,
        and either unclaimed or holding a claim older than ``lease_seconds``.
        Newest projects are claimed first. Claimed rows carry ``token``
        until completed or released.
        """
        ...

    @abstractmethod
    async def complete_embedding(self, project_id: str, token: str) -> bool:
        """Clear the flag and the claim if ``token`` still holds it."""
        ...

    @abstractmethod
    async def release_claim(self, project_id: str, token: str) -> None:
        """Drop the claim held by ``token``, leaving the flag set."""
        ...
