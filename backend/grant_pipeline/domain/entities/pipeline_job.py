"""Domain entity for pipeline jobs — the single job ledger for crawl, parse and embed runs."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class JobType(str, Enum):
    """Pipeline step a job executes."""

    CRAWL = "crawl"
    PARSE = "parse"
    EMBED = "embed"


class JobStatus(str, Enum):
    """Lifecycle states of a pipeline job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class TriggerSource(str, Enum):
    """Well-known values for ``PipelineJob.triggered_by``.

    The column is free text so source-specific triggers can be recorded too.
    """

    MANUAL = "manual"
    CRON = "cron"
    API = "api"
    WORKER = "worker"


# Allowed forward transitions. Terminal states have no outgoing edges.
_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.RUNNING, JobStatus.FAILED}),
    JobStatus.RUNNING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


@dataclass
class PipelineJob:
    """One execution attempt of a pipeline step.

    Crawl jobs carry their source in ``source_id`` and their crawl counters
    (``projects_found``, ``projects_new``, ``projects_updated``) in ``result``.
    Status only moves forward: pending → running → completed | failed.
    """

    type: JobType
    id: str | None = None
    status: JobStatus = JobStatus.PENDING
    target_count: int = 0
    success_count: int = 0
    fail_count: int = 0
    params: dict[str, Any] = field(default_factory=dict)
    result: dict[str, Any] | None = None
    error: str | None = None
    triggered_by: str = TriggerSource.MANUAL.value
    source_id: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def can_transition(self, target: JobStatus) -> bool:
        return target in _TRANSITIONS[self.status]

    def _transition(self, target: JobStatus) -> None:
        # Imported lazily: exceptions module depends on entity enums.
        from grant_pipeline.domain.exceptions import InvalidJobTransitionError

        if not self.can_transition(target):
            raise InvalidJobTransitionError(self.id, self.status.value, target.value)
        self.status = target

    def mark_running(self) -> None:
        """Transition to running and stamp the start time."""
        self._transition(JobStatus.RUNNING)
        self.started_at = datetime.now(timezone.utc)

    def mark_completed(
        self,
        success_count: int | None = None,
        fail_count: int | None = None,
        result: dict[str, Any] | None = None,
    ) -> None:
        """Transition to completed, recording the final counters."""
        self._transition(JobStatus.COMPLETED)
        if success_count is not None:
            self.success_count = success_count
        if fail_count is not None:
            self.fail_count = fail_count
        if result is not None:
            self.result = result
        self.completed_at = datetime.now(timezone.utc)

    def mark_failed(self, error: str) -> None:
        """Transition to failed with a terminal error message."""
        self._transition(JobStatus.FAILED)
        self.error = error
        self.completed_at = datetime.now(timezone.utc)

    @property
    def duration_seconds(self) -> int | None:
        """Elapsed seconds between start and completion, when both are known."""
        if self.started_at is None or self.completed_at is None:
            return None
        return round((self.completed_at - self.started_at).total_seconds())

    def running_minutes(self, now: datetime | None = None) -> float | None:
        """Minutes since the job started, or None if it never started."""
        if self.started_at is None:
            return None
        now = now or datetime.now(timezone.utc)
        return (now - self.started_at).total_seconds() / 60
