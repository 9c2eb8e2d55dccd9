"""Enrichment job entity and its state machine."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from songscout.domain.entities.phase import EnrichmentPhase
from songscout.domain.exceptions import InvalidStateException


class JobStatus(str, Enum):
    """Lifecycle status of an enrichment job."""

    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class JobRequest:
    """What a caller asks the queue to do.

    target_phase=None means "run every phase in order".
    """

    track_ids: tuple[str, ...]
    target_phase: EnrichmentPhase | None = None
    capture_snapshot: bool = False
    source: str = "manual"  # "scheduler", "retry", "snapshot", "manual", "api"


# Hey future me - Job is one enrichment request and its audit trail! track_ids is a TUPLE
# on purpose: the set of tracks is fixed the moment the job is queued. The state machine is
# strictly queued → running → completed|failed; terminal jobs are never touched again (the
# methods below raise InvalidStateException if you try). Counters are bumped by the queue
# worker while the job runs.
@dataclass
class Job:
    """Enrichment job entity."""

    id: str
    track_ids: tuple[str, ...]
    target_phase: EnrichmentPhase | None = None
    capture_snapshot: bool = False
    source: str = "manual"
    status: JobStatus = JobStatus.QUEUED
    current_phase: EnrichmentPhase | None = None
    tracks_processed: int = 0
    tracks_enriched: int = 0
    errors: int = 0
    error_message: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def phases(self) -> list[EnrichmentPhase]:
        """Phases this job runs, in execution order."""
        if self.target_phase is not None:
            return [self.target_phase]
        return sorted(EnrichmentPhase)

    def is_finished(self) -> bool:
        """Check if the job reached a terminal state."""
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)

    def start(self) -> None:
        """Mark job as running."""
        if self.status != JobStatus.QUEUED:
            raise InvalidStateException(f"Cannot start job {self.id} in status {self.status.value}")
        self.status = JobStatus.RUNNING
        self.started_at = datetime.now(UTC)

    def complete(self) -> None:
        """Mark job as completed."""
        if self.status != JobStatus.RUNNING:
            raise InvalidStateException(
                f"Cannot complete job {self.id} in status {self.status.value}"
            )
        self.status = JobStatus.COMPLETED
        self.current_phase = None
        self.completed_at = datetime.now(UTC)

    def fail(self, error_message: str) -> None:
        """Mark job as failed."""
        if self.is_finished():
            raise InvalidStateException(f"Cannot fail job {self.id} in status {self.status.value}")
        self.status = JobStatus.FAILED
        self.error_message = error_message
        self.completed_at = datetime.now(UTC)

    def requeue(self) -> None:
        """Put a job orphaned by a crashed process back into the queue."""
        if self.status != JobStatus.RUNNING:
            raise InvalidStateException(
                f"Cannot requeue job {self.id} in status {self.status.value}"
            )
        self.status = JobStatus.QUEUED
        self.started_at = None
        self.current_phase = None
