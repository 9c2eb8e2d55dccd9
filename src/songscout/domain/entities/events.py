"""Progress and activity events emitted by the pipeline."""

from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class ProgressEventType(str, Enum):
    """Kinds of progress events published by the job queue."""

    JOB_STARTED = "job_started"
    PHASE_COMPLETED = "phase_completed"
    TRACK_ENRICHED = "track_enriched"
    JOB_COMPLETED = "job_completed"
    JOB_FAILED = "job_failed"


@dataclass(frozen=True)
class ProgressEvent:
    """Typed progress event, fanned out to subscribers (SSE, logs, ...)."""

    type: ProgressEventType
    job_id: str
    phase: str | None = None
    track_id: str | None = None
    tracks_processed: int = 0
    tracks_enriched: int = 0
    errors: int = 0
    total_tracks: int = 0
    message: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly representation."""
        data = asdict(self)
        data["type"] = self.type.value
        data["timestamp"] = self.timestamp.isoformat()
        return data


@dataclass
class ActivityEvent:
    """Audit log entry written for operator-visible pipeline actions."""

    event_type: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
