"""Shared machinery for the enrichment phase executors.

Hey future me - every phase follows the same contract:
  1. load the requested tracks, keep the ones this phase is responsible for (select())
  2. enrich each track, bounded by a semaphore (concurrency per source)
  3. map the outcome (or the exception) to a per-track status and persist it
A single track's failure NEVER aborts the batch. Exceptions are translated like this:
  NoDataFoundError           -> no_data
  SourceUnavailableError     -> failed
  MalformedResponseError     -> failed  (logged loudly, the API probably changed)
  AuthExpiredError           -> failed  + the phase stops calling the source for this job
  ConfigurationMissingError  -> track left untouched, phase skipped
  anything else              -> failed  (a parser choked on a shape we never saw)
Only storage errors (SQLAlchemyError) propagate and fail the JOB, not just the track.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, ClassVar

from sqlalchemy.exc import SQLAlchemyError

from songscout.domain.entities import EnrichmentPhase, EnrichmentStatus, Track
from songscout.domain.exceptions import (
    AuthExpiredError,
    ConfigurationMissingError,
    MalformedResponseError,
    NoDataFoundError,
    SourceUnavailableError,
)
from songscout.infrastructure.persistence import SessionScope, TrackRepository

logger = logging.getLogger(__name__)

# Called after each track: (track_id, status)
TrackCallback = Callable[[str, EnrichmentStatus], None]


@dataclass
class PhaseResult:
    """Outcome of one phase over one batch of tracks."""

    phase: EnrichmentPhase
    requested: int = 0
    processed: int = 0
    succeeded: int = 0
    no_data: int = 0
    failed: int = 0
    skipped: int = 0
    auth_expired: bool = False
    skipped_reason: str | None = None
    errors: list[str] = field(default_factory=list)

    def record(self, status: EnrichmentStatus) -> None:
        """Count a terminal per-track status."""
        self.processed += 1
        if status is EnrichmentStatus.SUCCESS:
            self.succeeded += 1
        elif status is EnrichmentStatus.NO_DATA:
            self.no_data += 1
        elif status is EnrichmentStatus.FAILED:
            self.failed += 1

    def to_dict(self) -> dict[str, Any]:
        """Summary for logs and the activity log."""
        return {
            "phase": self.phase.label,
            "requested": self.requested,
            "processed": self.processed,
            "succeeded": self.succeeded,
            "no_data": self.no_data,
            "failed": self.failed,
            "skipped": self.skipped,
            "auth_expired": self.auth_expired,
            "skipped_reason": self.skipped_reason,
        }


class PhaseExecutor(ABC):
    """Base class for one enrichment phase."""

    phase: ClassVar[EnrichmentPhase]

    def __init__(self, session_scope: SessionScope, concurrency: int = 3) -> None:
        self.session_scope = session_scope
        self.concurrency = max(1, concurrency)
        # Tracks currently being enriched by THIS phase (across all jobs). Two overlapping
        # jobs never run the same phase on the same track at the same time.
        self._in_flight: set[str] = set()

    def is_available(self) -> str | None:
        """Return a reason string when the phase cannot run at all (e.g. no credentials)."""
        return None

    @abstractmethod
    def select(self, track: Track, force: bool) -> bool:
        """Whether this phase should touch the track.

        Args:
            track: Candidate track
            force: Re-run even if a previous pass already succeeded
        """

    @abstractmethod
    async def enrich_track(self, track: Track) -> tuple[EnrichmentStatus, dict[str, Any]]:
        """Enrich one track.

        Returns:
            Terminal status and the fields to persist (status field excluded)

        Raises:
            Any exception of the source taxonomy; the base maps it to a status
        """

    async def _load_tracks(self, track_ids: list[str]) -> list[Track]:
        async with self.session_scope() as session:
            return await TrackRepository(session).get_by_ids(track_ids)

    async def _persist(
        self, track_id: str, status: EnrichmentStatus, fields: dict[str, Any]
    ) -> None:
        fields = {**fields, self.phase.status_field: status}
        if status is EnrichmentStatus.SUCCESS:
            fields.setdefault("enriched_at", datetime.now(UTC))
        async with self.session_scope() as session:
            await self.write_fields(TrackRepository(session), track_id, fields)

    async def write_fields(
        self, repo: TrackRepository, track_id: str, fields: dict[str, Any]
    ) -> None:
        """Persist phase output (analytics writes through its own repository call)."""
        await repo.update_track_metadata(track_id, fields)

    async def execute(
        self,
        track_ids: list[str],
        force: bool = False,
        on_track: TrackCallback | None = None,
    ) -> PhaseResult:
        """Run the phase over a batch of tracks.

        Args:
            track_ids: Tracks to consider
            force: Ignore "already succeeded" filters
            on_track: Progress callback after each persisted track

        Returns:
            Per-status counters for the batch
        """
        result = PhaseResult(phase=self.phase, requested=len(track_ids))

        reason = self.is_available()
        if reason:
            result.skipped = len(track_ids)
            result.skipped_reason = reason
            logger.info(f"Phase {self.phase.label} skipped: {reason}")
            return result

        tracks = [t for t in await self._load_tracks(track_ids) if self.select(t, force)]
        tracks = [t for t in tracks if t.id not in self._in_flight]
        result.skipped = len(track_ids) - len(tracks)
        if not tracks:
            return result

        claimed = {t.id for t in tracks}
        self._in_flight |= claimed
        try:
            await self.process(tracks, result, on_track)
        finally:
            self._in_flight -= claimed

        logger.info(
            f"Phase {self.phase.label}: {result.succeeded} ok, {result.no_data} no data, "
            f"{result.failed} failed, {result.skipped} skipped of {result.requested}"
        )
        return result

    async def process(
        self, tracks: list[Track], result: PhaseResult, on_track: TrackCallback | None
    ) -> None:
        """Enrich tracks concurrently (override for batch-oriented sources)."""
        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(track: Track) -> None:
            async with semaphore:
                await self.run_track(track, result, on_track)

        await asyncio.gather(*(run(track) for track in tracks))

    async def run_track(
        self, track: Track, result: PhaseResult, on_track: TrackCallback | None
    ) -> None:
        """Enrich, map exceptions to a status, persist, report."""
        if result.auth_expired or result.skipped_reason:
            result.skipped += 1
            return

        try:
            status, fields = await self.enrich_track(track)
        except NoDataFoundError:
            status, fields = EnrichmentStatus.NO_DATA, {}
        except AuthExpiredError as e:
            result.auth_expired = True
            result.errors.append(f"{track.id}: {e.message.splitlines()[0]}")
            logger.error(
                f"Phase {self.phase.label}: auth expired on track {track.id}, "
                f"halting this source for the rest of the job"
            )
            status, fields = EnrichmentStatus.FAILED, {}
        except ConfigurationMissingError as e:
            result.skipped += 1
            result.skipped_reason = e.message
            logger.warning(f"Phase {self.phase.label}: {e.message}")
            return
        except MalformedResponseError as e:
            logger.error(f"Phase {self.phase.label}: malformed response for {track.id}: {e}")
            result.errors.append(f"{track.id}: {e.message}")
            status, fields = EnrichmentStatus.FAILED, {}
        except SourceUnavailableError as e:
            logger.warning(f"Phase {self.phase.label}: {track.id} failed: {e}")
            result.errors.append(f"{track.id}: {e.message}")
            status, fields = EnrichmentStatus.FAILED, {}
        except SQLAlchemyError:
            raise
        except Exception as e:
            logger.exception(f"Phase {self.phase.label}: unexpected error on {track.id}: {e}")
            result.errors.append(f"{track.id}: {type(e).__name__}: {e}")
            status, fields = EnrichmentStatus.FAILED, {}

        await self._persist(track.id, status, fields)
        result.record(status)
        if on_track is not None:
            on_track(track.id, status)
