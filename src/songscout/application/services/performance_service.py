"""Weekly performance snapshots and the contact funnel that depends on them."""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from songscout.application.services.scoring_service import ScoringService
from songscout.domain.entities import ActivityEvent, PerformanceSnapshot
from songscout.domain.ports import ISnapshotCapturer
from songscout.domain.value_objects.weeks import current_week_start
from songscout.infrastructure.persistence import (
    ActivityLogRepository,
    SessionScope,
    SnapshotRepository,
    TrackRepository,
)

logger = logging.getLogger(__name__)


def week_over_week_pct(current: int, previous: int | None) -> int:
    """Rounded growth in percent; 0 when there is no (or a zero) previous value."""
    if not previous:
        return 0
    return round((current - previous) / previous * 100)


class PerformanceService(ISnapshotCapturer):
    """Captures one snapshot per (week, track) and refreshes contact aggregates.

    Hey future me - capture_snapshot() is idempotent within a week: re-running it on
    Wednesday simply overwrites Monday's rows for the same week_start. The previous value
    for week-over-week is the snapshot of the week BEFORE, not "the latest snapshot", so a
    second run in the same week never compares a week with itself.
    """

    def __init__(self, session_scope: SessionScope, scoring_service: ScoringService) -> None:
        self.session_scope = session_scope
        self.scoring_service = scoring_service

    async def capture_snapshot(self) -> dict[str, Any]:
        """Snapshot all tracks with streaming metrics, then rebuild contacts.

        Returns:
            Summary with week_start, captured, skipped and the contact pass counters
        """
        now = datetime.now(UTC)
        week = current_week_start(now)
        previous_week = week - timedelta(days=7)

        async with self.session_scope() as session:
            track_repo = TrackRepository(session)
            ids = await track_repo.get_track_ids_with_streaming_metrics()
            tracks = await track_repo.get_by_ids(ids)

        captured = 0
        skipped = 0
        snapshot_wow: dict[str, float] = {}

        async with self.session_scope() as session:
            repo = SnapshotRepository(session)
            for track in tracks:
                if track.spotify_streams is None:
                    skipped += 1
                    continue
                previous = await repo.get_streams(track.id, previous_week)
                wow = week_over_week_pct(track.spotify_streams, previous)
                await repo.upsert(
                    PerformanceSnapshot(
                        track_id=track.id,
                        week_start=week,
                        streams=track.spotify_streams,
                        wow_pct=wow,
                        captured_at=now,
                        details={
                            "youtube_views": track.youtube_views,
                            "streaming_velocity": track.streaming_velocity,
                            "previous_streams": previous,
                        },
                    )
                )
                if previous:
                    snapshot_wow[track.id] = wow
                captured += 1

        contacts = await self.scoring_service.refresh_contacts(snapshot_wow)

        summary: dict[str, Any] = {
            "week_start": week.isoformat(),
            "captured": captured,
            "skipped": skipped,
            **contacts,
        }
        async with self.session_scope() as session:
            await ActivityLogRepository(session).log_activity(
                ActivityEvent(
                    event_type="performance_snapshot",
                    message=f"Captured {captured} performance snapshots for week {week}",
                    details=summary,
                )
            )
        logger.info(
            f"Performance snapshot {week}: {captured} captured, {skipped} skipped, "
            f"{contacts.get('hot_leads', 0)} hot leads"
        )
        return summary
