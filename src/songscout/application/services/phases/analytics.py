"""Phase 4: streaming analytics (streams, velocity, week-over-week growth)."""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from songscout.application.services.phases.base import PhaseExecutor
from songscout.domain.entities import EnrichmentPhase, EnrichmentStatus, Track
from songscout.domain.ports import IAnalyticsClient
from songscout.domain.value_objects.scoring import classify_track_stage
from songscout.infrastructure.persistence import SessionScope, TrackRepository

logger = logging.getLogger(__name__)


class AnalyticsPhase(PhaseExecutor):
    """Fills streaming metrics for tracks with an ISRC.

    A track is due when it never had a successful pass, or its last one is older than
    staleness_days (7 by default).
    """

    phase = EnrichmentPhase.ANALYTICS

    def __init__(
        self,
        session_scope: SessionScope,
        analytics_client: IAnalyticsClient,
        staleness_days: int = 7,
        concurrency: int = 3,
    ) -> None:
        super().__init__(session_scope, concurrency)
        self.analytics_client = analytics_client
        self.staleness_days = staleness_days

    def is_available(self) -> str | None:
        if not self.analytics_client.is_configured():
            return "analytics API key not configured"
        return None

    async def write_fields(
        self, repo: TrackRepository, track_id: str, fields: dict[str, Any]
    ) -> None:
        await repo.update_track_chartmetric(track_id, fields)

    def is_stale(self, track: Track, now: datetime | None = None) -> bool:
        """Whether the last successful analytics pass is older than the threshold."""
        if track.chartmetric_enriched_at is None:
            return True
        now = now or datetime.now(UTC)
        return now - track.chartmetric_enriched_at > timedelta(days=self.staleness_days)

    def select(self, track: Track, force: bool) -> bool:
        if not track.isrc:
            return False
        if force or track.chartmetric_status is not EnrichmentStatus.SUCCESS:
            return True
        return self.is_stale(track)

    async def enrich_track(self, track: Track) -> tuple[EnrichmentStatus, dict[str, Any]]:
        analytics = await self.analytics_client.get_track_analytics(track.isrc or "")
        if analytics is None:
            return EnrichmentStatus.NO_DATA, {}

        popularity = (
            analytics.popularity if analytics.popularity is not None else track.popularity
        )
        fields: dict[str, Any] = {
            "chartmetric_id": analytics.chartmetric_id,
            "chartmetric_enriched_at": datetime.now(UTC),
            "track_stage": classify_track_stage(popularity),
        }
        # Keep the previous figures when the API skipped a series this time
        if analytics.spotify_streams is not None:
            fields["spotify_streams"] = analytics.spotify_streams
        if analytics.streaming_velocity is not None:
            fields["streaming_velocity"] = analytics.streaming_velocity
        if analytics.wow_growth_pct is not None:
            fields["wow_growth_pct"] = analytics.wow_growth_pct
        if analytics.youtube_views is not None:
            fields["youtube_views"] = analytics.youtube_views
        if analytics.popularity is not None and track.popularity is None:
            fields["popularity"] = analytics.popularity
        return EnrichmentStatus.SUCCESS, fields
