"""Phase 2: songwriter/producer/publisher credits from the track page."""

import logging
from typing import Any

from songscout.application.services.phases.base import PhaseExecutor
from songscout.domain.entities import EnrichmentPhase, EnrichmentStatus, Track
from songscout.domain.ports import IAuthMonitor, ICreditsSource
from songscout.domain.value_objects.publishing import classify_publisher_status
from songscout.infrastructure.persistence import SessionScope

logger = logging.getLogger(__name__)


class CreditsPhase(PhaseExecutor):
    """Scrapes credits through the logged-in browser session.

    Hey future me - concurrency is pinned to 1 here no matter what the settings say. The
    browser session is a single shared resource and parallel navigation is how accounts get
    flagged. The auth monitor is checked before the batch: an unhealthy session still gets
    ONE attempt (that's how we notice it recovered), and the first AuthExpiredError halts
    credits for the rest of the job.
    """

    phase = EnrichmentPhase.CREDITS

    def __init__(
        self,
        session_scope: SessionScope,
        credits_source: ICreditsSource,
        auth_monitor: IAuthMonitor,
    ) -> None:
        super().__init__(session_scope, concurrency=1)
        self.credits_source = credits_source
        self.auth_monitor = auth_monitor

    def select(self, track: Track, force: bool) -> bool:
        if not track.spotify_url:
            return False
        return force or track.credits_status is not EnrichmentStatus.SUCCESS

    def is_available(self) -> str | None:
        if not self.auth_monitor.is_healthy():
            status = self.auth_monitor.get_status()
            logger.warning(
                f"Scraping session unhealthy ({status.consecutive_failures} consecutive "
                f"failures), trying anyway"
            )
        return None

    async def enrich_track(self, track: Track) -> tuple[EnrichmentStatus, dict[str, Any]]:
        credits = await self.credits_source.fetch_credits(track.spotify_url)

        fields: dict[str, Any] = {}
        if credits.songwriters:
            fields["songwriter"] = ", ".join(credits.songwriters)
        if credits.producers:
            fields["producer"] = ", ".join(credits.producers)
        # The registry is authoritative for publishers; page credits only fill a gap
        if credits.publishers and not track.publisher:
            fields["publisher"] = ", ".join(credits.publishers)
            fields["publisher_status"] = classify_publisher_status(credits.publishers)
        if credits.label and not track.label:
            fields["label"] = credits.label
        if credits.stream_count is not None and track.spotify_streams is None:
            fields["spotify_streams"] = credits.stream_count

        if credits.is_empty():
            return EnrichmentStatus.NO_DATA, fields
        return EnrichmentStatus.SUCCESS, fields
