"""Phase 1: catalog metadata (ISRC, label, release date, popularity)."""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from songscout.application.services.phases.base import PhaseExecutor, PhaseResult, TrackCallback
from songscout.domain.entities import EnrichmentPhase, EnrichmentStatus, Track
from songscout.domain.exceptions import ConfigurationMissingError, SourceError
from songscout.domain.ports import CatalogTrack, ICatalogClient
from songscout.infrastructure.integrations.scraping_patterns import extract_spotify_track_id
from songscout.infrastructure.persistence import SessionScope

logger = logging.getLogger(__name__)

CATALOG_BATCH_SIZE = 50

ClientProvider = Callable[[], Awaitable[ICatalogClient]]


def catalog_fields(track: Track, found: CatalogTrack) -> dict[str, Any]:
    """Fields to write from a catalog hit; existing values are never overwritten."""
    fields: dict[str, Any] = {}
    if not track.spotify_track_id and found.spotify_id:
        fields["spotify_track_id"] = found.spotify_id
    if not track.isrc and found.isrc:
        fields["isrc"] = found.isrc
    if not track.label and found.label:
        fields["label"] = found.label
    if not track.release_date and found.release_date:
        fields["release_date"] = found.release_date
    if track.popularity is None and found.popularity is not None:
        fields["popularity"] = found.popularity
    return fields


class CatalogMetadataPhase(PhaseExecutor):
    """Fills catalog metadata, batching up to 50 ids per API request.

    Hey future me - tracks whose URL carries a track id go through the batch endpoint (one
    request per 50 tracks). A null slot in the batch response is no_data for THAT track
    only. Tracks without an extractable id fall back to a name+artist search.
    """

    phase = EnrichmentPhase.CATALOG

    def __init__(
        self,
        session_scope: SessionScope,
        client_provider: ClientProvider,
        concurrency: int = 3,
    ) -> None:
        super().__init__(session_scope, concurrency)
        self.client_provider = client_provider
        self._client: ICatalogClient | None = None

    def _catalog_client(self) -> ICatalogClient:
        if self._client is None:
            raise ConfigurationMissingError("Catalog API client not initialised", "spotify")
        return self._client

    def select(self, track: Track, force: bool) -> bool:
        return force or track.catalog_status is not EnrichmentStatus.SUCCESS

    async def process(
        self, tracks: list[Track], result: PhaseResult, on_track: TrackCallback | None
    ) -> None:
        try:
            self._client = await self.client_provider()
        except (ConfigurationMissingError, SourceError) as e:
            # No usable token means nothing was attempted: leave the tracks untouched
            result.skipped += len(tracks)
            result.skipped_reason = e.message
            logger.warning(f"Catalog phase skipped, no API client: {e.message}")
            return

        by_id: list[tuple[str, Track]] = []
        by_search: list[Track] = []
        for track in tracks:
            spotify_id = track.spotify_track_id or extract_spotify_track_id(track.spotify_url)
            if spotify_id:
                by_id.append((spotify_id, track))
            else:
                by_search.append(track)

        for start in range(0, len(by_id), CATALOG_BATCH_SIZE):
            chunk = by_id[start : start + CATALOG_BATCH_SIZE]
            await self._process_chunk(chunk, result, on_track)

        if by_search:
            await super().process(by_search, result, on_track)

    async def _process_chunk(
        self,
        chunk: list[tuple[str, Track]],
        result: PhaseResult,
        on_track: TrackCallback | None,
    ) -> None:
        try:
            found = await self._catalog_client().get_tracks(
                [spotify_id for spotify_id, _ in chunk]
            )
        except SourceError as e:
            # The whole request failed; every track in it goes through the per-track path
            # so each one gets its own status (and its own chance via search)
            logger.warning(f"Catalog batch of {len(chunk)} failed ({e}), falling back per track")
            for _, track in chunk:
                await self.run_track(track, result, on_track)
            return

        for (_, track), hit in zip(chunk, found, strict=False):
            if hit is None:
                status, fields = EnrichmentStatus.NO_DATA, {}
            else:
                status, fields = EnrichmentStatus.SUCCESS, catalog_fields(track, hit)
            await self._persist(track.id, status, fields)
            result.record(status)
            if on_track is not None:
                on_track(track.id, status)

    async def enrich_track(self, track: Track) -> tuple[EnrichmentStatus, dict[str, Any]]:
        """Single-track path: name + artist search."""
        hit = await self._catalog_client().search_track_by_name_and_artist(
            track.track_name, track.artist_name
        )
        if hit is None:
            return EnrichmentStatus.NO_DATA, {}
        return EnrichmentStatus.SUCCESS, catalog_fields(track, hit)
