"""Phase 3: link songwriters to canonical MusicBrainz artists."""

import logging
from typing import Any

from songscout.application.services.phases.base import PhaseExecutor
from songscout.domain.entities import EnrichmentPhase, EnrichmentStatus, Track
from songscout.domain.ports import ArtistMatch, IMusicologyClient
from songscout.domain.value_objects.credit_names import normalize_credit_list
from songscout.infrastructure.persistence import ArtistRepository, SessionScope

logger = logging.getLogger(__name__)


class ArtistLinkingPhase(PhaseExecutor):
    """Resolves each credited songwriter and links the artist rows to the track.

    Only tracks WITH songwriter metadata are touched. A track where none of its writers
    resolves is no_data; one resolved writer is enough for success. Links (website,
    socials) are fetched once per artist, when the artist has none yet.
    """

    phase = EnrichmentPhase.ARTIST_LINKING

    def __init__(
        self,
        session_scope: SessionScope,
        musicology_client: IMusicologyClient,
        concurrency: int = 3,
    ) -> None:
        super().__init__(session_scope, concurrency)
        self.musicology_client = musicology_client

    def select(self, track: Track, force: bool) -> bool:
        if not (track.songwriter and track.songwriter.strip()):
            return False
        return force or track.artist_status is not EnrichmentStatus.SUCCESS

    async def enrich_track(self, track: Track) -> tuple[EnrichmentStatus, dict[str, Any]]:
        names = normalize_credit_list(track.songwriter)
        linked = 0
        for name in names:
            match = await self.musicology_client.resolve_artist(name)
            if match is None:
                logger.debug(f"No MusicBrainz match for songwriter '{name}'")
                continue
            await self._link(track.id, match)
            linked += 1

        if linked == 0:
            return EnrichmentStatus.NO_DATA, {}
        logger.debug(f"Linked {linked}/{len(names)} songwriters on track {track.id}")
        return EnrichmentStatus.SUCCESS, {}

    async def _link(self, track_id: str, match: ArtistMatch) -> None:
        async with self.session_scope() as session:
            repo = ArtistRepository(session)
            artist = await repo.create_or_update_artist(match.name, match.musicbrainz_id)
            await repo.link_artist_to_track(artist.id, track_id)
            needs_links = not artist.links

        if needs_links:
            links = await self.musicology_client.get_artist_links(match.musicbrainz_id)
            if links:
                async with self.session_scope() as session:
                    await ArtistRepository(session).update_artist_links(artist.id, links)
