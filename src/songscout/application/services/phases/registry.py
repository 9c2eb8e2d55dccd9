"""Phase 5: publishers, writers and collection shares from the licensing registry."""

import logging
from typing import Any

from songscout.application.services.phases.base import PhaseExecutor
from songscout.domain.entities import EnrichmentPhase, EnrichmentStatus, PublisherStatus, Track
from songscout.domain.ports import IRegistrySource, RegistryWork
from songscout.domain.value_objects.publishing import classify_publisher_status
from songscout.infrastructure.persistence import SessionScope

logger = logging.getLogger(__name__)


def registry_fields(track: Track, work: RegistryWork) -> dict[str, Any]:
    """Fields to write for a work found in the registry."""
    names = work.publisher_names
    fields: dict[str, Any] = {
        "registry_searched": True,
        "registry_found": True,
        "publisher_status": classify_publisher_status(names),
    }
    if names:
        fields["publisher"] = ", ".join(names)
    if work.total_collection_share is not None:
        fields["collection_share"] = work.total_collection_share
    ipis = [p.ipi for p in work.publishers if p.ipi]
    if ipis:
        fields["ipi_number"] = ipis[0]
    if work.iswc:
        fields["iswc"] = work.iswc
    if work.song_code:
        fields["registry_song_code"] = work.song_code
    if work.writers and not track.songwriter:
        fields["songwriter"] = ", ".join(w.name for w in work.writers)
    return fields


class RegistryPhase(PhaseExecutor):
    """Looks every track with an ISRC up in the registry (API first, portal second).

    Listen up, "searched and found nothing" is a REAL signal here, not just a missing value:
    registry_searched=True + registry_found=False is what the contact rubric's +6 "verified
    unsigned" bonus keys on. So no_data still writes those flags and marks the publisher
    status unsigned.
    """

    phase = EnrichmentPhase.REGISTRY

    def __init__(
        self,
        session_scope: SessionScope,
        registry_source: IRegistrySource,
        concurrency: int = 2,
    ) -> None:
        super().__init__(session_scope, concurrency)
        self.registry_source = registry_source

    def select(self, track: Track, force: bool) -> bool:
        if not (track.isrc and track.isrc.strip()):
            return False
        return force or track.registry_status is not EnrichmentStatus.SUCCESS

    async def enrich_track(self, track: Track) -> tuple[EnrichmentStatus, dict[str, Any]]:
        work = await self.registry_source.lookup_by_isrc((track.isrc or "").strip())
        if work is None or not (work.publishers or work.writers):
            fields: dict[str, Any] = {"registry_searched": True, "registry_found": False}
            if not track.publisher:
                fields["publisher_status"] = PublisherStatus.UNSIGNED
            return EnrichmentStatus.NO_DATA, fields

        logger.debug(
            f"Registry ({work.source}) found {len(work.publishers)} publisher(s) "
            f"for {track.isrc}"
        )
        return EnrichmentStatus.SUCCESS, registry_fields(track, work)
