"""Applies the scoring rubrics to persisted tracks and songwriter contacts."""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from songscout.domain.entities import Contact, ContactStage, Track
from songscout.domain.value_objects.credit_names import (
    normalize_credit_list,
    normalize_songwriter_key,
)
from songscout.domain.value_objects.scoring import (
    ContactScoreInput,
    TrackScoreInput,
    assign_funnel_stage,
    calculate_contact_score,
    calculate_unsigned_score,
    is_artist_the_songwriter,
    is_hot_lead,
    is_indie_label,
)
from songscout.infrastructure.persistence import ContactRepository, SessionScope, TrackRepository

logger = logging.getLogger(__name__)


def track_score_input(track: Track) -> TrackScoreInput:
    """Project a track onto the attributes the track rubric reads."""
    return TrackScoreInput(
        playlist_name=track.playlist_name,
        label=track.label,
        publisher=track.publisher,
        writer=track.songwriter,
        artist_name=track.artist_name,
        songwriter=track.songwriter,
        wow_growth_pct=track.wow_growth_pct,
    )


@dataclass
class _SongwriterGroup:
    name: str
    tracks: dict[str, Track] = field(default_factory=dict)  # spotify_url -> newest row

    def add(self, track: Track) -> None:
        current = self.tracks.get(track.spotify_url)
        if current is None or track.week > current.week:
            self.tracks[track.spotify_url] = track


def group_by_songwriter(tracks: list[Track]) -> dict[str, _SongwriterGroup]:
    """Group tracks by normalized songwriter name.

    A track credited to three writers lands in three groups. The same recording scraped
    in several weeks counts once (its newest row wins).
    """
    groups: dict[str, _SongwriterGroup] = {}
    for track in tracks:
        for name in normalize_credit_list(track.songwriter):
            key = normalize_songwriter_key(name)
            group = groups.setdefault(key, _SongwriterGroup(name=name))
            group.add(track)
    return groups


_STAGE_RANK = {
    ContactStage.DISCOVERY: 0,
    ContactStage.WATCH: 1,
    ContactStage.ACTIVE_SEARCH: 2,
}


def _mean(values: list[float]) -> float | None:
    return round(sum(values) / len(values), 2) if values else None


class ScoringService:
    """Track rescoring and the contact aggregation pass.

    Hey future me - the rubrics themselves live in domain/value_objects/scoring.py and are
    pure. This service only feeds them from the database and writes the results back. The
    contact pass is a full rebuild over every track with songwriter metadata: cheap enough
    at our scale and it can never drift out of sync with the tracks.
    """

    def __init__(self, session_scope: SessionScope) -> None:
        self.session_scope = session_scope

    async def rescore_tracks(self, track_ids: list[str]) -> int:
        """Recompute unsigned_score for tracks; returns how many scores changed."""
        if not track_ids:
            return 0
        changed = 0
        async with self.session_scope() as session:
            repo = TrackRepository(session)
            for track in await repo.get_by_ids(track_ids):
                score = calculate_unsigned_score(track_score_input(track))
                if score != track.unsigned_score:
                    await repo.update_track_metadata(track.id, {"unsigned_score": score})
                    changed += 1
        logger.debug(f"Rescored {len(track_ids)} tracks, {changed} changed")
        return changed

    async def refresh_contacts(
        self, snapshot_wow: dict[str, float] | None = None
    ) -> dict[str, Any]:
        """Rebuild every songwriter contact from its tracks.

        Args:
            snapshot_wow: Week-over-week % per track id from the latest performance
                snapshot; overrides the track's analytics growth where present

        Returns:
            Summary counters (contacts, created, hot_leads)
        """
        snapshot_wow = snapshot_wow or {}
        async with self.session_scope() as session:
            tracks = await TrackRepository(session).get_tracks_with_songwriters()

        groups = group_by_songwriter(tracks)
        created = 0
        hot_leads = 0

        async with self.session_scope() as session:
            repo = ContactRepository(session)
            for key, group in groups.items():
                contact = await repo.get_by_normalized_name(key)
                if contact is None:
                    contact = Contact(id=str(uuid.uuid4()), name=group.name, normalized_name=key)
                    created += 1
                self._apply_group(contact, group, snapshot_wow)
                if contact.hot_lead:
                    hot_leads += 1
                await repo.upsert(contact)

        logger.info(
            f"Contact pass: {len(groups)} contacts ({created} new), {hot_leads} hot leads"
        )
        return {"contacts": len(groups), "created": created, "hot_leads": hot_leads}

    def _apply_group(
        self, contact: Contact, group: _SongwriterGroup, snapshot_wow: dict[str, float]
    ) -> None:
        tracks = list(group.tracks.values())

        wow_values: list[float] = []
        for track in tracks:
            value = snapshot_wow.get(track.id, track.wow_growth_pct)
            if value is not None:
                wow_values.append(float(value))
        wow = _mean(wow_values)

        score_input = ContactScoreInput(
            total_tracks=len(tracks),
            registry_searched_count=sum(1 for t in tracks if t.registry_searched),
            registry_found_count=sum(1 for t in tracks if t.registry_found),
            tracks_missing_publisher=sum(1 for t in tracks if not t.publisher),
            tracks_missing_writer=sum(1 for t in tracks if not t.songwriter),
            # Matched against this contact's own name, not the full songwriter credit: a
            # co-writer never inherits the performing artist's self-written bonus.
            has_self_written_fresh_finds=any(
                t.is_fresh_finds and is_artist_the_songwriter(t.artist_name, group.name)
                for t in tracks
            ),
            has_self_written_indie=any(
                is_indie_label(t.label) and is_artist_the_songwriter(t.artist_name, group.name)
                for t in tracks
            ),
            wow_growth_pct=wow,
        )

        contact.track_ids = sorted(t.id for t in tracks)
        contact.total_tracks = score_input.total_tracks
        contact.registry_searched_count = score_input.registry_searched_count
        contact.registry_found_count = score_input.registry_found_count
        contact.total_streams = sum(t.spotify_streams or 0 for t in tracks)
        contact.wow_growth_pct = wow
        contact.unsigned_score = calculate_contact_score(score_input)
        contact.hot_lead = is_hot_lead(contact.unsigned_score, wow)
        # Manually placed contacts are only ever promoted, never demoted
        earned = assign_funnel_stage(contact.total_streams, wow)
        if not contact.stage_locked or _STAGE_RANK[earned] > _STAGE_RANK[contact.stage]:
            contact.stage = earned
        contact.updated_at = datetime.now(UTC)
