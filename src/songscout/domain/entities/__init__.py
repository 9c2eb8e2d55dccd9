"""Domain entities."""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any

from songscout.domain.entities.auth_status import AuthStatus, CookieSource
from songscout.domain.entities.events import (
    ActivityEvent,
    ProgressEvent,
    ProgressEventType,
)
from songscout.domain.entities.job import Job, JobRequest, JobStatus
from songscout.domain.entities.phase import EnrichmentPhase, EnrichmentStatus


class PublisherStatus(str, Enum):
    """Publishing classification derived from registry publisher names."""

    UNSIGNED = "unsigned"
    SELF_PUBLISHED = "self-published"
    INDIE = "indie"
    MAJOR = "major"


class ContactStage(str, Enum):
    """Pipeline funnel stage of a songwriter contact."""

    DISCOVERY = "discovery"
    WATCH = "watch"
    ACTIVE_SEARCH = "active_search"


class TrackStage(str, Enum):
    """Coarse momentum classification from streaming popularity."""

    DEVELOPING = "Developing"
    MID_LEVEL = "Mid-Level"
    MAINSTREAM = "Mainstream"
    SUPERSTAR = "Superstar"


@dataclass
class PlaylistEntry:
    """One row handed over by the playlist-fetch collaborator."""

    playlist_id: str
    track_name: str
    artist_name: str
    source_url: str
    album_art: str | None = None


@dataclass
class TrackedPlaylist:
    """A playlist the scheduler refreshes weekly."""

    id: str
    playlist_id: str
    name: str
    is_editorial: bool = False
    last_checked: datetime | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


# Listen up, Track is one row per (week, playlist, source_url)! Re-scraping the same track in
# the same week UPDATES the row (see TrackRepository.insert_tracks). Only Phase Executors and the
# scoring service mutate it after creation. last_enrichment_attempt is stamped at ENQUEUE time,
# not when the phase runs - that's what stops the next scheduler tick from re-selecting tracks
# that are still waiting in the queue.
@dataclass
class Track:
    """Track entity with publishing, authorship and popularity data."""

    id: str
    week: date
    playlist_id: str
    playlist_name: str
    track_name: str
    artist_name: str
    spotify_url: str
    album_art: str | None = None
    spotify_track_id: str | None = None
    # Catalog metadata
    isrc: str | None = None
    label: str | None = None
    release_date: str | None = None
    popularity: int | None = None
    # Publishing metadata
    songwriter: str | None = None
    producer: str | None = None
    publisher: str | None = None
    publisher_status: PublisherStatus | None = None
    collection_share: float | None = None
    ipi_number: str | None = None
    iswc: str | None = None
    registry_song_code: str | None = None
    registry_searched: bool = False
    registry_found: bool = False
    # Analytics
    chartmetric_id: str | None = None
    spotify_streams: int | None = None
    streaming_velocity: float | None = None
    wow_growth_pct: float | None = None
    track_stage: TrackStage | None = None
    youtube_views: int | None = None
    chartmetric_enriched_at: datetime | None = None
    # Per-phase statuses
    catalog_status: EnrichmentStatus = EnrichmentStatus.PENDING
    credits_status: EnrichmentStatus = EnrichmentStatus.PENDING
    artist_status: EnrichmentStatus = EnrichmentStatus.PENDING
    chartmetric_status: EnrichmentStatus = EnrichmentStatus.PENDING
    registry_status: EnrichmentStatus = EnrichmentStatus.PENDING
    last_enrichment_attempt: datetime | None = None
    unsigned_score: int = 0
    enriched_at: datetime | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def status_for(self, phase: EnrichmentPhase) -> EnrichmentStatus:
        """Get this track's status for a phase."""
        return getattr(self, phase.status_field)

    def set_status(self, phase: EnrichmentPhase, status: EnrichmentStatus) -> None:
        """Set this track's status for a phase."""
        setattr(self, phase.status_field, status)
        self.updated_at = datetime.now(UTC)

    @property
    def is_fresh_finds(self) -> bool:
        """Check if the track sits on a Fresh Finds editorial playlist."""
        return "fresh finds" in (self.playlist_name or "").lower()


# Hey future me - Artist is the CANONICAL identity (MusicBrainz id), not the raw credit string.
# Many tracks → many artists via the artist_tracks join table. Social links come from
# MusicBrainz url-relations and are only ever filled, never blanked, by enrichment.
@dataclass
class Artist:
    """Canonical songwriter/performer identity."""

    id: str
    name: str
    musicbrainz_id: str | None = None
    links: dict[str, str] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class Contact:
    """Aggregated songwriter across all linked tracks."""

    id: str
    name: str
    normalized_name: str
    track_ids: list[str] = field(default_factory=list)
    total_tracks: int = 0
    registry_searched_count: int = 0
    registry_found_count: int = 0
    total_streams: int = 0
    wow_growth_pct: float | None = None
    stage: ContactStage = ContactStage.DISCOVERY
    stage_locked: bool = False  # True once an operator moved the stage by hand
    hot_lead: bool = False
    unsigned_score: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class EncryptedToken:
    """Encrypted OAuth token pair as persisted (never holds plaintext)."""

    access_token_encrypted: str
    refresh_token_encrypted: str
    expires_at: datetime


@dataclass
class PerformanceSnapshot:
    """Point-in-time streaming figures for one track in one week."""

    track_id: str
    week_start: date
    streams: int
    wow_pct: int = 0
    captured_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    details: dict[str, Any] = field(default_factory=dict)


__all__ = [
    "ActivityEvent",
    "Artist",
    "AuthStatus",
    "Contact",
    "ContactStage",
    "CookieSource",
    "EncryptedToken",
    "EnrichmentPhase",
    "EnrichmentStatus",
    "Job",
    "JobRequest",
    "JobStatus",
    "PerformanceSnapshot",
    "PlaylistEntry",
    "ProgressEvent",
    "ProgressEventType",
    "PublisherStatus",
    "Track",
    "TrackStage",
    "TrackedPlaylist",
]
