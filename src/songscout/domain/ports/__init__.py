"""Domain ports (interfaces) for dependency inversion."""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any

from songscout.domain.entities import (
    ActivityEvent,
    Artist,
    Contact,
    ContactStage,
    EncryptedToken,
    Job,
    JobStatus,
    PerformanceSnapshot,
    Track,
    TrackedPlaylist,
)
from songscout.domain.ports.sources import (
    AnalyticsResult,
    ArtistMatch,
    CatalogTrack,
    CreditsResult,
    IAnalyticsClient,
    IAuthMonitor,
    ICatalogClient,
    ICreditsSource,
    IMusicologyClient,
    IPlaylistFetcher,
    IRegistrySource,
    ISessionCookieProvider,
    ISnapshotCapturer,
    RegistryPublisher,
    RegistryWork,
    RegistryWriter,
    SessionCookies,
)


# Hey future me, ITrackRepository is THE read/write contract the pipeline needs from storage.
# Everything the scheduler selects and everything the phase executors write goes through here.
# The SQLAlchemy implementation lives in infrastructure/persistence/repositories.py; tests can
# swap in an AsyncMock(spec=ITrackRepository) without a database.
class ITrackRepository(ABC):
    """Repository interface for Track entities."""

    @abstractmethod
    async def insert_tracks(self, tracks: list[Track]) -> list[str]:
        """Upsert by (week, playlist_id, spotify_url); return ids of NEW rows."""
        pass

    @abstractmethod
    async def get(self, track_id: str) -> Track | None:
        """Get a track by id."""
        pass

    @abstractmethod
    async def get_by_ids(self, track_ids: list[str]) -> list[Track]:
        """Get tracks by ids (missing ids are skipped)."""
        pass

    @abstractmethod
    async def update(self, track: Track) -> None:
        """Persist all mutable fields of a track."""
        pass

    @abstractmethod
    async def update_track_metadata(self, track_id: str, fields: dict[str, Any]) -> None:
        """Write catalog/credits/registry fields."""
        pass

    @abstractmethod
    async def update_track_chartmetric(self, track_id: str, fields: dict[str, Any]) -> None:
        """Write analytics fields."""
        pass

    @abstractmethod
    async def update_batch_last_enrichment_attempt(
        self, track_ids: list[str], attempted_at: datetime | None = None
    ) -> int:
        """Stamp last_enrichment_attempt on many tracks at once."""
        pass

    @abstractmethod
    async def get_tracks_needing_artist_enrichment(
        self, limit: int = 50, not_attempted_since: datetime | None = None
    ) -> list[Track]:
        """Tracks with writer metadata but no linked artist."""
        pass

    @abstractmethod
    async def get_tracks_needing_chartmetric_enrichment(
        self, limit: int = 50, not_attempted_since: datetime | None = None
    ) -> list[Track]:
        """Tracks with an ISRC and no successful analytics pass."""
        pass

    @abstractmethod
    async def get_stale_chartmetric_tracks(
        self, days_old: int = 7, limit: int = 50
    ) -> list[Track]:
        """Tracks whose last successful analytics pass is older than days_old."""
        pass

    @abstractmethod
    async def get_tracks_needing_retry(self, since: datetime, limit: int = 100) -> list[Track]:
        """Failed/no_data tracks whose last attempt is older than `since`."""
        pass

    @abstractmethod
    async def get_track_ids_with_streaming_metrics(self) -> list[str]:
        """Ids of tracks with any non-null streaming metric."""
        pass

    @abstractmethod
    async def get_tracks_with_songwriters(self) -> list[Track]:
        """All tracks that carry songwriter metadata."""
        pass


class IArtistRepository(ABC):
    """Repository interface for canonical artists."""

    @abstractmethod
    async def create_or_update_artist(
        self, name: str, musicbrainz_id: str | None = None
    ) -> Artist:
        """Find by MusicBrainz id (or name) and update, or create."""
        pass

    @abstractmethod
    async def link_artist_to_track(self, artist_id: str, track_id: str) -> None:
        """Link an artist to a track (idempotent)."""
        pass

    @abstractmethod
    async def update_artist_links(self, artist_id: str, links: dict[str, str]) -> None:
        """Merge social/website links into an artist."""
        pass

    @abstractmethod
    async def get_by_musicbrainz_id(self, musicbrainz_id: str) -> Artist | None:
        """Get an artist by MusicBrainz id."""
        pass


class IContactRepository(ABC):
    """Repository interface for songwriter contacts."""

    @abstractmethod
    async def get(self, contact_id: str) -> Contact | None:
        """Get a contact by id."""
        pass

    @abstractmethod
    async def get_by_normalized_name(self, normalized_name: str) -> Contact | None:
        """Get a contact by its grouping key."""
        pass

    @abstractmethod
    async def upsert(self, contact: Contact) -> None:
        """Insert or update a contact."""
        pass

    @abstractmethod
    async def list_all(self) -> list[Contact]:
        """List all contacts."""
        pass

    @abstractmethod
    async def update_stage(self, contact_id: str, stage: ContactStage) -> None:
        """Manual stage transition (locks the stage)."""
        pass


class IJobRepository(ABC):
    """Repository interface for enrichment jobs."""

    @abstractmethod
    async def add(self, job: Job) -> None:
        """Persist a new job."""
        pass

    @abstractmethod
    async def update(self, job: Job) -> None:
        """Persist job status and counters."""
        pass

    @abstractmethod
    async def get(self, job_id: str) -> Job | None:
        """Get a job by id."""
        pass

    @abstractmethod
    async def list_by_status(self, statuses: list[JobStatus]) -> list[Job]:
        """List jobs in any of the given statuses, oldest first."""
        pass


class IPlaylistRepository(ABC):
    """Repository interface for tracked playlists."""

    @abstractmethod
    async def add(self, playlist: TrackedPlaylist) -> None:
        """Start tracking a playlist."""
        pass

    @abstractmethod
    async def get_playlists_due(
        self, not_checked_since: datetime, limit: int
    ) -> list[TrackedPlaylist]:
        """Playlists never checked or last checked before the given instant."""
        pass

    @abstractmethod
    async def mark_checked(self, playlist_id: str, checked_at: datetime) -> None:
        """Record a refresh."""
        pass


class IActivityLog(ABC):
    """Append-only operator activity log."""

    @abstractmethod
    async def log_activity(self, event: ActivityEvent) -> None:
        """Append an activity event."""
        pass


class ISnapshotRepository(ABC):
    """Repository interface for weekly performance snapshots."""

    @abstractmethod
    async def upsert(self, snapshot: PerformanceSnapshot) -> None:
        """Insert or replace the snapshot for (track, week)."""
        pass

    @abstractmethod
    async def get_streams(self, track_id: str, week_start: date) -> int | None:
        """Streams recorded for a track in a given week."""
        pass


class ITokenStore(ABC):
    """Persistence for the encrypted catalog API token pair."""

    @abstractmethod
    async def get(self) -> EncryptedToken | None:
        """Load the encrypted token pair, if any."""
        pass

    @abstractmethod
    async def save(self, token: EncryptedToken) -> None:
        """Insert or overwrite the token pair."""
        pass


__all__ = [
    "AnalyticsResult",
    "ArtistMatch",
    "CatalogTrack",
    "CreditsResult",
    "IActivityLog",
    "IAnalyticsClient",
    "IAuthMonitor",
    "IArtistRepository",
    "ICatalogClient",
    "IContactRepository",
    "ICreditsSource",
    "IJobRepository",
    "IMusicologyClient",
    "IPlaylistFetcher",
    "IPlaylistRepository",
    "IRegistrySource",
    "ISessionCookieProvider",
    "ISnapshotCapturer",
    "ISnapshotRepository",
    "ITokenStore",
    "ITrackRepository",
    "RegistryPublisher",
    "RegistryWork",
    "RegistryWriter",
    "SessionCookies",
]
