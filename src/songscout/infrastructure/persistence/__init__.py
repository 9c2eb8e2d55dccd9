"""Infrastructure persistence layer."""

from .database import Database, SessionScope
from .models import (
    ActivityLogModel,
    ArtistModel,
    ArtistTrackModel,
    Base,
    ContactModel,
    EncryptedTokenModel,
    EnrichmentJobModel,
    PerformanceSnapshotModel,
    TrackedPlaylistModel,
    TrackModel,
)
from .repositories import (
    ActivityLogRepository,
    ArtistRepository,
    ContactRepository,
    EncryptedTokenRepository,
    JobRepository,
    PlaylistRepository,
    SnapshotRepository,
    TrackRepository,
)

__all__ = [
    "ActivityLogModel",
    "ActivityLogRepository",
    "ArtistModel",
    "ArtistRepository",
    "ArtistTrackModel",
    "Base",
    "ContactModel",
    "ContactRepository",
    "Database",
    "EncryptedTokenModel",
    "EncryptedTokenRepository",
    "EnrichmentJobModel",
    "JobRepository",
    "PerformanceSnapshotModel",
    "PlaylistRepository",
    "SessionScope",
    "SnapshotRepository",
    "TrackModel",
    "TrackRepository",
    "TrackedPlaylistModel",
]
