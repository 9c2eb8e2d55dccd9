"""SQLAlchemy ORM models for SongScout."""

import uuid
from datetime import UTC, date, datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# Hey future me, utc_now() ensures ALL timestamps are UTC! Never use datetime.now() without
# timezone - that's "naive" datetime and the 7-day staleness math goes wrong the moment the
# server moves timezones.
def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


# Hey future me - SQLite doesn't preserve timezone info! When we store UTC datetimes, they come
# back as "naive" (no tzinfo). ALWAYS pass DB datetimes through this before comparing them with
# datetime.now(UTC), otherwise: "can't compare offset-naive and offset-aware datetimes".
def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware, assuming naive datetimes are UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def new_id() -> str:
    """Generate a new string UUID primary key."""
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class TrackedPlaylistModel(Base):
    """Playlist the scheduler refreshes every week."""

    __tablename__ = "tracked_playlists"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    playlist_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_editorial: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_checked: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )


# Listen up, TrackModel is one row per (week, playlist_id, spotify_url)! That unique constraint
# is what makes insert_tracks() an UPSERT - re-scraping the same playlist in the same week
# updates album art and friends instead of duplicating rows. Per-phase statuses are plain
# strings (EnrichmentStatus values) so SQLite and PostgreSQL behave the same.
class TrackModel(Base):
    """SQLAlchemy model for a discovered track."""

    __tablename__ = "tracks"
    __table_args__ = (
        UniqueConstraint("week", "playlist_id", "spotify_url", name="uq_tracks_week_playlist_url"),
        Index("ix_tracks_last_attempt", "last_enrichment_attempt"),
        Index("ix_tracks_isrc", "isrc"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    week: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    playlist_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    playlist_name: Mapped[str] = mapped_column(String(255), nullable=False)
    track_name: Mapped[str] = mapped_column(String(512), nullable=False)
    artist_name: Mapped[str] = mapped_column(String(512), nullable=False)
    spotify_url: Mapped[str] = mapped_column(String(512), nullable=False)
    album_art: Mapped[str | None] = mapped_column(String(512), nullable=True)
    spotify_track_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    isrc: Mapped[str | None] = mapped_column(String(32), nullable=True)
    label: Mapped[str | None] = mapped_column(String(255), nullable=True)
    release_date: Mapped[str | None] = mapped_column(String(32), nullable=True)
    popularity: Mapped[int | None] = mapped_column(Integer, nullable=True)

    songwriter: Mapped[str | None] = mapped_column(Text, nullable=True)
    producer: Mapped[str | None] = mapped_column(Text, nullable=True)
    publisher: Mapped[str | None] = mapped_column(Text, nullable=True)
    publisher_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    collection_share: Mapped[float | None] = mapped_column(Float, nullable=True)
    ipi_number: Mapped[str | None] = mapped_column(String(255), nullable=True)
    iswc: Mapped[str | None] = mapped_column(String(32), nullable=True)
    registry_song_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    registry_searched: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    registry_found: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    chartmetric_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    spotify_streams: Mapped[int | None] = mapped_column(sa.BigInteger, nullable=True)
    streaming_velocity: Mapped[float | None] = mapped_column(Float, nullable=True)
    wow_growth_pct: Mapped[float | None] = mapped_column(Float, nullable=True)
    track_stage: Mapped[str | None] = mapped_column(String(32), nullable=True)
    youtube_views: Mapped[int | None] = mapped_column(sa.BigInteger, nullable=True)
    chartmetric_enriched_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )

    catalog_status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    credits_status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    artist_status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    chartmetric_status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="pending"
    )
    registry_status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    last_enrichment_attempt: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    unsigned_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    enriched_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    artists: Mapped[list["ArtistModel"]] = relationship(
        "ArtistModel", secondary="artist_tracks", back_populates="tracks"
    )


class ArtistModel(Base):
    """Canonical artist identity (MusicBrainz-backed)."""

    __tablename__ = "artists"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    musicbrainz_id: Mapped[str | None] = mapped_column(
        String(36), nullable=True, unique=True, index=True
    )
    # {"instagram": "...", "twitter": "...", "homepage": "..."}
    links: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    tracks: Mapped[list[TrackModel]] = relationship(
        TrackModel, secondary="artist_tracks", back_populates="artists"
    )


class ArtistTrackModel(Base):
    """Many-to-many join between artists and tracks."""

    __tablename__ = "artist_tracks"

    artist_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("artists.id", ondelete="CASCADE"), primary_key=True
    )
    track_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tracks.id", ondelete="CASCADE"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )


class ContactModel(Base):
    """Aggregated songwriter contact."""

    __tablename__ = "contacts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    normalized_name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    track_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    total_tracks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    registry_searched_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    registry_found_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_streams: Mapped[int] = mapped_column(sa.BigInteger, nullable=False, default=0)
    wow_growth_pct: Mapped[float | None] = mapped_column(Float, nullable=True)
    stage: Mapped[str] = mapped_column(String(32), nullable=False, default="discovery")
    stage_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    hot_lead: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    unsigned_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )


# Hey future me - jobs are NEVER deleted, they're the audit trail. track_ids is a JSON list
# because the set is immutable after enqueue and we never query "which jobs touched track X".
class EnrichmentJobModel(Base):
    """Persisted enrichment job."""

    __tablename__ = "enrichment_jobs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    track_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    target_phase: Mapped[int | None] = mapped_column(Integer, nullable=True)
    capture_snapshot: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    source: Mapped[str] = mapped_column(String(32), nullable=False, default="manual")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="queued", index=True)
    current_phase: Mapped[int | None] = mapped_column(Integer, nullable=True)
    tracks_processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tracks_enriched: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    errors: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )
    started_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )


class ActivityLogModel(Base):
    """Operator-facing activity history."""

    __tablename__ = "activity_log"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False, index=True
    )


class PerformanceSnapshotModel(Base):
    """Weekly streaming snapshot per track."""

    __tablename__ = "performance_snapshots"
    __table_args__ = (
        UniqueConstraint("track_id", "week_start", name="uq_snapshots_track_week"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    track_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tracks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    week_start: Mapped[date] = mapped_column(Date, nullable=False)
    streams: Mapped[int] = mapped_column(sa.BigInteger, nullable=False, default=0)
    wow_pct: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    captured_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )


# Yo, singleton row! id is always "spotify". Both tokens are stored ENCRYPTED (base64 blob of
# salt|iv|tag|ciphertext) - never put a plaintext token in this table.
class EncryptedTokenModel(Base):
    """Encrypted OAuth token pair."""

    __tablename__ = "encrypted_tokens"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default="spotify")
    access_token_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
    refresh_token_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )
