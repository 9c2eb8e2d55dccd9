"""initial schema

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-18 09:00:00.000000

Hey future me - this creates EVERY table of the pipeline in one go:
- tracked_playlists: playlists refreshed once per ISO week
- tracks: one row per (week, playlist_id, spotify_url), per-phase status columns
- artists + artist_tracks: MusicBrainz-backed identities and their links to tracks
- contacts: songwriter aggregates (score, funnel stage, hot lead)
- enrichment_jobs: persisted job queue, never deleted (audit trail)
- activity_log: operator-facing history
- performance_snapshots: weekly streams per track, unique per (track, week_start)
- encrypted_tokens: singleton row "spotify", tokens AES-GCM encrypted
"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "a1b2c3d4e5f6"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(*names: str) -> list[sa.Column]:
    return [sa.Column(name, sa.DateTime(timezone=True), nullable=False) for name in names]


def upgrade() -> None:
    op.create_table(
        "tracked_playlists",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("playlist_id", sa.String(64), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_editorial", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_checked", sa.DateTime(timezone=True), nullable=True),
        *_timestamps("created_at"),
    )
    op.create_index("ix_tracked_playlists_last_checked", "tracked_playlists", ["last_checked"])

    op.create_table(
        "tracks",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("week", sa.Date(), nullable=False),
        sa.Column("playlist_id", sa.String(64), nullable=False),
        sa.Column("playlist_name", sa.String(255), nullable=False),
        sa.Column("track_name", sa.String(512), nullable=False),
        sa.Column("artist_name", sa.String(512), nullable=False),
        sa.Column("spotify_url", sa.String(512), nullable=False),
        sa.Column("album_art", sa.String(512), nullable=True),
        sa.Column("spotify_track_id", sa.String(64), nullable=True),
        sa.Column("isrc", sa.String(32), nullable=True),
        sa.Column("label", sa.String(255), nullable=True),
        sa.Column("release_date", sa.String(32), nullable=True),
        sa.Column("popularity", sa.Integer(), nullable=True),
        sa.Column("songwriter", sa.Text(), nullable=True),
        sa.Column("producer", sa.Text(), nullable=True),
        sa.Column("publisher", sa.Text(), nullable=True),
        sa.Column("publisher_status", sa.String(32), nullable=True),
        sa.Column("collection_share", sa.Float(), nullable=True),
        sa.Column("ipi_number", sa.String(255), nullable=True),
        sa.Column("iswc", sa.String(32), nullable=True),
        sa.Column("registry_song_code", sa.String(64), nullable=True),
        sa.Column("registry_searched", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("registry_found", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("chartmetric_id", sa.String(64), nullable=True),
        sa.Column("spotify_streams", sa.BigInteger(), nullable=True),
        sa.Column("streaming_velocity", sa.Float(), nullable=True),
        sa.Column("wow_growth_pct", sa.Float(), nullable=True),
        sa.Column("track_stage", sa.String(32), nullable=True),
        sa.Column("youtube_views", sa.BigInteger(), nullable=True),
        sa.Column("chartmetric_enriched_at", sa.DateTime(timezone=True), nullable=True),
        *[
            sa.Column(name, sa.String(16), nullable=False, server_default="pending")
            for name in (
                "catalog_status",
                "credits_status",
                "artist_status",
                "chartmetric_status",
                "registry_status",
            )
        ],
        sa.Column("last_enrichment_attempt", sa.DateTime(timezone=True), nullable=True),
        sa.Column("unsigned_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("enriched_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps("created_at", "updated_at"),
        sa.UniqueConstraint(
            "week", "playlist_id", "spotify_url", name="uq_tracks_week_playlist_url"
        ),
    )
    op.create_index("ix_tracks_week", "tracks", ["week"])
    op.create_index("ix_tracks_playlist_id", "tracks", ["playlist_id"])
    op.create_index("ix_tracks_last_attempt", "tracks", ["last_enrichment_attempt"])
    op.create_index("ix_tracks_isrc", "tracks", ["isrc"])

    op.create_table(
        "artists",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("musicbrainz_id", sa.String(36), nullable=True),
        sa.Column("links", sa.JSON(), nullable=False),
        *_timestamps("created_at", "updated_at"),
    )
    op.create_index("ix_artists_name", "artists", ["name"])
    op.create_index("ix_artists_musicbrainz_id", "artists", ["musicbrainz_id"], unique=True)

    op.create_table(
        "artist_tracks",
        sa.Column(
            "artist_id",
            sa.String(36),
            sa.ForeignKey("artists.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "track_id",
            sa.String(36),
            sa.ForeignKey("tracks.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        *_timestamps("created_at"),
    )

    op.create_table(
        "contacts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("normalized_name", sa.String(255), nullable=False, unique=True),
        sa.Column("track_ids", sa.JSON(), nullable=False),
        sa.Column("total_tracks", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("registry_searched_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("registry_found_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_streams", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("wow_growth_pct", sa.Float(), nullable=True),
        sa.Column("stage", sa.String(32), nullable=False, server_default="discovery"),
        sa.Column("stage_locked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("hot_lead", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("unsigned_score", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps("created_at", "updated_at"),
    )

    op.create_table(
        "enrichment_jobs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("track_ids", sa.JSON(), nullable=False),
        sa.Column("target_phase", sa.Integer(), nullable=True),
        sa.Column("capture_snapshot", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("source", sa.String(32), nullable=False, server_default="manual"),
        sa.Column("status", sa.String(16), nullable=False, server_default="queued"),
        sa.Column("current_phase", sa.Integer(), nullable=True),
        sa.Column("tracks_processed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tracks_enriched", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("errors", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_message", sa.Text(), nullable=True),
        *_timestamps("created_at"),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_enrichment_jobs_status", "enrichment_jobs", ["status"])

    op.create_table(
        "activity_log",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("details", sa.JSON(), nullable=False),
        *_timestamps("created_at"),
    )
    op.create_index("ix_activity_log_event_type", "activity_log", ["event_type"])
    op.create_index("ix_activity_log_created_at", "activity_log", ["created_at"])

    op.create_table(
        "performance_snapshots",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "track_id",
            sa.String(36),
            sa.ForeignKey("tracks.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("week_start", sa.Date(), nullable=False),
        sa.Column("streams", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("wow_pct", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("details", sa.JSON(), nullable=False),
        *_timestamps("captured_at"),
        sa.UniqueConstraint("track_id", "week_start", name="uq_snapshots_track_week"),
    )
    op.create_index(
        "ix_performance_snapshots_track_id", "performance_snapshots", ["track_id"]
    )

    op.create_table(
        "encrypted_tokens",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("access_token_encrypted", sa.Text(), nullable=False),
        sa.Column("refresh_token_encrypted", sa.Text(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps("updated_at"),
    )


def downgrade() -> None:
    op.drop_table("encrypted_tokens")
    op.drop_index("ix_performance_snapshots_track_id", table_name="performance_snapshots")
    op.drop_table("performance_snapshots")
    op.drop_index("ix_activity_log_created_at", table_name="activity_log")
    op.drop_index("ix_activity_log_event_type", table_name="activity_log")
    op.drop_table("activity_log")
    op.drop_index("ix_enrichment_jobs_status", table_name="enrichment_jobs")
    op.drop_table("enrichment_jobs")
    op.drop_table("contacts")
    op.drop_table("artist_tracks")
    op.drop_index("ix_artists_musicbrainz_id", table_name="artists")
    op.drop_index("ix_artists_name", table_name="artists")
    op.drop_table("artists")
    op.drop_index("ix_tracks_isrc", table_name="tracks")
    op.drop_index("ix_tracks_last_attempt", table_name="tracks")
    op.drop_index("ix_tracks_playlist_id", table_name="tracks")
    op.drop_index("ix_tracks_week", table_name="tracks")
    op.drop_table("tracks")
    op.drop_index("ix_tracked_playlists_last_checked", table_name="tracked_playlists")
    op.drop_table("tracked_playlists")
