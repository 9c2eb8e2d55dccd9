"""Repository implementations for data access."""

import logging
from datetime import UTC, date, datetime, timedelta
from enum import Enum
from typing import Any

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from songscout.domain.entities import (
    ActivityEvent,
    Artist,
    Contact,
    ContactStage,
    EncryptedToken,
    EnrichmentPhase,
    EnrichmentStatus,
    Job,
    JobStatus,
    PerformanceSnapshot,
    PublisherStatus,
    Track,
    TrackedPlaylist,
    TrackStage,
)
from songscout.domain.exceptions import EntityNotFoundException
from songscout.domain.ports import (
    IActivityLog,
    IArtistRepository,
    IContactRepository,
    IJobRepository,
    IPlaylistRepository,
    ISnapshotRepository,
    ITokenStore,
    ITrackRepository,
)
from songscout.infrastructure.persistence.models import (
    ActivityLogModel,
    ArtistModel,
    ArtistTrackModel,
    ContactModel,
    EncryptedTokenModel,
    EnrichmentJobModel,
    PerformanceSnapshotModel,
    TrackedPlaylistModel,
    TrackModel,
    ensure_utc_aware,
    new_id,
    utc_now,
)

logger = logging.getLogger(__name__)

# Statuses the retry scheduler picks up again after the cooldown
RETRYABLE_STATUSES = (EnrichmentStatus.FAILED.value, EnrichmentStatus.NO_DATA.value)

# Fields a re-scrape of the same (week, playlist, url) is allowed to overwrite
_UPSERT_MUTABLE_FIELDS = ("playlist_name", "track_name", "artist_name", "album_art")


def _db_value(value: Any) -> Any:
    """Enums are stored as their string/int value."""
    if isinstance(value, Enum):
        return value.value
    return value


def _track_to_entity(model: TrackModel) -> Track:
    return Track(
        id=model.id,
        week=model.week,
        playlist_id=model.playlist_id,
        playlist_name=model.playlist_name,
        track_name=model.track_name,
        artist_name=model.artist_name,
        spotify_url=model.spotify_url,
        album_art=model.album_art,
        spotify_track_id=model.spotify_track_id,
        isrc=model.isrc,
        label=model.label,
        release_date=model.release_date,
        popularity=model.popularity,
        songwriter=model.songwriter,
        producer=model.producer,
        publisher=model.publisher,
        publisher_status=PublisherStatus(model.publisher_status)
        if model.publisher_status
        else None,
        collection_share=model.collection_share,
        ipi_number=model.ipi_number,
        iswc=model.iswc,
        registry_song_code=model.registry_song_code,
        registry_searched=model.registry_searched,
        registry_found=model.registry_found,
        chartmetric_id=model.chartmetric_id,
        spotify_streams=model.spotify_streams,
        streaming_velocity=model.streaming_velocity,
        wow_growth_pct=model.wow_growth_pct,
        track_stage=TrackStage(model.track_stage) if model.track_stage else None,
        youtube_views=model.youtube_views,
        chartmetric_enriched_at=ensure_utc_aware(model.chartmetric_enriched_at),
        catalog_status=EnrichmentStatus(model.catalog_status),
        credits_status=EnrichmentStatus(model.credits_status),
        artist_status=EnrichmentStatus(model.artist_status),
        chartmetric_status=EnrichmentStatus(model.chartmetric_status),
        registry_status=EnrichmentStatus(model.registry_status),
        last_enrichment_attempt=ensure_utc_aware(model.last_enrichment_attempt),
        unsigned_score=model.unsigned_score,
        enriched_at=ensure_utc_aware(model.enriched_at),
        created_at=ensure_utc_aware(model.created_at) or utc_now(),
        updated_at=ensure_utc_aware(model.updated_at) or utc_now(),
    )


# Everything except identity + created_at; used by TrackRepository.update()
_TRACK_MUTABLE_FIELDS = (
    "playlist_name",
    "track_name",
    "artist_name",
    "album_art",
    "spotify_track_id",
    "isrc",
    "label",
    "release_date",
    "popularity",
    "songwriter",
    "producer",
    "publisher",
    "publisher_status",
    "collection_share",
    "ipi_number",
    "iswc",
    "registry_song_code",
    "registry_searched",
    "registry_found",
    "chartmetric_id",
    "spotify_streams",
    "streaming_velocity",
    "wow_growth_pct",
    "track_stage",
    "youtube_views",
    "chartmetric_enriched_at",
    "catalog_status",
    "credits_status",
    "artist_status",
    "chartmetric_status",
    "registry_status",
    "last_enrichment_attempt",
    "unsigned_score",
    "enriched_at",
)


class TrackRepository(ITrackRepository):
    """SQLAlchemy implementation of Track repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    # Hey future me - this is the IDEMPOTENT upsert the weekly refresh relies on! Lookup is by
    # the natural key (week, playlist_id, spotify_url); a hit overwrites the mutable scrape
    # fields (album art etc.) and keeps every enrichment result. Only brand-new rows are
    # returned so the caller enqueues exactly those for enrichment.
    async def insert_tracks(self, tracks: list[Track]) -> list[str]:
        """Upsert tracks; return ids of newly inserted rows."""
        inserted: list[str] = []
        for track in tracks:
            stmt = select(TrackModel).where(
                TrackModel.week == track.week,
                TrackModel.playlist_id == track.playlist_id,
                TrackModel.spotify_url == track.spotify_url,
            )
            result = await self.session.execute(stmt)
            existing = result.scalar_one_or_none()

            if existing is not None:
                for name in _UPSERT_MUTABLE_FIELDS:
                    value = getattr(track, name)
                    if value is not None:
                        setattr(existing, name, value)
                existing.updated_at = utc_now()
                continue

            model = TrackModel(
                id=track.id or new_id(),
                week=track.week,
                playlist_id=track.playlist_id,
                spotify_url=track.spotify_url,
                created_at=track.created_at,
            )
            for name in _TRACK_MUTABLE_FIELDS:
                setattr(model, name, _db_value(getattr(track, name)))
            self.session.add(model)
            inserted.append(model.id)

        await self.session.flush()
        return inserted

    async def get(self, track_id: str) -> Track | None:
        """Get a track by id."""
        model = await self.session.get(TrackModel, track_id)
        return _track_to_entity(model) if model else None

    async def get_by_ids(self, track_ids: list[str]) -> list[Track]:
        """Get tracks by ids, preserving the requested order."""
        if not track_ids:
            return []
        stmt = select(TrackModel).where(TrackModel.id.in_(track_ids))
        result = await self.session.execute(stmt)
        by_id = {m.id: _track_to_entity(m) for m in result.scalars().all()}
        return [by_id[tid] for tid in track_ids if tid in by_id]

    async def update(self, track: Track) -> None:
        """Persist all mutable fields of a track."""
        model = await self.session.get(TrackModel, track.id)
        if model is None:
            raise EntityNotFoundException("Track", track.id)
        for name in _TRACK_MUTABLE_FIELDS:
            setattr(model, name, _db_value(getattr(track, name)))
        model.updated_at = utc_now()

    async def update_track_metadata(self, track_id: str, fields: dict[str, Any]) -> None:
        """Write catalog/credits/registry fields."""
        await self._update_fields(track_id, fields)

    async def update_track_chartmetric(self, track_id: str, fields: dict[str, Any]) -> None:
        """Write analytics fields."""
        await self._update_fields(track_id, fields)

    async def _update_fields(self, track_id: str, fields: dict[str, Any]) -> None:
        unknown = set(fields) - set(_TRACK_MUTABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown track fields: {sorted(unknown)}")
        values = {name: _db_value(value) for name, value in fields.items()}
        values["updated_at"] = utc_now()
        stmt = update(TrackModel).where(TrackModel.id == track_id).values(**values)
        result = await self.session.execute(stmt)
        if result.rowcount == 0:  # type: ignore[attr-defined]
            raise EntityNotFoundException("Track", track_id)

    async def update_batch_last_enrichment_attempt(
        self, track_ids: list[str], attempted_at: datetime | None = None
    ) -> int:
        """Stamp last_enrichment_attempt on many tracks at once."""
        if not track_ids:
            return 0
        stmt = (
            update(TrackModel)
            .where(TrackModel.id.in_(track_ids))
            .values(last_enrichment_attempt=attempted_at or utc_now())
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0  # type: ignore[attr-defined]

    async def get_tracks_needing_artist_enrichment(
        self, limit: int = 50, not_attempted_since: datetime | None = None
    ) -> list[Track]:
        """Tracks with writer metadata but no linked artist yet."""
        conditions = [
            TrackModel.songwriter.is_not(None),
            TrackModel.songwriter != "",
            ~TrackModel.artists.any(),
        ]
        if not_attempted_since is not None:
            conditions.append(_attempted_before(not_attempted_since))
        stmt = (
            select(TrackModel)
            .where(*conditions)
            .order_by(TrackModel.created_at.asc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [_track_to_entity(m) for m in result.scalars().all()]

    async def get_tracks_needing_chartmetric_enrichment(
        self, limit: int = 50, not_attempted_since: datetime | None = None
    ) -> list[Track]:
        """Tracks with an ISRC and no successful analytics pass."""
        conditions = [
            TrackModel.isrc.is_not(None),
            TrackModel.isrc != "",
            TrackModel.chartmetric_status != EnrichmentStatus.SUCCESS.value,
        ]
        if not_attempted_since is not None:
            conditions.append(_attempted_before(not_attempted_since))
        stmt = (
            select(TrackModel)
            .where(*conditions)
            .order_by(TrackModel.created_at.asc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [_track_to_entity(m) for m in result.scalars().all()]

    async def get_stale_chartmetric_tracks(
        self, days_old: int = 7, limit: int = 50
    ) -> list[Track]:
        """Tracks whose last successful analytics pass is older than days_old."""
        cutoff = datetime.now(UTC) - timedelta(days=days_old)
        stmt = (
            select(TrackModel)
            .where(
                TrackModel.chartmetric_status == EnrichmentStatus.SUCCESS.value,
                TrackModel.chartmetric_enriched_at.is_not(None),
                TrackModel.chartmetric_enriched_at < cutoff,
            )
            .order_by(TrackModel.chartmetric_enriched_at.asc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [_track_to_entity(m) for m in result.scalars().all()]

    # Hey future me - "failed OR no_data in ANY phase" and "last attempt older than `since`".
    # A NULL last attempt counts as infinitely old. Because enqueue stamps the attempt time,
    # a track that is still sitting in the queue is never picked twice.
    async def get_tracks_needing_retry(self, since: datetime, limit: int = 100) -> list[Track]:
        """Failed/no_data tracks whose last attempt is older than `since`."""
        status_columns = [
            getattr(TrackModel, phase.status_field) for phase in EnrichmentPhase
        ]
        stmt = (
            select(TrackModel)
            .where(
                or_(*[column.in_(RETRYABLE_STATUSES) for column in status_columns]),
                _attempted_before(since),
            )
            .order_by(
                TrackModel.last_enrichment_attempt.is_(None).desc(),
                TrackModel.last_enrichment_attempt.asc(),
            )
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [_track_to_entity(m) for m in result.scalars().all()]

    async def get_track_ids_with_streaming_metrics(self) -> list[str]:
        """Ids of tracks with any non-null streaming metric."""
        stmt = (
            select(TrackModel.id)
            .where(
                or_(
                    TrackModel.spotify_streams.is_not(None),
                    TrackModel.streaming_velocity.is_not(None),
                    TrackModel.youtube_views.is_not(None),
                )
            )
            .order_by(TrackModel.created_at.asc(), TrackModel.id.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_tracks_with_songwriters(self) -> list[Track]:
        """All tracks that carry songwriter metadata."""
        stmt = select(TrackModel).where(
            TrackModel.songwriter.is_not(None), TrackModel.songwriter != ""
        )
        result = await self.session.execute(stmt)
        return [_track_to_entity(m) for m in result.scalars().all()]

    async def get_tracks_for_week(self, week: date) -> list[Track]:
        """All tracks scraped in a given week."""
        stmt = select(TrackModel).where(TrackModel.week == week)
        result = await self.session.execute(stmt)
        return [_track_to_entity(m) for m in result.scalars().all()]


def _attempted_before(instant: datetime) -> Any:
    return or_(
        TrackModel.last_enrichment_attempt.is_(None),
        TrackModel.last_enrichment_attempt < instant,
    )


def _artist_to_entity(model: ArtistModel) -> Artist:
    return Artist(
        id=model.id,
        name=model.name,
        musicbrainz_id=model.musicbrainz_id,
        links=dict(model.links or {}),
        created_at=ensure_utc_aware(model.created_at) or utc_now(),
        updated_at=ensure_utc_aware(model.updated_at) or utc_now(),
    )


class ArtistRepository(IArtistRepository):
    """SQLAlchemy implementation of Artist repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def create_or_update_artist(
        self, name: str, musicbrainz_id: str | None = None
    ) -> Artist:
        """Find by MusicBrainz id (falling back to exact name) and update, or create."""
        model: ArtistModel | None = None
        if musicbrainz_id:
            result = await self.session.execute(
                select(ArtistModel).where(ArtistModel.musicbrainz_id == musicbrainz_id)
            )
            model = result.scalar_one_or_none()
        if model is None:
            result = await self.session.execute(
                select(ArtistModel)
                .where(func.lower(ArtistModel.name) == name.lower())
                .limit(1)
            )
            model = result.scalar_one_or_none()
            # Same name but a different canonical id is a different person
            if model is not None and musicbrainz_id and model.musicbrainz_id not in (
                None,
                musicbrainz_id,
            ):
                model = None

        if model is None:
            model = ArtistModel(id=new_id(), name=name, musicbrainz_id=musicbrainz_id, links={})
            self.session.add(model)
            logger.debug(f"Created artist {name} ({musicbrainz_id})")
        else:
            model.name = name
            if musicbrainz_id and not model.musicbrainz_id:
                model.musicbrainz_id = musicbrainz_id
            model.updated_at = utc_now()

        await self.session.flush()
        return _artist_to_entity(model)

    async def link_artist_to_track(self, artist_id: str, track_id: str) -> None:
        """Link an artist to a track (idempotent)."""
        existing = await self.session.get(ArtistTrackModel, (artist_id, track_id))
        if existing is None:
            self.session.add(ArtistTrackModel(artist_id=artist_id, track_id=track_id))
            await self.session.flush()

    async def update_artist_links(self, artist_id: str, links: dict[str, str]) -> None:
        """Merge social/website links into an artist (never blanks existing ones)."""
        model = await self.session.get(ArtistModel, artist_id)
        if model is None:
            raise EntityNotFoundException("Artist", artist_id)
        merged = dict(model.links or {})
        merged.update({k: v for k, v in links.items() if v})
        # Reassign so SQLAlchemy notices the JSON change
        model.links = merged
        model.updated_at = utc_now()

    async def get_by_musicbrainz_id(self, musicbrainz_id: str) -> Artist | None:
        """Get an artist by MusicBrainz id."""
        result = await self.session.execute(
            select(ArtistModel).where(ArtistModel.musicbrainz_id == musicbrainz_id)
        )
        model = result.scalar_one_or_none()
        return _artist_to_entity(model) if model else None

    async def get_track_artists(self, track_id: str) -> list[Artist]:
        """Artists linked to a track."""
        stmt = (
            select(ArtistModel)
            .join(ArtistTrackModel, ArtistTrackModel.artist_id == ArtistModel.id)
            .where(ArtistTrackModel.track_id == track_id)
        )
        result = await self.session.execute(stmt)
        return [_artist_to_entity(m) for m in result.scalars().all()]


def _contact_to_entity(model: ContactModel) -> Contact:
    return Contact(
        id=model.id,
        name=model.name,
        normalized_name=model.normalized_name,
        track_ids=list(model.track_ids or []),
        total_tracks=model.total_tracks,
        registry_searched_count=model.registry_searched_count,
        registry_found_count=model.registry_found_count,
        total_streams=model.total_streams,
        wow_growth_pct=model.wow_growth_pct,
        stage=ContactStage(model.stage),
        stage_locked=model.stage_locked,
        hot_lead=model.hot_lead,
        unsigned_score=model.unsigned_score,
        created_at=ensure_utc_aware(model.created_at) or utc_now(),
        updated_at=ensure_utc_aware(model.updated_at) or utc_now(),
    )


_CONTACT_FIELDS = (
    "name",
    "normalized_name",
    "track_ids",
    "total_tracks",
    "registry_searched_count",
    "registry_found_count",
    "total_streams",
    "wow_growth_pct",
    "stage",
    "stage_locked",
    "hot_lead",
    "unsigned_score",
)


class ContactRepository(IContactRepository):
    """SQLAlchemy implementation of Contact repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def get(self, contact_id: str) -> Contact | None:
        """Get a contact by id."""
        model = await self.session.get(ContactModel, contact_id)
        return _contact_to_entity(model) if model else None

    async def get_by_normalized_name(self, normalized_name: str) -> Contact | None:
        """Get a contact by its grouping key."""
        result = await self.session.execute(
            select(ContactModel).where(ContactModel.normalized_name == normalized_name)
        )
        model = result.scalar_one_or_none()
        return _contact_to_entity(model) if model else None

    async def upsert(self, contact: Contact) -> None:
        """Insert or update a contact."""
        model = await self.session.get(ContactModel, contact.id)
        if model is None:
            model = ContactModel(id=contact.id, created_at=contact.created_at)
            self.session.add(model)
        for name in _CONTACT_FIELDS:
            setattr(model, name, _db_value(getattr(contact, name)))
        model.track_ids = list(contact.track_ids)
        model.updated_at = utc_now()
        await self.session.flush()

    async def list_all(self) -> list[Contact]:
        """List all contacts, best score first."""
        result = await self.session.execute(
            select(ContactModel).order_by(ContactModel.unsigned_score.desc(), ContactModel.name)
        )
        return [_contact_to_entity(m) for m in result.scalars().all()]

    async def update_stage(self, contact_id: str, stage: ContactStage) -> None:
        """Manual stage transition (locks the stage)."""
        model = await self.session.get(ContactModel, contact_id)
        if model is None:
            raise EntityNotFoundException("Contact", contact_id)
        model.stage = stage.value
        model.stage_locked = True
        model.updated_at = utc_now()


def _job_to_entity(model: EnrichmentJobModel) -> Job:
    return Job(
        id=model.id,
        track_ids=tuple(model.track_ids or ()),
        target_phase=EnrichmentPhase(model.target_phase) if model.target_phase else None,
        capture_snapshot=model.capture_snapshot,
        source=model.source,
        status=JobStatus(model.status),
        current_phase=EnrichmentPhase(model.current_phase) if model.current_phase else None,
        tracks_processed=model.tracks_processed,
        tracks_enriched=model.tracks_enriched,
        errors=model.errors,
        error_message=model.error_message,
        created_at=ensure_utc_aware(model.created_at) or utc_now(),
        started_at=ensure_utc_aware(model.started_at),
        completed_at=ensure_utc_aware(model.completed_at),
    )


class JobRepository(IJobRepository):
    """SQLAlchemy implementation of the enrichment job repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def add(self, job: Job) -> None:
        """Persist a new job."""
        self.session.add(
            EnrichmentJobModel(
                id=job.id,
                track_ids=list(job.track_ids),
                target_phase=_db_value(job.target_phase),
                capture_snapshot=job.capture_snapshot,
                source=job.source,
                status=job.status.value,
                created_at=job.created_at,
            )
        )
        await self.session.flush()

    async def update(self, job: Job) -> None:
        """Persist job status and counters."""
        stmt = (
            update(EnrichmentJobModel)
            .where(EnrichmentJobModel.id == job.id)
            .values(
                status=job.status.value,
                current_phase=_db_value(job.current_phase),
                tracks_processed=job.tracks_processed,
                tracks_enriched=job.tracks_enriched,
                errors=job.errors,
                error_message=job.error_message,
                started_at=job.started_at,
                completed_at=job.completed_at,
            )
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:  # type: ignore[attr-defined]
            raise EntityNotFoundException("Job", job.id)

    async def get(self, job_id: str) -> Job | None:
        """Get a job by id."""
        model = await self.session.get(EnrichmentJobModel, job_id)
        return _job_to_entity(model) if model else None

    async def list_by_status(self, statuses: list[JobStatus]) -> list[Job]:
        """List jobs in any of the given statuses, oldest first."""
        stmt = (
            select(EnrichmentJobModel)
            .where(EnrichmentJobModel.status.in_([s.value for s in statuses]))
            .order_by(EnrichmentJobModel.created_at.asc())
        )
        result = await self.session.execute(stmt)
        return [_job_to_entity(m) for m in result.scalars().all()]

    async def count_by_status(self) -> dict[str, int]:
        """Job counts grouped by status."""
        stmt = select(EnrichmentJobModel.status, func.count()).group_by(
            EnrichmentJobModel.status
        )
        result = await self.session.execute(stmt)
        return {status: count for status, count in result.all()}


def _playlist_to_entity(model: TrackedPlaylistModel) -> TrackedPlaylist:
    return TrackedPlaylist(
        id=model.id,
        playlist_id=model.playlist_id,
        name=model.name,
        is_editorial=model.is_editorial,
        last_checked=ensure_utc_aware(model.last_checked),
        created_at=ensure_utc_aware(model.created_at) or utc_now(),
    )


class PlaylistRepository(IPlaylistRepository):
    """SQLAlchemy implementation of the tracked playlist repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def add(self, playlist: TrackedPlaylist) -> None:
        """Start tracking a playlist."""
        self.session.add(
            TrackedPlaylistModel(
                id=playlist.id,
                playlist_id=playlist.playlist_id,
                name=playlist.name,
                is_editorial=playlist.is_editorial,
                last_checked=playlist.last_checked,
                created_at=playlist.created_at,
            )
        )
        await self.session.flush()

    async def get_playlists_due(
        self, not_checked_since: datetime, limit: int
    ) -> list[TrackedPlaylist]:
        """Playlists never checked or last checked before the given instant."""
        stmt = (
            select(TrackedPlaylistModel)
            .where(
                or_(
                    TrackedPlaylistModel.last_checked.is_(None),
                    TrackedPlaylistModel.last_checked < not_checked_since,
                )
            )
            # Never-checked playlists first, then the longest-waiting ones
            .order_by(
                TrackedPlaylistModel.last_checked.is_(None).desc(),
                TrackedPlaylistModel.last_checked.asc(),
            )
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [_playlist_to_entity(m) for m in result.scalars().all()]

    async def mark_checked(self, playlist_id: str, checked_at: datetime) -> None:
        """Record a refresh."""
        await self.session.execute(
            update(TrackedPlaylistModel)
            .where(TrackedPlaylistModel.id == playlist_id)
            .values(last_checked=checked_at)
        )


class ActivityLogRepository(IActivityLog):
    """Append-only activity log in the database."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def log_activity(self, event: ActivityEvent) -> None:
        """Append an activity event."""
        self.session.add(
            ActivityLogModel(
                id=new_id(),
                event_type=event.event_type,
                message=event.message,
                details=event.details,
                created_at=event.created_at,
            )
        )
        await self.session.flush()

    async def list_recent(self, limit: int = 50) -> list[ActivityEvent]:
        """Most recent activity first."""
        result = await self.session.execute(
            select(ActivityLogModel).order_by(ActivityLogModel.created_at.desc()).limit(limit)
        )
        return [
            ActivityEvent(
                event_type=m.event_type,
                message=m.message,
                details=dict(m.details or {}),
                created_at=ensure_utc_aware(m.created_at) or utc_now(),
            )
            for m in result.scalars().all()
        ]


class SnapshotRepository(ISnapshotRepository):
    """SQLAlchemy implementation of the performance snapshot repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def upsert(self, snapshot: PerformanceSnapshot) -> None:
        """Insert or replace the snapshot for (track, week)."""
        result = await self.session.execute(
            select(PerformanceSnapshotModel).where(
                and_(
                    PerformanceSnapshotModel.track_id == snapshot.track_id,
                    PerformanceSnapshotModel.week_start == snapshot.week_start,
                )
            )
        )
        model = result.scalar_one_or_none()
        if model is None:
            model = PerformanceSnapshotModel(
                id=new_id(), track_id=snapshot.track_id, week_start=snapshot.week_start
            )
            self.session.add(model)
        model.streams = snapshot.streams
        model.wow_pct = snapshot.wow_pct
        model.details = snapshot.details
        model.captured_at = snapshot.captured_at
        await self.session.flush()

    async def get_streams(self, track_id: str, week_start: date) -> int | None:
        """Streams recorded for a track in a given week."""
        result = await self.session.execute(
            select(PerformanceSnapshotModel.streams).where(
                PerformanceSnapshotModel.track_id == track_id,
                PerformanceSnapshotModel.week_start == week_start,
            )
        )
        return result.scalar_one_or_none()


class EncryptedTokenRepository(ITokenStore):
    """Singleton row holding the encrypted catalog API token pair."""

    SINGLETON_ID = "spotify"

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def get(self) -> EncryptedToken | None:
        """Load the encrypted token pair, if any."""
        model = await self.session.get(EncryptedTokenModel, self.SINGLETON_ID)
        if model is None:
            return None
        return EncryptedToken(
            access_token_encrypted=model.access_token_encrypted,
            refresh_token_encrypted=model.refresh_token_encrypted,
            expires_at=ensure_utc_aware(model.expires_at) or utc_now(),
        )

    async def save(self, token: EncryptedToken) -> None:
        """Insert or overwrite the singleton token row."""
        model = await self.session.get(EncryptedTokenModel, self.SINGLETON_ID)
        if model is None:
            model = EncryptedTokenModel(id=self.SINGLETON_ID)
            self.session.add(model)
        model.access_token_encrypted = token.access_token_encrypted
        model.refresh_token_encrypted = token.refresh_token_encrypted
        model.expires_at = token.expires_at
        model.updated_at = utc_now()
        await self.session.flush()
