"""Weekly playlist refresh: fetch membership, upsert tracks, queue the new ones."""

import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from songscout.domain.entities import (
    ActivityEvent,
    Job,
    JobRequest,
    PlaylistEntry,
    Track,
    TrackedPlaylist,
)
from songscout.domain.ports import IPlaylistFetcher
from songscout.domain.value_objects.weeks import week_start, week_start_datetime
from songscout.infrastructure.persistence import (
    ActivityLogRepository,
    PlaylistRepository,
    SessionScope,
    TrackRepository,
)

logger = logging.getLogger(__name__)

Enqueue = Callable[[JobRequest], Awaitable[Job]]


def entries_to_tracks(
    playlist: TrackedPlaylist, entries: list[PlaylistEntry], now: datetime
) -> list[Track]:
    """Turn fetched playlist rows into week-keyed track rows."""
    week = week_start(now)
    return [
        Track(
            id=str(uuid.uuid4()),
            week=week,
            playlist_id=playlist.playlist_id,
            playlist_name=playlist.name,
            track_name=entry.track_name,
            artist_name=entry.artist_name,
            spotify_url=entry.source_url,
            album_art=entry.album_art,
        )
        for entry in entries
    ]


class PlaylistUpdateService:
    """Refreshes tracked playlists that have not been refreshed this ISO week.

    Hey future me - "due" means last_checked is NULL or before Monday 00:00 UTC of the current
    week. That's a calendar-week cadence, NOT rolling 7 days: a playlist checked on Friday is
    due again on the following Monday. Combined with the Friday maintenance-window cron this
    refreshes every playlist once per weekly chart cycle, a few per tick.

    A playlist is marked checked even when the fetch returns zero rows, otherwise an empty (or
    deleted) playlist would be re-fetched on every tick forever. A fetch that RAISES is NOT
    marked, so it's retried on the next tick.
    """

    def __init__(
        self,
        session_scope: SessionScope,
        fetcher: IPlaylistFetcher,
        enqueue: Enqueue,
        batch_size: int = 4,
    ) -> None:
        self.session_scope = session_scope
        self.fetcher = fetcher
        self.enqueue = enqueue
        self.batch_size = batch_size

    async def get_due_playlists(self, now: datetime | None = None) -> list[TrackedPlaylist]:
        """Playlists not refreshed since the start of the current ISO week."""
        now = now or datetime.now(UTC)
        async with self.session_scope() as session:
            return await PlaylistRepository(session).get_playlists_due(
                week_start_datetime(now.date()), self.batch_size
            )

    async def run_playlist_update_job(self) -> dict[str, Any]:
        """Refresh up to batch_size due playlists.

        Returns:
            Summary with playlists, refreshed, failed, tracks_seen, new_tracks, job_id
        """
        now = datetime.now(UTC)
        playlists = await self.get_due_playlists(now)
        summary: dict[str, Any] = {
            "playlists": len(playlists),
            "refreshed": 0,
            "failed": 0,
            "tracks_seen": 0,
            "new_tracks": 0,
            "job_id": None,
        }
        if not playlists:
            logger.info("Playlist update: nothing due this week")
            return summary

        new_ids: list[str] = []
        for playlist in playlists:
            try:
                entries = await self.fetcher.fetch_playlist(playlist.playlist_id)
            except Exception as e:
                # One broken playlist must not stop the rest of the batch
                summary["failed"] += 1
                logger.error(f"Playlist {playlist.name} ({playlist.playlist_id}) fetch failed: {e}")
                continue

            tracks = entries_to_tracks(playlist, entries, now)
            async with self.session_scope() as session:
                inserted = await TrackRepository(session).insert_tracks(tracks)
                await PlaylistRepository(session).mark_checked(playlist.id, now)

            summary["refreshed"] += 1
            summary["tracks_seen"] += len(tracks)
            new_ids.extend(inserted)
            logger.info(
                f"Playlist {playlist.name}: {len(tracks)} tracks, {len(inserted)} new"
            )

        summary["new_tracks"] = len(new_ids)
        if new_ids:
            job = await self.enqueue(JobRequest(track_ids=tuple(new_ids), source="scheduler"))
            summary["job_id"] = job.id

        async with self.session_scope() as session:
            await ActivityLogRepository(session).log_activity(
                ActivityEvent(
                    event_type="playlist_update",
                    message=(
                        f"Refreshed {summary['refreshed']}/{len(playlists)} playlists, "
                        f"{len(new_ids)} new tracks"
                    ),
                    details=summary,
                )
            )
        return summary
