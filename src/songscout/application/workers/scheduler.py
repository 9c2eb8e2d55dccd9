"""Cron-driven pipeline scheduler (APScheduler).

Hey future me - nothing here runs at import time! The process bootstrap (lifecycle.py or the
CLI) builds a PipelineScheduler and calls start(config) exactly once. With
SCHEDULER__ENABLED unset the scheduler registers nothing and stays idle, so a dev box
never hammers the real sources by accident.

Three cadences out of the box:
- playlist-refresh    every 15 min inside the Friday maintenance window
- enrichment-retry    daily, failed/no_data tracks older than 7 days, max 100
- performance-snapshot  weekly, analytics re-run in chunks of 50, snapshot on the LAST chunk

The cron bodies are public methods too, so the CLI and API can trigger them by hand.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from songscout.application.services.playlist_update_service import PlaylistUpdateService
from songscout.application.workers.enrichment_queue import EnrichmentQueue, chunked
from songscout.config import SchedulerSettings
from songscout.domain.entities import EnrichmentPhase, JobRequest
from songscout.domain.ports import IAuthMonitor
from songscout.infrastructure.observability import set_correlation_id
from songscout.infrastructure.persistence import SessionScope, TrackRepository

logger = logging.getLogger(__name__)

JobFunc = Callable[[], Awaitable[Any]]


@dataclass
class ScheduledJob:
    """A named cron job and its run bookkeeping."""

    name: str
    cron: str
    func: JobFunc
    description: str = ""
    last_run: datetime | None = None
    last_error: str | None = None
    last_result: Any = None
    run_count: int = 0
    failure_count: int = 0


class PipelineScheduler:
    """Registry of named cron jobs on top of an AsyncIOScheduler."""

    def __init__(
        self,
        session_scope: SessionScope,
        queue: EnrichmentQueue,
        playlist_service: PlaylistUpdateService,
        auth_monitor: IAuthMonitor,
    ) -> None:
        self.session_scope = session_scope
        self.queue = queue
        self.playlist_service = playlist_service
        self.auth_monitor = auth_monitor
        self.config = SchedulerSettings()
        self.jobs: dict[str, ScheduledJob] = {}
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def running(self) -> bool:
        """Whether the cron engine is active."""
        return self._scheduler is not None and self._scheduler.running

    def register_job(
        self, name: str, cron: str, func: JobFunc, description: str = ""
    ) -> ScheduledJob:
        """Register (or replace) a named job.

        Args:
            name: Unique job name
            cron: 5-field crontab expression, evaluated in the configured timezone
            func: Coroutine function to run
            description: Shown in get_scheduler_status()

        Raises:
            ValueError: Invalid cron expression
        """
        trigger = CronTrigger.from_crontab(cron, timezone=self.config.timezone)
        job = ScheduledJob(name=name, cron=cron, func=func, description=description)
        self.jobs[name] = job
        if self._scheduler is not None:
            self._scheduler.add_job(
                self._run,
                trigger,
                args=[name],
                id=name,
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
        logger.debug(f"Registered scheduled job {name} ({cron})")
        return job

    def start(self, config: SchedulerSettings) -> bool:
        """Register the pipeline cadences and start the cron engine.

        Args:
            config: Scheduler settings (enable flag, cadences, limits)

        Returns:
            True if the scheduler started, False when disabled or already running
        """
        self.config = config
        if not config.enabled:
            logger.info("Scheduler disabled (set SCHEDULER__ENABLED=true to enable)")
            return False
        if self.running:
            logger.warning("Scheduler already running")
            return False

        if not self.auth_monitor.has_ever_succeeded():
            # Loud on purpose, but startup goes on: catalog/analytics/registry still work
            logger.warning(
                "⚠️  No successful Spotify session has ever been recorded! Credit scraping "
                "will fail until valid session cookies are configured "
                "(SPOTIFY__COOKIES_JSON or SPOTIFY__COOKIES_FILE)."
            )

        self._scheduler = AsyncIOScheduler(timezone=config.timezone)
        self.register_job(
            "playlist-refresh",
            config.playlist_refresh_cron,
            self.run_playlist_update_job,
            f"Refresh up to {config.playlist_batch_size} playlists not yet refreshed this week",
        )
        self.register_job(
            "enrichment-retry",
            config.retry_cron,
            self.run_retry_job,
            f"Retry failed/no_data tracks older than {config.retry_after_days} days "
            f"(max {config.retry_daily_cap})",
        )
        self.register_job(
            "performance-snapshot",
            config.snapshot_cron,
            self.run_performance_snapshot_job,
            "Re-run analytics for tracks with streaming metrics and capture a snapshot",
        )
        self._scheduler.start()
        logger.info(f"Scheduler started with {len(self.jobs)} jobs ({config.timezone})")
        return True

    def stop(self) -> None:
        """Stop the cron engine (registered jobs stay inspectable)."""
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
        self._scheduler = None

    async def _run(self, name: str) -> None:
        job = self.jobs.get(name)
        if job is None:
            logger.warning(f"Scheduled job {name} is not registered")
            return
        set_correlation_id()
        job.last_run = datetime.now(UTC)
        job.run_count += 1
        try:
            job.last_result = await job.func()
            job.last_error = None
            logger.info(f"Scheduled job {name} finished: {job.last_result}")
        except Exception as e:
            job.failure_count += 1
            job.last_error = str(e) or type(e).__name__
            logger.exception(f"Scheduled job {name} failed")

    def get_scheduler_status(self) -> dict[str, Any]:
        """Enabled flag and per-job cadence, next run and run counters."""
        jobs = []
        for job in self.jobs.values():
            next_run = None
            if self._scheduler is not None:
                scheduled = self._scheduler.get_job(job.name)
                if scheduled is not None and scheduled.next_run_time is not None:
                    next_run = scheduled.next_run_time.isoformat()
            jobs.append(
                {
                    "name": job.name,
                    "cron": job.cron,
                    "description": job.description,
                    "next_run": next_run,
                    "last_run": job.last_run.isoformat() if job.last_run else None,
                    "last_error": job.last_error,
                    "run_count": job.run_count,
                    "failure_count": job.failure_count,
                }
            )
        return {
            "enabled": self.config.enabled,
            "running": self.running,
            "timezone": self.config.timezone,
            "jobs": jobs,
        }

    # ------------------------------------------------------------------ cron bodies

    async def run_playlist_update_job(self) -> dict[str, Any]:
        """Refresh the playlists due this week and queue their new tracks."""
        return await self.playlist_service.run_playlist_update_job()

    async def run_retry_job(self, now: datetime | None = None) -> dict[str, Any]:
        """Queue tracks whose failed/no_data enrichment is old enough to retry.

        Returns:
            Summary with selected count and job id
        """
        now = now or datetime.now(UTC)
        since = now - timedelta(days=self.config.retry_after_days)
        async with self.session_scope() as session:
            tracks = await TrackRepository(session).get_tracks_needing_retry(
                since, limit=self.config.retry_daily_cap
            )
        if not tracks:
            logger.info("Retry pass: no tracks eligible")
            return {"selected": 0, "job_id": None}

        job = await self.queue.enqueue(
            JobRequest(track_ids=tuple(t.id for t in tracks), source="retry")
        )
        logger.info(f"Retry pass: queued {len(tracks)} tracks as job {job.id}")
        return {"selected": len(tracks), "job_id": job.id}

    async def run_performance_snapshot_job(self) -> dict[str, Any]:
        """Queue analytics re-runs for every tracked song; the last chunk captures the snapshot.

        Returns:
            Summary with track count and queued job ids
        """
        async with self.session_scope() as session:
            track_ids = await TrackRepository(session).get_track_ids_with_streaming_metrics()
        if not track_ids:
            logger.info("Performance snapshot: no tracks with streaming metrics yet")
            return {"tracks": 0, "jobs": []}

        chunks = chunked(track_ids, self.config.snapshot_chunk_size)
        job_ids = []
        for index, chunk in enumerate(chunks):
            job = await self.queue.enqueue(
                JobRequest(
                    track_ids=tuple(chunk),
                    target_phase=EnrichmentPhase.ANALYTICS,
                    capture_snapshot=index == len(chunks) - 1,
                    source="snapshot",
                )
            )
            job_ids.append(job.id)
        logger.info(
            f"Performance snapshot: {len(track_ids)} tracks queued in {len(chunks)} jobs"
        )
        return {"tracks": len(track_ids), "jobs": job_ids}
