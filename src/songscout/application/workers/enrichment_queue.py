"""Enrichment job queue - persistent jobs, strictly ordered phases, progress events.

Hey future me - this is where the whole pipeline comes together!

FLOW:
```
scheduler / API / CLI → enqueue(JobRequest) → DB row (queued) + in-memory id queue
                                                   ↓
                                worker loop picks id → job.start()
                                                   ↓
                 for each sub-batch of ≤50 tracks: phase 1 → 2 → 3 → 4 → 5, rescore
                                                   ↓
                       capture_snapshot? → exactly ONCE, after the last sub-batch
                                                   ↓
                                      job.complete() / job.fail()
```

Jobs live in the database so a crash doesn't lose them: recover_jobs() on startup puts
orphaned `running` jobs back to `queued` and reloads the queue.

enqueue() stamps last_enrichment_attempt on every track of the job right away. That's what
keeps the next scheduler tick from selecting the same tracks again while this job is still
waiting in line.
"""

import asyncio
import logging
import uuid
from collections.abc import Iterable
from typing import Any

from songscout.application.services.phases import PhaseExecutor, PhaseResult, TrackCallback
from songscout.application.services.progress_events import ProgressEventBus
from songscout.application.services.scoring_service import ScoringService
from songscout.domain.entities import (
    ActivityEvent,
    EnrichmentPhase,
    EnrichmentStatus,
    Job,
    JobRequest,
    JobStatus,
    ProgressEvent,
    ProgressEventType,
)
from songscout.domain.exceptions import EntityNotFoundException
from songscout.domain.ports import ISnapshotCapturer
from songscout.infrastructure.observability import set_correlation_id
from songscout.infrastructure.persistence import (
    ActivityLogRepository,
    JobRepository,
    SessionScope,
    TrackRepository,
)

logger = logging.getLogger(__name__)


def chunked(items: list[str], size: int) -> list[list[str]]:
    """Split a list into consecutive chunks of at most `size` items."""
    return [items[i : i + size] for i in range(0, len(items), size)]


def _unique(ids: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(i for i in ids if i))


class EnrichmentQueue:
    """Database-backed enrichment job queue with a single worker loop.

    One job runs at a time; parallelism lives INSIDE the phases (bounded per source).
    """

    def __init__(
        self,
        session_scope: SessionScope,
        phases: list[PhaseExecutor],
        scoring_service: ScoringService,
        snapshot_capturer: ISnapshotCapturer,
        event_bus: ProgressEventBus,
        sub_batch_size: int = 50,
        poll_interval: float = 2.0,
    ) -> None:
        """Initialize the queue.

        Args:
            session_scope: Transactional session factory
            phases: Phase executors; each runs for its own EnrichmentPhase
            scoring_service: Rescoring after each sub-batch
            snapshot_capturer: Performance snapshot side effect
            event_bus: Where progress events go
            sub_batch_size: Tracks per sub-batch (the catalog API caps at 50)
            poll_interval: Seconds the worker waits for a job before re-checking shutdown
        """
        self.session_scope = session_scope
        self.executors: dict[EnrichmentPhase, PhaseExecutor] = {p.phase: p for p in phases}
        self.scoring_service = scoring_service
        self.snapshot_capturer = snapshot_capturer
        self.event_bus = event_bus
        self.sub_batch_size = max(1, sub_batch_size)
        self.poll_interval = poll_interval

        self._pending: asyncio.Queue[str] = asyncio.Queue()
        self._worker_task: asyncio.Task[None] | None = None
        self._running = False
        self._current_job_id: str | None = None
        self._totals = {
            "tracks_processed": 0,
            "tracks_enriched": 0,
            "errors": 0,
            "snapshots_captured": 0,
        }

    # ------------------------------------------------------------------ public API

    async def enqueue(self, request: JobRequest) -> Job:
        """Persist a new job and schedule it.

        Args:
            request: Tracks to enrich, optional target phase, snapshot flag

        Returns:
            The queued job
        """
        job = Job(
            id=str(uuid.uuid4()),
            track_ids=_unique(request.track_ids),
            target_phase=request.target_phase,
            capture_snapshot=request.capture_snapshot,
            source=request.source,
        )
        async with self.session_scope() as session:
            await JobRepository(session).add(job)
            await TrackRepository(session).update_batch_last_enrichment_attempt(
                list(job.track_ids)
            )
        await self._pending.put(job.id)

        phase = job.target_phase.label if job.target_phase else "all phases"
        logger.info(
            f"Queued enrichment job {job.id}: {len(job.track_ids)} tracks, {phase}, "
            f"source={job.source}"
        )
        return job

    async def status(self, job_id: str) -> Job:
        """Current state of a job.

        Raises:
            EntityNotFoundException: Unknown job id
        """
        async with self.session_scope() as session:
            job = await JobRepository(session).get(job_id)
        if job is None:
            raise EntityNotFoundException("Job", job_id)
        return job

    async def recover_jobs(self) -> int:
        """Reload unfinished jobs after a restart.

        Jobs left `running` by a crashed process go back to `queued`. Call this BEFORE start().

        Returns:
            Number of jobs put back into the queue
        """
        async with self.session_scope() as session:
            repo = JobRepository(session)
            jobs = await repo.list_by_status([JobStatus.RUNNING, JobStatus.QUEUED])
            for job in jobs:
                if job.status is JobStatus.RUNNING:
                    job.requeue()
                    await repo.update(job)
                    logger.warning(f"Recovered orphaned job {job.id} (was running)")

        for job in jobs:
            await self._pending.put(job.id)
        if jobs:
            logger.info(f"Recovered {len(jobs)} unfinished enrichment jobs")
        return len(jobs)

    async def start(self) -> None:
        """Start the background worker loop."""
        if self._running:
            logger.warning("Enrichment queue already running")
            return
        self._running = True
        self._worker_task = asyncio.create_task(self._worker_loop(), name="enrichment-queue")
        logger.info("Enrichment queue worker started")

    async def stop(self) -> None:
        """Stop the worker loop; a job in flight stays `running` and is recovered next start."""
        self._running = False
        if self._worker_task is not None:
            self._worker_task.cancel()
            try:
                await self._worker_task
            except asyncio.CancelledError:
                pass
            self._worker_task = None
        logger.info("Enrichment queue worker stopped")

    async def drain(self) -> int:
        """Process every queued job in the foreground (CLI, tests).

        Returns:
            Number of jobs processed
        """
        processed = 0
        while not self._pending.empty():
            job_id = self._pending.get_nowait()
            await self.run_job(job_id)
            processed += 1
        return processed

    async def get_stats(self) -> dict[str, Any]:
        """Job counts by status plus pipeline counters since process start."""
        async with self.session_scope() as session:
            counts = await JobRepository(session).count_by_status()
        return {
            "queued": counts.get(JobStatus.QUEUED.value, 0),
            "running": counts.get(JobStatus.RUNNING.value, 0),
            "completed": counts.get(JobStatus.COMPLETED.value, 0),
            "failed": counts.get(JobStatus.FAILED.value, 0),
            **self._totals,
            "pending_in_memory": self._pending.qsize(),
            "current_job_id": self._current_job_id,
            "worker_running": self._running,
        }

    # ------------------------------------------------------------------ worker

    async def _worker_loop(self) -> None:
        while self._running:
            try:
                job_id = await asyncio.wait_for(self._pending.get(), timeout=self.poll_interval)
            except TimeoutError:
                continue
            try:
                await self.run_job(job_id)
            except Exception:
                # Storage hiccup while marking the job; never let one job kill the loop
                logger.exception(f"Enrichment worker crashed on job {job_id}")

    async def run_job(self, job_id: str) -> Job | None:
        """Run one job end to end.

        Returns:
            The finished job, or None when it was unknown or already handled
        """
        async with self.session_scope() as session:
            job = await JobRepository(session).get(job_id)
        if job is None:
            logger.warning(f"Job {job_id} vanished before it could run")
            return None
        if job.status is not JobStatus.QUEUED:
            logger.debug(f"Job {job_id} is {job.status.value}, skipping")
            return None

        set_correlation_id(job.id)
        self._current_job_id = job.id
        try:
            job.start()
            await self._save(job)
            self._publish(job, ProgressEventType.JOB_STARTED)
            await self._log_activity(
                "enrichment_started",
                f"Enrichment job started ({len(job.track_ids)} tracks, source={job.source})",
                job,
            )

            try:
                await self._execute(job)
            except Exception as e:
                logger.exception(f"Enrichment job {job.id} failed")
                job.fail(str(e) or type(e).__name__)
                await self._save(job)
                self._publish(job, ProgressEventType.JOB_FAILED, message=job.error_message)
                await self._log_activity(
                    "enrichment_failed", f"Enrichment job failed: {job.error_message}", job
                )
                return job

            job.complete()
            await self._save(job)
            self._publish(job, ProgressEventType.JOB_COMPLETED)
            await self._log_activity(
                "enrichment_completed",
                f"Enrichment job completed: {job.tracks_enriched} enriched, {job.errors} errors",
                job,
            )
            logger.info(
                f"Job {job.id} completed: {job.tracks_processed} processed, "
                f"{job.tracks_enriched} enriched, {job.errors} errors"
            )
            return job
        finally:
            self._current_job_id = None

    async def _execute(self, job: Job) -> None:
        # A targeted job is an operator re-run: ignore "already succeeded" filters
        force = job.target_phase is not None
        halted: set[EnrichmentPhase] = set()
        chunks = chunked(list(job.track_ids), self.sub_batch_size)

        for index, chunk in enumerate(chunks, start=1):
            for phase in job.phases:
                executor = self.executors.get(phase)
                if executor is None:
                    continue
                if phase in halted:
                    logger.debug(f"Phase {phase.label} halted for job {job.id}, skipping chunk")
                    continue

                job.current_phase = phase
                result = await executor.execute(
                    chunk, force=force, on_track=self._track_callback(job, phase)
                )
                self._apply_result(job, result)
                if result.auth_expired:
                    halted.add(phase)
                await self._save(job)
                self._publish(
                    job,
                    ProgressEventType.PHASE_COMPLETED,
                    phase=phase.label,
                    message=f"chunk {index}/{len(chunks)}",
                )

            await self.scoring_service.rescore_tracks(chunk)

        if job.capture_snapshot:
            # Once per job, after the LAST sub-batch; never per chunk
            await self.snapshot_capturer.capture_snapshot()
            self._totals["snapshots_captured"] += 1

    def _apply_result(self, job: Job, result: PhaseResult) -> None:
        job.tracks_processed += result.processed
        job.tracks_enriched += result.succeeded
        job.errors += result.failed
        self._totals["tracks_processed"] += result.processed
        self._totals["tracks_enriched"] += result.succeeded
        self._totals["errors"] += result.failed

    def _track_callback(self, job: Job, phase: EnrichmentPhase) -> TrackCallback:
        def on_track(track_id: str, status: EnrichmentStatus) -> None:
            self._publish(
                job,
                ProgressEventType.TRACK_ENRICHED,
                phase=phase.label,
                track_id=track_id,
                message=status.value,
            )

        return on_track

    # ------------------------------------------------------------------ helpers

    async def _save(self, job: Job) -> None:
        async with self.session_scope() as session:
            await JobRepository(session).update(job)

    def _publish(
        self,
        job: Job,
        event_type: ProgressEventType,
        phase: str | None = None,
        track_id: str | None = None,
        message: str | None = None,
    ) -> None:
        self.event_bus.publish(
            ProgressEvent(
                type=event_type,
                job_id=job.id,
                phase=phase,
                track_id=track_id,
                tracks_processed=job.tracks_processed,
                tracks_enriched=job.tracks_enriched,
                errors=job.errors,
                total_tracks=len(job.track_ids),
                message=message,
            )
        )

    async def _log_activity(self, event_type: str, message: str, job: Job) -> None:
        async with self.session_scope() as session:
            await ActivityLogRepository(session).log_activity(
                ActivityEvent(
                    event_type=event_type,
                    message=message,
                    details={
                        "job_id": job.id,
                        "source": job.source,
                        "target_phase": job.target_phase.label if job.target_phase else None,
                        "tracks": len(job.track_ids),
                        "tracks_processed": job.tracks_processed,
                        "tracks_enriched": job.tracks_enriched,
                        "errors": job.errors,
                    },
                )
            )
