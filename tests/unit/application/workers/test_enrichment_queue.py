"""Tests for the enrichment job queue."""

import asyncio
from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from songscout.application.services import ProgressEventBus, ScoringService
from songscout.application.services.phases import PhaseExecutor, PhaseResult, RegistryPhase
from songscout.application.workers.enrichment_queue import EnrichmentQueue, chunked
from songscout.domain.entities import (
    EnrichmentPhase,
    EnrichmentStatus,
    Job,
    JobRequest,
    JobStatus,
    ProgressEventType,
    Track,
)
from songscout.domain.exceptions import EntityNotFoundException
from songscout.domain.ports import IRegistrySource, ISnapshotCapturer, RegistryWork
from songscout.infrastructure.persistence import Database, JobRepository, TrackRepository


def _executor(phase: EnrichmentPhase, **result: object) -> MagicMock:
    """A phase executor that succeeds for every track it is given."""
    executor = MagicMock(spec=PhaseExecutor)
    executor.phase = phase

    async def execute(track_ids: list[str], force: bool = False, on_track=None) -> PhaseResult:
        fields = {"requested": len(track_ids), "processed": len(track_ids)}
        fields["succeeded"] = len(track_ids)
        fields.update(result)
        return PhaseResult(phase=phase, **fields)  # type: ignore[arg-type]

    executor.execute = AsyncMock(side_effect=execute)
    return executor


class _Harness:
    def __init__(self, database: Database, executors: list[MagicMock]) -> None:
        self.executors = executors
        self.scoring = AsyncMock(spec=ScoringService)
        self.scoring.rescore_tracks.return_value = 0
        self.snapshots = AsyncMock(spec=ISnapshotCapturer)
        self.snapshots.capture_snapshot.return_value = {}
        self.bus = ProgressEventBus(buffer_size=1000)
        self.queue = EnrichmentQueue(
            database.session_scope,
            executors,  # type: ignore[arg-type]
            self.scoring,
            self.snapshots,
            self.bus,
            sub_batch_size=50,
            poll_interval=0.01,
        )


@pytest.fixture
def harness(database: Database) -> _Harness:
    return _Harness(database, [_executor(phase) for phase in EnrichmentPhase])


def test_chunked() -> None:
    """Consecutive chunks, last one short."""
    assert chunked(["a", "b", "c"], 2) == [["a", "b"], ["c"]]
    assert chunked([], 50) == []


class TestEnqueue:
    """Tests for enqueue and status."""

    async def test_enqueue_persists_deduplicated_job(
        self, harness: _Harness, database: Database
    ) -> None:
        """Duplicate ids collapse; the job is queued in the database."""
        job = await harness.queue.enqueue(JobRequest(track_ids=("a", "b", "a", ""), source="api"))

        assert job.track_ids == ("a", "b")
        stored = await harness.queue.status(job.id)
        assert stored.status == JobStatus.QUEUED
        assert stored.source == "api"

    async def test_unknown_job(self, harness: _Harness) -> None:
        """status() of an unknown id is a not-found error."""
        with pytest.raises(EntityNotFoundException):
            await harness.queue.status("nope")


class TestRunJob:
    """Tests for job execution."""

    async def test_three_chunks_one_snapshot(self, harness: _Harness) -> None:
        """120 tracks run as 50/50/20, every phase per chunk, a single snapshot at the end."""
        ids = tuple(f"t{n}" for n in range(120))
        job = await harness.queue.enqueue(JobRequest(track_ids=ids, capture_snapshot=True))

        assert await harness.queue.drain() == 1

        finished = await harness.queue.status(job.id)
        assert finished.status == JobStatus.COMPLETED
        assert finished.tracks_processed == 120 * 5
        assert finished.tracks_enriched == 120 * 5
        for executor in harness.executors:
            sizes = [len(c.args[0]) for c in executor.execute.await_args_list]
            assert sizes == [50, 50, 20]
        assert harness.scoring.rescore_tracks.await_count == 3
        harness.snapshots.capture_snapshot.assert_awaited_once()

    async def test_phases_run_in_order(self, harness: _Harness) -> None:
        """Catalog first, registry last."""
        calls: list[EnrichmentPhase] = []
        for executor in harness.executors:
            original = executor.execute.side_effect

            async def recording(*args, _phase=executor.phase, _orig=original, **kwargs):
                calls.append(_phase)
                return await _orig(*args, **kwargs)

            executor.execute.side_effect = recording

        await harness.queue.enqueue(JobRequest(track_ids=("t1",)))
        await harness.queue.drain()

        assert calls == sorted(EnrichmentPhase)

    async def test_targeted_job_forces_single_phase(self, harness: _Harness) -> None:
        """A target phase runs alone and ignores prior success."""
        await harness.queue.enqueue(
            JobRequest(track_ids=("t1",), target_phase=EnrichmentPhase.REGISTRY)
        )
        await harness.queue.drain()

        for executor in harness.executors:
            if executor.phase is EnrichmentPhase.REGISTRY:
                assert executor.execute.await_args.kwargs["force"] is True
            else:
                executor.execute.assert_not_awaited()
        harness.snapshots.capture_snapshot.assert_not_awaited()

    async def test_auth_expiry_halts_phase_for_later_chunks(self, database: Database) -> None:
        """Once credits reports expired auth, it is not called for the next chunks."""
        credits = _executor(EnrichmentPhase.CREDITS, auth_expired=True)
        catalog = _executor(EnrichmentPhase.CATALOG)
        harness = _Harness(database, [catalog, credits])

        job = await harness.queue.enqueue(JobRequest(track_ids=tuple(f"t{n}" for n in range(120))))
        await harness.queue.drain()

        assert credits.execute.await_count == 1
        assert catalog.execute.await_count == 3
        assert (await harness.queue.status(job.id)).status == JobStatus.COMPLETED

    async def test_crash_marks_job_failed(self, database: Database) -> None:
        """An exception escaping a phase fails the job with its message."""
        catalog = _executor(EnrichmentPhase.CATALOG)
        catalog.execute.side_effect = RuntimeError("disk full")
        harness = _Harness(database, [catalog])
        queue = harness.bus.subscribe()

        job = await harness.queue.enqueue(JobRequest(track_ids=("t1",)))
        await harness.queue.drain()

        failed = await harness.queue.status(job.id)
        assert failed.status == JobStatus.FAILED
        assert failed.error_message == "disk full"
        types = []
        while not queue.empty():
            types.append(queue.get_nowait().type)
        assert types[0] == ProgressEventType.JOB_STARTED
        assert types[-1] == ProgressEventType.JOB_FAILED

    async def test_finished_job_is_not_rerun(self, harness: _Harness) -> None:
        """Only queued jobs run."""
        job = await harness.queue.enqueue(JobRequest(track_ids=("t1",)))
        await harness.queue.drain()

        assert await harness.queue.run_job(job.id) is None
        assert await harness.queue.run_job("unknown") is None


class TestRecovery:
    """Tests for startup recovery and the worker loop."""

    async def test_running_job_is_requeued(self, harness: _Harness, database: Database) -> None:
        """A job left running by a crash goes back to queued and runs again."""
        orphan = Job(id="orphan", track_ids=("t1",), status=JobStatus.RUNNING)
        waiting = Job(id="waiting", track_ids=("t2",))
        async with database.session_scope() as session:
            repo = JobRepository(session)
            await repo.add(orphan)
            await repo.add(waiting)

        assert await harness.queue.recover_jobs() == 2
        assert (await harness.queue.status("orphan")).status == JobStatus.QUEUED

        await harness.queue.drain()
        assert (await harness.queue.status("orphan")).status == JobStatus.COMPLETED
        assert (await harness.queue.status("waiting")).status == JobStatus.COMPLETED

    async def test_worker_loop_processes_jobs(self, harness: _Harness) -> None:
        """The background worker picks up enqueued jobs."""
        await harness.queue.start()
        try:
            job = await harness.queue.enqueue(JobRequest(track_ids=("t1",)))
            for _ in range(200):
                if (await harness.queue.status(job.id)).status == JobStatus.COMPLETED:
                    break
                await asyncio.sleep(0.01)
            assert (await harness.queue.status(job.id)).status == JobStatus.COMPLETED
        finally:
            await harness.queue.stop()

        stats = await harness.queue.get_stats()
        assert stats["completed"] == 1
        assert stats["worker_running"] is False


class TestTrackFailureIsolation:
    """A real phase behind the queue: one unreadable response never fails the job."""

    async def test_parser_error_on_one_track_keeps_job_alive(
        self, database: Database, make_track: Callable[..., Track]
    ) -> None:
        """t0 is failed, t1 and t2 are finished, the job completes."""
        async with database.session_scope() as session:
            await TrackRepository(session).insert_tracks(
                [make_track(id=f"t{i}", isrc=f"I{i}") for i in range(3)]
            )

        async def lookup(isrc: str) -> RegistryWork | None:
            if isrc == "I0":
                raise AttributeError("'str' object has no attribute 'get'")
            return None

        source = MagicMock(spec=IRegistrySource)
        source.lookup_by_isrc = AsyncMock(side_effect=lookup)
        registry = RegistryPhase(database.session_scope, source, concurrency=1)
        others = [_executor(phase) for phase in EnrichmentPhase if phase is not registry.phase]
        harness = _Harness(database, [*others, registry])  # type: ignore[list-item]

        job = await harness.queue.enqueue(JobRequest(track_ids=("t0", "t1", "t2")))
        await harness.queue.drain()

        assert (await harness.queue.status(job.id)).status == JobStatus.COMPLETED
        async with database.session_scope() as session:
            stored = await TrackRepository(session).get_by_ids(["t0", "t1", "t2"])
        tracks = {t.id: t for t in stored}
        assert tracks["t0"].registry_status == EnrichmentStatus.FAILED
        assert tracks["t1"].registry_status == EnrichmentStatus.NO_DATA
        assert tracks["t2"].registry_status == EnrichmentStatus.NO_DATA
