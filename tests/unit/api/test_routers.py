"""Tests for the operator API routers.

The lifespan is never entered here: TestClient is used without a with-block and a fake
pipeline is parked on app.state the way lifecycle.lifespan() would.
"""

from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from songscout.application.services import AuthMonitor, ProgressEventBus
from songscout.application.workers import EnrichmentQueue, PipelineScheduler
from songscout.config import Settings
from songscout.domain.entities import EnrichmentPhase, Job, JobRequest
from songscout.domain.exceptions import ConfigurationMissingError, EntityNotFoundException
from songscout.main import create_app


@pytest.fixture
def queue() -> AsyncMock:
    async def enqueue(request: JobRequest) -> Job:
        return Job(
            id="job-1",
            track_ids=request.track_ids,
            target_phase=request.target_phase,
            capture_snapshot=request.capture_snapshot,
            source=request.source,
        )

    mock = AsyncMock(spec=EnrichmentQueue)
    mock.enqueue.side_effect = enqueue
    mock.status.side_effect = EntityNotFoundException("Job", "missing")
    mock.get_stats.return_value = {"queued": 0, "running": 0}
    return mock


@pytest.fixture
def scheduler() -> MagicMock:
    mock = MagicMock(spec=PipelineScheduler)
    mock.get_scheduler_status.return_value = {"enabled": False, "running": False, "jobs": []}
    mock.run_performance_snapshot_job = AsyncMock(
        side_effect=ConfigurationMissingError("no analytics key", source="chartmetric")
    )
    return mock


@pytest.fixture
def app(tmp_path: Path, queue: AsyncMock, scheduler: MagicMock) -> FastAPI:
    app = create_app(Settings())
    app.state.pipeline = SimpleNamespace(
        queue=queue,
        scheduler=scheduler,
        auth_monitor=AuthMonitor(tmp_path / "auth.json"),
        event_bus=ProgressEventBus(),
    )
    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


class TestEnrichmentRouter:
    """Tests for /api/enrichment."""

    def test_enqueue_job(self, client: TestClient, queue: AsyncMock) -> None:
        """POST returns 202 with the queued job."""
        response = client.post(
            "/api/enrichment/jobs", json={"track_ids": ["t1", "t2"], "phase": 4}
        )

        assert response.status_code == 202
        data = response.json()
        assert data["id"] == "job-1"
        assert data["status"] == "queued"
        assert data["total_tracks"] == 2
        assert data["target_phase"] == "analytics"
        request = queue.enqueue.await_args.args[0]
        assert request.target_phase is EnrichmentPhase.ANALYTICS
        assert request.source == "api"

    def test_enqueue_rejects_bad_phase(self, client: TestClient) -> None:
        """Phase numbers outside 1-5 are a validation error."""
        response = client.post("/api/enrichment/jobs", json={"track_ids": ["t1"], "phase": 9})
        assert response.status_code == 422

    def test_enqueue_rejects_empty_ids(self, client: TestClient) -> None:
        """At least one track id."""
        response = client.post("/api/enrichment/jobs", json={"track_ids": []})
        assert response.status_code == 422

    def test_unknown_job_is_404(self, client: TestClient) -> None:
        """EntityNotFoundException maps to 404."""
        response = client.get("/api/enrichment/jobs/missing")
        assert response.status_code == 404
        assert "missing" in response.json()["detail"]

    def test_stats(self, client: TestClient) -> None:
        """Queue stats pass through."""
        assert client.get("/api/enrichment/stats").json() == {"queued": 0, "running": 0}


class TestAuthRouter:
    """Tests for /api/auth."""

    def test_status_of_fresh_monitor(self, client: TestClient) -> None:
        """No history: healthy, zero failures."""
        data = client.get("/api/auth/status").json()
        assert data["healthy"] is True
        assert data["consecutiveFailures"] == 0

    def test_reset(self, client: TestClient, app: FastAPI) -> None:
        """Reset clears the failure counter."""
        monitor = app.state.pipeline.auth_monitor
        for _ in range(3):
            monitor.record_failure(http_status=401)
        assert client.get("/api/auth/status").json()["healthy"] is False

        data = client.post("/api/auth/reset").json()

        assert data["consecutiveFailures"] == 0


class TestSchedulerRouter:
    """Tests for scheduler introspection and manual triggers."""

    def test_status(self, client: TestClient) -> None:
        """Status passes through."""
        assert client.get("/api/scheduler/status").json()["enabled"] is False

    def test_missing_configuration_is_503(self, client: TestClient) -> None:
        """ConfigurationMissingError maps to 503."""
        response = client.post("/api/operator/performance-snapshot")
        assert response.status_code == 503
        assert response.json()["detail"] == "no analytics key"
        assert response.json()["source"] == "chartmetric"


class TestAppWiring:
    """Tests for the app factory."""

    def test_health(self, client: TestClient) -> None:
        """Health check needs no pipeline."""
        assert client.get("/health").json() == {"status": "ok"}

    def test_no_pipeline_is_503(self) -> None:
        """Endpoints answer 503 until startup parked the pipeline."""
        client = TestClient(create_app(Settings()))
        assert client.get("/api/enrichment/stats").status_code == 503
