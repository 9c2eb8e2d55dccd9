"""Pipeline wiring, startup and shutdown.

This module builds every long-lived object of the process exactly once and hands them to
whoever needs them: the FastAPI lifespan below and the CLI both go through build_pipeline().
No module-level singletons; the objects live on the Pipeline container (and on app.state).
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

from fastapi import FastAPI

from songscout.application.services import (
    AuthMonitor,
    CredentialVault,
    PerformanceService,
    PlaylistUpdateService,
    ProgressEventBus,
    ScoringService,
)
from songscout.application.services.phases import (
    AnalyticsPhase,
    ArtistLinkingPhase,
    CatalogMetadataPhase,
    CreditsPhase,
    RegistryPhase,
)
from songscout.application.workers import EnrichmentQueue, PipelineScheduler
from songscout.config import Settings, get_settings
from songscout.infrastructure.integrations import (
    BrowserSession,
    ChartmetricClient,
    MLCApiClient,
    MLCPortalScraper,
    MusicBrainzClient,
    RegistryLookup,
    SpotifyClient,
    SpotifyCreditsScraper,
    SpotifyPlaylistFetcher,
)
from songscout.infrastructure.observability import configure_logging
from songscout.infrastructure.persistence import Database
from songscout.infrastructure.rate_limiter import (
    get_chartmetric_limiter,
    get_musicbrainz_limiter,
    get_registry_limiter,
    get_spotify_limiter,
)

logger = logging.getLogger(__name__)


@dataclass
class Pipeline:
    """Everything a running songscout process holds on to."""

    settings: Settings
    database: Database
    auth_monitor: AuthMonitor
    vault: CredentialVault
    event_bus: ProgressEventBus
    scoring_service: ScoringService
    performance_service: PerformanceService
    playlist_service: PlaylistUpdateService
    queue: EnrichmentQueue
    scheduler: PipelineScheduler
    # Objects with an async close(), shut down in reverse order
    closeables: list[Any] = field(default_factory=list)


def build_pipeline(settings: Settings, database: Database | None = None) -> Pipeline:
    """Construct (but do not start) the whole pipeline.

    Args:
        settings: Application settings
        database: Existing database (tests); built from settings when omitted
    """
    database = database or Database(settings.database)
    session_scope = database.session_scope
    timeout = settings.enrichment.request_timeout_seconds
    concurrency = settings.enrichment.phase_concurrency

    spotify_client = SpotifyClient(settings.spotify, timeout=timeout, limiter=get_spotify_limiter())
    musicbrainz_client = MusicBrainzClient(
        settings.musicbrainz, timeout=timeout, limiter=get_musicbrainz_limiter()
    )
    chartmetric_client = ChartmetricClient(
        settings.chartmetric, timeout=timeout, limiter=get_chartmetric_limiter()
    )
    mlc_client = MLCApiClient(settings.registry, timeout=timeout, limiter=get_registry_limiter())
    browser = BrowserSession(settings.scraper)

    auth_monitor = AuthMonitor(settings.vault.auth_status_path)
    vault = CredentialVault(settings.spotify, settings.vault, session_scope, spotify_client)
    event_bus = ProgressEventBus()

    credits_scraper = SpotifyCreditsScraper(settings.scraper, browser, vault, auth_monitor)
    registry_source = RegistryLookup(
        mlc_client,
        MLCPortalScraper(settings.registry, browser),
        settings.registry.portal_fallback,
    )

    scoring_service = ScoringService(session_scope)
    performance_service = PerformanceService(session_scope, scoring_service)
    phases = [
        CatalogMetadataPhase(session_scope, vault.get_valid_client, concurrency),
        CreditsPhase(session_scope, credits_scraper, auth_monitor),
        ArtistLinkingPhase(session_scope, musicbrainz_client, concurrency),
        AnalyticsPhase(
            session_scope,
            chartmetric_client,
            staleness_days=settings.enrichment.chartmetric_staleness_days,
            concurrency=concurrency,
        ),
        RegistryPhase(session_scope, registry_source),
    ]
    queue = EnrichmentQueue(
        session_scope,
        phases,
        scoring_service,
        performance_service,
        event_bus,
        sub_batch_size=settings.enrichment.sub_batch_size,
        poll_interval=settings.enrichment.queue_poll_interval_seconds,
    )
    playlist_service = PlaylistUpdateService(
        session_scope,
        SpotifyPlaylistFetcher(spotify_client, vault.get_access_token),
        queue.enqueue,
        batch_size=settings.scheduler.playlist_batch_size,
    )
    scheduler = PipelineScheduler(session_scope, queue, playlist_service, auth_monitor)

    return Pipeline(
        settings=settings,
        database=database,
        auth_monitor=auth_monitor,
        vault=vault,
        event_bus=event_bus,
        scoring_service=scoring_service,
        performance_service=performance_service,
        playlist_service=playlist_service,
        queue=queue,
        scheduler=scheduler,
        closeables=[spotify_client, musicbrainz_client, chartmetric_client, mlc_client, browser],
    )


async def start_pipeline(pipeline: Pipeline, run_workers: bool = True) -> None:
    """Create tables and, when running workers, recover jobs and start worker and scheduler.

    Args:
        pipeline: Built pipeline
        run_workers: False for one-shot CLI commands that drain the queue themselves
    """
    await pipeline.database.create_tables()
    if not run_workers:
        # A `serve` process may own the running jobs right now. A one-shot command only
        # drains what it enqueued itself.
        return

    recovered = await pipeline.queue.recover_jobs()
    if recovered:
        logger.info(f"Recovered {recovered} enrichment jobs from the last run")
    await pipeline.queue.start()
    pipeline.scheduler.start(pipeline.settings.scheduler)


async def stop_pipeline(pipeline: Pipeline) -> None:
    """Stop workers and release every connection; errors are logged, never raised."""
    pipeline.scheduler.stop()
    await pipeline.queue.stop()
    for resource in reversed(pipeline.closeables):
        try:
            await resource.close()
        except Exception as e:
            logger.warning(f"Error closing {type(resource).__name__}: {e}")
    await pipeline.database.close()
    logger.info("Pipeline stopped")


# Listen future me, everything before `yield` runs at STARTUP, everything after at SHUTDOWN.
# The pipeline lives on app.state so routers reach it through api/dependencies.py.
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings: Settings = getattr(app.state, "settings", None) or get_settings()
    configure_logging(
        log_level=settings.log_level,
        json_format=settings.observability.log_json_format,
        app_name=settings.app_name,
    )
    logger.info(f"Starting application: {settings.app_name}")

    pipeline = build_pipeline(settings)
    app.state.pipeline = pipeline
    try:
        await start_pipeline(pipeline)
        yield
    finally:
        logger.info(f"Shutting down application: {settings.app_name}")
        await stop_pipeline(pipeline)
