"""Dependency injection for API endpoints."""

from typing import cast

from fastapi import Depends, HTTPException, Request

from songscout.application.services import AuthMonitor, ProgressEventBus
from songscout.application.workers import EnrichmentQueue, PipelineScheduler
from songscout.infrastructure.lifecycle import Pipeline


# Hey future me, the pipeline is built in lifecycle.lifespan() and parked on app.state. If it
# isn't there, startup failed (or a test forgot to set it) - answer 503 instead of a 500.
def get_pipeline(request: Request) -> Pipeline:
    """Get the running pipeline from app state.

    Raises:
        HTTPException: 503 if the pipeline is not initialized
    """
    if not hasattr(request.app.state, "pipeline"):
        raise HTTPException(status_code=503, detail="Pipeline not initialized")
    return cast(Pipeline, request.app.state.pipeline)


def get_queue(pipeline: Pipeline = Depends(get_pipeline)) -> EnrichmentQueue:
    """Enrichment job queue."""
    return pipeline.queue


def get_scheduler(pipeline: Pipeline = Depends(get_pipeline)) -> PipelineScheduler:
    """Cron scheduler."""
    return pipeline.scheduler


def get_auth_monitor(pipeline: Pipeline = Depends(get_pipeline)) -> AuthMonitor:
    """Scraping session health monitor."""
    return pipeline.auth_monitor


def get_event_bus(pipeline: Pipeline = Depends(get_pipeline)) -> ProgressEventBus:
    """Progress event channel."""
    return pipeline.event_bus
