"""Scheduler introspection and manual pipeline triggers."""

from typing import Any

from fastapi import APIRouter, Depends

from songscout.api.dependencies import get_scheduler
from songscout.application.workers import PipelineScheduler

router = APIRouter(tags=["scheduler"])


@router.get("/scheduler/status")
async def get_scheduler_status(
    scheduler: PipelineScheduler = Depends(get_scheduler),
) -> dict[str, Any]:
    """Enabled flag and registered cron jobs with their run bookkeeping."""
    return scheduler.get_scheduler_status()


@router.post("/operator/playlist-update")
async def run_playlist_update(
    scheduler: PipelineScheduler = Depends(get_scheduler),
) -> dict[str, Any]:
    """Refresh the playlists due this week right now."""
    return await scheduler.run_playlist_update_job()


@router.post("/operator/performance-snapshot")
async def run_performance_snapshot(
    scheduler: PipelineScheduler = Depends(get_scheduler),
) -> dict[str, Any]:
    """Queue the weekly analytics re-run; its last job captures the snapshot."""
    return await scheduler.run_performance_snapshot_job()
