"""Enrichment job endpoints.

Route prefix: /api/enrichment/*
"""

import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from songscout.api.dependencies import get_queue
from songscout.application.workers import EnrichmentQueue
from songscout.domain.entities import EnrichmentPhase, Job, JobRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/enrichment", tags=["enrichment"])


class EnqueueJobRequest(BaseModel):
    """Body of POST /enrichment/jobs."""

    track_ids: list[str] = Field(min_length=1)
    phase: int | None = Field(default=None, ge=1, le=5, description="Run only this phase (1-5)")
    capture_snapshot: bool = False


class JobResponse(BaseModel):
    """Enrichment job as seen by operators."""

    id: str
    status: str
    source: str
    total_tracks: int
    target_phase: str | None
    current_phase: str | None
    capture_snapshot: bool
    tracks_processed: int
    tracks_enriched: int
    errors: int
    error_message: str | None
    created_at: datetime
    started_at: datetime | None
    completed_at: datetime | None

    @classmethod
    def from_entity(cls, job: Job) -> "JobResponse":
        """Build the response from a Job entity."""
        return cls(
            id=job.id,
            status=job.status.value,
            source=job.source,
            total_tracks=len(job.track_ids),
            target_phase=job.target_phase.label if job.target_phase else None,
            current_phase=job.current_phase.label if job.current_phase else None,
            capture_snapshot=job.capture_snapshot,
            tracks_processed=job.tracks_processed,
            tracks_enriched=job.tracks_enriched,
            errors=job.errors,
            error_message=job.error_message,
            created_at=job.created_at,
            started_at=job.started_at,
            completed_at=job.completed_at,
        )


@router.post("/jobs", status_code=status.HTTP_202_ACCEPTED)
async def enqueue_job(
    body: EnqueueJobRequest,
    queue: EnrichmentQueue = Depends(get_queue),
) -> JobResponse:
    """Queue an enrichment job (optionally for a single phase)."""
    job = await queue.enqueue(
        JobRequest(
            track_ids=tuple(body.track_ids),
            target_phase=EnrichmentPhase(body.phase) if body.phase else None,
            capture_snapshot=body.capture_snapshot,
            source="api",
        )
    )
    return JobResponse.from_entity(job)


@router.get("/jobs/{job_id}")
async def get_job(job_id: str, queue: EnrichmentQueue = Depends(get_queue)) -> JobResponse:
    """Current state of an enrichment job (404 if unknown)."""
    return JobResponse.from_entity(await queue.status(job_id))


@router.get("/stats")
async def get_stats(queue: EnrichmentQueue = Depends(get_queue)) -> dict[str, Any]:
    """Queue statistics."""
    return await queue.get_stats()
