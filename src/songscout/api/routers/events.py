"""Server-Sent Events stream of pipeline progress."""

import asyncio
import json
import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, Request
from sse_starlette.sse import EventSourceResponse

from songscout.api.dependencies import get_event_bus
from songscout.application.services import ProgressEventBus

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events"])

# How often we wake up to notice a disconnected client when nothing is happening
_IDLE_TIMEOUT_SECONDS = 15.0


async def stream_progress(
    request: Request, bus: ProgressEventBus
) -> AsyncIterator[dict[str, str]]:
    """Yield SSE messages from a bus subscription until the client goes away."""
    async with bus.subscription() as queue:
        try:
            while True:
                if await request.is_disconnected():
                    break
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=_IDLE_TIMEOUT_SECONDS)
                except TimeoutError:
                    continue
                yield {"event": event.type.value, "data": json.dumps(event.to_dict())}
        except asyncio.CancelledError:
            logger.debug("SSE connection cancelled")
            raise


@router.get("/events")
async def progress_events(
    request: Request,
    bus: ProgressEventBus = Depends(get_event_bus),
) -> EventSourceResponse:
    """Live job progress (job_started, track_enriched, phase_completed, job_completed, ...).

    Example JS client:
    ```javascript
    const source = new EventSource('/api/events');
    source.addEventListener('track_enriched', (e) => console.log(JSON.parse(e.data)));
    ```
    """
    return EventSourceResponse(stream_progress(request, bus))
