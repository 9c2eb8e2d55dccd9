"""In-process publish/subscribe channel for pipeline progress events.

Hey future me - the job queue publishes, listeners (the SSE endpoint, tests) subscribe. The
queue never knows who is listening. publish() is fire-and-forget: every subscriber has a
bounded asyncio.Queue and a slow subscriber simply loses its OLDEST events. The pipeline
never waits on a listener, ever.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from songscout.domain.entities import ProgressEvent

logger = logging.getLogger(__name__)

DEFAULT_SUBSCRIBER_BUFFER = 256


class ProgressEventBus:
    """Broadcast channel for ProgressEvents."""

    def __init__(self, buffer_size: int = DEFAULT_SUBSCRIBER_BUFFER) -> None:
        self.buffer_size = buffer_size
        self._subscribers: set[asyncio.Queue[ProgressEvent]] = set()
        self.published_count = 0
        self.dropped_count = 0

    @property
    def subscriber_count(self) -> int:
        """Number of active subscribers."""
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue[ProgressEvent]:
        """Register a new subscriber queue."""
        queue: asyncio.Queue[ProgressEvent] = asyncio.Queue(maxsize=self.buffer_size)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[ProgressEvent]) -> None:
        """Remove a subscriber queue (unknown queues are ignored)."""
        self._subscribers.discard(queue)

    @asynccontextmanager
    async def subscription(self) -> AsyncIterator[asyncio.Queue[ProgressEvent]]:
        """Subscribe for the duration of a with-block."""
        queue = self.subscribe()
        try:
            yield queue
        finally:
            self.unsubscribe(queue)

    def publish(self, event: ProgressEvent) -> None:
        """Deliver an event to every subscriber without blocking."""
        self.published_count += 1
        for queue in list(self._subscribers):
            if queue.full():
                # Drop the oldest so the newest state always gets through
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
                self.dropped_count += 1
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                self.dropped_count += 1
        logger.debug(
            f"Progress event {event.type.value} job={event.job_id} "
            f"-> {len(self._subscribers)} subscriber(s)"
        )
