"""Tests for the progress event bus."""

from songscout.application.services import ProgressEventBus
from songscout.domain.entities import ProgressEvent, ProgressEventType


def _event(job_id: str = "j1", processed: int = 0) -> ProgressEvent:
    return ProgressEvent(
        type=ProgressEventType.TRACK_ENRICHED, job_id=job_id, tracks_processed=processed
    )


class TestProgressEventBus:
    """Tests for ProgressEventBus."""

    async def test_every_subscriber_gets_every_event(self) -> None:
        """Broadcast, not round-robin."""
        bus = ProgressEventBus()
        first = bus.subscribe()
        second = bus.subscribe()

        bus.publish(_event())

        assert first.get_nowait().job_id == "j1"
        assert second.get_nowait().job_id == "j1"
        assert bus.published_count == 1

    async def test_publish_without_subscribers(self) -> None:
        """Nobody listening is fine."""
        bus = ProgressEventBus()
        bus.publish(_event())
        assert bus.subscriber_count == 0

    async def test_slow_subscriber_loses_oldest(self) -> None:
        """A full buffer drops the oldest event and never blocks."""
        bus = ProgressEventBus(buffer_size=2)
        queue = bus.subscribe()
        for processed in range(3):
            bus.publish(_event(processed=processed))

        assert [queue.get_nowait().tracks_processed for _ in range(2)] == [1, 2]
        assert bus.dropped_count == 1

    async def test_subscription_context_unsubscribes(self) -> None:
        """Leaving the with-block removes the subscriber."""
        bus = ProgressEventBus()
        async with bus.subscription():
            assert bus.subscriber_count == 1
        assert bus.subscriber_count == 0

    def test_event_to_dict(self) -> None:
        """Enum values and timestamps are JSON friendly."""
        data = _event().to_dict()
        assert data["type"] == "track_enriched"
        assert isinstance(data["timestamp"], str)
