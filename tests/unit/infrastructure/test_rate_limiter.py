"""Tests for the per-source token bucket."""

from unittest.mock import AsyncMock

import pytest

from songscout.infrastructure.rate_limiter import (
    RateLimiter,
    RateLimiterConfig,
    get_musicbrainz_limiter,
    limiter_for,
)


@pytest.fixture
def no_sleep(monkeypatch: pytest.MonkeyPatch) -> AsyncMock:
    sleep = AsyncMock()
    monkeypatch.setattr("songscout.infrastructure.rate_limiter.asyncio.sleep", sleep)
    return sleep


class TestRateLimiter:
    """Tests for RateLimiter."""

    def test_limiters_are_shared_per_source(self) -> None:
        """Every caller of a source gets the same bucket."""
        assert get_musicbrainz_limiter() is limiter_for("musicbrainz")
        assert limiter_for("musicbrainz").config.max_tokens == 1

    async def test_burst_within_bucket_does_not_wait(self, no_sleep: AsyncMock) -> None:
        """A full bucket serves max_tokens requests immediately."""
        limiter = RateLimiter(config=RateLimiterConfig(max_tokens=3, refill_rate=0.001))

        for _ in range(3):
            await limiter.acquire()

        no_sleep.assert_not_awaited()

    async def test_retry_after_is_honoured_and_capped(self, no_sleep: AsyncMock) -> None:
        """Retry-After wins over the backoff but never exceeds the cap."""
        limiter = RateLimiter(config=RateLimiterConfig(max_backoff_seconds=30.0))

        assert await limiter.handle_rate_limit_response(retry_after=5) == 5.0
        assert await limiter.handle_rate_limit_response(retry_after=999) == 30.0

    async def test_backoff_doubles_until_success(self, no_sleep: AsyncMock) -> None:
        """Without Retry-After the wait doubles, and a clean request resets it."""
        limiter = RateLimiter(
            config=RateLimiterConfig(max_tokens=100, refill_rate=100.0, initial_backoff_seconds=1.0)
        )

        assert await limiter.handle_rate_limit_response() == 1.0
        assert await limiter.handle_rate_limit_response() == 2.0

        limiter._tokens = 100.0
        async with limiter:
            pass

        assert await limiter.handle_rate_limit_response() == 1.0
