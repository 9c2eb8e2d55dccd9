"""Per-source rate limiting for the enrichment clients.

Hey future me - every external source gets ONE shared token bucket per process, no matter
how many phase executors or concurrent tracks talk to it. A request spends one token; an
empty bucket means waiting until it refills. When a source answers 429 the HTTP helper in
integrations/base.py calls ``handle_rate_limit_response()``. That honours Retry-After if the
source sent one and otherwise doubles the backoff until a request goes through again.

USAGE:
    limiter = get_chartmetric_limiter()

    async with limiter:
        response = await client.get(url)
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimiterConfig:
    """Bucket size, refill speed and 429 backoff bounds for one source."""

    max_tokens: int = 10
    refill_rate: float = 2.0  # tokens per second
    max_backoff_seconds: float = 600.0
    initial_backoff_seconds: float = 1.0
    backoff_multiplier: float = 2.0


# Catalog API allows ~180 req/min; MusicBrainz bans anything above 1 req/s; Chartmetric's
# standard plan is 1 req/s; the registry API publishes no limit so we stay gentle.
SOURCE_LIMITS: dict[str, RateLimiterConfig] = {
    "spotify": RateLimiterConfig(max_tokens=10, refill_rate=2.0, max_backoff_seconds=600.0),
    "musicbrainz": RateLimiterConfig(
        max_tokens=1, refill_rate=1.0, max_backoff_seconds=120.0, initial_backoff_seconds=2.0
    ),
    "chartmetric": RateLimiterConfig(
        max_tokens=1, refill_rate=1.0, max_backoff_seconds=300.0, initial_backoff_seconds=2.0
    ),
    "registry": RateLimiterConfig(max_tokens=2, refill_rate=2.0, max_backoff_seconds=120.0),
}


@dataclass
class RateLimiter:
    """Token bucket shared by every caller of one source, with 429 backoff."""

    config: RateLimiterConfig = field(default_factory=RateLimiterConfig)
    name: str = "default"

    _tokens: float = field(default=0.0, init=False)
    _backoff: float = field(default=0.0, init=False)
    _refilled_at: float = field(default_factory=time.monotonic, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    def __post_init__(self) -> None:
        self._tokens = float(self.config.max_tokens)
        self._backoff = self.config.initial_backoff_seconds

    def _top_up(self) -> None:
        now = time.monotonic()
        earned = (now - self._refilled_at) * self.config.refill_rate
        self._tokens = min(float(self.config.max_tokens), self._tokens + earned)
        self._refilled_at = now

    async def acquire(self) -> None:
        """Take one token, sleeping until the bucket has one."""
        # Sleeping under the lock keeps waiters first-come first-served
        async with self._lock:
            self._top_up()
            while self._tokens < 1.0:
                delay = (1.0 - self._tokens) / self.config.refill_rate
                logger.debug(f"{self.name}: out of tokens, sleeping {delay:.2f}s")
                await asyncio.sleep(delay)
                self._top_up()
            self._tokens -= 1.0

    async def handle_rate_limit_response(self, retry_after: float | None = None) -> float:
        """Sleep off a 429 and escalate the backoff for the next one.

        Args:
            retry_after: Seconds from the Retry-After header, if the source sent it

        Returns:
            Seconds actually waited (capped at ``max_backoff_seconds``)
        """
        async with self._lock:
            delay = self._backoff if retry_after is None else float(retry_after)
            delay = min(delay, self.config.max_backoff_seconds)
            logger.warning(
                f"{self.name}: rate limited by source, pausing {delay:.1f}s "
                f"(next backoff {self._backoff:.1f}s)"
            )
            self._backoff = min(
                self._backoff * self.config.backoff_multiplier, self.config.max_backoff_seconds
            )
            # Drain the bucket so parallel callers queue behind the pause
            self._tokens = 0.0

        await asyncio.sleep(delay)
        return delay

    def reset_backoff(self) -> None:
        self._backoff = self.config.initial_backoff_seconds

    async def __aenter__(self) -> "RateLimiter":
        await self.acquire()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: Exception | None, exc_tb: object
    ) -> None:
        if exc_type is None:
            self.reset_backoff()


_shared: dict[str, RateLimiter] = {}


def limiter_for(source: str) -> RateLimiter:
    """Process-wide limiter for ``source`` (one of SOURCE_LIMITS), created on first use."""
    if source not in _shared:
        _shared[source] = RateLimiter(config=SOURCE_LIMITS[source], name=source)
    return _shared[source]


def get_spotify_limiter() -> RateLimiter:
    return limiter_for("spotify")


def get_musicbrainz_limiter() -> RateLimiter:
    return limiter_for("musicbrainz")


def get_chartmetric_limiter() -> RateLimiter:
    return limiter_for("chartmetric")


def get_registry_limiter() -> RateLimiter:
    return limiter_for("registry")


__all__ = [
    "SOURCE_LIMITS",
    "RateLimiter",
    "RateLimiterConfig",
    "get_chartmetric_limiter",
    "get_musicbrainz_limiter",
    "get_registry_limiter",
    "get_spotify_limiter",
    "limiter_for",
]
