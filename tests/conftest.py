"""Shared test fixtures.

Hey future me - every test that touches the database gets its OWN sqlite file under
tmp_path. No shared state between tests, no cleanup needed, and aiosqlite behaves exactly
like it does in production (unlike :memory: which is per-connection).
"""

import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import date
from typing import Any

import pytest

from songscout.config import DatabaseSettings
from songscout.domain.entities import Track
from songscout.infrastructure.persistence import Database
from songscout.infrastructure.rate_limiter import RateLimiter, RateLimiterConfig


@pytest.fixture
async def database(tmp_path: Any) -> AsyncGenerator[Database, None]:
    """Fresh database with all tables created."""
    db = Database(DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"))
    await db.create_tables()
    yield db
    await db.close()


@pytest.fixture
def make_track() -> Callable[..., Track]:
    """Factory for Track entities with sensible defaults."""

    def _make(**overrides: Any) -> Track:
        track_id = overrides.pop("id", None) or str(uuid.uuid4())
        values: dict[str, Any] = {
            "id": track_id,
            "week": date(2026, 10, 12),
            "playlist_id": "pl-fresh",
            "playlist_name": "Fresh Finds",
            "track_name": "Song",
            "artist_name": "Jane Doe",
            "spotify_url": f"https://open.spotify.com/track/{track_id}",
        }
        values.update(overrides)
        return Track(**values)

    return _make


@pytest.fixture
def fast_limiter() -> RateLimiter:
    """Rate limiter that never makes a test wait."""
    return RateLimiter(
        config=RateLimiterConfig(max_tokens=1000, refill_rate=1000.0),
        name="test",
    )
