"""Async engine and transactional sessions for the songscout store."""

import logging
from collections.abc import AsyncGenerator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from songscout.config import DatabaseSettings

logger = logging.getLogger(__name__)

# Anything that hands out a transactional session: Database.session_scope in production,
# a tiny fake in tests.
SessionScope = Callable[[], AbstractAsyncContextManager[AsyncSession]]

# SQLite waits this long on a locked file before raising "database is locked". The queue
# worker and the scheduler jobs write concurrently, so the default 5s is too short.
SQLITE_BUSY_TIMEOUT_SECONDS = 30


def _engine_options(settings: DatabaseSettings) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": settings.echo, "pool_pre_ping": settings.pool_pre_ping}
    if settings.url.startswith("sqlite"):
        options["connect_args"] = {
            "check_same_thread": False,
            "timeout": SQLITE_BUSY_TIMEOUT_SECONDS,
        }
    elif settings.url.startswith("postgresql"):
        options |= {
            "pool_size": settings.pool_size,
            "max_overflow": settings.max_overflow,
            "pool_timeout": settings.pool_timeout,
            "pool_recycle": settings.pool_recycle,
        }
    return options


class Database:
    """Owns the async engine and hands out one transaction per ``session_scope``."""

    def __init__(self, settings: DatabaseSettings) -> None:
        self.settings = settings
        self._engine = create_async_engine(settings.url, **_engine_options(settings))

        if settings.url.startswith("sqlite"):
            # Off by default in SQLite; the artist_tracks and snapshot cascades rely on it
            event.listen(self._engine.sync_engine, "connect", _enforce_foreign_keys)

        self._sessions = async_sessionmaker(self._engine, expire_on_commit=False)

    @asynccontextmanager
    async def session_scope(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session that commits on clean exit and rolls back on any error.

        The error is always re-raised after the rollback; callers decide what a failed
        write means for the track or job at hand.
        """
        async with self._sessions() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_tables(self) -> None:
        """Create the schema directly from the ORM models.

        Runs at every pipeline start and is a no-op for tables that already exist.
        Column changes go through alembic.
        """
        from songscout.infrastructure.persistence.models import Base

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(f"Schema ready at {self._engine.url.render_as_string(hide_password=True)}")

    async def close(self) -> None:
        await self._engine.dispose()


def _enforce_foreign_keys(dbapi_conn: Any, _connection_record: Any) -> None:
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
