"""Persistent cache of driving distances keyed by location pair.

Keys are order independent and case/whitespace insensitive, so a route
looked up as ``(Boston, New York)`` is reused for ``(new york , boston)``.
The cache is an optimization only: every store failure surfaces as
``CacheUnavailable`` for the caller to log and ignore.
"""

import asyncio
import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from dispatch.config import settings
from dispatch.database import Base, async_engine, create_session_factory
from dispatch.models.distance_cache import DistanceCacheEntry
from dispatch.services.errors import CacheUnavailable

logger = logging.getLogger(__name__)

CACHE_KEY_SEPARATOR = "::"


def make_cache_key(origin: str, destination: str) -> str:
    """Build the order-independent key for a location pair."""
    first, second = sorted([origin.lower().strip(), destination.lower().strip()])
    return f"{first}{CACHE_KEY_SEPARATOR}{second}"


class RouteCache:
    """Key/value store of resolved routes backed by the ``distance_cache`` table.

    The cache must be connected before use; ``connect()`` is idempotent and
    is called implicitly by ``find`` and ``insert``.

    Args:
        engine: Async engine to use. Defaults to the application engine.
        max_age: Entries older than this read as misses. None keeps entries
            forever. Defaults to ``settings.route_cache_ttl_days``.
        create_tables: Create the table on connect (local/dev setups without
            migrations). Defaults to settings.
    """

    def __init__(
        self,
        engine: AsyncEngine | None = None,
        max_age: timedelta | None = None,
        create_tables: bool | None = None,
    ) -> None:
        self._engine = engine
        if max_age is None and settings.route_cache_ttl_days:
            max_age = timedelta(days=settings.route_cache_ttl_days)
        self.max_age = max_age
        self.create_tables = (
            create_tables if create_tables is not None else settings.route_cache_create_tables
        )
        self._session_factory: async_sessionmaker[AsyncSession] | None = None
        self._ready = False
        self._lock = asyncio.Lock()

    @property
    def is_ready(self) -> bool:
        return self._ready

    async def connect(self) -> None:
        """Prepare the cache for use. Safe to call any number of times.

        Raises:
            CacheUnavailable: If the table cannot be created.
        """
        if self._ready:
            return
        async with self._lock:
            if self._ready:
                return
            if self._engine is None:
                self._engine = async_engine
            if self.create_tables:
                try:
                    async with self._engine.begin() as conn:
                        await conn.run_sync(Base.metadata.create_all)
                except (SQLAlchemyError, OSError) as e:
                    logger.error("Failed to initialize distance cache: %s", e)
                    raise CacheUnavailable(f"Could not initialize cache: {e}") from e
            self._session_factory = create_session_factory(self._engine)
            self._ready = True
            logger.info("Distance cache initialized")

    def is_expired(self, entry: DistanceCacheEntry, now: datetime | None = None) -> bool:
        """Check an entry against ``max_age``."""
        if self.max_age is None or entry.created_at is None:
            return False
        created_at = entry.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=UTC)
        return (now or datetime.now(UTC)) - created_at > self.max_age

    def _sessions(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            raise RuntimeError("RouteCache.connect() must be awaited before use")
        return self._session_factory

    async def find(self, cache_key: str) -> DistanceCacheEntry | None:
        """Look up a cached route by exact key.

        Returns:
            The entry, or None on a miss or an expired entry.

        Raises:
            CacheUnavailable: If the store cannot be queried.
        """
        await self.connect()
        try:
            async with self._sessions()() as session:
                result = await session.execute(
                    select(DistanceCacheEntry)
                    .where(DistanceCacheEntry.cache_key == cache_key)
                    .limit(1)
                )
                entry = result.scalar_one_or_none()
        except (SQLAlchemyError, OSError) as e:
            raise CacheUnavailable(f"Cache lookup failed for {cache_key!r}: {e}") from e

        if entry is not None and self.is_expired(entry):
            logger.debug("Cache entry %s expired", cache_key)
            return None
        return entry

    async def insert(self, entry: DistanceCacheEntry) -> None:
        """Store a route. An existing row for the same key is overwritten.

        Raises:
            CacheUnavailable: If the store cannot be written.
        """
        await self.connect()
        try:
            async with self._sessions()() as session:
                result = await session.execute(
                    select(DistanceCacheEntry).where(
                        DistanceCacheEntry.cache_key == entry.cache_key
                    )
                )
                existing = result.scalar_one_or_none()
                if existing is None:
                    session.add(entry)
                else:
                    existing.origin = entry.origin
                    existing.destination = entry.destination
                    existing.distance = entry.distance
                    existing.duration = entry.duration
                    existing.formatted_distance = entry.formatted_distance
                    existing.formatted_duration = entry.formatted_duration
                    existing.created_at = entry.created_at or datetime.now(UTC)
                await session.commit()
        except (SQLAlchemyError, OSError) as e:
            raise CacheUnavailable(f"Cache write failed for {entry.cache_key!r}: {e}") from e
