"""Database configuration and session management."""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from dispatch.config import settings


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def get_async_database_url(url: str) -> str:
    """Convert a standard PostgreSQL URL to an async-compatible URL.

    Hosting providers hand out URLs in the format postgresql://...
    asyncpg requires postgresql+asyncpg://...
    """
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def create_engine(url: str | None = None) -> AsyncEngine:
    """Create an async engine for the given URL (defaults to settings)."""
    return create_async_engine(
        get_async_database_url(url or settings.database_url),
        echo=settings.debug,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to ``engine``."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


# Create async engine
async_engine = create_engine()
