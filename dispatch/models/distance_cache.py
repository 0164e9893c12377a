"""Distance cache model for previously resolved driving routes."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, Float, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from dispatch.database import Base


def _utcnow() -> datetime:
    return datetime.now(UTC)


class DistanceCacheEntry(Base):
    """A cached driving distance between two free-text locations.

    The cache key is order independent, so ``Boston -> New York`` and
    ``new york -> boston`` share one row.

    Attributes:
        id: Unique identifier (UUID)
        cache_key: Normalized ``a::b`` pair key (a <= b)
        origin: Origin as first requested
        destination: Destination as first requested
        distance: Driving distance in whole miles
        duration: Driving time in hours
        formatted_distance: Provider text (e.g. '215 mi')
        formatted_duration: Provider text (e.g. '3 hours 40 mins')
        created_at: When the route was resolved
    """

    __tablename__ = "distance_cache"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    cache_key: Mapped[str] = mapped_column(
        String(512),
        unique=True,
        nullable=False,
        index=True,
    )
    origin: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    destination: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    distance: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    duration: Mapped[float] = mapped_column(
        Float,
        nullable=False,
    )
    formatted_distance: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )
    formatted_duration: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<DistanceCacheEntry(cache_key={self.cache_key!r}, "
            f"distance={self.distance!r})>"
        )
