"""SQLAlchemy models for the dispatch assistant."""

from dispatch.models.distance_cache import DistanceCacheEntry

__all__ = [
    "DistanceCacheEntry",
]
