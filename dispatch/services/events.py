"""Structured pipeline events.

The enrichment services report what they did (cache hits, failed lookups,
batch sizes) through a ``PipelineObserver`` instead of writing to a fixed
logging sink. Callers inject whichever observer they need:

- ``LoggingObserver`` writes one structured log line per event (default)
- ``StatsObserver`` keeps counters for tests, API responses and dashboards
- ``CompositeObserver`` fans an event out to several observers
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

logger = logging.getLogger(__name__)

# Event names
CACHE_HIT = "cache_hit"
CACHE_MISS = "cache_miss"
CACHE_WRITE = "cache_write"
CACHE_ERROR = "cache_error"
ROUTE_RESOLVED = "route_resolved"
ROUTE_FAILED = "route_failed"
GEOCODE_RESOLVED = "geocode_resolved"
GEOCODE_FAILED = "geocode_failed"
BATCH_COMPLETED = "batch_completed"
DUPLICATES_DROPPED = "duplicates_dropped"
SHIPMENTS_PROCESSED = "shipments_processed"


@dataclass(frozen=True)
class PipelineEvent:
    """A single structured event emitted by the pipeline.

    Attributes:
        name: Event name (one of the module-level constants)
        fields: Event payload (counts, locations, failure reason)
        timestamp: When the event was emitted
    """

    name: str
    fields: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "fields": dict(self.fields),
            "timestamp": self.timestamp.isoformat(),
        }


class PipelineObserver(Protocol):
    """Anything that can receive pipeline events."""

    def emit(self, event: PipelineEvent) -> None: ...


class LoggingObserver:
    """Observer that writes each event as a structured log line."""

    # Events that indicate degraded results are logged at WARNING
    WARNING_EVENTS = frozenset({CACHE_ERROR, ROUTE_FAILED, GEOCODE_FAILED})

    def __init__(self, log: logging.Logger | None = None) -> None:
        self.log = log or logger

    def emit(self, event: PipelineEvent) -> None:
        level = logging.WARNING if event.name in self.WARNING_EVENTS else logging.INFO
        details = " ".join(f"{key}={value!r}" for key, value in sorted(event.fields.items()))
        self.log.log(level, "event=%s %s", event.name, details)


class StatsObserver:
    """Observer that aggregates event counts.

    ``counts`` is keyed by event name. Failure events are additionally
    bucketed by their ``reason`` field in ``failure_reasons`` and batch
    sizes are kept in ``batch_sizes``.
    """

    def __init__(self) -> None:
        self.counts: Counter[str] = Counter()
        self.failure_reasons: Counter[str] = Counter()
        self.batch_sizes: list[int] = []
        self.events: list[PipelineEvent] = []

    def emit(self, event: PipelineEvent) -> None:
        self.events.append(event)
        self.counts[event.name] += 1
        if "reason" in event.fields:
            self.failure_reasons[str(event.fields["reason"])] += 1
        if event.name == BATCH_COMPLETED:
            self.batch_sizes.append(int(event.fields.get("items", 0)))

    @property
    def cache_hits(self) -> int:
        return self.counts[CACHE_HIT]

    @property
    def cache_misses(self) -> int:
        return self.counts[CACHE_MISS]

    def summary(self) -> dict[str, Any]:
        """Summarize counters for API responses."""
        return {
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "cache_writes": self.counts[CACHE_WRITE],
            "cache_errors": self.counts[CACHE_ERROR],
            "routes_resolved": self.counts[ROUTE_RESOLVED],
            "routes_failed": self.counts[ROUTE_FAILED],
            "geocodes_resolved": self.counts[GEOCODE_RESOLVED],
            "geocodes_failed": self.counts[GEOCODE_FAILED],
            "batch_sizes": list(self.batch_sizes),
            "failure_reasons": dict(self.failure_reasons),
        }


class CompositeObserver:
    """Observer that forwards every event to several observers."""

    def __init__(self, *observers: PipelineObserver) -> None:
        self.observers = list(observers)

    def emit(self, event: PipelineEvent) -> None:
        for observer in self.observers:
            observer.emit(event)


def emit(observer: PipelineObserver | None, name: str, **fields: Any) -> None:
    """Emit an event to ``observer``, falling back to the logging observer."""
    (observer or _default_observer).emit(PipelineEvent(name=name, fields=fields))


_default_observer = LoggingObserver()
