"""Driving distance and travel time lookups with a persistent cache.

``RouteService.get_distance`` answers from the route cache when it can and
falls back to the Distance Matrix API, writing successful lookups back to
the cache. Each result carries an explicit ``RouteOutcome``:

- SUCCESS: a route was found (live or cached)
- INVALID_INPUT: origin or destination missing, nothing was looked up
- NO_ROUTE: the provider reported NOT_FOUND / ZERO_RESULTS
- UPSTREAM_ERROR: the provider failed (batch mode only; single lookups raise)
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from dispatch.models.distance_cache import DistanceCacheEntry
from dispatch.services.batch import BatchRunner
from dispatch.services.errors import (
    CacheUnavailable,
    NoRouteFound,
    UpstreamUnavailable,
)
from dispatch.services.events import (
    CACHE_ERROR,
    CACHE_HIT,
    CACHE_MISS,
    CACHE_WRITE,
    ROUTE_FAILED,
    ROUTE_RESOLVED,
    PipelineObserver,
    emit,
)
from dispatch.services.geocoding import NOT_AVAILABLE, is_blank_location
from dispatch.services.google_maps import GoogleMapsClient
from dispatch.services.route_cache import RouteCache, make_cache_key

logger = logging.getLogger(__name__)

METERS_TO_MILES = 0.000621371
SECONDS_PER_HOUR = 3600

# Element statuses that mean "no drivable route", not a provider failure
NO_ROUTE_STATUSES = frozenset({"NOT_FOUND", "ZERO_RESULTS"})


class RouteOutcome(str, Enum):
    """How a route lookup ended."""

    SUCCESS = "success"
    INVALID_INPUT = "invalid_input"
    NO_ROUTE = "no_route"
    UPSTREAM_ERROR = "upstream_error"


@dataclass(frozen=True)
class RouteResult:
    """Driving distance between two locations."""

    distance: int
    duration: float
    formatted_distance: str
    formatted_duration: str
    outcome: RouteOutcome
    from_cache: bool = False

    @property
    def success(self) -> bool:
        return self.outcome is RouteOutcome.SUCCESS

    @classmethod
    def failure(cls, outcome: RouteOutcome) -> "RouteResult":
        """Build a zeroed result for a failed lookup."""
        text = "Error" if outcome is RouteOutcome.UPSTREAM_ERROR else NOT_AVAILABLE
        return cls(
            distance=0,
            duration=0.0,
            formatted_distance=text,
            formatted_duration=text,
            outcome=outcome,
        )

    @classmethod
    def from_cache_entry(cls, entry: DistanceCacheEntry) -> "RouteResult":
        return cls(
            distance=entry.distance,
            duration=entry.duration,
            formatted_distance=entry.formatted_distance,
            formatted_duration=entry.formatted_duration,
            outcome=RouteOutcome.SUCCESS,
            from_cache=True,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "distance": self.distance,
            "duration": self.duration,
            "formatted_distance": self.formatted_distance,
            "formatted_duration": self.formatted_duration,
            "outcome": self.outcome.value,
            "success": self.success,
            "from_cache": self.from_cache,
        }


@dataclass(frozen=True)
class RoutePair:
    """One origin/destination lookup request."""

    origin: str
    destination: str


def parse_distance_matrix(data: dict[str, Any]) -> RouteResult:
    """Interpret a single-element Distance Matrix response.

    Raises:
        NoRouteFound: If the element status is NOT_FOUND or ZERO_RESULTS.
        UpstreamUnavailable: For any other non-OK status or a malformed body.
    """
    status = data.get("status")
    if status != "OK":
        raise UpstreamUnavailable(
            f"Distance Matrix error: {status} - {data.get('error_message', 'No details')}"
        )

    try:
        element = data["rows"][0]["elements"][0]
    except (KeyError, IndexError, TypeError) as e:
        raise UpstreamUnavailable("Distance Matrix response has no elements") from e

    element_status = element.get("status")
    if element_status in NO_ROUTE_STATUSES:
        raise NoRouteFound(f"No route found (status {element_status})")
    if element_status != "OK":
        raise UpstreamUnavailable(f"Unexpected element status: {element_status or 'UNKNOWN'}")

    try:
        meters = element["distance"]["value"]
        seconds = element["duration"]["value"]
        return RouteResult(
            distance=round(meters * METERS_TO_MILES),
            duration=seconds / SECONDS_PER_HOUR,
            formatted_distance=element["distance"]["text"],
            formatted_duration=element["duration"]["text"],
            outcome=RouteOutcome.SUCCESS,
        )
    except (KeyError, TypeError) as e:
        raise UpstreamUnavailable("Distance Matrix element is missing distance/duration") from e


class RouteService:
    """Computes driving distance and ETA between free-text locations.

    Args:
        cache: Route cache consulted before every live lookup.
        client: Maps client for live lookups.
        batch_runner: Chunked executor for ``get_batch_distances``.
        observer: Receives cache and route events.
    """

    def __init__(
        self,
        cache: RouteCache,
        client: GoogleMapsClient | None = None,
        batch_runner: BatchRunner | None = None,
        observer: PipelineObserver | None = None,
    ) -> None:
        self.cache = cache
        self.client = client or GoogleMapsClient()
        self.observer = observer
        self.batch_runner = batch_runner or BatchRunner(observer=observer, name="routes")

    async def _read_cache(self, cache_key: str) -> RouteResult | None:
        try:
            entry = await self.cache.find(cache_key)
        except CacheUnavailable as e:
            logger.error("Error checking distance cache: %s", e)
            emit(self.observer, CACHE_ERROR, key=cache_key, operation="read", reason="cache_unavailable")
            return None

        if entry is None:
            emit(self.observer, CACHE_MISS, key=cache_key)
            return None
        emit(self.observer, CACHE_HIT, key=cache_key, distance=entry.distance)
        return RouteResult.from_cache_entry(entry)

    async def _write_cache(
        self,
        cache_key: str,
        origin: str,
        destination: str,
        result: RouteResult,
    ) -> None:
        entry = DistanceCacheEntry(
            cache_key=cache_key,
            origin=origin,
            destination=destination,
            distance=result.distance,
            duration=result.duration,
            formatted_distance=result.formatted_distance,
            formatted_duration=result.formatted_duration,
        )
        try:
            await self.cache.insert(entry)
        except CacheUnavailable as e:
            logger.error("Failed to cache result for %s -> %s: %s", origin, destination, e)
            emit(self.observer, CACHE_ERROR, key=cache_key, operation="write", reason="cache_unavailable")
            return
        emit(self.observer, CACHE_WRITE, key=cache_key)

    async def get_distance(self, origin: str, destination: str) -> RouteResult:
        """Resolve the driving distance from ``origin`` to ``destination``.

        Returns:
            RouteResult with SUCCESS, INVALID_INPUT or NO_ROUTE outcome.

        Raises:
            ConfigurationError: If no API key is configured.
            UpstreamUnavailable: If the provider fails.
        """
        if is_blank_location(origin) or is_blank_location(destination):
            return RouteResult.failure(RouteOutcome.INVALID_INPUT)

        cache_key = make_cache_key(origin, destination)
        cached = await self._read_cache(cache_key)
        if cached is not None:
            logger.debug("Cache hit: %s -> %s (%d miles)", origin, destination, cached.distance)
            return cached

        data = await self.client.distance_matrix(origin, destination)
        try:
            result = parse_distance_matrix(data)
        except NoRouteFound as e:
            logger.info("Route not found for %s -> %s: %s", origin, destination, e)
            emit(
                self.observer,
                ROUTE_FAILED,
                origin=origin,
                destination=destination,
                reason=RouteOutcome.NO_ROUTE.value,
            )
            return RouteResult.failure(RouteOutcome.NO_ROUTE)

        logger.info(
            "Route %s -> %s: %d miles, %.1f hours",
            origin,
            destination,
            result.distance,
            result.duration,
        )
        emit(self.observer, ROUTE_RESOLVED, origin=origin, destination=destination, distance=result.distance)
        await self._write_cache(cache_key, origin, destination, result)
        return result

    async def _get_distance_for_batch(self, pair: RoutePair) -> RouteResult:
        try:
            return await self.get_distance(pair.origin, pair.destination)
        except UpstreamUnavailable as e:
            logger.error("Error for %s -> %s: %s", pair.origin, pair.destination, e)
            emit(
                self.observer,
                ROUTE_FAILED,
                origin=pair.origin,
                destination=pair.destination,
                reason=RouteOutcome.UPSTREAM_ERROR.value,
            )
            return RouteResult.failure(RouteOutcome.UPSTREAM_ERROR)

    async def get_batch_distances(self, pairs: Sequence[RoutePair]) -> list[RouteResult]:
        """Resolve several routes, preserving input order.

        Provider failures become UPSTREAM_ERROR results so one bad row never
        aborts the batch. A missing API key still raises.
        """
        logger.info("Fetching distances for %d routes", len(pairs))
        results = await self.batch_runner.run(pairs, self._get_distance_for_batch)
        success_count = sum(1 for result in results if result.success)
        logger.info("Fetched %d/%d distances", success_count, len(pairs))
        return results
