"""Tests for cached driving-distance lookups."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from dispatch.models.distance_cache import DistanceCacheEntry
from dispatch.services.batch import BatchRunner
from dispatch.services.errors import (
    CacheUnavailable,
    ConfigurationError,
    NoRouteFound,
    UpstreamUnavailable,
)
from dispatch.services.events import StatsObserver
from dispatch.services.route_cache import make_cache_key
from dispatch.services.routing import (
    RouteOutcome,
    RoutePair,
    RouteResult,
    RouteService,
    parse_distance_matrix,
)


class InMemoryRouteCache:
    """Dict-backed stand-in for RouteCache."""

    def __init__(self) -> None:
        self.entries: dict[str, DistanceCacheEntry] = {}
        self.find_calls = 0
        self.fail_reads = False
        self.fail_writes = False

    async def find(self, cache_key: str) -> DistanceCacheEntry | None:
        self.find_calls += 1
        if self.fail_reads:
            raise CacheUnavailable("read failed")
        return self.entries.get(cache_key)

    async def insert(self, entry: DistanceCacheEntry) -> None:
        if self.fail_writes:
            raise CacheUnavailable("write failed")
        self.entries[entry.cache_key] = entry


def matrix_payload(
    meters: int = 346_000,
    seconds: int = 13_500,
    element_status: str = "OK",
    status: str = "OK",
) -> dict:
    """Build a single-element Distance Matrix response."""
    element: dict = {"status": element_status}
    if element_status == "OK":
        element["distance"] = {"value": meters, "text": "215 mi"}
        element["duration"] = {"value": seconds, "text": "3 hours 45 mins"}
    return {"status": status, "rows": [{"elements": [element]}]}


@pytest.fixture
def cache() -> InMemoryRouteCache:
    return InMemoryRouteCache()


@pytest.fixture
def maps_client() -> MagicMock:
    """Create a mock maps client."""
    client = MagicMock()
    client.distance_matrix = AsyncMock(return_value=matrix_payload())
    return client


@pytest.fixture
def stats() -> StatsObserver:
    return StatsObserver()


@pytest.fixture
def service(cache: InMemoryRouteCache, maps_client: MagicMock, stats: StatsObserver) -> RouteService:
    """Create a route service without inter-chunk delay."""
    return RouteService(
        cache=cache,
        client=maps_client,
        batch_runner=BatchRunner(delay_seconds=0),
        observer=stats,
    )


class TestParseDistanceMatrix:
    """Tests for parse_distance_matrix()."""

    def test_converts_units(self) -> None:
        """Test meters to rounded miles and seconds to fractional hours."""
        result = parse_distance_matrix(matrix_payload(meters=346_000, seconds=13_500))

        assert result.distance == 215  # 346000 * 0.000621371 = 214.99
        assert result.duration == 3.75
        assert result.formatted_distance == "215 mi"
        assert result.formatted_duration == "3 hours 45 mins"
        assert result.success is True

    def test_duration_not_rounded(self) -> None:
        """Test that hours keep their fraction."""
        result = parse_distance_matrix(matrix_payload(seconds=1000))
        assert result.duration == pytest.approx(1000 / 3600)

    @pytest.mark.parametrize("status", ["NOT_FOUND", "ZERO_RESULTS"])
    def test_no_route_statuses(self, status: str) -> None:
        """Test that missing routes are a business outcome."""
        with pytest.raises(NoRouteFound):
            parse_distance_matrix(matrix_payload(element_status=status))

    def test_top_level_error_status(self) -> None:
        """Test that request-level errors are upstream failures."""
        payload = {"status": "REQUEST_DENIED", "error_message": "bad key", "rows": []}
        with pytest.raises(UpstreamUnavailable, match="REQUEST_DENIED"):
            parse_distance_matrix(payload)

    def test_unexpected_element_status(self) -> None:
        """Test that unknown element statuses are upstream failures."""
        with pytest.raises(UpstreamUnavailable, match="MAX_ROUTE_LENGTH_EXCEEDED"):
            parse_distance_matrix(matrix_payload(element_status="MAX_ROUTE_LENGTH_EXCEEDED"))

    def test_malformed_body(self) -> None:
        """Test that a response without elements is rejected."""
        with pytest.raises(UpstreamUnavailable):
            parse_distance_matrix({"status": "OK", "rows": []})


class TestGetDistance:
    """Tests for RouteService.get_distance()."""

    @pytest.mark.parametrize(
        ("origin", "destination"),
        [("N/A", "Chicago, IL"), ("Chicago, IL", "n/a"), ("", "Chicago, IL")],
    )
    async def test_invalid_input_short_circuits(
        self,
        service: RouteService,
        cache: InMemoryRouteCache,
        maps_client: MagicMock,
        origin: str,
        destination: str,
    ) -> None:
        """Test that missing locations skip both cache and network."""
        result = await service.get_distance(origin, destination)

        assert result.success is False
        assert result.outcome is RouteOutcome.INVALID_INPUT
        assert (result.distance, result.duration) == (0, 0.0)
        assert result.formatted_distance == "N/A"
        assert result.formatted_duration == "N/A"
        assert cache.find_calls == 0
        maps_client.distance_matrix.assert_not_called()

    async def test_live_lookup_is_cached(
        self, service: RouteService, cache: InMemoryRouteCache, maps_client: MagicMock
    ) -> None:
        """Test that a successful lookup is written to the cache."""
        result = await service.get_distance("South Amboy, NJ", "Springfield, MO")

        assert result.success is True
        assert result.from_cache is False
        key = make_cache_key("South Amboy, NJ", "Springfield, MO")
        assert cache.entries[key].distance == 215
        maps_client.distance_matrix.assert_awaited_once_with("South Amboy, NJ", "Springfield, MO")

    async def test_second_lookup_served_from_cache(
        self, service: RouteService, maps_client: MagicMock, stats: StatsObserver
    ) -> None:
        """Test that repeating a pair makes no second network call."""
        first = await service.get_distance("New York", "Boston")
        second = await service.get_distance("New York", "Boston")

        assert maps_client.distance_matrix.await_count == 1
        assert second.from_cache is True
        assert (second.distance, second.duration, second.formatted_distance, second.formatted_duration) == (
            first.distance,
            first.duration,
            first.formatted_distance,
            first.formatted_duration,
        )
        assert stats.cache_misses == 1
        assert stats.cache_hits == 1

    async def test_reversed_pair_hits_cache(
        self, service: RouteService, maps_client: MagicMock
    ) -> None:
        """Test that (Y, X) reuses the entry stored for (X, Y)."""
        await service.get_distance("New York", "Boston")
        result = await service.get_distance("boston ", "NEW YORK")

        assert result.from_cache is True
        assert maps_client.distance_matrix.await_count == 1

    async def test_no_route_is_not_an_error(
        self,
        service: RouteService,
        cache: InMemoryRouteCache,
        maps_client: MagicMock,
        stats: StatsObserver,
    ) -> None:
        """Test that ZERO_RESULTS returns a NO_ROUTE result and is not cached."""
        maps_client.distance_matrix.return_value = matrix_payload(element_status="ZERO_RESULTS")

        result = await service.get_distance("Honolulu, HI", "Boston, MA")

        assert result.outcome is RouteOutcome.NO_ROUTE
        assert result.formatted_distance == "N/A"
        assert (result.distance, result.duration) == (0, 0.0)
        assert cache.entries == {}
        assert stats.failure_reasons == {"no_route": 1}

    async def test_upstream_failure_raises(
        self, service: RouteService, maps_client: MagicMock
    ) -> None:
        """Test that provider errors propagate from single lookups."""
        maps_client.distance_matrix.side_effect = UpstreamUnavailable("HTTP 500")

        with pytest.raises(UpstreamUnavailable):
            await service.get_distance("New York", "Boston")

    async def test_unexpected_element_status_raises(
        self, service: RouteService, maps_client: MagicMock
    ) -> None:
        """Test that unknown element statuses are hard errors."""
        maps_client.distance_matrix.return_value = matrix_payload(element_status="INVALID_REQUEST")

        with pytest.raises(UpstreamUnavailable):
            await service.get_distance("New York", "Boston")

    async def test_missing_api_key_raises(
        self, service: RouteService, maps_client: MagicMock
    ) -> None:
        """Test that configuration errors propagate."""
        maps_client.distance_matrix.side_effect = ConfigurationError("no key")

        with pytest.raises(ConfigurationError):
            await service.get_distance("New York", "Boston")

    async def test_cache_read_failure_falls_through(
        self,
        service: RouteService,
        cache: InMemoryRouteCache,
        maps_client: MagicMock,
        stats: StatsObserver,
    ) -> None:
        """Test that an unreadable cache is treated as a miss."""
        cache.fail_reads = True

        result = await service.get_distance("New York", "Boston")

        assert result.success is True
        maps_client.distance_matrix.assert_awaited_once()
        assert stats.counts["cache_error"] == 1

    async def test_cache_write_failure_still_returns_result(
        self, service: RouteService, cache: InMemoryRouteCache
    ) -> None:
        """Test that a failed cache write does not fail the lookup."""
        cache.fail_writes = True

        result = await service.get_distance("New York", "Boston")

        assert result.success is True
        assert result.distance == 215


class TestGetBatchDistances:
    """Tests for RouteService.get_batch_distances()."""

    async def test_preserves_order_and_isolates_failures(
        self, service: RouteService, maps_client: MagicMock
    ) -> None:
        """Test that one failing route does not abort the batch."""
        responses = {
            "A": matrix_payload(meters=1609),
            "B": UpstreamUnavailable("HTTP 503"),
            "C": matrix_payload(element_status="NOT_FOUND"),
        }

        async def fake_matrix(origin: str, destination: str) -> dict:
            response = responses[origin]
            if isinstance(response, Exception):
                raise response
            return response

        maps_client.distance_matrix.side_effect = fake_matrix
        pairs = [
            RoutePair("A", "Chicago, IL"),
            RoutePair("B", "Chicago, IL"),
            RoutePair("N/A", "Chicago, IL"),
            RoutePair("C", "Chicago, IL"),
        ]

        results = await service.get_batch_distances(pairs)

        assert [r.outcome for r in results] == [
            RouteOutcome.SUCCESS,
            RouteOutcome.UPSTREAM_ERROR,
            RouteOutcome.INVALID_INPUT,
            RouteOutcome.NO_ROUTE,
        ]
        assert results[0].distance == 1
        assert results[1].formatted_distance == "Error"

    async def test_configuration_error_aborts_batch(
        self, service: RouteService, maps_client: MagicMock
    ) -> None:
        """Test that a missing key is not converted into row failures."""
        maps_client.distance_matrix.side_effect = ConfigurationError("no key")

        with pytest.raises(ConfigurationError):
            await service.get_batch_distances([RoutePair("A", "B")])


class TestRouteResult:
    """Tests for RouteResult helpers."""

    def test_failure_texts(self) -> None:
        """Test placeholder text per outcome."""
        assert RouteResult.failure(RouteOutcome.NO_ROUTE).formatted_distance == "N/A"
        assert RouteResult.failure(RouteOutcome.UPSTREAM_ERROR).formatted_distance == "Error"

    def test_to_dict(self) -> None:
        """Test serialization includes the outcome discriminant."""
        data = RouteResult.failure(RouteOutcome.INVALID_INPUT).to_dict()
        assert data["outcome"] == "invalid_input"
        assert data["success"] is False
