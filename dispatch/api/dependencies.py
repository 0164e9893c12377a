"""Shared FastAPI dependencies."""

from dispatch.services.events import (
    CompositeObserver,
    LoggingObserver,
    PipelineObserver,
    StatsObserver,
)
from dispatch.services.extraction import ShipmentExtractor
from dispatch.services.geocoding import GeoResolver
from dispatch.services.google_maps import GoogleMapsClient
from dispatch.services.route_cache import RouteCache
from dispatch.services.routing import RouteService
from dispatch.services.shipments import ShipmentProcessor

# One cache per process; connect() runs on first use
_route_cache = RouteCache()


def get_route_cache() -> RouteCache:
    """Dependency that provides the process-wide route cache."""
    return _route_cache


def get_maps_client() -> GoogleMapsClient:
    """Dependency that provides a maps client configured from settings."""
    return GoogleMapsClient()


def get_extractor() -> ShipmentExtractor:
    """Dependency that provides the screenshot extractor."""
    return ShipmentExtractor()


def request_observer() -> tuple[PipelineObserver, StatsObserver]:
    """Observer for one request: logs every event and keeps counters."""
    stats = StatsObserver()
    return CompositeObserver(LoggingObserver(), stats), stats


def build_processor(
    cache: RouteCache,
    client: GoogleMapsClient,
    observer: PipelineObserver,
) -> ShipmentProcessor:
    """Wire a shipment processor around one maps client and cache."""
    return ShipmentProcessor(
        geo_resolver=GeoResolver(client=client, observer=observer),
        route_service=RouteService(cache=cache, client=client, observer=observer),
        observer=observer,
    )
