"""Business logic services for the dispatch assistant."""

from dispatch.services.batch import BatchRunner
from dispatch.services.errors import (
    CacheUnavailable,
    ConfigurationError,
    DispatchError,
    ExtractionError,
    NoRouteFound,
    UpstreamUnavailable,
)
from dispatch.services.geocoding import GeocodeResult, GeoResolver
from dispatch.services.grouping import CustomerGroup, group_by_customer
from dispatch.services.route_cache import RouteCache, make_cache_key
from dispatch.services.routing import RouteOutcome, RoutePair, RouteResult, RouteService
from dispatch.services.shipments import (
    DestinationType,
    ProcessedShipment,
    RawShipment,
    ShipmentProcessor,
)

__all__ = [
    "BatchRunner",
    "CacheUnavailable",
    "ConfigurationError",
    "CustomerGroup",
    "DestinationType",
    "DispatchError",
    "ExtractionError",
    "GeoResolver",
    "GeocodeResult",
    "NoRouteFound",
    "ProcessedShipment",
    "RawShipment",
    "RouteCache",
    "RouteOutcome",
    "RoutePair",
    "RouteResult",
    "RouteService",
    "ShipmentProcessor",
    "UpstreamUnavailable",
    "group_by_customer",
    "make_cache_key",
]
