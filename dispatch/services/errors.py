"""Exception hierarchy shared by the enrichment services."""


class DispatchError(Exception):
    """Base exception for shipment enrichment errors."""


class ConfigurationError(DispatchError):
    """Raised when a required credential or setting is missing."""


class UpstreamUnavailable(DispatchError):
    """Raised when the geocoding or routing provider cannot be reached
    or returns something unusable."""


class NoRouteFound(DispatchError):
    """Raised when the provider reports no drivable route between two places."""


class CacheUnavailable(DispatchError):
    """Raised when the distance cache cannot be read or written."""


class ExtractionError(DispatchError):
    """Raised when shipment rows cannot be extracted from an image."""
