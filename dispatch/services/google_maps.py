"""Google Maps API client for geocoding and driving distances."""

import logging
from typing import Any

import httpx

from dispatch.config import settings
from dispatch.services.errors import ConfigurationError, UpstreamUnavailable

logger = logging.getLogger(__name__)


class GoogleMapsClient:
    """Async client for the Geocoding and Distance Matrix JSON APIs.

    Can be used as an async context manager to share one connection pool
    across a batch of lookups. Outside a context manager every request opens
    a short-lived ``httpx.AsyncClient``.

    Only raw JSON payloads are returned; interpreting provider status codes
    is left to the geocoding and routing services.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize the Google Maps client.

        Args:
            api_key: Google Maps API key. Defaults to settings.
            base_url: API base URL. Defaults to settings.
            timeout: Request timeout in seconds. Defaults to settings.
        """
        self.api_key = api_key if api_key is not None else settings.google_maps_api_key
        self.base_url = (base_url or settings.google_maps_base_url).rstrip("/")
        self.timeout = timeout or settings.http_timeout_seconds
        self._http_client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "GoogleMapsClient":
        """Enter async context manager."""
        self._http_client = self._new_http_client()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Exit async context manager."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    def _new_http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            headers={"Accept": "application/json"},
        )

    @property
    def is_configured(self) -> bool:
        """Check whether an API key is available."""
        return bool(self.api_key)

    def require_api_key(self) -> str:
        """Return the API key, failing fast when it is missing.

        Raises:
            ConfigurationError: If no API key is configured.
        """
        if not self.api_key:
            raise ConfigurationError(
                "Google Maps API key is not configured (set GOOGLE_MAPS_API_KEY)"
            )
        return self.api_key

    async def _get(self, endpoint: str, params: dict[str, Any]) -> dict[str, Any]:
        """Make a GET request against a JSON endpoint.

        Args:
            endpoint: Path below the base URL (e.g. '/geocode/json').
            params: Query parameters, without the API key.

        Returns:
            Parsed JSON response.

        Raises:
            ConfigurationError: If the API key is missing.
            UpstreamUnavailable: If the request fails or the body is not JSON.
        """
        api_key = self.require_api_key()
        url = f"{self.base_url}{endpoint}"
        query = {**params, "key": api_key}

        try:
            if self._http_client is not None:
                response = await self._http_client.get(url, params=query)
            else:
                async with self._new_http_client() as client:
                    response = await client.get(url, params=query)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Google Maps HTTP error: %s %s",
                endpoint,
                e.response.status_code,
            )
            raise UpstreamUnavailable(
                f"Google Maps HTTP {e.response.status_code} for {endpoint}"
            ) from e
        except httpx.RequestError as e:
            logger.error("Google Maps request error: %s - %s", endpoint, e)
            raise UpstreamUnavailable(f"Request failed: {e}") from e
        except ValueError as e:
            logger.error("Google Maps returned invalid JSON for %s", endpoint)
            raise UpstreamUnavailable(f"Invalid JSON from {endpoint}") from e

        if not isinstance(data, dict):
            raise UpstreamUnavailable(f"Unexpected response shape from {endpoint}")
        return data

    async def geocode(self, address: str) -> dict[str, Any]:
        """Geocode a free-text address.

        Args:
            address: Address or postal code query (e.g. '08832, USA').

        Returns:
            Raw geocoding response with ``status`` and ``results``.
        """
        return await self._get("/geocode/json", {"address": address})

    async def distance_matrix(self, origin: str, destination: str) -> dict[str, Any]:
        """Fetch the driving distance between one origin and one destination.

        Args:
            origin: Free-text origin (e.g. 'South Amboy, NJ').
            destination: Free-text destination.

        Returns:
            Raw distance-matrix response with ``status`` and ``rows``.
        """
        params = {
            "origins": origin,
            "destinations": destination,
            "units": "imperial",
            "mode": "driving",
        }
        return await self._get("/distancematrix/json", params)
