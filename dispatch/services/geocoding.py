"""Zip code to "City, ST" resolution.

Lookups never raise for bad input or provider failures. Invalid input
resolves to "N/A"; a failed lookup passes the original zip through so it
can still be shown to the user. A missing API key is the one hard failure.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from dispatch.services.batch import BatchRunner
from dispatch.services.errors import UpstreamUnavailable
from dispatch.services.events import (
    GEOCODE_FAILED,
    GEOCODE_RESOLVED,
    PipelineObserver,
    emit,
)
from dispatch.services.google_maps import GoogleMapsClient

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"


@dataclass(frozen=True)
class GeocodeResult:
    """Result of resolving one zip code."""

    city_state: str
    success: bool


def is_blank_location(value: str | None) -> bool:
    """True for None, whitespace-only and "N/A" (any case) values."""
    return not value or not value.strip() or value.strip().upper() == NOT_AVAILABLE


def extract_city_state(result: dict[str, Any]) -> str | None:
    """Build "City, ST" from one geocoding result's address components.

    City comes from the ``locality`` long name and state from the
    ``administrative_area_level_1`` short name. Returns None when either
    is missing.
    """
    city = ""
    state = ""
    for component in result.get("address_components", []):
        types = component.get("types", [])
        if "locality" in types:
            city = component.get("long_name", "")
        if "administrative_area_level_1" in types:
            state = component.get("short_name", "")
    if city and state:
        return f"{city}, {state}"
    return None


class GeoResolver:
    """Resolves postal codes to normalized location strings.

    Args:
        client: Maps client used for lookups.
        batch_runner: Chunked executor for ``resolve_many``.
        observer: Receives geocode events.
    """

    def __init__(
        self,
        client: GoogleMapsClient | None = None,
        batch_runner: BatchRunner | None = None,
        observer: PipelineObserver | None = None,
    ) -> None:
        self.client = client or GoogleMapsClient()
        self.observer = observer
        self.batch_runner = batch_runner or BatchRunner(observer=observer, name="geocode")

    def _failed(self, zip_code: str, reason: str) -> GeocodeResult:
        emit(self.observer, GEOCODE_FAILED, zip=zip_code, reason=reason)
        return GeocodeResult(city_state=zip_code, success=False)

    async def resolve_one(self, zip_code: str) -> GeocodeResult:
        """Resolve a single zip code.

        Args:
            zip_code: US postal code as extracted from the TMS table.

        Returns:
            GeocodeResult with "City, ST" on success, the original zip on
            lookup failure, or "N/A" for blank input.

        Raises:
            ConfigurationError: If no API key is configured.
        """
        if is_blank_location(zip_code):
            return GeocodeResult(city_state=NOT_AVAILABLE, success=False)

        zip_code = zip_code.strip()
        try:
            data = await self.client.geocode(f"{zip_code}, USA")
        except UpstreamUnavailable as e:
            logger.warning("Geocoding failed for %s: %s", zip_code, e)
            return self._failed(zip_code, "upstream_error")

        results = data.get("results") or []
        if data.get("status") != "OK" or not results:
            logger.warning("No geocoding results for zip %s (status=%s)", zip_code, data.get("status"))
            return self._failed(zip_code, "no_results")

        city_state = extract_city_state(results[0])
        if city_state is None:
            logger.warning("Could not extract city/state from zip %s", zip_code)
            return self._failed(zip_code, "missing_components")

        emit(self.observer, GEOCODE_RESOLVED, zip=zip_code, city_state=city_state)
        return GeocodeResult(city_state=city_state, success=True)

    async def resolve_many(self, zip_codes: Sequence[str]) -> list[GeocodeResult]:
        """Resolve several zip codes, preserving input order."""
        logger.info("Converting %d zip codes to city/state", len(zip_codes))
        results = await self.batch_runner.run(zip_codes, self.resolve_one)
        success_count = sum(1 for result in results if result.success)
        logger.info("Converted %d/%d zip codes", success_count, len(zip_codes))
        return results
