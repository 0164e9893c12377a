"""Shipment enrichment for rows extracted from TMS screenshots.

Turns raw extracted rows into display-ready shipments:
- Drops repeated BOLs (first occurrence wins)
- Works out whether the truck is heading to the shipper or the receiver
- Resolves every needed zip code once
- Resolves every route once, through the distance cache
- Derives ETA text, destination, customer name and PO number per row

Per-row problems never raise; fields degrade to "N/A" / "ETA Unavailable".
"""

import dataclasses
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from dispatch.services.events import (
    DUPLICATES_DROPPED,
    SHIPMENTS_PROCESSED,
    PipelineObserver,
    emit,
)
from dispatch.services.geocoding import NOT_AVAILABLE, GeoResolver, is_blank_location
from dispatch.services.routing import RouteOutcome, RoutePair, RouteResult, RouteService

logger = logging.getLogger(__name__)

# Statuses where the load has not been picked up yet
PRE_PICKUP_STATUSES = frozenset({"COVRD", "DISPATCH"})
DELIVERED_STATUS = "DLVD"

ETA_DELIVERED = "Delivered"
ETA_UNAVAILABLE = "ETA Unavailable"

WORLD_CLASS_DISTRIBUTION = "World Class Distribution"

STATUS_LABELS: dict[str, str] = {
    "IN-TRANS": "In Transit",
    "COVRD": "Covered",
    "DISPATCH": "Dispatched",
}

# Extractor output uses camelCase keys
_CAMEL_CASE_FIELDS = {
    "lastCallinCity": "last_callin_city",
    "brokerageStatus": "brokerage_status",
    "originZip": "origin_zip",
    "destZip": "dest_zip",
    "reeferTemp": "reefer_temp",
}


class DestinationType(str, Enum):
    """Which end of the load the truck is heading to."""

    SHIPPER = "shipper"
    RECEIVER = "receiver"


@dataclass(frozen=True)
class RawShipment:
    """One row as extracted from the TMS table.

    Attributes:
        bol: BOL / PO identifier, possibly "N/A"
        customer: Raw customer name (e.g. 'VITAAUTX - Vital Farms')
        last_callin_city: Last reported truck location or "N/A"
        brokerage_status: COVRD, DISPATCH, IN-TRANS, DLVD, ...
        origin_zip: Shipper zip code
        dest_zip: Receiver zip code
        reefer_temp: Required trailer temperature; None for dry loads
    """

    bol: str
    customer: str
    last_callin_city: str
    brokerage_status: str
    origin_zip: str
    dest_zip: str
    reefer_temp: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RawShipment":
        """Build from a snake_case or camelCase mapping."""
        values = {_CAMEL_CASE_FIELDS.get(key, key): value for key, value in data.items()}
        reefer_temp = values.get("reefer_temp")
        if reefer_temp is not None:
            reefer_temp = str(reefer_temp).strip() or None
        return cls(
            bol=str(values.get("bol") or ""),
            customer=str(values.get("customer") or ""),
            last_callin_city=str(values.get("last_callin_city") or ""),
            brokerage_status=str(values.get("brokerage_status") or ""),
            origin_zip=str(values.get("origin_zip") or ""),
            dest_zip=str(values.get("dest_zip") or ""),
            reefer_temp=reefer_temp,
        )


@dataclass
class ProcessedShipment:
    """A shipment enriched with location and ETA data."""

    po_number: str
    customer: str
    current_location: str
    destination: str
    destination_type: DestinationType
    eta: str
    distance: int
    travel_time: float
    status: str
    reefer_temp: str | None = None

    @property
    def status_label(self) -> str:
        return status_label(self.status)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "po_number": self.po_number,
            "customer": self.customer,
            "current_location": self.current_location,
            "destination": self.destination,
            "destination_type": self.destination_type.value,
            "eta": self.eta,
            "distance": self.distance,
            "travel_time": self.travel_time,
            "status": self.status,
            "status_label": self.status_label,
            "reefer_temp": self.reefer_temp,
        }


def normalize_bol(bol: str | None) -> str:
    return (bol or "").strip().upper()


def dedupe_by_bol(shipments: Sequence[RawShipment]) -> list[RawShipment]:
    """Keep the first row for each BOL.

    BOLs compare trimmed and case-insensitively. Rows without a usable BOL
    (blank or "N/A") are always kept.
    """
    seen: set[str] = set()
    unique: list[RawShipment] = []
    for shipment in shipments:
        bol = normalize_bol(shipment.bol)
        if bol and bol != NOT_AVAILABLE:
            if bol in seen:
                logger.debug("Duplicate BOL found and skipped: %s", shipment.bol)
                continue
            seen.add(bol)
        unique.append(shipment)
    return unique


def classify_destination(shipment: RawShipment) -> tuple[DestinationType, str]:
    """Return the destination type and the zip code to resolve for it."""
    if shipment.brokerage_status.strip().upper() in PRE_PICKUP_STATUSES:
        return DestinationType.SHIPPER, shipment.origin_zip
    return DestinationType.RECEIVER, shipment.dest_zip


def format_eta(
    status: str,
    current_location: str,
    route: RouteResult,
    destination_type: DestinationType,
) -> str:
    """Describe how far the truck is from where it is heading."""
    if status.strip().upper() == DELIVERED_STATUS:
        return ETA_DELIVERED
    if current_location.strip().upper() == NOT_AVAILABLE:
        return NOT_AVAILABLE
    if route.success:
        unit = "mile" if route.distance == 1 else "miles"
        return f"{route.distance} {unit} from the {destination_type.value}"
    if route.outcome in (RouteOutcome.INVALID_INPUT, RouteOutcome.NO_ROUTE):
        return NOT_AVAILABLE
    return ETA_UNAVAILABLE


def clean_customer_name(customer: str) -> str:
    """Strip the TMS customer code prefix ('VITAAUTX - Vital Farms' -> 'Vital Farms').

    Any variant of World Class Distribution collapses to one name.
    """
    name = customer.strip()
    if "-" in name:
        name = name.split("-", 1)[1].strip()
    if "world class distribution" in name.lower():
        return WORLD_CLASS_DISTRIBUTION
    return name


def resolve_po_number(bol: str, cleaned_customer: str) -> str:
    """Return the BOL as PO number unless it is missing or is really the customer name."""
    bol = (bol or "").strip()
    if not bol or bol.upper() == NOT_AVAILABLE:
        return NOT_AVAILABLE
    # A blank customer name matches every BOL
    if cleaned_customer.lower() in bol.lower():
        return NOT_AVAILABLE
    return bol


def status_label(status: str) -> str:
    """Human readable label for a brokerage status."""
    return STATUS_LABELS.get(status.strip().upper(), status)


def edit_shipment(shipment: ProcessedShipment, **changes: Any) -> ProcessedShipment:
    """Apply a user edit, returning a new record.

    Text fields are trimmed; a blank reefer temp means a dry load.
    """
    cleaned: dict[str, Any] = {}
    for key, value in changes.items():
        if isinstance(value, str):
            value = value.strip()
        cleaned[key] = value
    if "destination_type" in cleaned:
        cleaned["destination_type"] = DestinationType(cleaned["destination_type"])
    if "reefer_temp" in cleaned and not cleaned["reefer_temp"]:
        cleaned["reefer_temp"] = None
    return dataclasses.replace(shipment, **cleaned)


def collect_zip_codes(shipments: Sequence[RawShipment]) -> list[str]:
    """Unique usable origin/destination zips, in first-seen order."""
    zips: dict[str, None] = {}
    for shipment in shipments:
        for zip_code in (shipment.origin_zip, shipment.dest_zip):
            if not is_blank_location(zip_code):
                zips.setdefault(zip_code.strip(), None)
    return list(zips)


class ShipmentProcessor:
    """Orchestrates geocoding and routing for a batch of extracted rows.

    Args:
        geo_resolver: Resolves zip codes to "City, ST".
        route_service: Resolves driving distances.
        observer: Receives processing events.
    """

    def __init__(
        self,
        geo_resolver: GeoResolver,
        route_service: RouteService,
        observer: PipelineObserver | None = None,
    ) -> None:
        self.geo_resolver = geo_resolver
        self.route_service = route_service
        self.observer = observer

    async def process(self, raw_shipments: Sequence[RawShipment]) -> list[ProcessedShipment]:
        """Deduplicate and enrich raw rows.

        Args:
            raw_shipments: Rows from the extractor, in table order.

        Returns:
            One processed shipment per unique BOL, in input order.

        Raises:
            ConfigurationError: If the maps API key is missing.
        """
        shipments = dedupe_by_bol(raw_shipments)
        dropped = len(raw_shipments) - len(shipments)
        if dropped:
            emit(self.observer, DUPLICATES_DROPPED, count=dropped)
        logger.info("Deduplicated: %d -> %d shipments", len(raw_shipments), len(shipments))

        zip_codes = collect_zip_codes(shipments)
        geocodes = await self.geo_resolver.resolve_many(zip_codes)
        resolved = {
            zip_code: result.city_state
            for zip_code, result in zip(zip_codes, geocodes)
            if result.success
        }

        classified = [classify_destination(shipment) for shipment in shipments]
        pairs = []
        for shipment, (_, destination_zip) in zip(shipments, classified):
            destination = resolved.get(destination_zip.strip(), NOT_AVAILABLE)
            pairs.append(RoutePair(origin=current_location_of(shipment), destination=destination))

        routes = await self.route_service.get_batch_distances(pairs)

        processed = [
            self._build(shipment, destination_type, destination_zip, route, resolved)
            for shipment, (destination_type, destination_zip), route in zip(
                shipments, classified, routes
            )
        ]
        emit(
            self.observer,
            SHIPMENTS_PROCESSED,
            received=len(raw_shipments),
            processed=len(processed),
            routed=sum(1 for route in routes if route.success),
        )
        return processed

    def _build(
        self,
        shipment: RawShipment,
        destination_type: DestinationType,
        destination_zip: str,
        route: RouteResult,
        resolved: Mapping[str, str],
    ) -> ProcessedShipment:
        current_location = current_location_of(shipment)
        customer = clean_customer_name(shipment.customer)
        return ProcessedShipment(
            po_number=resolve_po_number(shipment.bol, customer),
            customer=customer,
            current_location=current_location,
            destination=resolved.get(destination_zip.strip(), destination_zip),
            destination_type=destination_type,
            eta=format_eta(shipment.brokerage_status, current_location, route, destination_type),
            distance=route.distance if route.success else 0,
            travel_time=route.duration if route.success else 0.0,
            status=shipment.brokerage_status,
            reefer_temp=shipment.reefer_temp,
        )


def current_location_of(shipment: RawShipment) -> str:
    """Last call-in city, or "N/A" when the cell was empty."""
    location = (shipment.last_callin_city or "").strip()
    return location or NOT_AVAILABLE
