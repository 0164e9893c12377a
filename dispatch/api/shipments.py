"""FastAPI routes for shipment extraction and enrichment."""

from collections.abc import Sequence
from typing import Annotated, Any

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import BaseModel, Field

from dispatch.api.dependencies import (
    build_processor,
    get_extractor,
    get_maps_client,
    get_route_cache,
    request_observer,
)
from dispatch.services.email_draft import build_drafts
from dispatch.services.errors import ConfigurationError, ExtractionError
from dispatch.services.extraction import ExtractedShipment, ShipmentExtractor
from dispatch.services.google_maps import GoogleMapsClient
from dispatch.services.grouping import group_by_customer
from dispatch.services.route_cache import RouteCache
from dispatch.services.shipments import RawShipment

# Maximum screenshot size: 10MB
MAX_IMAGE_SIZE = 10 * 1024 * 1024

SUPPORTED_IMAGE_TYPES = {"image/png", "image/jpeg", "image/webp"}

EXTRACTION_FAILED_DETAIL = (
    "Extraction Failed: Could not extract data from the screenshot. Please ensure "
    "the image contains clear shipment data with the expected column headers."
)

router = APIRouter(prefix="/shipments", tags=["shipments"])


class ProcessRequest(BaseModel):
    """Request schema for processing already-extracted rows."""

    shipments: list[ExtractedShipment] = Field(description="Raw rows in table order")


class ProcessedShipmentOut(BaseModel):
    """Schema for one enriched shipment."""

    po_number: str
    customer: str
    current_location: str
    destination: str
    destination_type: str = Field(description="shipper or receiver")
    eta: str
    distance: int = Field(description="Miles to the destination, 0 if unknown")
    travel_time: float = Field(description="Hours to the destination, 0 if unknown")
    status: str
    status_label: str
    reefer_temp: str | None = None


class CustomerGroupOut(BaseModel):
    """Schema for the shipments of one customer."""

    customer: str
    shipments: list[ProcessedShipmentOut]


class EmailDraftOut(BaseModel):
    """Schema for one customer email draft."""

    customer: str
    subject: str
    body: str


class ProcessResponse(BaseModel):
    """Response schema for shipment processing."""

    shipments: list[ProcessedShipmentOut]
    groups: list[CustomerGroupOut]
    drafts: list[EmailDraftOut]
    stats: dict[str, Any] = Field(default_factory=dict, description="Cache and lookup counters")


def validate_image(file: UploadFile, contents: bytes) -> None:
    """Validate an uploaded screenshot.

    Raises:
        HTTPException: If the type is unsupported, or the file is empty or too large.
    """
    if file.content_type not in SUPPORTED_IMAGE_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported image type. Supported types: {', '.join(sorted(SUPPORTED_IMAGE_TYPES))}",
        )
    if len(contents) == 0:
        raise HTTPException(status_code=400, detail="Uploaded image is empty")
    if len(contents) > MAX_IMAGE_SIZE:
        raise HTTPException(
            status_code=400,
            detail=f"Image size exceeds maximum allowed size of {MAX_IMAGE_SIZE // (1024 * 1024)}MB",
        )


async def _process(
    raw_shipments: Sequence[RawShipment],
    cache: RouteCache,
    client: GoogleMapsClient,
) -> ProcessResponse:
    observer, stats = request_observer()
    processor = build_processor(cache, client, observer)

    try:
        async with client:
            processed = await processor.process(raw_shipments)
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e

    groups = group_by_customer(processed)
    return ProcessResponse(
        shipments=[ProcessedShipmentOut(**shipment.to_dict()) for shipment in processed],
        groups=[CustomerGroupOut(**group.to_dict()) for group in groups],
        drafts=[EmailDraftOut(**draft.to_dict()) for draft in build_drafts(groups)],
        stats=stats.summary(),
    )


@router.post("/process", response_model=ProcessResponse)
async def process_shipments(
    request: ProcessRequest,
    cache: Annotated[RouteCache, Depends(get_route_cache)],
    client: Annotated[GoogleMapsClient, Depends(get_maps_client)],
) -> ProcessResponse:
    """Enrich extracted rows with locations and ETAs and draft customer emails.

    Duplicate BOLs are dropped, zip codes are resolved to city/state and
    distances come from the route cache or the maps API.

    Raises:
        HTTPException: 503 if the maps API key is missing.
    """
    raw_shipments = [row.to_raw_shipment() for row in request.shipments]
    return await _process(raw_shipments, cache, client)


@router.post("/extract", response_model=ProcessResponse)
async def extract_shipments(
    files: Annotated[list[UploadFile], File(description="TMS table screenshots")],
    cache: Annotated[RouteCache, Depends(get_route_cache)],
    client: Annotated[GoogleMapsClient, Depends(get_maps_client)],
    extractor: Annotated[ShipmentExtractor, Depends(get_extractor)],
) -> ProcessResponse:
    """Extract shipments from one or more screenshots, then process them.

    Rows from every screenshot are combined in upload order before
    deduplication.

    Raises:
        HTTPException: 400 for invalid uploads, 422 if extraction fails,
            503 if the maps API key is missing.
    """
    images: list[bytes] = []
    for file in files:
        contents = await file.read()
        validate_image(file, contents)
        images.append(contents)

    try:
        raw_shipments = await extractor.extract_many(images)
    except ExtractionError as e:
        raise HTTPException(status_code=422, detail=EXTRACTION_FAILED_DETAIL) from e

    return await _process(raw_shipments, cache, client)
