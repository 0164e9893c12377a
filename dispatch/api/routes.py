"""FastAPI routes for single driving-distance lookups."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from dispatch.api.dependencies import get_maps_client, get_route_cache, request_observer
from dispatch.services.errors import ConfigurationError, UpstreamUnavailable
from dispatch.services.google_maps import GoogleMapsClient
from dispatch.services.route_cache import RouteCache
from dispatch.services.routing import RouteService

router = APIRouter(prefix="/routes", tags=["routes"])


class DistanceRequest(BaseModel):
    """Request schema for a distance lookup."""

    origin: str = Field(description="Free-text origin (e.g. 'South Amboy, NJ')")
    destination: str = Field(description="Free-text destination (e.g. 'Springfield, MO')")


class DistanceResponse(BaseModel):
    """Response schema for a distance lookup."""

    distance: int = Field(description="Driving distance in miles")
    duration: float = Field(description="Driving time in hours")
    formatted_distance: str
    formatted_duration: str
    outcome: str = Field(description="success, invalid_input, no_route or upstream_error")
    success: bool
    from_cache: bool


@router.post("/distance", response_model=DistanceResponse)
async def get_distance(
    request: DistanceRequest,
    cache: Annotated[RouteCache, Depends(get_route_cache)],
    client: Annotated[GoogleMapsClient, Depends(get_maps_client)],
) -> DistanceResponse:
    """Get the driving distance between two locations.

    Answers from the distance cache when possible.

    Raises:
        HTTPException: 503 if the maps API key is missing, 502 if the maps
            provider fails.
    """
    observer, _ = request_observer()
    service = RouteService(cache=cache, client=client, observer=observer)

    try:
        result = await service.get_distance(request.origin, request.destination)
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except UpstreamUnavailable as e:
        raise HTTPException(status_code=502, detail=str(e)) from e

    return DistanceResponse(**result.to_dict())
