"""FastAPI routes for the dispatch assistant."""

from dispatch.api.routes import router as routes_router
from dispatch.api.shipments import router as shipments_router

__all__ = ["routes_router", "shipments_router"]
