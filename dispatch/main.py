"""FastAPI application entry point."""

import logging

from fastapi import FastAPI

from dispatch.api.routes import router as routes_router
from dispatch.api.shipments import router as shipments_router
from dispatch.config import settings

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="TMS Dispatch Assistant",
    description="Shipment enrichment and customer update drafts from TMS screenshots",
    version="0.1.0",
    debug=settings.debug,
)

# Include API routers
app.include_router(shipments_router)
app.include_router(routes_router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}
