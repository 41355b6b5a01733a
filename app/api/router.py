"""
==============================================================================
Main API Router
==============================================================================

Mounts the REST endpoints under /api/v1:

- /api/v1/health                      Health, readiness and liveness
- /api/v1/products/barcode/{barcode}  Barcode to published product

The scan dialog itself is a WebSocket route (app.websockets).

==============================================================================
"""

from fastapi import APIRouter

from app.api.v1 import health, products


class MainAPIRouter:
    """Versioned REST router for the scan service."""
    
    PREFIX = "/api/v1"
    
    def __init__(self):
        self._router = APIRouter(prefix=self.PREFIX)
        for module in (health, products):
            self._router.include_router(module.router)
    
    @property
    def router(self) -> APIRouter:
        """Get the FastAPI router instance."""
        return self._router


api_router = MainAPIRouter().router
