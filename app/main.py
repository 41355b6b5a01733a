"""
==============================================================================
Product Scan Service - Application Entry Point
==============================================================================

FastAPI application with:
- Barcode lookup REST endpoint
- WebSocket scan dialog (camera, decoding, lookup, navigation)
- Health checks

Usage:
------
    # Development
    uvicorn app.main:app --reload
    
    # Production
    uvicorn app.main:app --host 0.0.0.0 --port 8000

==============================================================================
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.core.exceptions import register_exception_handlers
from app.db import get_database_manager, init_db
from app.api.router import api_router
from app.websockets import scanner_router


# ============================================================================
# LOGGING SETUP
# ============================================================================

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
)

logger = logging.getLogger(__name__)


# ============================================================================
# APPLICATION FACTORY
# ============================================================================

class Application:
    """
    Builds the scan service application.
    
    Startup creates the products table (and seeds it when enabled);
    shutdown disposes of the connection pool. Camera resources are owned
    by each scan WebSocket and released when it closes.
    """
    
    def __init__(self):
        self._settings = get_settings()
        self._app = self._create_app()
    
    def _create_app(self) -> FastAPI:
        """Create and configure the FastAPI application."""
        app = FastAPI(
            title=self._settings.app_name,
            version="1.0.0",
            description="Camera barcode scanning with product lookup and navigation",
            lifespan=self._lifespan,
            docs_url="/docs",
            redoc_url="/redoc",
        )
        
        self._configure_middleware(app)
        register_exception_handlers(app)
        self._register_routers(app)
        
        return app
    
    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        """Application lifespan manager."""
        self._startup()
        yield
        self._shutdown()
    
    def _startup(self) -> None:
        """Application startup tasks."""
        logger.info("=" * 60)
        logger.info(f"🚀 Starting {self._settings.app_name}")
        logger.info("=" * 60)
        
        init_db()
        
        base_url = f"http://{self._settings.host}:{self._settings.port}"
        logger.info("=" * 60)
        logger.info(f"✅ {self._settings.app_name} ready ({self._settings.app_env})")
        logger.info(f"📷 Scan dialog: ws://{self._settings.host}:{self._settings.port}/ws/scan ({self._settings.camera_source} camera)")
        logger.info(f"🔎 Barcode lookup: {base_url}/api/v1/products/barcode/{{barcode}}")
        logger.info(f"📖 API Docs: {base_url}/docs")
        logger.info("=" * 60)
    
    def _shutdown(self) -> None:
        """Application shutdown tasks."""
        logger.info("🛑 Shutting down...")
        get_database_manager().dispose()
        logger.info("✅ Shutdown complete")
    
    def _configure_middleware(self, app: FastAPI) -> None:
        """Configure application middleware."""
        app.add_middleware(
            CORSMiddleware,
            allow_origins=self._settings.cors_origins_list,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    
    def _register_routers(self, app: FastAPI) -> None:
        """Register API routers."""
        # REST API routes
        app.include_router(api_router)
        
        # WebSocket routes
        app.include_router(scanner_router)
    
    @property
    def app(self) -> FastAPI:
        """Get the FastAPI application instance."""
        return self._app


# ============================================================================
# APPLICATION INSTANCE
# ============================================================================

application = Application()
app = application.app


# ============================================================================
# ENTRY POINT
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info"
    )
