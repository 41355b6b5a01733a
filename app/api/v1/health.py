"""
==============================================================================
Health Check Endpoints
==============================================================================

System health status endpoints for monitoring and orchestration.

==============================================================================
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy import text

from app.config import get_settings
from app.db.database import get_db
from app.db.models import PUBLISHED_STATUSES, Product


# Module logger
logger = logging.getLogger(__name__)


router = APIRouter(prefix="/health", tags=["Health"])


class HealthController:
    """Controller for health check operations."""
    
    def __init__(self, db: Session):
        self._db = db
    
    def check_database(self) -> str:
        """Check database connectivity."""
        try:
            self._db.execute(text("SELECT 1"))
            return "healthy"
        except SQLAlchemyError as e:
            logger.error(f"❌ Database health check failed: {e}")
            return "unhealthy"
    
    def count_products(self) -> Optional[int]:
        """Count products visible to barcode lookups; None if the query failed."""
        try:
            return self._db.query(Product).filter(
                Product.product_status.in_(PUBLISHED_STATUSES)
            ).count()
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to count published products: {e}")
            return None
    
    def get_health(self) -> dict:
        """Get full health status."""
        db_status = self.check_database()
        published = self.count_products() if db_status == "healthy" else None
        if published is None:
            db_status = "unhealthy"
        overall = "healthy" if db_status == "healthy" else "degraded"
        
        return {
            "status": overall,
            "components": {
                "api": "healthy",
                "database": db_status,
            },
            "details": {
                "published_products": published,
                "camera_source": get_settings().camera_source
            }
        }


@router.get("")
async def health_check(db: Session = Depends(get_db)):
    """
    Health check endpoint.
    
    Returns system status including API and database.
    """
    controller = HealthController(db)
    return controller.get_health()


@router.get("/ready")
async def readiness_check():
    """Readiness probe for container orchestration."""
    return {"ready": True}


@router.get("/live")
async def liveness_check():
    """Liveness probe for container orchestration."""
    return {"alive": True}
