"""
==============================================================================
Product Lookup Service Module
==============================================================================

Barcode to product resolution against the products table.

This module implements:
- ProductLookupService: Published-product queries by barcode
- get_lookup_service: FastAPI dependency

Lookup Rules:
------------
- Exact barcode match
- Only products with status 'publish' or 'published'
- First match by product_id when several rows share a barcode
- Database errors propagate to the caller (the scan engine turns them into
  LOOKUP_FAILED); they are never reported as "not found"

==============================================================================
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.database import get_database_manager
from app.db.models import PUBLISHED_STATUSES, Product


# Module logger
logger = logging.getLogger(__name__)


class ProductLookupService:
    """
    Product Lookup Service used by the scan engine and the REST API.
    
    Each call opens its own short-lived session, so lookups can run in a
    worker thread while the event loop keeps serving frames.
    
    Attributes:
        _session_factory: Callable returning a new SQLAlchemy Session
    
    Example:
        >>> service = ProductLookupService()
        >>> await service.lookup("4005808521175")
        42
    """
    
    def __init__(self, session_factory: Optional[Callable[[], Session]] = None) -> None:
        """
        Initialize the lookup service.
        
        Args:
            session_factory: Session factory (defaults to the DatabaseManager's)
        """
        self._session_factory = session_factory or get_database_manager().get_session
    
    def find_by_barcode(self, barcode: str) -> Optional[Dict[str, Any]]:
        """
        Find a published product by barcode.
        
        Args:
            barcode: Normalized barcode
            
        Returns:
            Product dictionary or None
            
        Raises:
            SQLAlchemyError: The query failed
        """
        session = self._session_factory()
        try:
            product = (
                session.query(Product)
                .filter(
                    Product.barcode == barcode,
                    Product.product_status.in_(PUBLISHED_STATUSES),
                )
                .order_by(Product.product_id)
                .first()
            )
            return product.to_dict() if product else None
        
        except SQLAlchemyError as e:
            logger.error(f"Error looking up barcode {barcode}: {e}")
            raise
        
        finally:
            session.close()
    
    async def lookup(self, barcode: str) -> Optional[int]:
        """
        Resolve a barcode to a product id without blocking the event loop.
        
        Returns:
            product_id, or None if no published product has this barcode
        """
        product = await asyncio.to_thread(self.find_by_barcode, barcode)
        return product["product_id"] if product else None


def get_lookup_service() -> ProductLookupService:
    """FastAPI dependency returning a lookup service bound to the app database."""
    return ProductLookupService()
