"""
==============================================================================
Product Lookup Endpoints
==============================================================================

Barcode lookup over REST, backed by the same service the scan engine uses.

==============================================================================
"""

from fastapi import APIRouter, Depends

from app.core import exceptions
from app.services.product_lookup_service import ProductLookupService, get_lookup_service
from app.utils.validators import BarcodeValidator


router = APIRouter(prefix="/products", tags=["Products"])


class ProductController:
    """Controller for product lookup operations."""
    
    def __init__(self, service: ProductLookupService):
        self._service = service
        self._validator = BarcodeValidator()
    
    def get_by_barcode(self, barcode: str) -> dict:
        """Get a published product by barcode."""
        is_valid, normalized, error = self._validator.validate(barcode)
        if not is_valid:
            raise exceptions.invalid_barcode(barcode, error)
        
        product = self._service.find_by_barcode(normalized)
        if not product:
            raise exceptions.product_not_found(normalized)
        
        return {
            "success": True,
            "product": product,
            "path": f"/product/{product['product_id']}"
        }


@router.get("/barcode/{barcode}")
async def get_product_by_barcode(
    barcode: str,
    service: ProductLookupService = Depends(get_lookup_service)
):
    """Resolve a barcode to a published product."""
    controller = ProductController(service)
    return controller.get_by_barcode(barcode)
