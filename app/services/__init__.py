"""
==============================================================================
Services Package - Business Logic Layer
==============================================================================

Service classes implementing business logic.

This package provides:
- ProductLookupService: Barcode to product resolution

Architecture Pattern: Service Layer
----------------------------------
    ┌──────────────────────────┐
    │ API Router / Scan Engine │
    └────────────┬─────────────┘
                 │
    ┌────────────▼─────────────┐
    │         Service          │  ← Business Logic
    └────────────┬─────────────┘
                 │
    ┌────────────▼─────────────┐
    │        Database          │  ← Data Access (via ORM)
    └──────────────────────────┘

==============================================================================
"""

from .product_lookup_service import ProductLookupService, get_lookup_service

__all__ = [
    "ProductLookupService",
    "get_lookup_service",
]
