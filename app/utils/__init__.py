"""
==============================================================================
Utilities Package
==============================================================================

Utility classes and functions for the application.

Modules:
--------
- validators: Barcode format validation

==============================================================================
"""

from .validators import BarcodeValidator

__all__ = [
    "BarcodeValidator",
]
