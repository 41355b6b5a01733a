"""
==============================================================================
WebSocket Package
==============================================================================

Real-time WebSocket handlers for barcode scanning.

Handlers:
---------
- scanner: Scan dialog (camera, state pushes, Retry/Fallback/Close, navigation)

==============================================================================
"""

from .scanner import router as scanner_router

__all__ = ["scanner_router"]
