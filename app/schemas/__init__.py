"""
==============================================================================
Schemas Package
==============================================================================

Pydantic schemas for WebSocket messages.

Modules:
--------
- scan: Scan dialog state, navigation and error messages

==============================================================================
"""

from .scan import ErrorMessage, NavigateMessage, ScanStateMessage, STATE_DESCRIPTIONS

__all__ = [
    "ErrorMessage",
    "NavigateMessage",
    "ScanStateMessage",
    "STATE_DESCRIPTIONS",
]
