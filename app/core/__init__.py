"""
==============================================================================
Core Package
==============================================================================

Core utilities and infrastructure for the application.

This package provides:
- Custom exception handling with consistent error responses
- The ScanError taxonomy used by the scan engine
- Exception factory functions for common error scenarios

Modules:
--------
- exceptions: AppException/ScanError classes and error factory functions

Usage:
------
    from app.core import AppException, ScanError
    
    # Or use exception factory functions via module
    from app.core import exceptions
    raise exceptions.no_camera_found()

==============================================================================
"""

from .exceptions import (
    AppException,
    ScanError,
    ScanErrorCode,
    register_exception_handlers,
)

__all__ = [
    "AppException",
    "ScanError",
    "ScanErrorCode",
    "register_exception_handlers",
]
