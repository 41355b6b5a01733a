"""
Application Exception Handling

Single AppException class for all application errors with FastAPI integration,
plus the ScanError family raised inside the barcode scan engine.
"""

import enum
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class AppException(Exception):
    """
    Unified application exception for all error scenarios.
    
    Provides consistent error response format across the entire API.
    
    Usage:
        raise AppException("Product not found", "PRODUCT_NOT_FOUND", 404)
        raise AppException("Invalid barcode", "INVALID_BARCODE", 400, {"barcode": "123"})
    
    Error Codes:
        Product:
            - PRODUCT_NOT_FOUND (404)
            - INVALID_BARCODE (400)
        
        Scan session:
            - INVALID_TRANSITION (409)
            - PERMISSION_DENIED (403)
            - NO_CAMERA_FOUND (404)
            - CAMERA_UNAVAILABLE (503)
            - DECODE_FATAL (500)
            - LOOKUP_TIMEOUT (504)
            - LOOKUP_FAILED (502)
        
        General:
            - VALIDATION_ERROR (422)
            - INTERNAL_ERROR (500)
    """
    
    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize application exception.
        
        Args:
            message: Human-readable error message
            code: Machine-readable error code (e.g., "PRODUCT_NOT_FOUND")
            status_code: HTTP status code (default: 400)
            details: Additional error context (optional)
        """
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(self.message)
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        error_dict = {
            "success": False,
            "error": {
                "code": self.code,
                "message": self.message,
                "timestamp": self.timestamp
            }
        }
        
        if self.details:
            error_dict["error"]["details"] = self.details
        
        return error_dict


class ScanErrorCode(str, enum.Enum):
    """Error kinds that move a scan session into the Error state."""
    
    PERMISSION_DENIED = "PERMISSION_DENIED"
    NO_CAMERA_FOUND = "NO_CAMERA_FOUND"
    CAMERA_UNAVAILABLE = "CAMERA_UNAVAILABLE"
    DECODE_FATAL = "DECODE_FATAL"
    LOOKUP_TIMEOUT = "LOOKUP_TIMEOUT"
    LOOKUP_FAILED = "LOOKUP_FAILED"


class ScanError(AppException):
    """
    Failure of a scan session.
    
    The message is user-facing and is shown as-is in the Error state.
    None of these are retried automatically.
    """
    
    def __init__(
        self,
        code: ScanErrorCode,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, code.value, status_code, details)
        self.error_code = code


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    FastAPI exception handler for AppException.
    
    Converts AppException to consistent JSON error response.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with FastAPI app.
    
    Call this in main.py after creating the FastAPI instance.
    
    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(AppException, app_exception_handler)


# ============================================
# CONVENIENCE FACTORY FUNCTIONS
# ============================================

def product_not_found(barcode: Optional[str] = None) -> AppException:
    """Create product not found exception."""
    details = {"barcode": barcode} if barcode else {}
    return AppException("Product not found", "PRODUCT_NOT_FOUND", 404, details)


def invalid_barcode(barcode: str, reason: str) -> AppException:
    """Create invalid barcode exception."""
    return AppException(
        f"Invalid barcode: {reason}",
        "INVALID_BARCODE",
        400,
        {"barcode": barcode, "reason": reason}
    )


def invalid_transition(current: str, trigger: str) -> AppException:
    """Create invalid scan state transition exception."""
    return AppException(
        f"Cannot {trigger} while scanner is {current}",
        "INVALID_TRANSITION",
        409,
        {"current_state": current, "trigger": trigger}
    )


def internal_error(message: str = "Internal server error") -> AppException:
    """Create internal server error exception."""
    return AppException(message, "INTERNAL_ERROR", 500)


# ============================================
# SCAN ERROR FACTORIES
# ============================================

def permission_denied() -> ScanError:
    """Camera access was refused by the user or platform."""
    return ScanError(
        ScanErrorCode.PERMISSION_DENIED,
        "Camera permission denied. Please allow camera access and try again.",
        403
    )


def no_camera_found() -> ScanError:
    """Device enumeration returned nothing."""
    return ScanError(
        ScanErrorCode.NO_CAMERA_FOUND,
        "No camera found on this device.",
        404
    )


def camera_unavailable(reason: Optional[str] = None) -> ScanError:
    """Any other failure acquiring the camera."""
    details = {"reason": reason} if reason else {}
    return ScanError(
        ScanErrorCode.CAMERA_UNAVAILABLE,
        "Failed to access camera. Please check your permissions.",
        503,
        details
    )


def decode_fatal(reason: Optional[str] = None) -> ScanError:
    """The decode loop stopped with an error other than "no symbol"."""
    details = {"reason": reason} if reason else {}
    return ScanError(
        ScanErrorCode.DECODE_FATAL,
        "The camera stream stopped unexpectedly. Please try again.",
        500,
        details
    )


def lookup_timeout(seconds: float) -> ScanError:
    """The product lookup did not finish in time."""
    return ScanError(
        ScanErrorCode.LOOKUP_TIMEOUT,
        "Product lookup timed out. Please try again.",
        504,
        {"timeout_seconds": seconds}
    )


def lookup_failed(reason: Optional[str] = None) -> ScanError:
    """The product lookup raised."""
    details = {"reason": reason} if reason else {}
    return ScanError(
        ScanErrorCode.LOOKUP_FAILED,
        "Failed to search for product. Please try again.",
        502,
        details
    )
