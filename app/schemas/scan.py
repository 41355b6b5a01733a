"""
==============================================================================
Scan Schemas Module
==============================================================================

Messages pushed to the scan dialog over the WebSocket.

==============================================================================
"""

from typing import List, Literal, Optional
from urllib.parse import quote

from pydantic import BaseModel, Field

from app.scanner.models import ScanSession, ScanState


# Dialog description per state
STATE_DESCRIPTIONS = {
    ScanState.REQUESTING: "Requesting camera access...",
    ScanState.SCANNING: "Hold the barcode in front of your camera",
    ScanState.PROCESSING: "Looking up product...",
    ScanState.FOUND: "Product found! Redirecting...",
    ScanState.NOT_FOUND: "Product not found in database",
    ScanState.ERROR: "Camera error",
}


class ScanStateMessage(BaseModel):
    """Snapshot of the scan session for the UI."""
    
    type: Literal["state"] = "state"
    session_id: str
    state: ScanState
    description: str
    barcode: Optional[str] = None
    product_id: Optional[int] = None
    error_code: Optional[str] = None
    message: Optional[str] = None
    actions: List[str] = Field(default_factory=list)
    ended: bool = False
    
    @classmethod
    def from_session(cls, session: ScanSession, actions) -> "ScanStateMessage":
        """Create message from a session snapshot."""
        return cls(
            session_id=session.session_id,
            state=session.state,
            description=STATE_DESCRIPTIONS[session.state],
            barcode=session.last_accepted_barcode,
            product_id=session.product_id,
            error_code=session.error_code,
            message=session.error_message,
            actions=list(actions),
            ended=session.ended,
        )


class NavigateMessage(BaseModel):
    """Page transition requested by the scan dialog."""
    
    type: Literal["navigate"] = "navigate"
    path: str
    product_id: Optional[int] = None
    barcode: Optional[str] = None
    
    @classmethod
    def to_product(cls, product_id: int) -> "NavigateMessage":
        return cls(path=f"/product/{product_id}", product_id=product_id)
    
    @classmethod
    def to_search(cls, barcode: str) -> "NavigateMessage":
        return cls(path=f"/search?q={quote(barcode)}", barcode=barcode)


class ErrorMessage(BaseModel):
    """Protocol-level error (bad message, action not allowed now)."""
    
    type: Literal["error"] = "error"
    code: str = "ERROR"
    message: str
