"""
==============================================================================
Scan Models Module
==============================================================================

Pydantic models for the barcode scan engine.

Models:
-------
- ScanState: Scan State Machine states
- ScanSession: The single authoritative state holder of one scan attempt
- CameraDevice: An enumerated video input device
- DecodeOutcome: One result of the decoder capability
- DetectionCandidate: A decoded, not yet validated barcode
- LookupOutcome: The single result of resolving an accepted barcode

==============================================================================
"""

from __future__ import annotations

import enum
import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ScanState(str, enum.Enum):
    """
    Scan State Machine states.
    
    Flow:
        REQUESTING -> SCANNING -> PROCESSING -> FOUND | NOT_FOUND | ERROR
    
    FOUND ends the session on its own; NOT_FOUND and ERROR wait for the user.
    """
    
    REQUESTING = "requesting"
    SCANNING = "scanning"
    PROCESSING = "processing"
    FOUND = "found"
    NOT_FOUND = "notfound"
    ERROR = "error"


class SessionEndReason(str, enum.Enum):
    """Why a scan session ended."""
    
    NAVIGATED_TO_PRODUCT = "navigated_to_product"
    FALLBACK_TO_SEARCH = "fallback_to_search"
    CLOSED = "closed"
    RETRIED = "retried"


class CameraDevice(BaseModel):
    """Video input device as reported by the Camera Capture API."""
    
    model_config = ConfigDict(frozen=True)
    
    device_id: str = Field(..., min_length=1)
    # Often empty until camera permission has been granted
    label: str = Field(default="")


class DecodeOutcomeKind(str, enum.Enum):
    DECODED = "decoded"
    NO_SYMBOL = "no_symbol"
    FATAL = "fatal"


class DecodeOutcome(BaseModel):
    """One item of the decoder capability's outcome stream."""
    
    model_config = ConfigDict(frozen=True)
    
    kind: DecodeOutcomeKind
    text: Optional[str] = None
    error: Optional[str] = None
    
    @classmethod
    def decoded(cls, text: str) -> "DecodeOutcome":
        return cls(kind=DecodeOutcomeKind.DECODED, text=text)
    
    @classmethod
    def no_symbol(cls) -> "DecodeOutcome":
        return cls(kind=DecodeOutcomeKind.NO_SYMBOL)
    
    @classmethod
    def fatal(cls, error: str) -> "DecodeOutcome":
        return cls(kind=DecodeOutcomeKind.FATAL, error=error)


class DetectionCandidate(BaseModel):
    """
    Raw decode result waiting for the Detection Debouncer.
    
    Attributes:
        raw_text: Decoded string, unvalidated
        arrived_at: Monotonic clock reading in seconds
    """
    
    model_config = ConfigDict(frozen=True)
    
    raw_text: str
    arrived_at: float


class LookupOutcomeKind(str, enum.Enum):
    RESOLVED = "resolved"
    NOT_FOUND = "not_found"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


class LookupOutcome(BaseModel):
    """
    Result of resolving one accepted barcode.
    
    Exactly one is produced per accepted candidate.
    """
    
    model_config = ConfigDict(frozen=True)
    
    kind: LookupOutcomeKind
    product_id: Optional[int] = None
    reason: Optional[str] = None
    
    @classmethod
    def resolved(cls, product_id: int) -> "LookupOutcome":
        return cls(kind=LookupOutcomeKind.RESOLVED, product_id=product_id)
    
    @classmethod
    def not_found(cls) -> "LookupOutcome":
        return cls(kind=LookupOutcomeKind.NOT_FOUND)
    
    @classmethod
    def timed_out(cls) -> "LookupOutcome":
        return cls(kind=LookupOutcomeKind.TIMED_OUT)
    
    @classmethod
    def failed(cls, reason: str) -> "LookupOutcome":
        return cls(kind=LookupOutcomeKind.FAILED, reason=reason)


class ScanSession(BaseModel):
    """
    One attempt of an open scan dialog.
    
    Only ScanStateMachine mutates a session. A Retry replaces the session
    with a fresh one, so session_id doubles as the "still active" guard for
    results that arrive late.
    
    Attributes:
        session_id: Identity of this attempt
        state: Current state
        selected_device_id: Camera in use; set once
        last_accepted_barcode: Most recently accepted barcode
        last_accepted_at: Monotonic time of that acceptance
        product_id: Resolved product (FOUND only)
        error_code: ScanErrorCode value (ERROR only)
        error_message: User-facing message (ERROR only)
        ended: True once the session has ended
        end_reason: Why it ended
    """
    
    session_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    state: ScanState = ScanState.REQUESTING
    selected_device_id: Optional[str] = None
    last_accepted_barcode: Optional[str] = None
    last_accepted_at: Optional[float] = None
    product_id: Optional[int] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    ended: bool = False
    end_reason: Optional[SessionEndReason] = None
    
    @property
    def is_active(self) -> bool:
        return not self.ended
