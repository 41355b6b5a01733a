"""
==============================================================================
Scanner Package - Barcode Scan-to-Product Engine
==============================================================================

Camera negotiation, continuous decoding, debouncing, timed product lookup
and camera lifecycle for one scan dialog.

Classes:
--------
- ScanEngine: One dialog instance; entry point
- ScanStateMachine: State holder and transitions
- DeviceNegotiator: Camera selection
- DecodeLoop / FrameDecoder: Decode-loop wiring and pyzbar decoding
- DetectionDebouncer: Cooldown and format filtering
- LookupCoordinator: Lookup raced against a timeout
- CameraLifecycleManager: Guaranteed camera release
- OpenCVCameraCapture / BrowserCameraCapture: Camera Capture API

==============================================================================
"""

from .camera import BrowserCameraCapture, CameraCapture, OpenCVCameraCapture
from .debouncer import DetectionDebouncer
from .decoder import DecodeLoop, FrameDecoder
from .engine import ScanEngine
from .lifecycle import CameraLease, CameraLifecycleManager
from .lookup import LookupCoordinator
from .models import (
    CameraDevice,
    DecodeOutcome,
    DetectionCandidate,
    LookupOutcome,
    LookupOutcomeKind,
    ScanSession,
    ScanState,
    SessionEndReason,
)
from .negotiator import DeviceNegotiator
from .state_machine import Navigator, ScanStateMachine

__all__ = [
    "BrowserCameraCapture",
    "CameraCapture",
    "CameraDevice",
    "CameraLease",
    "CameraLifecycleManager",
    "DecodeLoop",
    "DecodeOutcome",
    "DetectionCandidate",
    "DetectionDebouncer",
    "DeviceNegotiator",
    "FrameDecoder",
    "LookupCoordinator",
    "LookupOutcome",
    "LookupOutcomeKind",
    "Navigator",
    "OpenCVCameraCapture",
    "ScanEngine",
    "ScanSession",
    "ScanState",
    "ScanStateMachine",
    "SessionEndReason",
]
