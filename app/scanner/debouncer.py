"""
==============================================================================
Detection Debouncer Module
==============================================================================

Filters raw detections into accepted barcodes.

Checks (in order):
-----------------
0. Paused     - the session is not SCANNING (a lookup is in flight)
1. Cooldown   - less than 1 s since the last accepted detection
2. Format     - not 8, 12 or 13 ASCII digits

Every rejection is silent: no state change, DEBUG logging only.

==============================================================================
"""

from __future__ import annotations

import logging
from typing import Optional

from app.scanner.constants import DEBOUNCE_WINDOW_SECONDS
from app.scanner.models import DetectionCandidate, ScanSession, ScanState
from app.utils.validators import BarcodeValidator


# Module logger
logger = logging.getLogger(__name__)


class DetectionDebouncer:
    """
    Decides whether a detection starts a lookup.
    
    The debouncer is stateless: the cooldown reads the session's
    last_accepted_at, which ScanStateMachine updates on acceptance.
    
    Example:
        >>> debouncer = DetectionDebouncer()
        >>> barcode = debouncer.evaluate(candidate, session)
    """
    
    def __init__(
        self,
        validator: Optional[BarcodeValidator] = None,
        window: float = DEBOUNCE_WINDOW_SECONDS
    ) -> None:
        self._validator = validator or BarcodeValidator()
        self._window = window
    
    def accept(self, candidate: DetectionCandidate, session: ScanSession) -> bool:
        """Return True if the candidate should be looked up."""
        return self.evaluate(candidate, session) is not None
    
    def evaluate(self, candidate: DetectionCandidate, session: ScanSession) -> Optional[str]:
        """
        Run all checks.
        
        Returns:
            The normalized barcode if accepted, otherwise None
        """
        if session.state is not ScanState.SCANNING or session.ended:
            logger.debug(f"Dropped {candidate.raw_text!r}: scanner is {session.state.value}")
            return None
        
        if (
            session.last_accepted_at is not None
            and candidate.arrived_at - session.last_accepted_at < self._window
        ):
            logger.debug(f"Dropped {candidate.raw_text!r}: cooldown active")
            return None
        
        is_valid, barcode, error = self._validator.validate(candidate.raw_text)
        if not is_valid:
            logger.debug(f"Dropped {candidate.raw_text!r}: {error}")
            return None
        
        return barcode
