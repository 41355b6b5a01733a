"""
==============================================================================
Scan State Machine Module
==============================================================================

Single source of truth for the state of one scan dialog.

State Machine:
-------------

┌────────────┐ device selected ┌──────────┐ candidate accepted ┌────────────┐
│ REQUESTING │ ──────────────▶ │ SCANNING │ ─────────────────▶ │ PROCESSING │
└────────────┘                 └──────────┘                    └────────────┘
   │    ▲                           │                      resolved │ not found
   │    │ retry            decode   │                               ▼    │
   │    │                  failure  │                        ┌───────┐   │
   │    │                           ▼                        │ FOUND │   ▼
   │    │                     ┌─────────┐  timeout/failed    └───────┘ ┌──────────┐
   └────┼───────────────────▶ │  ERROR  │ ◀── (PROCESSING)      │      │ NOT_FOUND│
  camera│error                └─────────┘                       │      └──────────┘
        │                          │ retry               delay  │  retry │    │ fallback
        └──────────────────────────┴────────────────────────────┼────────┘    │
                                                                ▼             ▼
                                                         navigate to     navigate to
                                                           product          search

Close ends the session from any state.

Engine events (device selected, candidate accepted, lookup completed, failure)
carry the session_id they were produced for. Events for a session that is no
longer current, or that no longer fit the current state, are stale and are
ignored. User actions (retry, fallback, close) in the wrong state raise
INVALID_TRANSITION.

==============================================================================
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Protocol

from app.core import exceptions
from app.core.exceptions import ScanError
from app.scanner.models import (
    DetectionCandidate,
    LookupOutcome,
    LookupOutcomeKind,
    ScanSession,
    ScanState,
    SessionEndReason,
)
from app.scanner.constants import LOOKUP_TIMEOUT_SECONDS


# Module logger
logger = logging.getLogger(__name__)

# UI Render Collaborator: receives a snapshot after every change
StateListener = Callable[[ScanSession], None]


class Navigator(Protocol):
    """Navigation Collaborator. Called, never awaited."""
    
    def to_product(self, product_id: int) -> None: ...
    
    def to_search(self, barcode: str) -> None: ...


class ScanStateMachine:
    """
    Owns the current ScanSession and every transition on it.
    
    Attributes:
        session: Current session (None before open())
        history: States entered by the current session
    
    Example:
        >>> machine = ScanStateMachine(navigator)
        >>> session = machine.open()
        >>> machine.device_selected(session.session_id, "0")
        True
        >>> machine.session.state
        <ScanState.SCANNING: 'scanning'>
    """
    
    # User actions offered per state
    ACTIONS = {
        ScanState.REQUESTING: ("close",),
        ScanState.SCANNING: ("close",),
        ScanState.PROCESSING: ("close",),
        ScanState.FOUND: (),
        ScanState.NOT_FOUND: ("retry", "fallback", "close"),
        ScanState.ERROR: ("retry", "close"),
    }
    
    def __init__(self, navigator: Navigator) -> None:
        self._navigator = navigator
        self._listeners: List[StateListener] = []
        self.session: Optional[ScanSession] = None
        self.history: List[ScanState] = []
    
    # =========================================================================
    # SUBSCRIPTION
    # =========================================================================
    
    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """
        Register a state listener.
        
        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)
        
        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        
        return unsubscribe
    
    def _notify(self) -> None:
        snapshot = self.session.model_copy()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"State listener failed: {e}")
    
    # =========================================================================
    # QUERIES
    # =========================================================================
    
    @property
    def state(self) -> Optional[ScanState]:
        return self.session.state if self.session else None
    
    @property
    def ended(self) -> bool:
        return self.session is None or self.session.ended
    
    def is_current(self, session_id: str) -> bool:
        """True if session_id is the active, not yet ended session."""
        return (
            self.session is not None
            and self.session.session_id == session_id
            and not self.session.ended
        )
    
    def actions(self) -> tuple:
        if self.session is None or self.session.ended:
            return ()
        return self.ACTIONS[self.session.state]
    
    # =========================================================================
    # ENGINE EVENTS
    # =========================================================================
    
    def open(self) -> ScanSession:
        """Start a session in REQUESTING."""
        if self.session is not None and not self.session.ended:
            raise exceptions.invalid_transition(self.session.state.value, "open")
        
        self.session = ScanSession()
        self.history = []
        self._enter(ScanState.REQUESTING)
        logger.info(f"🟢 Scan session {self.session.session_id} opened")
        return self.session
    
    def device_selected(self, session_id: str, device_id: str) -> bool:
        """REQUESTING -> SCANNING."""
        if not self._expect(session_id, ScanState.REQUESTING, "device selected"):
            return False
        
        if self.session.selected_device_id is not None:
            raise exceptions.invalid_transition(self.session.state.value, "select a second device")
        
        self.session.selected_device_id = device_id
        self._enter(ScanState.SCANNING)
        return True
    
    def candidate_accepted(self, session_id: str, barcode: str, candidate: DetectionCandidate) -> bool:
        """SCANNING -> PROCESSING, recording the acceptance."""
        if not self._expect(session_id, ScanState.SCANNING, "candidate accepted"):
            return False
        
        self.session.last_accepted_barcode = barcode
        self.session.last_accepted_at = candidate.arrived_at
        self._enter(ScanState.PROCESSING)
        logger.info(f"📦 Accepted barcode {barcode}")
        return True
    
    def lookup_completed(self, session_id: str, outcome: LookupOutcome) -> bool:
        """PROCESSING -> FOUND | NOT_FOUND | ERROR."""
        if not self._expect(session_id, ScanState.PROCESSING, "lookup completed"):
            return False
        
        if outcome.kind is LookupOutcomeKind.RESOLVED:
            self.session.product_id = outcome.product_id
            self._enter(ScanState.FOUND)
        elif outcome.kind is LookupOutcomeKind.NOT_FOUND:
            self._enter(ScanState.NOT_FOUND)
        elif outcome.kind is LookupOutcomeKind.TIMED_OUT:
            self._fail(exceptions.lookup_timeout(LOOKUP_TIMEOUT_SECONDS))
        else:
            self._fail(exceptions.lookup_failed(outcome.reason))
        
        return True
    
    def fail(self, session_id: str, error: ScanError) -> bool:
        """REQUESTING | SCANNING | PROCESSING -> ERROR."""
        if not self._expect(
            session_id,
            (ScanState.REQUESTING, ScanState.SCANNING, ScanState.PROCESSING),
            error.code
        ):
            return False
        
        self._fail(error)
        return True
    
    def found_displayed(self, session_id: str) -> bool:
        """FOUND -> session ends, navigate to the product."""
        if not self._expect(session_id, ScanState.FOUND, "found displayed"):
            return False
        
        product_id = self.session.product_id
        self._end(SessionEndReason.NAVIGATED_TO_PRODUCT)
        self._navigator.to_product(product_id)
        return True
    
    # =========================================================================
    # USER ACTIONS
    # =========================================================================
    
    def retry(self) -> ScanSession:
        """NOT_FOUND | ERROR -> fresh session in REQUESTING."""
        self._require((ScanState.NOT_FOUND, ScanState.ERROR), "retry")
        
        previous = self.session
        self._end(SessionEndReason.RETRIED)
        # Cooldown is measured from the dialog's last acceptance, not the session's
        self.session = ScanSession(
            last_accepted_barcode=previous.last_accepted_barcode,
            last_accepted_at=previous.last_accepted_at,
        )
        self.history = []
        self._enter(ScanState.REQUESTING)
        logger.info(f"🔁 Retrying as session {self.session.session_id}")
        return self.session
    
    def fallback(self) -> str:
        """NOT_FOUND -> session ends, navigate to search with the barcode."""
        self._require((ScanState.NOT_FOUND,), "fall back to search")
        
        barcode = self.session.last_accepted_barcode
        self._end(SessionEndReason.FALLBACK_TO_SEARCH)
        self._navigator.to_search(barcode)
        return barcode
    
    def close(self) -> bool:
        """
        End the session from any state.
        
        Returns:
            False if there was nothing to close
        """
        if self.session is None or self.session.ended:
            return False
        
        self._end(SessionEndReason.CLOSED)
        return True
    
    # =========================================================================
    # INTERNALS
    # =========================================================================
    
    def _expect(self, session_id: str, states, trigger: str) -> bool:
        if isinstance(states, ScanState):
            states = (states,)
        
        if not self.is_current(session_id):
            logger.debug(f"Ignoring stale '{trigger}' for session {session_id}")
            return False
        
        if self.session.state not in states:
            logger.debug(f"Ignoring '{trigger}' in state {self.session.state.value}")
            return False
        
        return True
    
    def _require(self, states, trigger: str) -> None:
        if self.session is None or self.session.ended or self.session.state not in states:
            current = "closed" if self.ended else self.session.state.value
            raise exceptions.invalid_transition(current, trigger)
    
    def _enter(self, state: ScanState) -> None:
        previous = self.history[-1] if self.history else None
        self.session.state = state
        self.history.append(state)
        logger.debug(f"Scan state {previous.value if previous else 'start'} → {state.value}")
        self._notify()
    
    def _fail(self, error: ScanError) -> None:
        self.session.error_code = error.code
        self.session.error_message = error.message
        logger.warning(f"❌ Scan error {error.code}: {error.message}")
        self._enter(ScanState.ERROR)
    
    def _end(self, reason: SessionEndReason) -> None:
        self.session.ended = True
        self.session.end_reason = reason
        logger.info(f"🔴 Scan session {self.session.session_id} ended ({reason.value})")
        self._notify()

