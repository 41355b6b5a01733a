"""
==============================================================================
Scan Engine Module
==============================================================================

One scan dialog: wires the Device Negotiator, decode loop, Detection
Debouncer, Lookup Coordinator, Scan State Machine and Lifecycle Manager.

Attempt Flow:
------------
1. Acquire the camera lease (waits for any previous lease to be released)
2. Negotiate a device                      REQUESTING -> SCANNING
3. Consume the decode loop through the debouncer
4. On acceptance pause the loop            SCANNING -> PROCESSING
5. Race the lookup against its timeout     PROCESSING -> FOUND/NOT_FOUND/ERROR
6. FOUND only: hold the confirmation, release, navigate to the product
7. Release the lease (always)

Each attempt is a single asyncio task. Close and retry cancel it and wait
for the camera to be released before returning.

==============================================================================
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import Callable, Optional

from app.core import exceptions
from app.core.exceptions import ScanError
from app.scanner.camera import CameraCapture, FrameSink
from app.scanner.constants import FOUND_DISPLAY_DELAY_SECONDS, LOOKUP_TIMEOUT_SECONDS
from app.scanner.debouncer import DetectionDebouncer
from app.scanner.lifecycle import CameraLease, CameraLifecycleManager
from app.scanner.lookup import LookupCoordinator, LookupFunction
from app.scanner.models import LookupOutcomeKind, ScanSession, ScanState, SessionEndReason
from app.scanner.negotiator import DeviceNegotiator
from app.scanner.state_machine import Navigator, ScanStateMachine


# Module logger
logger = logging.getLogger(__name__)


class ScanEngine:
    """
    Barcode scan-to-product engine for one open dialog.
    
    Attributes:
        machine: Scan State Machine (subscribe to it to render the dialog)
        lifecycle: Camera lifecycle manager
    
    Example:
        >>> async with ScanEngine(camera, service.lookup, navigator) as engine:
        ...     await engine.wait_ended()
    """
    
    def __init__(
        self,
        camera: CameraCapture,
        lookup: LookupFunction,
        navigator: Navigator,
        *,
        sink: Optional[FrameSink] = None,
        debouncer: Optional[DetectionDebouncer] = None,
        lookup_timeout: float = LOOKUP_TIMEOUT_SECONDS,
        found_delay: float = FOUND_DISPLAY_DELAY_SECONDS,
        clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.machine = ScanStateMachine(navigator)
        self._camera = camera
        self.lifecycle = CameraLifecycleManager(camera, sink, clock)
        self._negotiator = DeviceNegotiator(camera)
        self._debouncer = debouncer or DetectionDebouncer()
        self._coordinator = LookupCoordinator(lookup, lookup_timeout)
        self._found_delay = found_delay
        self._attempt: Optional[asyncio.Task] = None
        self._ended = asyncio.Event()
        self.machine.subscribe(self._on_state)
    
    async def __aenter__(self) -> "ScanEngine":
        self.open()
        return self
    
    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
    
    # =========================================================================
    # DIALOG OPERATIONS
    # =========================================================================
    
    @property
    def ended(self) -> bool:
        return self._ended.is_set()
    
    def open(self) -> ScanSession:
        """Open the dialog and start the first attempt."""
        session = self.machine.open()
        self._start_attempt(session.session_id)
        return session
    
    async def retry(self) -> ScanSession:
        """User Retry from NOT_FOUND or ERROR; negotiates from scratch."""
        session = self.machine.retry()
        self._camera.reset_negotiation()
        await self._cancel_attempt()
        self._start_attempt(session.session_id)
        return session
    
    async def fallback(self) -> str:
        """User Fallback from NOT_FOUND; returns the barcode handed to search."""
        barcode = self.machine.fallback()
        await self._cancel_attempt()
        return barcode
    
    async def close(self) -> None:
        """Close the dialog from any state and release the camera."""
        self.machine.close()
        await self._cancel_attempt()
        self._ended.set()
    
    async def wait_ended(self) -> None:
        await self._ended.wait()
    
    def _on_state(self, session: ScanSession) -> None:
        if session.ended and session.end_reason is not SessionEndReason.RETRIED:
            self._ended.set()
    
    # =========================================================================
    # ATTEMPTS
    # =========================================================================
    
    def _start_attempt(self, session_id: str) -> None:
        self._attempt = asyncio.create_task(
            self._run_attempt(session_id), name=f"scan-{session_id}"
        )
    
    async def _cancel_attempt(self) -> None:
        task, self._attempt = self._attempt, None
        if task is None:
            return
        
        if not task.done():
            task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
    
    async def _run_attempt(self, session_id: str) -> None:
        try:
            async with self.lifecycle.acquire(session_id) as lease:
                product_id = await self._scan(session_id, lease)
                if product_id is None:
                    return
                
                # Found confirmation stays up with the lease held
                await lease.track(asyncio.create_task(asyncio.sleep(self._found_delay)))
            
            self.machine.found_displayed(session_id)
        
        except ScanError as e:
            self.machine.fail(session_id, e)
        
        except asyncio.CancelledError:
            logger.debug(f"Scan attempt {session_id} cancelled")
            raise
        
        except Exception as e:
            logger.exception(f"Scan attempt {session_id} crashed: {e}")
            self.machine.fail(session_id, exceptions.decode_fatal(str(e)))
    
    async def _scan(self, session_id: str, lease: CameraLease) -> Optional[int]:
        """
        Run one attempt up to the lookup result.
        
        Returns:
            Product id when the session reached FOUND, otherwise None
        """
        if not self.machine.is_current(session_id):
            return None
        
        device_id = await self._negotiator.select_device()
        if not self.machine.device_selected(session_id, device_id):
            return None
        
        decode_loop = lease.start_decode_loop(device_id)
        barcode = None
        
        async with contextlib.aclosing(decode_loop.candidates()) as candidates:
            async for candidate in candidates:
                barcode = self._debouncer.evaluate(candidate, self.machine.session)
                if barcode is None:
                    continue
                
                decode_loop.pause()
                self.machine.candidate_accepted(session_id, barcode, candidate)
                break
        
        if barcode is None:
            return None
        
        lookup = lease.track(asyncio.create_task(self._coordinator.resolve(barcode)))
        outcome = await lookup
        
        if not self.machine.lookup_completed(session_id, outcome):
            return None
        
        if outcome.kind is LookupOutcomeKind.RESOLVED and self.machine.state is ScanState.FOUND:
            return outcome.product_id
        return None
