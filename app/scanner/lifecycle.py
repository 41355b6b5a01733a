"""
==============================================================================
Camera Lifecycle Module
==============================================================================

Scoped ownership of the camera resource for a scan dialog.

Release Guarantee:
-----------------
    async with lifecycle.acquire(session_id) as lease:
        loop = lease.start_decode_loop(device_id)
        ...
    # decode loop stopped, camera stream closed, tracked timers cancelled

Release runs on every exit from the block: normal exit, exceptions, and
task cancellation (close, retry, WebSocket disconnect). The lock allows at
most one live lease per dialog; a second acquire waits for the first lease
to be released.

==============================================================================
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import AsyncIterator, Callable, Optional, Set

from app.scanner.camera import CameraCapture, FrameSink
from app.scanner.decoder import DecodeLoop


# Module logger
logger = logging.getLogger(__name__)


class CameraLease:
    """
    The camera resource held by one scan session.
    
    Attributes:
        session_id: Session owning the lease
        decode_loop: Active decode loop, if started
    """
    
    def __init__(
        self,
        camera: CameraCapture,
        session_id: str,
        sink: Optional[FrameSink] = None,
        clock: Callable[[], float] = time.monotonic
    ) -> None:
        self._camera = camera
        self.session_id = session_id
        self._sink = sink
        self._clock = clock
        self.decode_loop: Optional[DecodeLoop] = None
        self._timers: Set[asyncio.Task] = set()
        self.released = False
    
    def start_decode_loop(self, device_id: str) -> DecodeLoop:
        """Open the decode loop on the selected device. Once per lease."""
        if self.released:
            raise RuntimeError("Camera lease already released")
        if self.decode_loop is not None:
            raise RuntimeError("Decode loop already started for this lease")
        
        self.decode_loop = DecodeLoop(self._camera, device_id, self._sink, self._clock)
        self.decode_loop.start()
        return self.decode_loop
    
    def track(self, task: asyncio.Task) -> asyncio.Task:
        """Cancel this task when the lease is released."""
        self._timers.add(task)
        task.add_done_callback(self._timers.discard)
        return task
    
    @property
    def pending_timers(self) -> int:
        return sum(1 for task in self._timers if not task.done())
    
    async def release(self) -> None:
        """Stop the decode loop, close the camera, cancel timers."""
        if self.released:
            return
        self.released = True
        
        for task in list(self._timers):
            task.cancel()
        
        if self.decode_loop is not None:
            await self.decode_loop.stop()
        
        if self._timers:
            await asyncio.gather(*self._timers, return_exceptions=True)
        
        logger.debug(f"Camera lease for session {self.session_id} released")


class CameraLifecycleManager:
    """
    Hands out camera leases, one at a time, for a single dialog instance.
    
    Example:
        >>> lifecycle = CameraLifecycleManager(camera)
        >>> async with lifecycle.acquire(session.session_id) as lease:
        ...     loop = lease.start_decode_loop(device_id)
        >>> lifecycle.is_active
        False
    """
    
    def __init__(
        self,
        camera: CameraCapture,
        sink: Optional[FrameSink] = None,
        clock: Callable[[], float] = time.monotonic
    ) -> None:
        self._camera = camera
        self._sink = sink
        self._clock = clock
        self._lock = asyncio.Lock()
        self._lease: Optional[CameraLease] = None
        self.leases_granted = 0
    
    @property
    def is_active(self) -> bool:
        """True while a lease is held."""
        return self._lease is not None
    
    @property
    def lease(self) -> Optional[CameraLease]:
        return self._lease
    
    @contextlib.asynccontextmanager
    async def acquire(self, session_id: str) -> AsyncIterator[CameraLease]:
        """Hold the camera for a session; released on every exit path."""
        async with self._lock:
            lease = CameraLease(self._camera, session_id, self._sink, self._clock)
            self._lease = lease
            self.leases_granted += 1
            logger.debug(f"Camera lease granted to session {session_id}")
            
            try:
                yield lease
            finally:
                try:
                    await lease.release()
                finally:
                    self._lease = None
