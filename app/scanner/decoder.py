"""
==============================================================================
Decode Loop Module
==============================================================================

Decoder capability and decode-loop wiring.

Classes:
--------
- FrameDecoder: pyzbar over a single BGR frame (the opaque decoder)
- DecodeLoop: pumps a camera's decode stream into an asyncio.Queue channel

Channel Semantics:
-----------------
    camera stream ──► DecodeLoop._pump ──► queue ──► DecodeLoop.candidates()
                         │                              │
                         ├─ no_symbol: dropped          └─► Detection Debouncer
                         ├─ decoded:   DetectionCandidate
                         └─ fatal:     ScanError (ends the loop)

A DecodeLoop runs once. After stop() it yields nothing further and cannot
be started again; a retry builds a new loop.

==============================================================================
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import Any, AsyncIterator, Callable, List, Optional, TYPE_CHECKING

import numpy as np

from app.core import exceptions
from app.core.exceptions import ScanError
from app.scanner.models import DecodeOutcome, DecodeOutcomeKind, DetectionCandidate

if TYPE_CHECKING:
    from app.scanner.camera import CameraCapture, FrameSink


# Module logger
logger = logging.getLogger(__name__)

# Placed on the channel by stop() to wake a blocked consumer
_STOPPED = object()


class FrameDecoder:
    """
    Barcode decoder for single video frames.
    
    Restricted to the retail symbologies the scanner accepts. pyzbar is
    imported lazily because it needs the zbar shared library at import time.
    
    Example:
        >>> decoder = FrameDecoder()
        >>> decoder.decode(frame)
        [DecodeOutcome(kind=<DecodeOutcomeKind.DECODED: 'decoded'>, text='4005808521175', error=None)]
    """
    
    def __init__(self, decode_fn: Optional[Callable[[np.ndarray], List[Any]]] = None) -> None:
        """
        Initialize decoder.
        
        Args:
            decode_fn: Replacement for pyzbar's decode (frame -> symbols)
        """
        if decode_fn is None:
            from pyzbar.pyzbar import ZBarSymbol, decode
            
            symbols = [ZBarSymbol.EAN13, ZBarSymbol.EAN8, ZBarSymbol.UPCA, ZBarSymbol.UPCE]
            decode_fn = lambda frame: decode(frame, symbols=symbols)  # noqa: E731
        
        self._decode = decode_fn
    
    def decode(self, frame: Optional[np.ndarray]) -> List[DecodeOutcome]:
        """
        Decode every barcode visible in a frame.
        
        Args:
            frame: OpenCV image (numpy array)
            
        Returns:
            One DECODED outcome per symbol, a single NO_SYMBOL outcome
            when nothing was found, or a single FATAL outcome if the
            decoder itself failed
        """
        if frame is None or frame.size == 0:
            return [DecodeOutcome.no_symbol()]
        
        try:
            barcodes = self._decode(frame)
        except Exception as e:
            logger.error(f"Decode error: {e}")
            return [DecodeOutcome.fatal(str(e))]
        
        outcomes = []
        for barcode in barcodes:
            try:
                outcomes.append(DecodeOutcome.decoded(barcode.data.decode("utf-8")))
            except UnicodeDecodeError:
                logger.debug(f"Skipping undecodable symbol: {barcode.data!r}")
        
        return outcomes or [DecodeOutcome.no_symbol()]


class DecodeLoop:
    """
    Continuous decode loop for one camera device.
    
    Turns the camera's outcome stream into DetectionCandidates on a
    channel. Per-frame "no symbol" results never reach the channel.
    
    Attributes:
        device_id: Device the loop reads from
        dropped: Candidates discarded while paused
    
    Example:
        >>> loop = DecodeLoop(camera, "0")
        >>> loop.start()
        >>> async for candidate in loop.candidates():
        ...     loop.pause()
        ...     break
        >>> await loop.stop()
    """
    
    def __init__(
        self,
        camera: "CameraCapture",
        device_id: str,
        sink: Optional["FrameSink"] = None,
        clock: Callable[[], float] = time.monotonic
    ) -> None:
        self._camera = camera
        self.device_id = device_id
        self._sink = sink
        self._clock = clock
        self._queue: asyncio.Queue = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self._started = False
        self._paused = False
        self._stopped = False
        self.dropped = 0
    
    # =========================================================================
    # PROPERTIES
    # =========================================================================
    
    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()
    
    @property
    def is_paused(self) -> bool:
        return self._paused
    
    @property
    def is_stopped(self) -> bool:
        return self._stopped
    
    # =========================================================================
    # CONTROL
    # =========================================================================
    
    def start(self) -> None:
        """Start pumping the camera stream. Allowed once."""
        if self._started:
            raise RuntimeError("Decode loop cannot be restarted")
        
        self._started = True
        self._task = asyncio.create_task(
            self._pump(), name=f"decode-loop-{self.device_id}"
        )
        logger.debug(f"Decode loop started (camera {self.device_id})")
    
    def pause(self) -> None:
        """Drop every candidate decoded from now on."""
        self._paused = True
    
    async def stop(self) -> None:
        """
        Stop the loop and close the camera stream.
        
        Returns once the stream has released the device.
        """
        if self._stopped:
            return
        
        self._stopped = True
        self._queue.put_nowait(_STOPPED)
        
        if self._task is not None and not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        
        logger.debug(f"Decode loop stopped (camera {self.device_id}, dropped {self.dropped})")
    
    # =========================================================================
    # CHANNEL
    # =========================================================================
    
    async def candidates(self) -> AsyncIterator[DetectionCandidate]:
        """
        Yield candidates in arrival order.
        
        Raises:
            ScanError: The stream failed; the loop is over
        """
        while not self._stopped:
            item = await self._queue.get()
            
            if item is _STOPPED:
                return
            if isinstance(item, ScanError):
                raise item
            if self._paused:
                self.dropped += 1
                continue
            
            yield item
    
    async def _pump(self) -> None:
        """Read the camera stream until it fails or the loop is stopped."""
        stream = self._camera.decode_from_video_device(self.device_id, self._sink)
        
        try:
            async for outcome in stream:
                if outcome.kind is DecodeOutcomeKind.NO_SYMBOL:
                    continue
                
                if outcome.kind is DecodeOutcomeKind.FATAL:
                    logger.error(f"Decode loop failed on camera {self.device_id}: {outcome.error}")
                    self._queue.put_nowait(exceptions.decode_fatal(outcome.error))
                    return
                
                if self._paused:
                    self.dropped += 1
                    continue
                
                self._queue.put_nowait(
                    DetectionCandidate(raw_text=outcome.text, arrived_at=self._clock())
                )
            
            self._queue.put_nowait(exceptions.decode_fatal("Decode stream ended"))
        
        except ScanError as e:
            logger.warning(f"Camera {self.device_id} failed to stream: {e.code}")
            self._queue.put_nowait(e)
        
        except asyncio.CancelledError:
            raise
        
        except Exception as e:
            logger.error(f"Decode loop error on camera {self.device_id}: {e}")
            self._queue.put_nowait(exceptions.decode_fatal(str(e)))
        
        finally:
            await stream.aclose()
