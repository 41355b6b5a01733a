"""
==============================================================================
Camera Capture Module
==============================================================================

Camera Capture API used by the scan engine, with two implementations.

Classes:
--------
- CameraCapture: Contract (enumerate devices, open a decode stream)
- OpenCVCameraCapture: Camera attached to the server (cv2.VideoCapture)
- BrowserCameraCapture: Camera owned by the browser; devices and frames
  are relayed over the scan WebSocket

Error Mapping:
-------------
- list_video_input_devices() raises PermissionError when access is
  refused, returns [] when there is no camera, and raises anything else
  for other acquisition failures.
- decode_from_video_device() raises ScanError when the device cannot be
  opened and yields a FATAL outcome when the stream breaks.

==============================================================================
"""

from __future__ import annotations

import asyncio
import base64
import glob
import logging
import os
import sys
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import AsyncIterator, Callable, Dict, List, Optional

import cv2
import numpy as np

from app.core import exceptions
from app.scanner.decoder import FrameDecoder
from app.scanner.models import CameraDevice, DecodeOutcome


# Module logger
logger = logging.getLogger(__name__)

# Receives every frame read from the camera (e.g. a preview renderer)
FrameSink = Callable[[np.ndarray], None]


class CameraCapture(ABC):
    """Camera Capture API consumed by the Device Negotiator and DecodeLoop."""
    
    @abstractmethod
    async def list_video_input_devices(self) -> List[CameraDevice]:
        """Enumerate video input devices without opening any of them."""
    
    @abstractmethod
    def decode_from_video_device(
        self,
        device_id: str,
        sink: Optional[FrameSink] = None
    ) -> AsyncIterator[DecodeOutcome]:
        """
        Open a continuous decode stream on a device.
        
        The returned async generator is lazy, infinite and single use.
        Closing it releases the device.
        """
    
    def reset_negotiation(self) -> None:
        """Forget device reports from a previous attempt. No-op by default."""


# =============================================================================
# SERVER-ATTACHED CAMERA
# =============================================================================

class OpenCVCameraCapture(CameraCapture):
    """
    Camera attached to the machine running the service.
    
    On Linux devices are listed from /dev/video* with their sysfs names;
    elsewhere indices are probed with cv2.VideoCapture. All cv2 calls for
    one stream run on a dedicated single worker thread, so a release never
    races a pending read.
    
    Example:
        >>> camera = OpenCVCameraCapture(max_devices=4)
        >>> devices = await camera.list_video_input_devices()
    """
    
    def __init__(
        self,
        decoder: Optional[FrameDecoder] = None,
        max_devices: int = 16,
        frame_interval: float = 0.03
    ) -> None:
        """
        Initialize local camera access.
        
        Args:
            decoder: Frame decoder (pyzbar by default)
            max_devices: Upper bound on enumerated devices
            frame_interval: Pause between frames in seconds
        """
        self._decoder = decoder
        self._max_devices = max_devices
        self._frame_interval = frame_interval
    
    async def list_video_input_devices(self) -> List[CameraDevice]:
        return await asyncio.to_thread(self._enumerate)
    
    def _enumerate(self) -> List[CameraDevice]:
        if sys.platform.startswith("linux"):
            return self._enumerate_linux()
        return self._probe_indices()
    
    def _enumerate_linux(self) -> List[CameraDevice]:
        devices: List[CameraDevice] = []
        denied: List[str] = []
        
        for path in sorted(glob.glob("/dev/video*")):
            try:
                index = int(Path(path).name.replace("video", ""))
            except ValueError:
                continue
            
            if not os.access(path, os.R_OK | os.W_OK):
                denied.append(path)
                continue
            
            label = _read_sysfs_name(index) or Path(path).name
            devices.append(CameraDevice(device_id=str(index), label=label))
        
        if not devices and denied:
            raise PermissionError(f"No access to {', '.join(denied)}")
        
        logger.debug(f"Discovered {len(devices)} video devices")
        return devices[:self._max_devices]
    
    def _probe_indices(self) -> List[CameraDevice]:
        devices: List[CameraDevice] = []
        
        for index in range(self._max_devices):
            cap = cv2.VideoCapture(index)
            try:
                if not cap.isOpened():
                    break
            finally:
                cap.release()
            devices.append(CameraDevice(device_id=str(index), label=f"Camera {index}"))
        
        logger.debug(f"Probed {len(devices)} video devices")
        return devices
    
    async def decode_from_video_device(
        self,
        device_id: str,
        sink: Optional[FrameSink] = None
    ) -> AsyncIterator[DecodeOutcome]:
        decoder = self._decoder or FrameDecoder()
        loop = asyncio.get_running_loop()
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"camera-{device_id}")
        capture = None
        
        try:
            capture = await loop.run_in_executor(executor, self._open, device_id)
            logger.info(f"📷 Camera {device_id} opened")
            
            while True:
                ok, frame = await loop.run_in_executor(executor, capture.read)
                if not ok or frame is None:
                    yield DecodeOutcome.fatal(f"Failed to read frame from camera {device_id}")
                    return
                
                if sink is not None:
                    sink(frame)
                
                for outcome in await loop.run_in_executor(executor, decoder.decode, frame):
                    yield outcome
                
                await asyncio.sleep(self._frame_interval)
        
        finally:
            if capture is not None:
                await loop.run_in_executor(executor, capture.release)
                logger.info(f"📷 Camera {device_id} released")
            executor.shutdown(wait=False)
    
    @staticmethod
    def _open(device_id: str) -> "cv2.VideoCapture":
        source = int(device_id) if device_id.isdigit() else device_id
        
        dev_path = f"/dev/video{device_id}" if device_id.isdigit() else device_id
        if sys.platform.startswith("linux") and os.path.exists(dev_path):
            if not os.access(dev_path, os.R_OK | os.W_OK):
                raise exceptions.permission_denied()
        
        capture = cv2.VideoCapture(source)
        if not capture.isOpened():
            capture.release()
            raise exceptions.camera_unavailable(f"Cannot open camera {device_id}")
        
        return capture


def _read_sysfs_name(index: int) -> Optional[str]:
    sys_name = Path(f"/sys/class/video4linux/video{index}/name")
    try:
        if sys_name.exists():
            text = sys_name.read_text(encoding="utf-8").strip()
            return text or None
    except OSError:
        return None
    return None


# =============================================================================
# BROWSER-OWNED CAMERA
# =============================================================================

class BrowserCameraCapture(CameraCapture):
    """
    Camera owned by the browser at the other end of the scan WebSocket.
    
    The WebSocket handler feeds this object with what the client reports:
    its device list (or the getUserMedia error name) and base64 encoded
    JPEG frames. Frames arriving while no stream is open are ignored, and
    only the most recent few frames are kept.
    
    Client Error Names:
    ------------------
    - NotAllowedError / SecurityError: permission refused
    - NotFoundError / OverconstrainedError: no usable camera
    - anything else: camera unavailable
    """
    
    PERMISSION_ERRORS = {"NotAllowedError", "SecurityError", "PermissionDeniedError"}
    NOT_FOUND_ERRORS = {"NotFoundError", "DevicesNotFoundError", "OverconstrainedError"}
    
    def __init__(self, decoder: Optional[FrameDecoder] = None, max_pending_frames: int = 2) -> None:
        self._decoder = decoder
        self._max_pending_frames = max_pending_frames
        self._devices: List[CameraDevice] = []
        self._camera_error: Optional[str] = None
        self._announced = asyncio.Event()
        self._frames: Optional[asyncio.Queue] = None
        self._streaming_device: Optional[str] = None
    
    # =========================================================================
    # CLIENT FEED (called by the WebSocket handler)
    # =========================================================================
    
    def report_devices(self, devices: List[Dict]) -> None:
        """Record the client's enumerateDevices() result."""
        self._devices = [
            CameraDevice(device_id=str(d["deviceId"]), label=d.get("label") or "")
            for d in devices
            if d.get("deviceId")
        ]
        self._camera_error = None
        self._announced.set()
        logger.debug(f"Client reported {len(self._devices)} cameras")
    
    def report_camera_error(self, name: str) -> None:
        """Record a getUserMedia/enumerateDevices failure."""
        self._devices = []
        self._camera_error = name or "UnknownError"
        self._announced.set()
        logger.warning(f"Client camera error: {self._camera_error}")
    
    def push_frame(self, encoded: str) -> bool:
        """
        Queue a base64 frame for the open stream.
        
        Returns:
            False if no stream is open and the frame was ignored
        """
        frames = self._frames
        if frames is None:
            return False
        
        if frames.full():
            frames.get_nowait()
        frames.put_nowait(encoded)
        return True
    
    def report_stream_error(self, message: str) -> None:
        """The client's video track ended or failed."""
        if self._frames is not None:
            if self._frames.full():
                self._frames.get_nowait()
            self._frames.put_nowait(_StreamError(message or "Video stream ended"))
    
    def reset_negotiation(self) -> None:
        """Wait for a fresh device report before the next negotiation."""
        self._devices = []
        self._camera_error = None
        self._announced.clear()
    
    @property
    def streaming_device(self) -> Optional[str]:
        return self._streaming_device
    
    # =========================================================================
    # CAMERA CAPTURE API
    # =========================================================================
    
    async def list_video_input_devices(self) -> List[CameraDevice]:
        await self._announced.wait()
        
        if self._camera_error in self.PERMISSION_ERRORS:
            raise PermissionError(self._camera_error)
        if self._camera_error in self.NOT_FOUND_ERRORS:
            return []
        if self._camera_error:
            raise RuntimeError(f"Client camera error: {self._camera_error}")
        
        return list(self._devices)
    
    async def decode_from_video_device(
        self,
        device_id: str,
        sink: Optional[FrameSink] = None
    ) -> AsyncIterator[DecodeOutcome]:
        if self._frames is not None:
            raise exceptions.camera_unavailable("A stream is already open")
        
        decoder = self._decoder or FrameDecoder()
        frames: asyncio.Queue = asyncio.Queue(maxsize=self._max_pending_frames)
        self._frames = frames
        self._streaming_device = device_id
        logger.info(f"📷 Browser camera {device_id} streaming")
        
        try:
            while True:
                item = await frames.get()
                
                if isinstance(item, _StreamError):
                    yield DecodeOutcome.fatal(item.message)
                    return
                
                frame = await asyncio.to_thread(_decode_image, item)
                if frame is None:
                    continue
                
                if sink is not None:
                    sink(frame)
                
                for outcome in await asyncio.to_thread(decoder.decode, frame):
                    yield outcome
        
        finally:
            self._frames = None
            self._streaming_device = None
            logger.info(f"📷 Browser camera {device_id} released")


class _StreamError:
    def __init__(self, message: str) -> None:
        self.message = message


def _decode_image(encoded: str) -> Optional[np.ndarray]:
    """Decode a base64 JPEG/PNG into a BGR frame."""
    if "," in encoded and encoded.startswith("data:"):
        encoded = encoded.split(",", 1)[1]
    
    try:
        img_data = base64.b64decode(encoded)
    except (ValueError, TypeError):
        logger.debug("Ignoring frame with invalid base64")
        return None
    
    nparr = np.frombuffer(img_data, np.uint8)
    if nparr.size == 0:
        return None
    return cv2.imdecode(nparr, cv2.IMREAD_COLOR)
