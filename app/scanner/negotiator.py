"""
Device Negotiator.

Enumerates cameras and picks one. The rear-camera preference is a label
heuristic only: labels are empty until permission is granted on most
browsers, and nothing guarantees which way a camera faces.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from app.core import exceptions
from app.core.exceptions import ScanError
from app.scanner.camera import CameraCapture
from app.scanner.constants import REAR_CAMERA_HINTS
from app.scanner.models import CameraDevice


# Module logger
logger = logging.getLogger(__name__)


class DeviceNegotiator:
    """
    Selects the camera a scan session will use.
    
    Example:
        >>> negotiator = DeviceNegotiator(camera)
        >>> device_id = await negotiator.select_device()
    """
    
    def __init__(self, camera: CameraCapture) -> None:
        self._camera = camera
    
    async def select_device(self) -> str:
        """
        Enumerate devices and choose one.
        
        Returns:
            Device identifier
            
        Raises:
            ScanError: NO_CAMERA_FOUND, PERMISSION_DENIED or CAMERA_UNAVAILABLE
        """
        try:
            devices = await self._camera.list_video_input_devices()
        except ScanError:
            raise
        except PermissionError as e:
            logger.warning(f"Camera permission denied: {e}")
            raise exceptions.permission_denied() from e
        except Exception as e:
            logger.error(f"Camera enumeration failed: {e}")
            raise exceptions.camera_unavailable(str(e)) from e
        
        if not devices:
            logger.warning("No camera found")
            raise exceptions.no_camera_found()
        
        device = self.choose(devices)
        logger.info(f"🎥 Selected camera {device.device_id} ({device.label or 'unlabelled'})")
        return device.device_id
    
    @staticmethod
    def choose(devices: List[CameraDevice]) -> CameraDevice:
        """
        Apply the selection policy.
        
        First device whose label mentions a rear camera, otherwise the
        first device. Several matches resolve to the first in enumeration
        order.
        """
        rear = _first_rear_facing(devices)
        return rear if rear is not None else devices[0]


def _first_rear_facing(devices: List[CameraDevice]) -> Optional[CameraDevice]:
    for device in devices:
        label = device.label.lower()
        if any(hint in label for hint in REAR_CAMERA_HINTS):
            return device
    return None
