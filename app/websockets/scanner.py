"""
==============================================================================
Scanner WebSocket Module
==============================================================================

Scan dialog over a WebSocket connection: one connection is one open dialog
and owns one ScanEngine.

Protocol:
---------
Server → client:
    {"type": "state", "state": "scanning", "description": ..., "actions": [...]}
    {"type": "navigate", "path": "/product/42", "product_id": 42}
    {"type": "navigate", "path": "/search?q=4005808521175", "barcode": "4005808521175"}
    {"type": "error", "code": "INVALID_TRANSITION", "message": ...}

Client → server (dialog buttons):
    {"type": "retry"} | {"type": "fallback"} | {"type": "close"}

Client → server (browser camera mode only):
    {"type": "devices", "devices": [{"deviceId": "...", "label": "..."}]}
    {"type": "camera_error", "name": "NotAllowedError"}
    {"type": "frame", "frame": "<base64 jpeg>"}
    {"type": "stream_error", "message": "..."}

The connection closes after navigation, on close, or on disconnect; the
camera is released in every case.

==============================================================================
"""

import asyncio
import logging
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from app.config import get_settings
from app.core.exceptions import AppException
from app.scanner import (
    BrowserCameraCapture,
    CameraCapture,
    FrameDecoder,
    OpenCVCameraCapture,
    ScanEngine,
    ScanSession,
    SessionEndReason,
)
from app.schemas.scan import ErrorMessage, NavigateMessage, ScanStateMessage
from app.services.product_lookup_service import ProductLookupService, get_lookup_service


# Module logger
logger = logging.getLogger(__name__)

router = APIRouter()

# Ends the send loop once everything queued before it has been sent
_CLOSE = object()


def get_frame_decoder() -> FrameDecoder:
    """FastAPI dependency returning the pyzbar frame decoder."""
    return FrameDecoder()


class WebSocketNavigator:
    """Navigation Collaborator that queues navigate messages for the client."""
    
    def __init__(self, outbox: asyncio.Queue):
        self._outbox = outbox
    
    def to_product(self, product_id: int) -> None:
        logger.info(f"➡️ Navigating to product {product_id}")
        self._outbox.put_nowait(NavigateMessage.to_product(product_id).model_dump())
    
    def to_search(self, barcode: str) -> None:
        logger.info(f"➡️ Falling back to search for {barcode}")
        self._outbox.put_nowait(NavigateMessage.to_search(barcode).model_dump())


class ScannerWebSocketHandler:
    """
    Handler for one scan dialog WebSocket connection.
    
    Manages the lifecycle of a scan dialog including:
    - Camera selection (browser-relayed or server-attached)
    - State pushes for rendering
    - Dialog button presses
    - Navigation on success or fallback
    """
    
    def __init__(
        self,
        websocket: WebSocket,
        lookup_service: ProductLookupService,
        decoder: FrameDecoder
    ):
        self._websocket = websocket
        self._lookup_service = lookup_service
        self._settings = get_settings()
        self._camera = self._create_camera(decoder)
        self._outbox: asyncio.Queue = asyncio.Queue()
    
    def _create_camera(self, decoder: FrameDecoder) -> CameraCapture:
        if self._settings.camera_source == "local":
            return OpenCVCameraCapture(
                decoder=decoder,
                max_devices=self._settings.camera_max_devices
            )
        return BrowserCameraCapture(decoder=decoder)
    
    # =========================================================================
    # OUTGOING
    # =========================================================================
    
    def _on_state(self, session: ScanSession, engine: ScanEngine) -> None:
        """UI Render Collaborator: queue a state message per change."""
        if session.ended and session.end_reason is SessionEndReason.RETRIED:
            return
        
        message = ScanStateMessage.from_session(session, engine.machine.actions())
        self._outbox.put_nowait(message.model_dump(mode="json"))
    
    def _queue_error(self, message: str, code: str = "ERROR") -> None:
        self._outbox.put_nowait(ErrorMessage(code=code, message=message).model_dump())
    
    async def _send_loop(self) -> None:
        while True:
            message = await self._outbox.get()
            if message is _CLOSE:
                return
            
            try:
                await self._websocket.send_json(message)
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.debug(f"Dropping outgoing message, socket gone: {e}")
                return
    
    # =========================================================================
    # INCOMING
    # =========================================================================
    
    async def _receive_loop(self, engine: ScanEngine) -> None:
        """Handle client messages until close/stop or disconnect."""
        while True:
            data = await self._websocket.receive_json()
            msg_type = data.get("type") if isinstance(data, dict) else None
            
            if msg_type in ("frame", "devices", "camera_error", "stream_error"):
                self._handle_camera_message(msg_type, data)
            
            elif msg_type == "retry":
                await self._handle_action(engine.retry())
            
            elif msg_type == "fallback":
                await self._handle_action(engine.fallback())
            
            elif msg_type in ("close", "stop"):
                logger.info("🛑 Client closed the scan dialog")
                return
            
            else:
                self._queue_error(f"Unknown message type: {msg_type}", "UNKNOWN_MESSAGE")
    
    def _handle_camera_message(self, msg_type: str, data: dict) -> None:
        camera = self._camera
        if not isinstance(camera, BrowserCameraCapture):
            self._queue_error("Camera is attached to the server", "CAMERA_NOT_REMOTE")
            return
        
        if msg_type == "frame":
            camera.push_frame(data.get("frame") or "")
        elif msg_type == "devices":
            camera.report_devices(data.get("devices") or [])
        elif msg_type == "camera_error":
            camera.report_camera_error(data.get("name") or "")
        else:
            camera.report_stream_error(data.get("message") or "")
    
    async def _handle_action(self, action) -> None:
        try:
            await action
        except AppException as e:
            logger.debug(f"Rejected dialog action: {e.code}")
            self._queue_error(e.message, e.code)
    
    # =========================================================================
    # MAIN LOOP
    # =========================================================================
    
    async def run(self) -> None:
        """Main handler loop."""
        await self._websocket.accept()
        logger.info(f"📱 Scan WebSocket connected ({self._settings.camera_source} camera)")
        
        engine = ScanEngine(
            self._camera,
            self._lookup_service.lookup,
            WebSocketNavigator(self._outbox)
        )
        engine.machine.subscribe(lambda session: self._on_state(session, engine))
        
        sender = asyncio.create_task(self._send_loop())
        receiver = asyncio.create_task(self._receive_loop(engine))
        ended = asyncio.create_task(engine.wait_ended())
        
        try:
            async with engine:
                await asyncio.wait({receiver, ended}, return_when=asyncio.FIRST_COMPLETED)
        
        finally:
            for task in (receiver, ended):
                task.cancel()
            results = await asyncio.gather(receiver, ended, return_exceptions=True)
            
            error = results[0]
            if isinstance(error, WebSocketDisconnect):
                logger.info("📱 Client disconnected")
            elif isinstance(error, Exception):
                logger.error(f"Scan WebSocket error: {error}")
            
            self._outbox.put_nowait(_CLOSE)
            await sender
            await self._close_socket()
            logger.info("✅ Scan WebSocket closed")
    
    async def _close_socket(self) -> None:
        if (
            self._websocket.application_state == WebSocketState.CONNECTED
            and self._websocket.client_state == WebSocketState.CONNECTED
        ):
            try:
                await self._websocket.close()
            except RuntimeError as e:
                logger.debug(f"Socket already closed: {e}")


@router.websocket("/ws/scan")
async def websocket_scan(
    websocket: WebSocket,
    lookup_service: ProductLookupService = Depends(get_lookup_service),
    decoder: FrameDecoder = Depends(get_frame_decoder)
):
    """Barcode scan dialog via WebSocket."""
    handler = ScannerWebSocketHandler(websocket, lookup_service, decoder)
    await handler.run()
