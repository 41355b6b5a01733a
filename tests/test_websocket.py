"""
==============================================================================
Scan WebSocket Tests
==============================================================================

Browser camera mode over /ws/scan with a scripted frame decoder.

==============================================================================
"""

import base64

import cv2
import numpy as np
import pytest
from fastapi.testclient import TestClient


FRAME = base64.b64encode(
    cv2.imencode(".jpg", np.zeros((48, 64, 3), dtype=np.uint8))[1].tobytes()
).decode("ascii")

DEVICES = [
    {"deviceId": "front-1", "label": "Front Camera"},
    {"deviceId": "back-1", "label": "Back Camera"},
]


def receive_until(ws, predicate, limit: int = 10) -> list:
    """Collect messages until one matches."""
    messages = []
    for _ in range(limit):
        message = ws.receive_json()
        messages.append(message)
        if predicate(message):
            return messages
    raise AssertionError(f"no matching message in {messages}")


def state_is(name: str):
    return lambda m: m["type"] == "state" and m["state"] == name


def start_scanning(ws) -> dict:
    assert ws.receive_json()["state"] == "requesting"
    ws.send_json({"type": "devices", "devices": DEVICES})
    return receive_until(ws, state_is("scanning"))[-1]


def scan(ws, decode_fn, barcode: str) -> None:
    decode_fn.batches.extend([[barcode]] * 3)
    for _ in range(3):
        ws.send_json({"type": "frame", "frame": FRAME})


class TestScanDialog:
    """Dialog flows over the WebSocket."""
    
    def test_found_navigates(self, client: TestClient, products, decode_fn):
        with client.websocket_connect("/ws/scan") as ws:
            scanning = start_scanning(ws)
            assert scanning["description"] == "Hold the barcode in front of your camera"
            assert scanning["actions"] == ["close"]
            
            scan(ws, decode_fn, "4005808521175")
            messages = receive_until(ws, lambda m: m["type"] == "navigate")
        
        states = [m["state"] for m in messages if m["type"] == "state" and not m["ended"]]
        assert states == ["processing", "found"]
        assert messages[-1]["path"] == "/product/42"
        assert messages[-1]["product_id"] == 42
    
    def test_not_found_fallback(self, client: TestClient, products, decode_fn):
        with client.websocket_connect("/ws/scan") as ws:
            start_scanning(ws)
            scan(ws, decode_fn, "012345678905")
            
            not_found = receive_until(ws, state_is("notfound"))[-1]
            assert not_found["barcode"] == "012345678905"
            assert not_found["actions"] == ["retry", "fallback", "close"]
            
            ws.send_json({"type": "fallback"})
            navigate = receive_until(ws, lambda m: m["type"] == "navigate")[-1]
        
        assert navigate["path"] == "/search?q=012345678905"
        assert navigate["barcode"] == "012345678905"
    
    def test_retry_after_not_found(self, client: TestClient, products, decode_fn):
        with client.websocket_connect("/ws/scan") as ws:
            start_scanning(ws)
            scan(ws, decode_fn, "012345678905")
            first = receive_until(ws, state_is("notfound"))[-1]
            
            ws.send_json({"type": "retry"})
            requesting = receive_until(ws, state_is("requesting"))[-1]
            assert requesting["session_id"] != first["session_id"]
            
            ws.send_json({"type": "devices", "devices": DEVICES})
            receive_until(ws, state_is("scanning"))
            ws.send_json({"type": "close"})
    
    def test_permission_denied(self, client: TestClient):
        with client.websocket_connect("/ws/scan") as ws:
            ws.receive_json()
            ws.send_json({"type": "camera_error", "name": "NotAllowedError"})
            error = receive_until(ws, state_is("error"))[-1]
            ws.send_json({"type": "close"})
        
        assert error["error_code"] == "PERMISSION_DENIED"
        assert error["description"] == "Camera error"
        assert error["actions"] == ["retry", "close"]
    
    def test_retry_after_permission_denied(self, client: TestClient):
        with client.websocket_connect("/ws/scan") as ws:
            ws.receive_json()
            ws.send_json({"type": "camera_error", "name": "NotAllowedError"})
            receive_until(ws, state_is("error"))
            
            ws.send_json({"type": "retry"})
            requesting = receive_until(ws, state_is("requesting"))[-1]
            assert requesting["error_code"] is None
            
            ws.send_json({"type": "devices", "devices": DEVICES})
            scanning = receive_until(ws, lambda m: m["type"] == "state" and m["state"] != "requesting")[-1]
            ws.send_json({"type": "close"})
        
        assert scanning["state"] == "scanning"
    
    def test_invalid_action_reported(self, client: TestClient):
        with client.websocket_connect("/ws/scan") as ws:
            ws.receive_json()
            ws.send_json({"type": "fallback"})
            error = receive_until(ws, lambda m: m["type"] == "error")[-1]
            
            ws.send_json({"type": "bogus"})
            unknown = receive_until(ws, lambda m: m["type"] == "error")[-1]
            ws.send_json({"type": "close"})
        
        assert error["code"] == "INVALID_TRANSITION"
        assert unknown["code"] == "UNKNOWN_MESSAGE"
    
    def test_close_ends_session(self, client: TestClient):
        with client.websocket_connect("/ws/scan") as ws:
            start_scanning(ws)
            ws.send_json({"type": "close"})
            closed = receive_until(ws, lambda m: m["type"] == "state" and m["ended"])[-1]
        
        assert closed["state"] == "scanning"
        assert closed["actions"] == []
