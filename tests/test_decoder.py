"""
==============================================================================
Decoder and Decode Loop Tests
==============================================================================
"""

import asyncio
import base64

import cv2
import numpy as np
import pytest

from app.core.exceptions import ScanError, ScanErrorCode
from app.scanner.camera import BrowserCameraCapture
from app.scanner.decoder import DecodeLoop, FrameDecoder
from app.scanner.models import DecodeOutcome, DecodeOutcomeKind


FRAME = np.zeros((48, 64, 3), dtype=np.uint8)


def encoded_frame() -> str:
    ok, buffer = cv2.imencode(".jpg", FRAME)
    assert ok
    return base64.b64encode(buffer.tobytes()).decode("ascii")


class TestFrameDecoder:
    """Tests for single-frame decoding."""
    
    def test_decoded_symbols(self, decode_fn):
        decode_fn.batches.append(["4005808521175", "96385074"])
        outcomes = FrameDecoder(decode_fn=decode_fn).decode(FRAME)
        assert [o.text for o in outcomes] == ["4005808521175", "96385074"]
        assert all(o.kind is DecodeOutcomeKind.DECODED for o in outcomes)
    
    def test_nothing_visible(self, decode_fn):
        outcomes = FrameDecoder(decode_fn=decode_fn).decode(FRAME)
        assert outcomes == [DecodeOutcome.no_symbol()]
    
    def test_empty_frame_skips_decoder(self, decode_fn):
        decoder = FrameDecoder(decode_fn=decode_fn)
        assert decoder.decode(None) == [DecodeOutcome.no_symbol()]
        assert decoder.decode(np.zeros((0, 0, 3), dtype=np.uint8)) == [DecodeOutcome.no_symbol()]
        assert decode_fn.frames == 0
    
    def test_decoder_failure_is_fatal(self):
        def broken(frame):
            raise RuntimeError("zbar crashed")
        
        outcomes = FrameDecoder(decode_fn=broken).decode(FRAME)
        assert outcomes == [DecodeOutcome.fatal("zbar crashed")]


@pytest.mark.asyncio
class TestDecodeLoop:
    """Tests for the candidate channel."""
    
    async def test_candidates_in_arrival_order(self, camera, wait_until):
        ticks = iter([1.0, 2.0, 3.0])
        loop = DecodeLoop(camera, "back", clock=lambda: next(ticks))
        loop.start()
        await wait_until(lambda: camera.is_streaming)
        
        camera.emit(DecodeOutcome.no_symbol())
        camera.emit_text("12345")
        camera.emit_text("4005808521175")
        
        candidates = loop.candidates()
        first = await candidates.__anext__()
        second = await candidates.__anext__()
        assert (first.raw_text, first.arrived_at) == ("12345", 1.0)
        assert (second.raw_text, second.arrived_at) == ("4005808521175", 2.0)
        
        await candidates.aclose()
        await loop.stop()
    
    async def test_paused_loop_drops_candidates(self, camera, wait_until):
        loop = DecodeLoop(camera, "back")
        loop.start()
        await wait_until(lambda: camera.is_streaming)
        
        loop.pause()
        camera.emit_text("4005808521175")
        camera.emit_text("4005808521175")
        await wait_until(lambda: loop.dropped == 2)
        
        await loop.stop()
        assert [c async for c in loop.candidates()] == []
    
    async def test_stop_closes_stream_and_wakes_consumer(self, camera, wait_until):
        loop = DecodeLoop(camera, "back")
        loop.start()
        await wait_until(lambda: camera.is_streaming)
        
        consumer = asyncio.create_task(_drain(loop))
        await asyncio.sleep(0.01)
        await loop.stop()
        
        assert await consumer == []
        assert camera.closed == ["back"]
        assert loop.is_stopped and not loop.is_running
    
    async def test_cannot_restart(self, camera):
        loop = DecodeLoop(camera, "back")
        loop.start()
        with pytest.raises(RuntimeError):
            loop.start()
        await loop.stop()
    
    async def test_fatal_outcome_raises(self, camera, wait_until):
        loop = DecodeLoop(camera, "back")
        loop.start()
        await wait_until(lambda: camera.is_streaming)
        
        camera.emit(DecodeOutcome.fatal("track ended"))
        with pytest.raises(ScanError) as exc_info:
            await _drain(loop)
        assert exc_info.value.error_code is ScanErrorCode.DECODE_FATAL
        
        await loop.stop()
        assert camera.closed == ["back"]
    
    async def test_stream_end_is_fatal(self, camera, wait_until):
        loop = DecodeLoop(camera, "back")
        loop.start()
        await wait_until(lambda: camera.is_streaming)
        
        camera.end_stream()
        with pytest.raises(ScanError):
            await _drain(loop)
        await loop.stop()
    
    async def test_open_failure_raises_scan_error(self, make_camera):
        from app.core import exceptions
        
        camera = make_camera(open_error=exceptions.camera_unavailable("busy"))
        loop = DecodeLoop(camera, "back")
        loop.start()
        
        with pytest.raises(ScanError) as exc_info:
            await _drain(loop)
        assert exc_info.value.error_code is ScanErrorCode.CAMERA_UNAVAILABLE
        await loop.stop()


@pytest.mark.asyncio
class TestBrowserStream:
    """Frames relayed by the browser."""
    
    async def test_frames_are_decoded(self, decode_fn, wait_until):
        camera = BrowserCameraCapture(decoder=FrameDecoder(decode_fn=decode_fn))
        assert camera.push_frame(encoded_frame()) is False
        
        loop = DecodeLoop(camera, "r1")
        loop.start()
        await wait_until(lambda: camera.streaming_device == "r1")
        
        decode_fn.batches.append(["96385074"])
        assert camera.push_frame("data:image/jpeg;base64," + encoded_frame())
        
        candidate = await loop.candidates().__anext__()
        assert candidate.raw_text == "96385074"
        
        await loop.stop()
        assert camera.streaming_device is None
    
    async def test_invalid_frames_ignored(self, decode_fn, wait_until):
        camera = BrowserCameraCapture(decoder=FrameDecoder(decode_fn=decode_fn))
        loop = DecodeLoop(camera, "r1")
        loop.start()
        await wait_until(lambda: camera.streaming_device == "r1")
        
        camera.push_frame("not base64 at all!")
        camera.push_frame("")
        await asyncio.sleep(0.05)
        assert loop.is_running
        assert decode_fn.frames == 0
        await loop.stop()
    
    async def test_stream_error(self, decode_fn, wait_until):
        camera = BrowserCameraCapture(decoder=FrameDecoder(decode_fn=decode_fn))
        loop = DecodeLoop(camera, "r1")
        loop.start()
        await wait_until(lambda: camera.streaming_device == "r1")
        
        camera.report_stream_error("track ended")
        with pytest.raises(ScanError) as exc_info:
            await _drain(loop)
        assert exc_info.value.details == {"reason": "track ended"}
        await loop.stop()


async def _drain(loop: DecodeLoop):
    return [candidate async for candidate in loop.candidates()]
