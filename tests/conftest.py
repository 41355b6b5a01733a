"""
==============================================================================
Pytest Configuration and Fixtures
==============================================================================

Provides test database, client, product seed and scan collaborator fixtures.

==============================================================================
"""

import asyncio
import os

# Settings are cached on first use, so the environment must be set first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SEED_PRODUCTS"] = "false"
os.environ["CAMERA_SOURCE"] = "browser"

import pytest
from typing import Callable, Dict, Generator, List, Optional
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from app.main import app
from app.db.database import Base, get_db
from app.db.models import Product
from app.scanner.camera import CameraCapture
from app.scanner.decoder import FrameDecoder
from app.scanner.models import CameraDevice, DecodeOutcome
from app.services.product_lookup_service import ProductLookupService, get_lookup_service
from app.websockets.scanner import get_frame_decoder


# ============================================================================
# DATABASE FIXTURES
# ============================================================================

# In-memory SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite://"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def products(db: Session) -> List[Product]:
    """Seed the catalog used by lookup tests."""
    rows = [
        Product(product_id=42, name="Sparkling Water 1L", barcode="4005808521175"),
        Product(product_id=43, name="Sparkling Water 1L (old)", barcode="4005808521175",
                product_status="published"),
        Product(product_id=44, name="Chewing Gum Mint", barcode="96385074"),
        Product(product_id=45, name="Seasonal Tea", barcode="4006381333931",
                product_status="draft"),
    ]
    db.add_all(rows)
    db.commit()
    return rows


@pytest.fixture
def lookup_service(db: Session) -> ProductLookupService:
    """Lookup service bound to the test database."""
    return ProductLookupService(session_factory=TestingSessionLocal)


class FakeSymbol:
    """Stand-in for a pyzbar Decoded result."""
    
    def __init__(self, text: str):
        self.data = text.encode("utf-8")


class ScriptedDecodeFn:
    """Decode function returning queued symbol texts, one batch per frame."""
    
    def __init__(self):
        self.batches: List[List[str]] = []
        self.frames = 0
    
    def __call__(self, frame):
        self.frames += 1
        if not self.batches:
            return []
        return [FakeSymbol(text) for text in self.batches.pop(0)]


@pytest.fixture
def decode_fn() -> ScriptedDecodeFn:
    return ScriptedDecodeFn()


@pytest.fixture(scope="function")
def client(
    db: Session,
    lookup_service: ProductLookupService,
    decode_fn: ScriptedDecodeFn
) -> Generator[TestClient, None, None]:
    """Create test client with database, lookup and decoder overrides."""
    def override_get_db():
        try:
            yield db
        finally:
            pass
    
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_lookup_service] = lambda: lookup_service
    app.dependency_overrides[get_frame_decoder] = lambda: FrameDecoder(decode_fn=decode_fn)
    
    with TestClient(app) as test_client:
        yield test_client
    
    app.dependency_overrides.clear()


# ============================================================================
# SCAN COLLABORATOR FIXTURES
# ============================================================================

_END_OF_STREAM = object()


class FakeCamera(CameraCapture):
    """
    Scripted Camera Capture API.
    
    Outcomes are pushed with emit() while a stream is open. Records which
    devices were opened and closed.
    """
    
    def __init__(
        self,
        devices: Optional[List[CameraDevice]] = None,
        list_error: Optional[BaseException] = None,
        open_error: Optional[BaseException] = None
    ):
        if devices is None:
            devices = [
                CameraDevice(device_id="front", label="Front Camera"),
                CameraDevice(device_id="back", label="Back Camera"),
            ]
        self.devices = devices
        self.list_error = list_error
        self.open_error = open_error
        self.list_calls = 0
        self.opened: List[str] = []
        self.closed: List[str] = []
        self._stream: Optional[asyncio.Queue] = None
    
    @property
    def is_streaming(self) -> bool:
        return self._stream is not None
    
    async def list_video_input_devices(self) -> List[CameraDevice]:
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        return list(self.devices)
    
    async def decode_from_video_device(self, device_id, sink=None):
        if self.open_error is not None:
            raise self.open_error
        
        queue: asyncio.Queue = asyncio.Queue()
        self._stream = queue
        self.opened.append(device_id)
        try:
            while True:
                item = await queue.get()
                if item is _END_OF_STREAM:
                    return
                yield item
        finally:
            self._stream = None
            self.closed.append(device_id)
    
    def emit(self, outcome: DecodeOutcome) -> None:
        assert self._stream is not None, "no stream open"
        self._stream.put_nowait(outcome)
    
    def emit_text(self, text: str) -> None:
        self.emit(DecodeOutcome.decoded(text))
    
    def end_stream(self) -> None:
        assert self._stream is not None, "no stream open"
        self._stream.put_nowait(_END_OF_STREAM)


class FakeNavigator:
    """Records navigation calls."""
    
    def __init__(self):
        self.products: List[int] = []
        self.searches: List[str] = []
    
    def to_product(self, product_id: int) -> None:
        self.products.append(product_id)
    
    def to_search(self, barcode: str) -> None:
        self.searches.append(barcode)


class FakeLookup:
    """
    Scripted Product Lookup Service.
    
    Results map barcodes to a product id, None, or an exception. A barcode
    mapped to the HANG marker never completes.
    """
    
    HANG = object()
    
    def __init__(self, results: Optional[Dict[str, object]] = None):
        self.results = dict(results or {})
        self.calls: List[str] = []
        self.cancelled = 0
    
    async def __call__(self, barcode: str) -> Optional[int]:
        self.calls.append(barcode)
        result = self.results.get(barcode)
        
        if result is self.HANG:
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                self.cancelled += 1
                raise
        
        if isinstance(result, BaseException):
            raise result
        return result


@pytest.fixture
def camera() -> FakeCamera:
    return FakeCamera()


@pytest.fixture
def make_camera() -> Callable[..., FakeCamera]:
    return FakeCamera


@pytest.fixture
def navigator() -> FakeNavigator:
    return FakeNavigator()


@pytest.fixture
def make_lookup() -> Callable[..., FakeLookup]:
    return FakeLookup


@pytest.fixture
def wait_until():
    """Poll a condition on the event loop until it holds."""
    async def _wait(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met in time")
            await asyncio.sleep(0.005)
    
    return _wait
