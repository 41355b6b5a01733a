"""
==============================================================================
API Integration Tests
==============================================================================

Tests for REST API endpoints.

==============================================================================
"""

import logging

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from app.api.v1.health import HealthController


class TestHealthEndpoints:
    """Tests for health check endpoints."""
    
    def test_health_check(self, client: TestClient, products):
        """Test health check returns status."""
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["components"]["database"] == "healthy"
        assert data["details"]["published_products"] == 3
        assert data["details"]["camera_source"] == "browser"
    
    def test_readiness_probe(self, client: TestClient):
        """Test readiness probe."""
        response = client.get("/api/v1/health/ready")
        assert response.status_code == 200
        assert response.json()["ready"] is True
    
    def test_liveness_probe(self, client: TestClient):
        """Test liveness probe."""
        response = client.get("/api/v1/health/live")
        assert response.status_code == 200
        assert response.json()["alive"] is True


class TestProductLookupEndpoints:
    """Tests for barcode lookup."""
    
    def test_lookup_published_product(self, client: TestClient, products):
        response = client.get("/api/v1/products/barcode/4005808521175")
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["product"]["product_id"] == 42
        assert data["path"] == "/product/42"
    
    def test_lookup_ean8(self, client: TestClient, products):
        response = client.get("/api/v1/products/barcode/96385074")
        assert response.status_code == 200
        assert response.json()["product"]["name"] == "Chewing Gum Mint"
    
    def test_draft_product_not_found(self, client: TestClient, products):
        response = client.get("/api/v1/products/barcode/4006381333931")
        assert response.status_code == 404
        error = response.json()["error"]
        assert error["code"] == "PRODUCT_NOT_FOUND"
        assert error["details"]["barcode"] == "4006381333931"
    
    def test_unknown_barcode(self, client: TestClient, products):
        response = client.get("/api/v1/products/barcode/012345678905")
        assert response.status_code == 404
    
    def test_invalid_barcode(self, client: TestClient):
        response = client.get("/api/v1/products/barcode/12345")
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_BARCODE"
        assert response.json()["success"] is False


class TestProductLookupService:
    """Tests for the service behind the scan engine."""
    
    def test_first_match_by_product_id(self, lookup_service, products):
        assert lookup_service.find_by_barcode("4005808521175")["product_id"] == 42
    
    def test_missing(self, lookup_service, products):
        assert lookup_service.find_by_barcode("00000000") is None
    
    @pytest.mark.asyncio
    async def test_async_lookup_returns_id(self, lookup_service, products):
        assert await lookup_service.lookup("4005808521175") == 42
        assert await lookup_service.lookup("012345678905") is None


class _BrokenSession:
    """Session whose queries fail, for health reporting."""
    
    def __init__(self, fail_ping: bool = False):
        self._fail_ping = fail_ping
    
    def execute(self, statement):
        if self._fail_ping:
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))
    
    def query(self, model):
        raise OperationalError("SELECT count(*)", {}, Exception("no such table: products"))


class TestHealthController:
    """Database failures show up as a degraded status."""
    
    def test_failed_count_is_degraded(self, caplog):
        with caplog.at_level(logging.ERROR, logger="app.api.v1.health"):
            health = HealthController(_BrokenSession()).get_health()
        
        assert health["status"] == "degraded"
        assert health["components"]["database"] == "unhealthy"
        assert health["details"]["published_products"] is None
        assert "no such table" in caplog.text
    
    def test_unreachable_database(self, caplog):
        with caplog.at_level(logging.ERROR, logger="app.api.v1.health"):
            health = HealthController(_BrokenSession(fail_ping=True)).get_health()
        
        assert health["status"] == "degraded"
        assert "database is locked" in caplog.text
