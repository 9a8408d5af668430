"""Tests for request ID middleware."""

from unittest.mock import patch

import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient

from bookmarketer.app.middleware.request_id import RequestIdMiddleware, get_request_id


class TestRequestIdMiddleware:
    """Test RequestIdMiddleware."""

    @pytest.fixture
    def app(self):
        """Create test FastAPI app with middleware."""
        app = FastAPI()
        app.add_middleware(RequestIdMiddleware)

        @app.get("/test")
        async def test_endpoint(request: Request):
            return {"request_id": get_request_id(request)}

        @app.get("/limited")
        async def limited_endpoint():
            return JSONResponse(status_code=429, content={"success": False})

        return app

    @pytest.fixture
    def client(self, app):
        """Create test client."""
        return TestClient(app)

    def test_request_id_generation(self, client):
        """Test that request ID is generated."""
        response = client.get("/test")

        assert response.status_code == 200
        data = response.json()
        assert data["request_id"] != "unknown"
        assert response.headers["X-Request-ID"] == data["request_id"]

    def test_request_id_from_header(self, client):
        """Test that request ID is extracted from header."""
        response = client.get("/test", headers={"X-Request-ID": "custom-id-123"})

        assert response.json()["request_id"] == "custom-id-123"
        assert response.headers["X-Request-ID"] == "custom-id-123"

    def test_rejection_is_logged(self, client):
        """429 responses are logged with the request context."""
        with patch("bookmarketer.app.middleware.request_id.logger") as mock_logger:
            response = client.get("/limited", headers={"X-Request-ID": "req-429"})

        assert response.status_code == 429
        mock_logger.info.assert_called_once()
        extra = mock_logger.info.call_args.kwargs["extra"]
        assert extra["request_id"] == "req-429"
        assert extra["path"] == "/limited"
        assert extra["status_code"] == 429


def test_get_request_id_without_middleware():
    app = FastAPI()

    @app.get("/plain")
    async def plain(request: Request):
        return {"request_id": get_request_id(request)}

    assert TestClient(app).get("/plain").json() == {"request_id": "unknown"}
