"""Tests for the Livetrack API application.

Tests cover:
- App factory and OpenAPI documentation
- Health check endpoint
- Request ID propagation
- Error response shape for routing, validation and unexpected errors
"""

import logging
from unittest.mock import patch
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient

from livetrack.api import create_app
from livetrack.api.middleware.errors import (
    AuthenticationError,
    NotFoundError,
    translate_service_errors,
)
from livetrack.api.middleware.request_id import RequestIDLogFilter, request_id_ctx
from livetrack.core.config import LiveFeedSettings, Settings
from livetrack.services.lifecycle import DeliveryNotFoundError


class TestAppFactory:
    """Tests for the create_app factory function."""

    def test_create_app_returns_fastapi_instance(self):
        from fastapi import FastAPI

        app = create_app()
        assert isinstance(app, FastAPI)

    def test_create_app_with_default_settings(self):
        app = create_app()
        assert app.title == "Livetrack API"
        assert app.version == "0.1.0"
        assert app.state.settings is None
        assert app.state.live_feed.interval_seconds == 5.0

    def test_create_app_with_settings(self):
        settings = Settings.model_construct(
            app_version="9.9.9",
            debug=False,
            cors_origins=["https://ops.example.com"],
            feed=LiveFeedSettings(interval_seconds=1.5),
        )
        app = create_app(settings)
        assert app.version == "9.9.9"
        assert app.state.settings is settings
        assert app.state.live_feed.interval_seconds == 1.5

    def test_routes_registered(self):
        app = create_app()
        paths = {route.path for route in app.routes}
        assert "/api/deliveries" in paths
        assert "/api/deliveries/{delivery_id}" in paths
        assert "/api/deliveries/{delivery_id}/assign" in paths
        assert "/api/deliveries/{delivery_id}/tracking" in paths
        assert "/api/deliveries/{delivery_id}/stream" in paths
        assert "/api/courier/deliveries" in paths


class TestHealthEndpoint:
    async def test_health_returns_healthy(self, api_client: AsyncClient):
        response = await api_client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestOpenAPI:
    async def test_openapi_schema(self, api_client: AsyncClient):
        response = await api_client.get("/api/openapi.json")
        assert response.status_code == 200
        schema = response.json()
        assert schema["info"]["title"] == "Livetrack API"
        assert "/api/deliveries/{delivery_id}/stream" in schema["paths"]

    async def test_swagger_ui(self, api_client: AsyncClient):
        response = await api_client.get("/api/docs")
        assert response.status_code == 200


class TestRequestID:
    async def test_generated_when_absent(self, api_client: AsyncClient):
        response = await api_client.get("/health")
        assert len(response.headers["X-Request-ID"]) == 36

    async def test_client_id_propagated(self, api_client: AsyncClient):
        response = await api_client.get("/health", headers={"X-Request-ID": "trace-42"})
        assert response.headers["X-Request-ID"] == "trace-42"

    async def test_malformed_client_id_replaced(self, api_client: AsyncClient):
        response = await api_client.get("/health", headers={"X-Request-ID": "bad id!"})
        assert response.headers["X-Request-ID"] != "bad id!"

    def test_log_filter_adds_request_id(self):
        record = logging.LogRecord("t", logging.INFO, __file__, 1, "msg", None, None)
        token = request_id_ctx.set("req-1")
        try:
            assert RequestIDLogFilter().filter(record)
        finally:
            request_id_ctx.reset(token)
        assert record.request_id == "req-1"

    def test_log_filter_outside_request(self):
        record = logging.LogRecord("t", logging.INFO, __file__, 1, "msg", None, None)
        RequestIDLogFilter().filter(record)
        assert record.request_id == "-"


class TestErrorResponses:
    async def test_unknown_route_uses_error_shape(self, api_client: AsyncClient):
        response = await api_client.get("/api/nope", headers={"X-Request-ID": "r-404"})
        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "http_error"
        assert body["request_id"] == "r-404"

    async def test_malformed_path_id_is_400(self, client: AsyncClient):
        response = await client.get("/api/deliveries/not-a-uuid")
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert body["detail"]["errors"][0]["loc"] == ["path", "delivery_id"]

    async def test_unexpected_error_is_500(self, test_app):
        from livetrack.api.routers.deliveries import get_db_session

        async def broken_session():
            raise RuntimeError("database unreachable")
            yield  # pragma: no cover

        test_app.dependency_overrides[get_db_session] = broken_session
        transport = ASGITransport(app=test_app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get(f"/api/deliveries/{uuid4()}")

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "internal_error"
        assert "database" not in body["message"]
        assert "request_id" in body


class TestTranslateServiceErrors:
    def test_not_found(self):
        delivery_id = uuid4()
        with pytest.raises(NotFoundError) as exc, translate_service_errors():
            raise DeliveryNotFoundError(delivery_id)
        assert exc.value.status_code == 404
        assert str(delivery_id) in exc.value.message

    def test_authentication_required_maps_to_401(self):
        from livetrack.services.authz import (
            AuthenticationRequiredError,
            Operation,
            PublicLinkPrincipal,
        )

        with pytest.raises(AuthenticationError) as exc, translate_service_errors():
            raise AuthenticationRequiredError(Operation.UPDATE, PublicLinkPrincipal())
        assert exc.value.status_code == 401

    def test_other_exceptions_pass_through(self):
        with pytest.raises(KeyError), translate_service_errors():
            raise KeyError("x")


class TestMainModule:
    def test_configure_logging_installs_filter(self):
        from livetrack.api import main

        root = logging.getLogger()
        handler = logging.StreamHandler()
        root.addHandler(handler)
        try:
            with patch.object(logging, "basicConfig"):
                main.configure_logging("DEBUG")
            assert any(isinstance(f, RequestIDLogFilter) for f in handler.filters)
        finally:
            root.removeHandler(handler)
