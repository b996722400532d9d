"""Tests for global exception handlers.

Validates that all exception types are handled consistently with
proper HTTP status codes, error format, and no information leakage.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI, Query
from fastapi.testclient import TestClient

from app.core.errors import (
    AppError,
    ConfigurationAppError,
    RateLimitAppError,
    UpstreamAppError,
    ValidationAppError,
)
from app.core.exception_handlers import setup_exception_handlers, status_for_error


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    """Create test client with handlers enabled."""
    return TestClient(app_with_handlers, raise_server_exceptions=False)


class TestStatusMapping:
    @pytest.mark.parametrize(
        "error_cls, status",
        [
            (ValidationAppError, 400),
            (RateLimitAppError, 429),
            (ConfigurationAppError, 500),
            (UpstreamAppError, 502),
            (AppError, 400),
        ],
    )
    def test_status_for_error(self, error_cls: type[AppError], status: int) -> None:
        assert status_for_error(error_cls(code="c", message="m")) == status


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_validation_error_returns_400(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-validation")
        async def test_endpoint():
            raise ValidationAppError(
                code="missing_location",
                message="Provide ?q=City or ?lat=..&lon=..",
            )

        response = client.get("/test-validation")

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "Provide ?q=City or ?lat=..&lon=.."
        assert data["code"] == "missing_location"
        assert "request_id" in data
        assert "details" not in data

    def test_rate_limit_error_sets_retry_after(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-rate")
        async def test_endpoint():
            raise RateLimitAppError(
                code="rate_limited",
                message="Too many requests",
                details={"retry_after": 42, "limit": 5, "remaining": 0, "reset_at": 1060},
            )

        response = client.get("/test-rate")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "42"
        assert response.headers["X-RateLimit-Limit"] == "5"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert response.headers["X-RateLimit-Reset"] == "1060"

    def test_rate_limit_error_without_limit_details(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-rate-minimal")
        async def test_endpoint():
            raise RateLimitAppError(
                code="rate_limited",
                message="Too many requests",
                details={"retry_after": 7},
            )

        response = client.get("/test-rate-minimal")

        assert response.headers["Retry-After"] == "7"
        assert "X-RateLimit-Limit" not in response.headers

    def test_configuration_error_returns_500(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-config")
        async def test_endpoint():
            raise ConfigurationAppError(
                code="weather_api_key_missing",
                message="Weather API key not configured",
            )

        response = client.get("/test-config")

        assert response.status_code == 500
        assert response.json()["code"] == "weather_api_key_missing"

    def test_upstream_error_returns_502_with_details(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-upstream")
        async def test_endpoint():
            raise UpstreamAppError(
                code="upstream_error",
                message="Upstream error",
                details={"upstream_status": 401, "upstream_body": "Invalid API key"},
            )

        response = client.get("/test-upstream")

        assert response.status_code == 502
        data = response.json()
        assert data["details"]["upstream_status"] == 401
        assert "Retry-After" not in response.headers

    def test_request_validation_error_returns_400(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-params")
        async def test_endpoint(count: int = Query(...)):
            return {"count": count}

        response = client.get("/test-params?count=many")

        assert response.status_code == 400
        data = response.json()
        assert data["code"] == "invalid_parameter"
        assert data["details"]["context"]["errors"][0]["loc"] == ["query", "count"]


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_unexpected_exception_returns_generic_500(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-crash")
        async def test_endpoint():
            raise RuntimeError("database connection failed")

        response = client.get("/test-crash")

        assert response.status_code == 500
        assert response.json()["code"] == "internal_server_error"
        assert "database connection" not in response.text

    def test_general_exception_handler_never_leaks_stack_trace(self):
        from app.core.exception_handlers import general_exception_handler

        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = ValueError("Test error with details")
        response = asyncio.run(general_exception_handler(request, exc))

        response_body = response.body if isinstance(response.body, bytes) else bytes(response.body)
        response_text = response_body.decode()
        data = json.loads(response_text)
        assert data["code"] == "internal_server_error"
        assert "Traceback" not in response_text
        assert "ValueError" not in response_text


class TestErrorHandlerIntegration:
    def test_setup_exception_handlers_registers_handlers(self, app_with_handlers: FastAPI):
        assert AppError in app_with_handlers.exception_handlers
        assert Exception in app_with_handlers.exception_handlers

    def test_multiple_handler_setups_does_not_fail(self):
        app = FastAPI()

        setup_exception_handlers(app)
        setup_exception_handlers(app)

        assert AppError in app.exception_handlers
