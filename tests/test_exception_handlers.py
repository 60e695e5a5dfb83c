"""Tests for global exception handlers.

Validates that all exception types are handled consistently with
proper HTTP status codes, error format, and no information leakage.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from rate_bastion.core.errors import (
    AppError,
    ConfigurationAppError,
    DeserializationError,
    StoreReadError,
    StoreWriteError,
)
from rate_bastion.core.exception_handlers import general_exception_handler, setup_exception_handlers


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers)


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_configuration_error_returns_500(self, client: TestClient, app_with_handlers: FastAPI):
        """A misconfigured server is not reported as the client's fault."""
        @app_with_handlers.get("/test-config")
        async def test_endpoint():
            raise ConfigurationAppError(code="store_unknown_backend", message="Unknown store backend")

        response = client.get("/test-config")

        assert response.status_code == 500
        data = response.json()
        assert data["error"]["code"] == "store_unknown_backend"
        assert data["error"]["message"] == "Unknown store backend"
        assert "request_id" in data["error"]

    @pytest.mark.parametrize(
        "exc",
        [
            StoreReadError(code="store_read_failed", message="Could not read rate limit state"),
            DeserializationError(code="bucket_state_invalid", message="Stored rate limit state is malformed"),
            StoreWriteError(code="store_write_failed", message="Could not record rate limit state"),
        ],
    )
    def test_store_errors_fail_closed_with_503(self, client: TestClient, app_with_handlers: FastAPI, exc: AppError):
        """Every store failure is reported as unavailable, never as success."""
        @app_with_handlers.get("/test-store")
        async def test_endpoint():
            raise exc

        response = client.get("/test-store")

        assert response.status_code == 503
        assert response.json()["error"]["code"] == exc.code

    def test_details_are_included_when_present(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-details")
        async def test_endpoint():
            raise StoreReadError(
                code="store_read_failed",
                message="Could not read rate limit state",
                details={"key_hash": "abc123", "error_type": "ConnectionError"},
            )

        response = client.get("/test-details")

        assert response.json()["error"]["details"] == {
            "key_hash": "abc123",
            "error_type": "ConnectionError",
        }

    def test_error_response_format_is_consistent(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-format")
        async def test_endpoint():
            raise AppError(code="test", message="test")

        response = client.get("/test-format")
        data = response.json()

        assert response.status_code == 400
        assert set(data["error"]) == {"code", "message", "request_id"}


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_general_exception_handler_logic(self):
        request = AsyncMock()
        request.url.path = "/v1/ping"
        request.method = "GET"

        exc = RuntimeError("Unexpected error: redis pool exhausted")
        response = asyncio.run(general_exception_handler(request, exc))

        data = json.loads(bytes(response.body).decode())
        assert response.status_code == 500
        assert data["error"]["code"] == "internal_server_error"
        assert "redis pool" not in data["error"]["message"]
        assert "request_id" in data["error"]

    def test_general_exception_handler_never_leaks_stack_trace(self):
        request = AsyncMock()
        request.url.path = "/v1/ping"
        request.method = "GET"

        response = asyncio.run(general_exception_handler(request, ValueError("Test error with details")))

        response_text = bytes(response.body).decode()
        assert "Traceback" not in response_text
        assert "ValueError" not in response_text


def test_setup_exception_handlers_registers_handlers(app_with_handlers: FastAPI):
    assert AppError in app_with_handlers.exception_handlers
    assert Exception in app_with_handlers.exception_handlers
