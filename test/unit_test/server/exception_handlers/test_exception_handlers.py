"""
Unit tests for server exception handlers.

Tests cover the domain error mapping and the global handler for unexpected
failures, both called directly and through an application.
"""

import json
from unittest.mock import Mock, patch

import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from httpx import ASGITransport, AsyncClient

from dumpster_directory.core.errors import (
    BillingNotConfiguredError,
    ConflictError,
    DirectoryError,
    ExpiredError,
    InsufficientCreditsError,
    NotFoundError,
)
from dumpster_directory.server.exception_handlers import setup_exception_handlers
from dumpster_directory.server.exception_handlers.global_handler import (
    directory_error_handler,
    global_exception_handler,
)


@pytest.fixture
def mock_request():
    """Create a mock request object."""
    request = Mock(spec=Request)
    request.method = "GET"
    request.url.path = "/api/v1/businesses"
    request.query_params = {"city": "Austin"}
    request.client = Mock()
    request.client.host = "127.0.0.1"
    return request


class TestDirectoryErrorHandler:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error, status_code",
        [
            (DirectoryError("Bad input"), 400),
            (NotFoundError("Business not found"), 404),
            (ConflictError("Business already claimed"), 409),
            (InsufficientCreditsError("No credits"), 403),
            (ExpiredError("Claim link expired"), 410),
            (BillingNotConfiguredError("Stripe is not configured"), 503),
        ],
    )
    async def test_maps_status_and_message(self, mock_request, error, status_code):
        response = await directory_error_handler(mock_request, error)

        assert response.status_code == status_code
        assert json.loads(response.body.decode()) == {"detail": error.message}

    @pytest.mark.asyncio
    async def test_empty_message_uses_class_name(self, mock_request):
        response = await directory_error_handler(mock_request, NotFoundError())
        assert json.loads(response.body.decode()) == {"detail": "NotFoundError"}


class TestGlobalExceptionHandler:
    """Test suite for global exception handler."""

    @pytest.mark.asyncio
    async def test_exception_handler_logs_error(self, mock_request):
        exc = ValueError("Test error")

        with patch("dumpster_directory.server.exception_handlers.global_handler.logger") as mock_logger:
            await global_exception_handler(mock_request, exc)

            mock_logger.error.assert_called_once()
            call_args = mock_logger.error.call_args
            assert "Unhandled exception" in call_args[0][0]
            assert call_args[1]["extra"]["error_type"] == "ValueError"
            assert call_args[1]["extra"]["query_params"] == {"city": "Austin"}
            assert call_args[1]["exc_info"] is True

    @pytest.mark.asyncio
    async def test_exception_handler_returns_500_json(self, mock_request):
        exc = RuntimeError("Test error")

        with patch("dumpster_directory.server.exception_handlers.global_handler.logger"):
            response = await global_exception_handler(mock_request, exc)

        assert isinstance(response, JSONResponse)
        assert response.status_code == 500
        body = json.loads(response.body.decode())
        assert body["detail"] == "Internal server error"
        assert body["error_type"] == "RuntimeError"
        assert body["error_id"] == id(exc)

    @pytest.mark.asyncio
    async def test_missing_client_is_reported_as_unknown(self, mock_request):
        mock_request.client = None

        with patch("dumpster_directory.server.exception_handlers.global_handler.logger") as mock_logger:
            await global_exception_handler(mock_request, KeyError("x"))

        assert mock_logger.error.call_args[1]["extra"]["client"] == "unknown"

    @pytest.mark.asyncio
    async def test_reports_to_monitoring(self, mock_request):
        with patch("dumpster_directory.server.exception_handlers.global_handler.log_error") as mock_log_error:
            await global_exception_handler(mock_request, ValueError("boom"))

        mock_log_error.assert_called_once()
        assert mock_log_error.call_args[0][:2] == ("ValueError", "boom")


class TestHandlersInApplication:
    @pytest.fixture
    def app(self) -> FastAPI:
        app = FastAPI()
        setup_exception_handlers(app)

        @app.get("/missing")
        async def missing():
            raise NotFoundError("Quote not found")

        @app.get("/broken")
        async def broken():
            raise RuntimeError("database exploded")

        return app

    @pytest.mark.asyncio
    async def test_domain_error_response(self, app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/missing")

        assert response.status_code == 404
        assert response.json() == {"detail": "Quote not found"}

    @pytest.mark.asyncio
    async def test_unexpected_error_response(self, app):
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/broken")

        assert response.status_code == 500
        assert response.json()["error_type"] == "RuntimeError"
        assert "database exploded" not in response.text
