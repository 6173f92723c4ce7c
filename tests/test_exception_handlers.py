"""Tests for global exception handlers.

Validates that domain errors map to the right HTTP status with a consistent
body, and that unexpected errors never leak internals.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.errors import (
    AppError,
    ScanAppError,
    ScanUnavailableAppError,
    ValidationAppError,
)
from app.core.exception_handlers import (
    general_exception_handler,
    setup_exception_handlers,
    status_code_for,
)


@pytest.fixture
def app_with_handlers() -> FastAPI:
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def handler_client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers)


class TestAppErrorHandler:
    @pytest.mark.parametrize(
        ("error", "expected_status"),
        [
            (ValidationAppError(code="bad", message="Bad input"), 400),
            (ScanAppError(code="scan_failed", message="Engine failed"), 502),
            (ScanUnavailableAppError(code="scan_engine_unavailable", message="No engine"), 503),
            (AppError(code="generic", message="Generic"), 400),
        ],
    )
    def test_status_mapping(
        self,
        app_with_handlers: FastAPI,
        handler_client: TestClient,
        error: AppError,
        expected_status: int,
    ):
        @app_with_handlers.get("/boom")
        async def boom():
            raise error

        response = handler_client.get("/boom")

        assert response.status_code == expected_status
        body = response.json()
        assert body["error"]["code"] == error.code
        assert body["error"]["message"] == error.message
        assert "request_id" in body["error"]
        assert "details" not in body["error"]

    def test_details_are_included(self, app_with_handlers: FastAPI, handler_client: TestClient):
        @app_with_handlers.get("/details")
        async def details():
            raise ScanAppError(code="scan_failed", message="Engine failed", details={"target": "x"})

        body = handler_client.get("/details").json()
        assert body["error"]["details"] == {"target": "x"}

    def test_status_code_for_prefers_subclass(self):
        assert status_code_for(ScanUnavailableAppError(code="c", message="m")) == 503


class TestGeneralExceptionHandler:
    def test_returns_generic_500_without_leaking(self):
        request = AsyncMock()
        request.url.path = "/api/scan"
        request.method = "POST"

        response = asyncio.run(general_exception_handler(request, ValueError("db password=hunter2")))

        body = json.loads(bytes(response.body).decode())
        assert response.status_code == 500
        assert body["error"]["code"] == "internal_server_error"
        assert "hunter2" not in body["error"]["message"]
        assert "ValueError" not in bytes(response.body).decode()

    def test_handlers_registered(self, app_with_handlers: FastAPI):
        assert AppError in app_with_handlers.exception_handlers
        assert Exception in app_with_handlers.exception_handlers


def test_app_error_str_is_message():
    error = ValidationAppError(code="c", message="Readable")
    assert str(error) == "Readable"
