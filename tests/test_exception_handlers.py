"""Tests for global exception handlers.

Validates that every error family maps to its HTTP status code, that the
error body keeps one shape, and that unexpected failures leak nothing.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.errors import (
    AppError,
    AuthenticationError,
    ChatroomNotSelectedError,
    ConflictError,
    InvalidFormatError,
    MismatchError,
    NotFoundError,
    PartialFailure,
    StoreRejected,
    StoreUnavailable,
    ValidationAppError,
)
from app.core.exception_handlers import general_exception_handler, setup_exception_handlers, status_for_error


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers, raise_server_exceptions=False)


@pytest.mark.parametrize(
    ("error_type", "status_code"),
    [
        (ValidationAppError, 400),
        (MismatchError, 400),
        (InvalidFormatError, 400),
        (ChatroomNotSelectedError, 400),
        (AuthenticationError, 403),
        (NotFoundError, 404),
        (ConflictError, 409),
        (PartialFailure, 500),
        (StoreRejected, 502),
        (StoreUnavailable, 503),
        (AppError, 400),
    ],
)
def test_status_for_error(error_type, status_code) -> None:
    assert status_for_error(error_type(code="x", message="x")) == status_code


class TestAppErrorHandler:
    def test_conflict_returns_409(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-conflict")
        async def endpoint():
            raise ConflictError(code="user_name_taken", message="Username is already taken!")

        response = client.get("/test-conflict")

        assert response.status_code == 409
        data = response.json()
        assert data["error"]["code"] == "user_name_taken"
        assert data["error"]["message"] == "Username is already taken!"
        assert "request_id" in data["error"]
        assert "details" not in data["error"]

    def test_partial_failure_includes_details(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-partial")
        async def endpoint():
            raise PartialFailure(
                code="partial_failure",
                message="Your username was saved but the username directory could not be updated.",
                details={
                    "step": "write_name_index",
                    "user_id": "uid-1",
                    "old_user_name": "alice",
                    "new_user_name": "validname",
                    "compensation_attempted": False,
                },
            )

        response = client.get("/test-partial")

        assert response.status_code == 500
        details = response.json()["error"]["details"]
        assert details["step"] == "write_name_index"
        assert details["old_user_name"] == "alice"

    def test_step_tag_is_rendered(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-store")
        async def endpoint():
            raise StoreUnavailable(code="store_unavailable", message="down").with_step(
                "fetch_user_record"
            )

        response = client.get("/test-store")

        assert response.status_code == 503
        assert response.json()["error"]["details"] == {"step": "fetch_user_record"}


class TestGeneralExceptionHandler:
    def test_unexpected_exception_returns_generic_500(
        self, client: TestClient, app_with_handlers: FastAPI
    ):
        @app_with_handlers.get("/test-crash")
        async def endpoint():
            raise RuntimeError("database password is hunter2")

        response = client.get("/test-crash")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "internal_server_error"
        assert "hunter2" not in response.text

    def test_never_leaks_stack_trace(self):
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        response = asyncio.run(general_exception_handler(request, ValueError("boom")))

        text = bytes(response.body).decode()
        data = json.loads(text)
        assert response.status_code == 500
        assert "request_id" in data["error"]
        assert "Traceback" not in text
        assert "ValueError" not in text
        assert "boom" not in text


def test_setup_registers_handlers(app_with_handlers: FastAPI):
    assert AppError in app_with_handlers.exception_handlers
    assert Exception in app_with_handlers.exception_handlers
