"""Tests for procrastinhate.exceptions and their HTTP translation in main."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from procrastinhate.exceptions import (
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
)

DOMAIN_ERRORS = [
    (NotFoundError, 404),
    (InvalidRequestError, 400),
    (AuthenticationError, 401),
    (ForbiddenError, 403),
    (ConflictError, 409),
]


class TestExceptionClasses:
    @pytest.mark.parametrize("error_cls", [cls for cls, _ in DOMAIN_ERRORS])
    def test_message_attribute_and_str(self, error_cls):
        err = error_cls("Task not found")

        assert err.message == "Task not found"
        assert str(err) == "Task not found"
        assert isinstance(err, Exception)

    def test_authentication_error_default_message(self):
        assert AuthenticationError().message == "Invalid credentials"


class TestHandlers:
    @pytest.mark.parametrize(("error_cls", "status_code"), DOMAIN_ERRORS)
    async def test_domain_errors_map_to_status(self, error_cls, status_code):
        from procrastinhate.main import app

        probe = FastAPI()
        probe.exception_handlers.update(app.exception_handlers)

        @probe.get("/boom")
        async def boom():
            raise error_cls("boom")

        transport = ASGITransport(app=probe)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/boom")

        assert response.status_code == status_code
        assert response.json() == {"error": "boom"}
