"""Tests for the Authentication header parsing used by the REST dependencies."""

from __future__ import annotations

import json

import pytest

from procrastinhate.dependencies import parse_authentication_header


class TestParseAuthenticationHeader:
    def test_valid_header(self):
        raw = json.dumps({"_id": "u1", "token": "abc"})
        assert parse_authentication_header(raw) == ("u1", "abc")

    @pytest.mark.parametrize(
        "raw",
        [
            None,
            "",
            "not json",
            "[1, 2]",
            json.dumps({"_id": "u1"}),
            json.dumps({"token": "abc"}),
            json.dumps({"_id": 7, "token": "abc"}),
        ],
    )
    def test_malformed_headers(self, raw):
        assert parse_authentication_header(raw) is None


class TestAdminDependencies:
    async def test_admin_header_does_not_authenticate_users(self, client, fresh_db):
        from tests.factories import insert_admin

        admin = await insert_admin(fresh_db)
        response = await client.get("/users/ghost/invitations", headers=admin["headers"])

        assert response.status_code == 401
