"""Tests for auth_service: user tokens and admin accounts."""

from __future__ import annotations

import pytest

from procrastinhate.exceptions import AuthenticationError, ConflictError, InvalidRequestError
from procrastinhate.services import auth_service


class TestUserTokens:
    async def test_sign_in_issues_a_new_token(self, fresh_db, alice):
        row, token = await auth_service.sign_in_user(fresh_db, alice["email"], alice["password"])

        assert row["id"] == alice["id"]
        assert token != alice["token"]
        # Both the old and the new token are valid (multi-device).
        assert await auth_service.validate_user_token(fresh_db, alice["id"], token) is not None
        assert await auth_service.validate_user_token(fresh_db, alice["id"], alice["token"])

    async def test_sign_in_wrong_password(self, fresh_db, alice):
        with pytest.raises(AuthenticationError, match="Invalid credentials"):
            await auth_service.sign_in_user(fresh_db, alice["email"], "wrong-password")

    async def test_sign_in_unknown_email(self, fresh_db):
        with pytest.raises(AuthenticationError, match="Invalid credentials"):
            await auth_service.sign_in_user(fresh_db, "ghost@test.com", "whatever")

    async def test_sign_out_revokes_only_that_token(self, fresh_db, alice):
        _, second = await auth_service.sign_in_user(fresh_db, alice["email"], alice["password"])

        await auth_service.sign_out_user(fresh_db, alice["id"], alice["token"])

        assert await auth_service.validate_user_token(fresh_db, alice["id"], alice["token"]) is None
        assert await auth_service.validate_user_token(fresh_db, alice["id"], second) is not None

    async def test_sign_out_with_foreign_token_fails(self, fresh_db, alice, bob):
        with pytest.raises(AuthenticationError):
            await auth_service.sign_out_user(fresh_db, alice["id"], bob["token"])

    async def test_validate_rejects_token_of_other_user(self, fresh_db, alice, bob):
        assert await auth_service.validate_user_token(fresh_db, alice["id"], bob["token"]) is None
        assert await auth_service.validate_user_token(fresh_db, "", "") is None


class TestAdmins:
    async def test_create_and_sign_in(self, fresh_db):
        admin = await auth_service.create_admin(fresh_db, "root", "toor123")
        assert await auth_service.count_admins(fresh_db) == 1

        row, token = await auth_service.sign_in_admin(fresh_db, "root", "toor123")

        assert row["id"] == admin["id"]
        assert await auth_service.validate_admin_token(fresh_db, admin["id"], token) == {
            "id": admin["id"],
            "username": "root",
        }

    async def test_duplicate_username(self, fresh_db):
        await auth_service.create_admin(fresh_db, "root", "toor123")
        with pytest.raises(ConflictError, match="Username already exists"):
            await auth_service.create_admin(fresh_db, "root", "other")

    async def test_missing_fields(self, fresh_db):
        with pytest.raises(InvalidRequestError, match="Missing required information"):
            await auth_service.create_admin(fresh_db, "", "toor123")

    async def test_sign_out_admin(self, fresh_db):
        admin = await auth_service.create_admin(fresh_db, "root", "toor123")
        _, token = await auth_service.sign_in_admin(fresh_db, "root", "toor123")

        await auth_service.sign_out_admin(fresh_db, "root", token)

        assert await auth_service.validate_admin_token(fresh_db, admin["id"], token) is None
        with pytest.raises(AuthenticationError):
            await auth_service.sign_out_admin(fresh_db, "root", token)
