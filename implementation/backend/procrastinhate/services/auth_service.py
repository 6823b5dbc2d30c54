"""Authentication service: password hashing and opaque session tokens.

Provides:
- ``hash_password(password)`` / ``verify_password(password, hashed)``: bcrypt,
  run in a worker thread so the event loop keeps serving sockets.
- ``sign_in_user`` / ``sign_out_user`` / ``validate_user_token``.
- ``create_admin`` / ``sign_in_admin`` / ``sign_out_admin`` / ``validate_admin_token``.
- ``list_admins`` / ``get_admin``: public admin documents.

A user or admin may hold many tokens at once (one per signed-in device).
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from uuid import uuid4

import aiosqlite
import bcrypt

from procrastinhate.config import get_settings
from procrastinhate.exceptions import AuthenticationError, ConflictError, InvalidRequestError


def _now() -> str:
    return datetime.now(timezone.utc).replace(tzinfo=None).isoformat()


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


async def hash_password(password: str) -> str:
    """Return a bcrypt hash of *password* using the configured cost factor."""
    rounds = get_settings().bcrypt_rounds
    hashed = await asyncio.to_thread(
        bcrypt.hashpw, password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)
    )
    return hashed.decode("utf-8")


async def verify_password(password: str, hashed: str) -> bool:
    """Compare *password* against a stored bcrypt hash."""
    return await asyncio.to_thread(
        bcrypt.checkpw, password.encode("utf-8"), hashed.encode("utf-8")
    )


def generate_token() -> str:
    return str(uuid4())


# ---------------------------------------------------------------------------
# User tokens
# ---------------------------------------------------------------------------


async def sign_in_user(db: aiosqlite.Connection, email: str, password: str) -> tuple[dict, str]:
    """Check credentials for *email* and issue a new token.

    Returns ``(user_row, token)``. Raises ``AuthenticationError`` when the
    user does not exist or the password does not match.
    """
    cursor = await db.execute("SELECT * FROM users WHERE email = ?", (email,))
    row = await cursor.fetchone()
    if row is None:
        raise AuthenticationError("Invalid credentials")

    if not await verify_password(password, row["password_hash"]):
        raise AuthenticationError("Invalid credentials")

    token = generate_token()
    await db.execute(
        "INSERT INTO user_tokens (token, user_id, created_at) VALUES (?, ?, ?)",
        (token, row["id"], _now()),
    )
    await db.commit()
    return dict(row), token


async def sign_out_user(db: aiosqlite.Connection, user_id: str, token: str) -> None:
    """Revoke one token. Raises ``AuthenticationError`` if it is not held by *user_id*."""
    cursor = await db.execute(
        "DELETE FROM user_tokens WHERE token = ? AND user_id = ?",
        (token, user_id),
    )
    await db.commit()
    if cursor.rowcount == 0:
        raise AuthenticationError("Invalid credentials")


async def validate_user_token(
    db: aiosqlite.Connection, user_id: str, token: str
) -> dict | None:
    """Return ``{id, name, email}`` when *token* belongs to *user_id*, else ``None``."""
    if not user_id or not token:
        return None

    cursor = await db.execute(
        "SELECT u.id, u.name, u.email "
        "FROM user_tokens t JOIN users u ON t.user_id = u.id "
        "WHERE t.token = ? AND u.id = ?",
        (token, user_id),
    )
    row = await cursor.fetchone()
    if row is None:
        return None
    return {"id": row["id"], "name": row["name"], "email": row["email"]}


# ---------------------------------------------------------------------------
# Admins
# ---------------------------------------------------------------------------


async def count_admins(db: aiosqlite.Connection) -> int:
    cursor = await db.execute("SELECT COUNT(*) AS n FROM admins")
    row = await cursor.fetchone()
    return row["n"]


async def create_admin(db: aiosqlite.Connection, username: str, password: str) -> dict:
    """Insert a new admin. Raises ``ConflictError`` if *username* is taken."""
    if not username or not password:
        raise InvalidRequestError("Missing required information")

    cursor = await db.execute("SELECT id FROM admins WHERE username = ?", (username,))
    if await cursor.fetchone() is not None:
        raise ConflictError("Username already exists")

    admin = {"id": str(uuid4()), "username": username, "created_at": _now()}
    await db.execute(
        "INSERT INTO admins (id, username, password_hash, created_at) VALUES (?, ?, ?, ?)",
        (admin["id"], username, await hash_password(password), admin["created_at"]),
    )
    await db.commit()
    return admin


async def sign_in_admin(db: aiosqlite.Connection, username: str, password: str) -> tuple[dict, str]:
    cursor = await db.execute("SELECT * FROM admins WHERE username = ?", (username,))
    row = await cursor.fetchone()
    if row is None or not await verify_password(password, row["password_hash"]):
        raise AuthenticationError("Invalid credentials")

    token = generate_token()
    await db.execute(
        "INSERT INTO admin_tokens (token, admin_id, created_at) VALUES (?, ?, ?)",
        (token, row["id"], _now()),
    )
    await db.commit()
    return dict(row), token


async def sign_out_admin(db: aiosqlite.Connection, username: str, token: str) -> None:
    cursor = await db.execute(
        "DELETE FROM admin_tokens WHERE token = ? "
        "AND admin_id = (SELECT id FROM admins WHERE username = ?)",
        (token, username),
    )
    await db.commit()
    if cursor.rowcount == 0:
        raise AuthenticationError("Invalid credentials")


async def validate_admin_token(
    db: aiosqlite.Connection, admin_id: str, token: str
) -> dict | None:
    """Return ``{id, username}`` when *token* belongs to *admin_id*, else ``None``."""
    if not admin_id or not token:
        return None

    cursor = await db.execute(
        "SELECT a.id, a.username "
        "FROM admin_tokens t JOIN admins a ON t.admin_id = a.id "
        "WHERE t.token = ? AND a.id = ?",
        (token, admin_id),
    )
    row = await cursor.fetchone()
    if row is None:
        return None
    return {"id": row["id"], "username": row["username"]}


def public_admin(row) -> dict:
    return {"_id": row["id"], "username": row["username"], "createdAt": row["created_at"]}


async def list_admins(db: aiosqlite.Connection) -> list[dict]:
    cursor = await db.execute("SELECT id, username, created_at FROM admins ORDER BY created_at")
    rows = await cursor.fetchall()
    return [public_admin(row) for row in rows]


async def get_admin(db: aiosqlite.Connection, admin_id: str) -> dict | None:
    cursor = await db.execute(
        "SELECT id, username, created_at FROM admins WHERE id = ?", (admin_id,)
    )
    row = await cursor.fetchone()
    return public_admin(row) if row is not None else None
