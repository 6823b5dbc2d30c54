"""FastAPI dependency injection functions.

Provides:
- ``get_db(request)``: Returns a database connection from the pool.
- ``get_connection_registry(request)``: The live WebSocket registry.
- ``get_current_user(request, db)``: Validates the ``Authentication`` header, returns user dict.
- ``get_current_admin(request, db)`` / ``get_optional_admin(request, db)``:
  same for the ``Admin-Authentication`` header.

Both headers carry a JSON object ``{"_id": ..., "token": ...}``.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator

import aiosqlite
from fastapi import Depends, HTTPException, Request

from procrastinhate.services import auth_service
from procrastinhate.services.connection_registry import ConnectionRegistry

USER_HEADER = "Authentication"
ADMIN_HEADER = "Admin-Authentication"


# ---------------------------------------------------------------------------
# get_db
# ---------------------------------------------------------------------------


async def get_db(request: Request) -> AsyncIterator[aiosqlite.Connection]:
    """Return a database connection from the pool (or shared connection for tests).

    For GET/HEAD requests, acquires a read connection from the pool.
    For POST/PATCH/DELETE/PUT requests, returns the dedicated write connection.
    """
    from procrastinhate.database import DatabasePool

    # Use isinstance check to ensure it's actually a DatabasePool, not a mock
    pool = getattr(request.app.state, "db_pool", None)
    if isinstance(pool, DatabasePool):
        if request.method in ("POST", "PATCH", "DELETE", "PUT"):
            yield pool.get_write_connection()
        else:
            conn = await pool.acquire_read()
            try:
                yield conn
            finally:
                await pool.release_read(conn)
    else:
        # Fallback for tests: use shared connection
        yield request.app.state.db


def get_connection_registry(request: Request) -> ConnectionRegistry:
    return request.app.state.connection_registry


# ---------------------------------------------------------------------------
# Header authentication
# ---------------------------------------------------------------------------


def parse_authentication_header(raw: str | None) -> tuple[str, str] | None:
    """Decode ``{"_id", "token"}`` from a header value, or ``None`` if malformed."""
    if not raw:
        return None
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None
    identity = payload.get("_id")
    token = payload.get("token")
    if not isinstance(identity, str) or not isinstance(token, str):
        return None
    return identity, token


async def get_current_user(
    request: Request,
    db: aiosqlite.Connection = Depends(get_db),
) -> dict:
    """Return ``{id, name, email}`` for the caller.

    Raises ``HTTPException(401)`` if the header is missing or the token is
    not held by the named user.
    """
    credentials = parse_authentication_header(request.headers.get(USER_HEADER))
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")

    user = await auth_service.validate_user_token(db, *credentials)
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")

    return user


async def get_optional_admin(
    request: Request,
    db: aiosqlite.Connection = Depends(get_db),
) -> dict | None:
    credentials = parse_authentication_header(request.headers.get(ADMIN_HEADER))
    if credentials is None:
        return None
    return await auth_service.validate_admin_token(db, *credentials)


async def get_current_admin(admin: dict | None = Depends(get_optional_admin)) -> dict:
    if admin is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return admin
