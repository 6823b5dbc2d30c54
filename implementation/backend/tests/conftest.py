"""Shared pytest fixtures for backend tests.

Provides:
- ``fresh_db``: in-memory SQLite with the full schema
- ``registry``: an empty ``ConnectionRegistry``
- ``alice`` / ``bob`` / ``carol``: pre-seeded users with a session token
- ``client``: httpx.AsyncClient bound to the app, using ``fresh_db`` and ``registry``
"""

from __future__ import annotations

import os

# Cheap hashing and no mail for the whole suite, set before any app imports.
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.pop("SMTP_HOST", None)

from procrastinhate.config import get_settings  # noqa: E402

get_settings.cache_clear()

import aiosqlite  # noqa: E402
import pytest_asyncio  # noqa: E402

from procrastinhate.database import init_db  # noqa: E402
from procrastinhate.services.connection_registry import ConnectionRegistry  # noqa: E402
from tests.factories import insert_user  # noqa: E402


@pytest_asyncio.fixture
async def fresh_db():
    """In-memory SQLite database with the full Procrast-in-hate schema."""
    conn = await aiosqlite.connect(":memory:")
    conn.row_factory = aiosqlite.Row
    await init_db(conn)
    yield conn
    await conn.close()


@pytest_asyncio.fixture
async def registry():
    return ConnectionRegistry()


@pytest_asyncio.fixture
async def alice(fresh_db):
    return await insert_user(fresh_db, name="Alice", email="alice@test.com")


@pytest_asyncio.fixture
async def bob(fresh_db):
    return await insert_user(fresh_db, name="Bob", email="bob@test.com")


@pytest_asyncio.fixture
async def carol(fresh_db):
    return await insert_user(fresh_db, name="Carol", email="carol@test.com")


@pytest_asyncio.fixture
async def client(fresh_db, registry):
    """httpx.AsyncClient pointing at the FastAPI app.

    ``app.state`` is patched so ``get_db`` falls back to ``fresh_db`` and the
    routers push to ``registry``.
    """
    from httpx import ASGITransport, AsyncClient

    from procrastinhate.main import app

    app.state.db_pool = None
    app.state.db = fresh_db
    app.state.connection_registry = registry
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client
