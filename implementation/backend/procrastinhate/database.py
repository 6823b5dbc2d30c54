"""Database connection management and schema initialisation.

Provides:
- ``init_db(conn)``: Enable PRAGMAs, create all tables and indexes.
- ``DatabasePool``: Simple connection pool for concurrent reads.
"""

from __future__ import annotations

import asyncio

import aiosqlite


# ---------------------------------------------------------------------------
# Schema SQL
# ---------------------------------------------------------------------------

SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS users (
    id              TEXT PRIMARY KEY,
    name            TEXT NOT NULL,
    email           TEXT NOT NULL UNIQUE,
    password_hash   TEXT NOT NULL,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS user_tokens (
    token           TEXT PRIMARY KEY,
    user_id         TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    created_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS admins (
    id              TEXT PRIMARY KEY,
    username        TEXT NOT NULL UNIQUE,
    password_hash   TEXT NOT NULL,
    created_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS admin_tokens (
    token           TEXT PRIMARY KEY,
    admin_id        TEXT NOT NULL REFERENCES admins(id) ON DELETE CASCADE,
    created_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS projects (
    id              TEXT PRIMARY KEY,
    title           TEXT NOT NULL,
    description     TEXT NOT NULL DEFAULT '',
    label           TEXT NOT NULL DEFAULT '',
    start_date      TEXT,
    end_date        TEXT,
    completed       INTEGER NOT NULL DEFAULT 0,
    creator_id      TEXT NOT NULL,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS tasks (
    id              TEXT PRIMARY KEY,
    title           TEXT NOT NULL,
    description     TEXT NOT NULL DEFAULT '',
    label           TEXT NOT NULL DEFAULT '',
    start_date      TEXT,
    end_date        TEXT,
    completed       INTEGER NOT NULL DEFAULT 0,
    creator_id      TEXT NOT NULL,
    project_id      TEXT,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS checklist_items (
    task_id         TEXT NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
    position        INTEGER NOT NULL,
    item            TEXT NOT NULL,
    completed       INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (task_id, position)
);

CREATE TABLE IF NOT EXISTS collaborators (
    entity_type     TEXT NOT NULL CHECK(entity_type IN ('task', 'project')),
    entity_id       TEXT NOT NULL,
    user_id         TEXT NOT NULL,
    accepted        INTEGER NOT NULL DEFAULT 0,
    invited_at      TEXT NOT NULL,
    PRIMARY KEY (entity_type, entity_id, user_id)
);

CREATE TABLE IF NOT EXISTS images (
    user_id         TEXT PRIMARY KEY,
    content_type    TEXT NOT NULL,
    data            BLOB NOT NULL,
    updated_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS archives (
    id              TEXT PRIMARY KEY,
    type            TEXT NOT NULL CHECK(type IN ('user', 'task', 'project')),
    data_json       TEXT NOT NULL,
    archived_at     TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_user_tokens_user_id ON user_tokens(user_id);
CREATE INDEX IF NOT EXISTS idx_admin_tokens_admin_id ON admin_tokens(admin_id);
CREATE INDEX IF NOT EXISTS idx_tasks_creator_id ON tasks(creator_id);
CREATE INDEX IF NOT EXISTS idx_tasks_project_id ON tasks(project_id);
CREATE INDEX IF NOT EXISTS idx_projects_creator_id ON projects(creator_id);
CREATE INDEX IF NOT EXISTS idx_collaborators_user_id ON collaborators(user_id, accepted);
"""


# ---------------------------------------------------------------------------
# Connection Pool
# ---------------------------------------------------------------------------


class DatabasePool:
    """Simple connection pool for concurrent read operations.

    SQLite with WAL mode allows multiple concurrent readers but only one writer.
    This pool maintains a small number of read connections to handle concurrent
    GET requests while keeping a single write connection for INSERT/UPDATE/DELETE.
    """

    def __init__(self, db_path: str, pool_size: int = 5):
        self.db_path = db_path
        self.pool_size = pool_size
        self._pool: asyncio.Queue[aiosqlite.Connection] = asyncio.Queue(maxsize=pool_size)
        self._write_conn: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Create all connections and initialize the database schema."""
        self._write_conn = await aiosqlite.connect(self.db_path)
        self._write_conn.row_factory = aiosqlite.Row
        await init_db_schema(self._write_conn)

        for _ in range(self.pool_size):
            conn = await aiosqlite.connect(self.db_path)
            conn.row_factory = aiosqlite.Row
            await conn.execute("PRAGMA journal_mode=WAL")
            await conn.execute("PRAGMA foreign_keys=ON")
            await self._pool.put(conn)

    async def close(self) -> None:
        """Close all connections in the pool."""
        if self._write_conn:
            await self._write_conn.close()
            self._write_conn = None

        while not self._pool.empty():
            conn = await self._pool.get()
            await conn.close()

    async def acquire_read(self) -> aiosqlite.Connection:
        """Acquire a read connection from the pool."""
        return await self._pool.get()

    async def release_read(self, conn: aiosqlite.Connection) -> None:
        """Release a read connection back to the pool."""
        await self._pool.put(conn)

    def get_write_connection(self) -> aiosqlite.Connection:
        """Get the dedicated write connection.

        Use this for INSERT, UPDATE, DELETE operations.
        """
        if not self._write_conn:
            raise RuntimeError("Pool not initialized")
        return self._write_conn


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def init_db_schema(conn: aiosqlite.Connection) -> None:
    """Initialise the database: enable PRAGMAs, create tables and indexes.

    The caller is responsible for opening and closing the connection.
    """
    await conn.execute("PRAGMA journal_mode=WAL")
    await conn.execute("PRAGMA foreign_keys=ON")
    await conn.executescript(SCHEMA_SQL)
    await conn.commit()


init_db = init_db_schema
