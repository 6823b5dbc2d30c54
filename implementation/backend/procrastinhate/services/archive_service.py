"""Archive of removed users, tasks and projects.

Each archive row stores a JSON snapshot; restoring one is done by the admin
console, which knows how to re-insert each snapshot type.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from uuid import uuid4

import aiosqlite

ARCHIVE_TYPES = ("user", "task", "project")


def _to_document(row) -> dict:
    return {
        "_id": row["id"],
        "type": row["type"],
        "data": json.loads(row["data_json"]),
        "archivedAt": row["archived_at"],
    }


async def archive(db: aiosqlite.Connection, archive_type: str, data: dict, *, commit: bool = True) -> str:
    """Store *data* under *archive_type* and return the archive id."""
    if archive_type not in ARCHIVE_TYPES:
        raise ValueError(f"Unknown archive type: {archive_type}")
    archive_id = str(uuid4())
    await db.execute(
        "INSERT INTO archives (id, type, data_json, archived_at) VALUES (?, ?, ?, ?)",
        (
            archive_id,
            archive_type,
            json.dumps(data),
            datetime.now(timezone.utc).replace(tzinfo=None).isoformat(),
        ),
    )
    if commit:
        await db.commit()
    return archive_id


async def list_archives(db: aiosqlite.Connection) -> list[dict]:
    cursor = await db.execute("SELECT * FROM archives ORDER BY archived_at")
    rows = await cursor.fetchall()
    return [_to_document(row) for row in rows]


async def get_archive(db: aiosqlite.Connection, archive_id: str) -> dict | None:
    cursor = await db.execute("SELECT * FROM archives WHERE id = ?", (archive_id,))
    row = await cursor.fetchone()
    return _to_document(row) if row is not None else None


async def delete_archive(db: aiosqlite.Connection, archive_id: str) -> None:
    await db.execute("DELETE FROM archives WHERE id = ?", (archive_id,))
    await db.commit()
