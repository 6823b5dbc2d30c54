"""Tasks and projects: storage, collaborators and invitations.

Tasks and projects share one shape, so every function takes a ``kind``
(``"task"`` or ``"project"``). Rows are assembled into the JSON documents
clients see::

    {
        "_id", "title", "description", "label", "completed",
        "dates": {"start", "end", "create"},
        "creatorId",
        "collaborators": [{"_id", "accepted"}],
        "updatedAt",
        # tasks only
        "checklist": [{"id", "item", "completed"}], "project",
        # projects only
        "tasks": [task ids],
    }

The creator always appears in ``collaborators`` with ``accepted: true``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

import aiosqlite

from procrastinhate.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
)
from procrastinhate.services import archive_service

ENTITY_KINDS = ("task", "project")
_TABLES = {"task": "tasks", "project": "projects"}

_UPDATABLE_COLUMNS = ("title", "description", "label", "start_date", "end_date")


def _now() -> str:
    return datetime.now(timezone.utc).replace(tzinfo=None).isoformat()


def _table(kind: str) -> str:
    try:
        return _TABLES[kind]
    except KeyError:
        raise InvalidRequestError(f"Unknown type: {kind}") from None


# ---------------------------------------------------------------------------
# Row -> document assembly
# ---------------------------------------------------------------------------


async def _collaborators(db: aiosqlite.Connection, kind: str, entity_id: str) -> list[dict]:
    cursor = await db.execute(
        "SELECT user_id, accepted FROM collaborators "
        "WHERE entity_type = ? AND entity_id = ? ORDER BY invited_at, rowid",
        (kind, entity_id),
    )
    rows = await cursor.fetchall()
    return [{"_id": row["user_id"], "accepted": bool(row["accepted"])} for row in rows]


async def _checklist(db: aiosqlite.Connection, task_id: str) -> list[dict]:
    cursor = await db.execute(
        "SELECT position, item, completed FROM checklist_items "
        "WHERE task_id = ? ORDER BY position",
        (task_id,),
    )
    rows = await cursor.fetchall()
    return [
        {"id": row["position"], "item": row["item"], "completed": bool(row["completed"])}
        for row in rows
    ]


async def _project_task_ids(db: aiosqlite.Connection, project_id: str) -> list[str]:
    cursor = await db.execute(
        "SELECT id FROM tasks WHERE project_id = ? ORDER BY created_at", (project_id,)
    )
    rows = await cursor.fetchall()
    return [row["id"] for row in rows]


async def _to_document(db: aiosqlite.Connection, kind: str, row) -> dict:
    document = {
        "_id": row["id"],
        "title": row["title"],
        "description": row["description"],
        "label": row["label"],
        "completed": bool(row["completed"]),
        "dates": {
            "start": row["start_date"],
            "end": row["end_date"],
            "create": row["created_at"],
        },
        "creatorId": row["creator_id"],
        "collaborators": await _collaborators(db, kind, row["id"]),
        "updatedAt": row["updated_at"],
    }
    if kind == "task":
        document["checklist"] = await _checklist(db, row["id"])
        document["project"] = row["project_id"]
    else:
        document["tasks"] = await _project_task_ids(db, row["id"])
    return document


async def _documents(db: aiosqlite.Connection, kind: str, rows) -> list[dict]:
    return [await _to_document(db, kind, row) for row in rows]


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def get_entity(db: aiosqlite.Connection, kind: str, entity_id: str) -> dict | None:
    cursor = await db.execute(f"SELECT * FROM {_table(kind)} WHERE id = ?", (entity_id,))
    row = await cursor.fetchone()
    return await _to_document(db, kind, row) if row is not None else None


async def require_entity(db: aiosqlite.Connection, kind: str, entity_id: str) -> dict:
    """Return the document or raise ``NotFoundError`` ("Task not found")."""
    document = await get_entity(db, kind, entity_id)
    if document is None:
        raise NotFoundError(f"{kind.capitalize()} not found")
    return document


async def list_entities(db: aiosqlite.Connection, kind: str) -> list[dict]:
    cursor = await db.execute(f"SELECT * FROM {_table(kind)} ORDER BY created_at")
    return await _documents(db, kind, await cursor.fetchall())


async def list_for_user(db: aiosqlite.Connection, kind: str, user_id: str) -> list[dict]:
    """Entities *user_id* created or accepted an invitation to."""
    cursor = await db.execute(
        f"SELECT * FROM {_table(kind)} WHERE creator_id = ? OR id IN ("
        "  SELECT entity_id FROM collaborators "
        "  WHERE entity_type = ? AND user_id = ? AND accepted = 1"
        ") ORDER BY created_at",
        (user_id, kind, user_id),
    )
    return await _documents(db, kind, await cursor.fetchall())


async def list_project_tasks(db: aiosqlite.Connection, project_id: str) -> list[dict]:
    await require_entity(db, "project", project_id)
    cursor = await db.execute(
        "SELECT * FROM tasks WHERE project_id = ? ORDER BY created_at", (project_id,)
    )
    return await _documents(db, "task", await cursor.fetchall())


async def list_invitations(db: aiosqlite.Connection, user_id: str) -> list[dict]:
    """Pending invitations for *user_id* across tasks and projects, newest first.

    Each document carries an extra ``type`` field (``"task"``/``"project"``).
    """
    invitations = []
    for kind in ENTITY_KINDS:
        cursor = await db.execute(
            f"SELECT e.* FROM {_table(kind)} e JOIN collaborators c "
            "ON c.entity_type = ? AND c.entity_id = e.id "
            "WHERE c.user_id = ? AND c.accepted = 0",
            (kind, user_id),
        )
        for document in await _documents(db, kind, await cursor.fetchall()):
            document["type"] = kind
            invitations.append(document)
    invitations.sort(key=lambda document: document["dates"]["create"], reverse=True)
    return invitations


# ---------------------------------------------------------------------------
# Membership checks
# ---------------------------------------------------------------------------


def is_member(document: dict, user_id: str) -> bool:
    """True if *user_id* created the entity or accepted an invitation to it."""
    if document["creatorId"] == user_id:
        return True
    return any(
        collaborator["_id"] == user_id and collaborator["accepted"]
        for collaborator in document["collaborators"]
    )


def ensure_member(document: dict, user_id: str) -> None:
    if not is_member(document, user_id):
        raise ForbiddenError("Not a collaborator")


def ensure_creator(document: dict, user_id: str) -> None:
    if document["creatorId"] != user_id:
        raise ForbiddenError("Only the creator can do this")


async def _ensure_users_exist(db: aiosqlite.Connection, user_ids: list[str]) -> None:
    for user_id in user_ids:
        cursor = await db.execute("SELECT 1 FROM users WHERE id = ?", (user_id,))
        if await cursor.fetchone() is None:
            raise NotFoundError("User not found")


async def _ensure_project_exists(db: aiosqlite.Connection, project_id: str | None) -> None:
    if project_id is None:
        return
    cursor = await db.execute("SELECT 1 FROM projects WHERE id = ?", (project_id,))
    if await cursor.fetchone() is None:
        raise NotFoundError("Project not found")


def _check_dates(start: str | None, end: str | None) -> None:
    if start and end and end < start:
        raise InvalidRequestError("End date must not be before start date")


# ---------------------------------------------------------------------------
# Create / update
# ---------------------------------------------------------------------------


async def _insert_collaborator(
    db: aiosqlite.Connection, kind: str, entity_id: str, user_id: str, *, accepted: bool
) -> None:
    await db.execute(
        "INSERT INTO collaborators (entity_type, entity_id, user_id, accepted, invited_at) "
        "VALUES (?, ?, ?, ?, ?)",
        (kind, entity_id, user_id, int(accepted), _now()),
    )


async def _replace_checklist(db: aiosqlite.Connection, task_id: str, items: list[dict]) -> None:
    await db.execute("DELETE FROM checklist_items WHERE task_id = ?", (task_id,))
    for position, item in enumerate(items, start=1):
        await db.execute(
            "INSERT INTO checklist_items (task_id, position, item, completed) VALUES (?, ?, ?, ?)",
            (task_id, position, item["item"], int(item.get("completed", False))),
        )


async def create_entity(
    db: aiosqlite.Connection,
    kind: str,
    *,
    creator_id: str,
    title: str,
    description: str,
    label: str,
    start_date: str | None,
    end_date: str | None,
    collaborator_ids: list[str] | None = None,
    checklist: list[str] | None = None,
    project_id: str | None = None,
) -> dict:
    """Insert a task or project and return its document.

    *collaborator_ids* become pending invitations; the creator is stored as an
    accepted collaborator.
    """
    table = _table(kind)
    _check_dates(start_date, end_date)
    invitees = [uid for uid in dict.fromkeys(collaborator_ids or []) if uid != creator_id]
    await _ensure_users_exist(db, [creator_id, *invitees])
    if kind == "task":
        await _ensure_project_exists(db, project_id)

    entity_id = str(uuid4())
    now = _now()
    if kind == "task":
        await db.execute(
            "INSERT INTO tasks (id, title, description, label, start_date, end_date, "
            "completed, creator_id, project_id, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, 0, ?, ?, ?, ?)",
            (entity_id, title, description, label, start_date, end_date,
             creator_id, project_id, now, now),
        )
        await _replace_checklist(db, entity_id, [{"item": item} for item in checklist or []])
    else:
        await db.execute(
            f"INSERT INTO {table} (id, title, description, label, start_date, end_date, "
            "completed, creator_id, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, 0, ?, ?, ?)",
            (entity_id, title, description, label, start_date, end_date, creator_id, now, now),
        )

    await _insert_collaborator(db, kind, entity_id, creator_id, accepted=True)
    for user_id in invitees:
        await _insert_collaborator(db, kind, entity_id, user_id, accepted=False)
    await db.commit()
    return await require_entity(db, kind, entity_id)


async def update_entity(
    db: aiosqlite.Connection, kind: str, entity_id: str, changes: dict
) -> dict:
    """Apply *changes* and return the updated document.

    Recognised keys: ``title``, ``description``, ``label``, ``start_date``,
    ``end_date`` and, for tasks, ``checklist`` (list of item strings, replaces
    the checklist) and ``project_id``. Keys absent from *changes* are left alone.
    """
    table = _table(kind)
    current = await require_entity(db, kind, entity_id)
    _check_dates(
        changes.get("start_date", current["dates"]["start"]),
        changes.get("end_date", current["dates"]["end"]),
    )

    assignments = {column: changes[column] for column in _UPDATABLE_COLUMNS if column in changes}
    if kind == "task" and "project_id" in changes:
        await _ensure_project_exists(db, changes["project_id"])
        assignments["project_id"] = changes["project_id"]
    assignments["updated_at"] = _now()

    columns = ", ".join(f"{column} = ?" for column in assignments)
    await db.execute(
        f"UPDATE {table} SET {columns} WHERE id = ?",
        (*assignments.values(), entity_id),
    )
    if kind == "task" and changes.get("checklist") is not None:
        await _replace_checklist(db, entity_id, [{"item": item} for item in changes["checklist"]])
    await db.commit()
    return await require_entity(db, kind, entity_id)


async def set_completed(
    db: aiosqlite.Connection, kind: str, entity_id: str, completed: bool
) -> dict:
    await require_entity(db, kind, entity_id)
    await db.execute(
        f"UPDATE {_table(kind)} SET completed = ?, updated_at = ? WHERE id = ?",
        (int(completed), _now(), entity_id),
    )
    await db.commit()
    return await require_entity(db, kind, entity_id)


async def set_checklist_item(
    db: aiosqlite.Connection, task_id: str, item_id: int, completed: bool
) -> dict:
    await require_entity(db, "task", task_id)
    cursor = await db.execute(
        "UPDATE checklist_items SET completed = ? WHERE task_id = ? AND position = ?",
        (int(completed), task_id, item_id),
    )
    if cursor.rowcount == 0:
        raise NotFoundError("Checklist item not found")
    await db.execute("UPDATE tasks SET updated_at = ? WHERE id = ?", (_now(), task_id))
    await db.commit()
    return await require_entity(db, "task", task_id)


# ---------------------------------------------------------------------------
# Delete / restore
# ---------------------------------------------------------------------------


async def _delete_rows(db: aiosqlite.Connection, kind: str, entity_id: str) -> None:
    await db.execute(
        "DELETE FROM collaborators WHERE entity_type = ? AND entity_id = ?", (kind, entity_id)
    )
    await db.execute(f"DELETE FROM {_table(kind)} WHERE id = ?", (entity_id,))


async def delete_entity(db: aiosqlite.Connection, kind: str, entity_id: str) -> dict:
    """Archive and delete an entity, returning the document as it was.

    Deleting a project archives and deletes the tasks attached to it too.
    """
    document = await require_entity(db, kind, entity_id)
    if kind == "project":
        for task in await list_project_tasks(db, entity_id):
            await archive_service.archive(db, "task", task, commit=False)
            await _delete_rows(db, "task", task["_id"])
    await archive_service.archive(db, kind, document, commit=False)
    await _delete_rows(db, kind, entity_id)
    await db.commit()
    return document


async def restore_entity(db: aiosqlite.Connection, kind: str, document: dict) -> None:
    """Re-insert a document captured by ``delete_entity``."""
    if await get_entity(db, kind, document["_id"]) is not None:
        raise ConflictError(f"{kind.capitalize()} already exists")

    dates = document.get("dates") or {}
    values = (
        document["_id"],
        document["title"],
        document.get("description", ""),
        document.get("label", ""),
        dates.get("start"),
        dates.get("end"),
        int(document.get("completed", False)),
        document["creatorId"],
    )
    created_at = dates.get("create") or _now()
    if kind == "task":
        await db.execute(
            "INSERT INTO tasks (id, title, description, label, start_date, end_date, "
            "completed, creator_id, project_id, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (*values, document.get("project"), created_at, _now()),
        )
        await _replace_checklist(db, document["_id"], document.get("checklist") or [])
    else:
        await db.execute(
            "INSERT INTO projects (id, title, description, label, start_date, end_date, "
            "completed, creator_id, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (*values, created_at, _now()),
        )
    for collaborator in document.get("collaborators") or []:
        await _insert_collaborator(
            db, kind, document["_id"], collaborator["_id"], accepted=collaborator["accepted"]
        )
    await db.commit()


async def remove_user_everywhere(db: aiosqlite.Connection, user_id: str) -> int:
    """Archive and delete everything *user_id* created; drop their other memberships.

    Returns the number of archived tasks and projects.
    """
    archived = 0
    # Projects first: deleting a project also removes its tasks.
    for kind in ("project", "task"):
        cursor = await db.execute(
            f"SELECT id FROM {_table(kind)} WHERE creator_id = ?", (user_id,)
        )
        for row in await cursor.fetchall():
            await delete_entity(db, kind, row["id"])
            archived += 1
    await db.execute("DELETE FROM collaborators WHERE user_id = ?", (user_id,))
    await db.commit()
    return archived


# ---------------------------------------------------------------------------
# Collaborators and invitations
# ---------------------------------------------------------------------------


async def add_collaborator(
    db: aiosqlite.Connection, kind: str, entity_id: str, user_id: str
) -> dict:
    """Invite *user_id*. Raises ``ConflictError`` if already invited or a member."""
    document = await require_entity(db, kind, entity_id)
    await _ensure_users_exist(db, [user_id])
    if any(collaborator["_id"] == user_id for collaborator in document["collaborators"]):
        raise ConflictError("User already invited")
    await _insert_collaborator(db, kind, entity_id, user_id, accepted=False)
    await db.commit()
    return await require_entity(db, kind, entity_id)


async def remove_collaborator(
    db: aiosqlite.Connection, kind: str, entity_id: str, user_id: str
) -> dict:
    document = await require_entity(db, kind, entity_id)
    if document["creatorId"] == user_id:
        raise InvalidRequestError("The creator cannot be removed")
    cursor = await db.execute(
        "DELETE FROM collaborators WHERE entity_type = ? AND entity_id = ? AND user_id = ?",
        (kind, entity_id, user_id),
    )
    if cursor.rowcount == 0:
        raise NotFoundError("Collaborator not found")
    await db.commit()
    return await require_entity(db, kind, entity_id)


async def respond_to_invitation(
    db: aiosqlite.Connection, kind: str, entity_id: str, user_id: str, *, accept: bool
) -> dict:
    """Accept (flip to accepted) or decline (remove) a pending invitation.

    Returns the entity document after the change.
    """
    _table(kind)
    document = await get_entity(db, kind, entity_id)
    if document is None:
        raise NotFoundError("Invitation not found")

    invitation = next(
        (c for c in document["collaborators"] if c["_id"] == user_id), None
    )
    if invitation is None:
        raise InvalidRequestError("User not invited")
    if invitation["accepted"]:
        raise InvalidRequestError("User already accepted")

    if accept:
        await db.execute(
            "UPDATE collaborators SET accepted = 1 "
            "WHERE entity_type = ? AND entity_id = ? AND user_id = ?",
            (kind, entity_id, user_id),
        )
    else:
        await db.execute(
            "DELETE FROM collaborators WHERE entity_type = ? AND entity_id = ? AND user_id = ?",
            (kind, entity_id, user_id),
        )
    await db.commit()
    return await require_entity(db, kind, entity_id)
