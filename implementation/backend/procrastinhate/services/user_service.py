"""User accounts and profile pictures.

Public user documents never contain the password hash or tokens.
"""

from __future__ import annotations

import base64
import binascii
import re
from datetime import datetime, timezone
from uuid import uuid4

import aiosqlite

from procrastinhate.exceptions import ConflictError, InvalidRequestError, NotFoundError
from procrastinhate.services import auth_service

_EMAIL_RE = re.compile(
    r"^[A-Za-z0-9!#$%&'*+/=?^_`{|}~-]+(?:\.[A-Za-z0-9!#$%&'*+/=?^_`{|}~-]+)*"
    r"@(?:[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?\.)+[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?$"
)
_DATA_URL_RE = re.compile(r"^data:image/(?P<type>[\w.+-]+);base64,(?P<data>.+)$", re.DOTALL)

MIN_NAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6


def _now() -> str:
    return datetime.now(timezone.utc).replace(tzinfo=None).isoformat()


def validate_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email))


def public_user(row) -> dict:
    """Shape a ``users`` row as the JSON document clients see."""
    return {
        "_id": row["id"],
        "name": row["name"],
        "email": row["email"],
        "createdAt": row["created_at"],
    }


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def get_user(db: aiosqlite.Connection, user_id: str) -> dict | None:
    cursor = await db.execute("SELECT * FROM users WHERE id = ?", (user_id,))
    row = await cursor.fetchone()
    return public_user(row) if row is not None else None


async def require_user(db: aiosqlite.Connection, user_id: str) -> dict:
    """Return the public user document or raise ``NotFoundError``."""
    user = await get_user(db, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def get_users(db: aiosqlite.Connection, user_ids: list[str]) -> list[dict]:
    """Public documents for *user_ids*, in the given order, skipping unknown ids."""
    users = []
    for user_id in user_ids:
        user = await get_user(db, user_id)
        if user is not None:
            users.append(user)
    return users


async def list_users(db: aiosqlite.Connection) -> list[dict]:
    cursor = await db.execute("SELECT * FROM users ORDER BY created_at")
    rows = await cursor.fetchall()
    return [public_user(row) for row in rows]


async def email_owner(db: aiosqlite.Connection, email: str) -> str | None:
    cursor = await db.execute("SELECT id FROM users WHERE email = ?", (email,))
    row = await cursor.fetchone()
    return row["id"] if row is not None else None


# ---------------------------------------------------------------------------
# Sign up / update / delete
# ---------------------------------------------------------------------------


async def create_user(db: aiosqlite.Connection, *, name: str, email: str, password: str) -> dict:
    """Validate and insert a new user, returning its public document.

    Checks run in a fixed order so clients always see the first problem:
    duplicate email, name length, email format, password length.
    """
    name = name.strip()
    email = email.strip()
    if not name or not email or not password:
        raise InvalidRequestError("Please provide all the fields")
    if await email_owner(db, email) is not None:
        raise ConflictError("User already exists")
    if len(name) < MIN_NAME_LENGTH:
        raise InvalidRequestError(f"Name must be at least {MIN_NAME_LENGTH} characters long")
    if not validate_email(email):
        raise InvalidRequestError("Please provide a valid email")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidRequestError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )

    user_id = str(uuid4())
    now = _now()
    await db.execute(
        "INSERT INTO users (id, name, email, password_hash, created_at, updated_at) "
        "VALUES (?, ?, ?, ?, ?, ?)",
        (user_id, name, email, await auth_service.hash_password(password), now, now),
    )
    await db.commit()
    return {"_id": user_id, "name": name, "email": email, "createdAt": now}


async def update_user(
    db: aiosqlite.Connection,
    user_id: str,
    *,
    name: str | None = None,
    email: str | None = None,
) -> dict:
    """Apply a partial profile update and return the new public document."""
    user = await require_user(db, user_id)

    if name is not None:
        name = name.strip()
        if len(name) < MIN_NAME_LENGTH:
            raise InvalidRequestError(f"Name must be at least {MIN_NAME_LENGTH} characters long")
        user["name"] = name

    if email is not None:
        email = email.strip()
        if not validate_email(email):
            raise InvalidRequestError("Please provide a valid email")
        owner = await email_owner(db, email)
        if owner is not None and owner != user_id:
            raise ConflictError("Email already taken")
        user["email"] = email

    await db.execute(
        "UPDATE users SET name = ?, email = ?, updated_at = ? WHERE id = ?",
        (user["name"], user["email"], _now(), user_id),
    )
    await db.commit()
    return user


async def user_snapshot(db: aiosqlite.Connection, user_id: str) -> dict | None:
    """Full row of *user_id*, password hash included, for archiving."""
    cursor = await db.execute("SELECT * FROM users WHERE id = ?", (user_id,))
    row = await cursor.fetchone()
    return dict(row) if row is not None else None


async def restore_user(db: aiosqlite.Connection, snapshot: dict) -> None:
    """Re-insert a row captured by ``user_snapshot``."""
    if await email_owner(db, snapshot["email"]) is not None:
        raise ConflictError("User already exists")
    await db.execute(
        "INSERT INTO users (id, name, email, password_hash, created_at, updated_at) "
        "VALUES (?, ?, ?, ?, ?, ?)",
        (
            snapshot["id"],
            snapshot["name"],
            snapshot["email"],
            snapshot["password_hash"],
            snapshot["created_at"],
            _now(),
        ),
    )
    await db.commit()


async def delete_user(db: aiosqlite.Connection, user_id: str) -> None:
    """Delete the user row (tokens cascade) and their profile picture."""
    await db.execute("DELETE FROM users WHERE id = ?", (user_id,))
    await db.execute("DELETE FROM images WHERE user_id = ?", (user_id,))
    await db.commit()


# ---------------------------------------------------------------------------
# Profile pictures
# ---------------------------------------------------------------------------


def decode_image(data_url: str, *, max_bytes: int) -> tuple[str, bytes]:
    """Split a ``data:image/<type>;base64,...`` URL into ``(content_type, bytes)``."""
    match = _DATA_URL_RE.match(data_url or "")
    if match is None:
        raise InvalidRequestError("Please provide an image")
    try:
        data = base64.b64decode(match.group("data"), validate=True)
    except (binascii.Error, ValueError):
        raise InvalidRequestError("Please provide an image")
    if len(data) > max_bytes:
        raise InvalidRequestError("Image is too large")
    return f"image/{match.group('type')}", data


async def set_profile_picture(
    db: aiosqlite.Connection, user_id: str, data_url: str, *, max_bytes: int
) -> None:
    """Replace *user_id*'s profile picture."""
    content_type, data = decode_image(data_url, max_bytes=max_bytes)
    await db.execute(
        "INSERT INTO images (user_id, content_type, data, updated_at) VALUES (?, ?, ?, ?) "
        "ON CONFLICT(user_id) DO UPDATE SET "
        "content_type = excluded.content_type, data = excluded.data, "
        "updated_at = excluded.updated_at",
        (user_id, content_type, data, _now()),
    )
    await db.commit()


async def get_profile_picture(db: aiosqlite.Connection, user_id: str) -> tuple[str, bytes] | None:
    cursor = await db.execute(
        "SELECT content_type, data FROM images WHERE user_id = ?", (user_id,)
    )
    row = await cursor.fetchone()
    if row is None:
        return None
    return row["content_type"], bytes(row["data"])


async def list_images(db: aiosqlite.Connection) -> list[dict]:
    """Image metadata (no payload) for the admin console."""
    cursor = await db.execute(
        "SELECT user_id, content_type, LENGTH(data) AS size, updated_at "
        "FROM images ORDER BY updated_at"
    )
    rows = await cursor.fetchall()
    return [
        {
            "_id": row["user_id"],
            "contentType": row["content_type"],
            "size": row["size"],
            "updatedAt": row["updated_at"],
        }
        for row in rows
    ]


async def delete_profile_picture(db: aiosqlite.Connection, user_id: str) -> bool:
    cursor = await db.execute("DELETE FROM images WHERE user_id = ?", (user_id,))
    await db.commit()
    return cursor.rowcount > 0
