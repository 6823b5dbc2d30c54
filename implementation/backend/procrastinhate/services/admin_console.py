"""Admin console: text commands run through ``POST /admins/command``.

A command line looks like ``procrast <command> [args...]``. Each handler
receives the whitespace-split arguments and returns the console output,
either a message string or a JSON-serialisable document/list. Domain errors
raised by the services are reported as output text rather than HTTP errors,
so the console always answers 200 for a known command.
"""

from __future__ import annotations

import base64
import logging
from collections.abc import Awaitable, Callable
from datetime import date

import aiosqlite

from procrastinhate.config import get_settings
from procrastinhate.exceptions import (
    ConflictError,
    InvalidRequestError,
    NotFoundError,
)
from procrastinhate.services import archive_service, entity_service, user_service

logger = logging.getLogger(__name__)

PREFIX = "procrast"
WELCOME = 'Welcome to Procrast In Hate\nType "help" for a list of commands'
MISSING_INFORMATION = "Missing required information"

Handler = Callable[[aiosqlite.Connection, list[str]], Awaitable[object]]


class CommandNotFoundError(Exception):
    """Raised when the command name is not registered."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name


def parse_command(content: str) -> tuple[str, list[str]] | None:
    """Split ``procrast <name> args...`` into ``(name, args)``.

    Returns ``None`` when *content* does not start with the console prefix.
    """
    parts = content.split()
    if not parts or parts[0] != PREFIX:
        return None
    if len(parts) == 1:
        return "", []
    return parts[1], parts[2:]


def _parse_date(value: str) -> str:
    try:
        return date.fromisoformat(value).isoformat()
    except ValueError:
        raise InvalidRequestError(f"Invalid date: {value}") from None


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


async def _users(db, args):
    return await user_service.list_users(db)


async def _user(db, args):
    if not args:
        return MISSING_INFORMATION
    return await user_service.require_user(db, args[0])


async def _user_create(db, args):
    if len(args) < 3:
        return MISSING_INFORMATION
    name, email, password = args[:3]
    await user_service.create_user(db, name=name, email=email, password=password)
    return "User created successfully"


async def _user_delete(db, args):
    """Archive the user and everything they created, and drop their memberships."""
    if not args:
        return MISSING_INFORMATION
    user_id = args[0]
    snapshot = await user_service.user_snapshot(db, user_id)
    if snapshot is None:
        return "User not found"
    archived = await entity_service.remove_user_everywhere(db, user_id)
    await archive_service.archive(db, "user", snapshot)
    await user_service.delete_user(db, user_id)
    logger.info("Admin console deleted user %s (%d entities archived)", user_id, archived)
    return "User deleted successfully"


# ---------------------------------------------------------------------------
# Tasks and projects
# ---------------------------------------------------------------------------


def _list(kind: str) -> Handler:
    async def handler(db, args):
        return await entity_service.list_entities(db, kind)

    return handler


def _get(kind: str) -> Handler:
    async def handler(db, args):
        if not args:
            return MISSING_INFORMATION
        return await entity_service.require_entity(db, kind, args[0])

    return handler


def _create(kind: str) -> Handler:
    """``<kind>Create title description start end creatorId label [projectId]``."""

    async def handler(db, args):
        if len(args) < 6:
            return MISSING_INFORMATION
        title, description, start, end, creator_id, label = args[:6]
        project_id = args[6] if kind == "task" and len(args) > 6 else None
        await entity_service.create_entity(
            db,
            kind,
            creator_id=creator_id,
            title=title,
            description=description,
            label=label,
            start_date=_parse_date(start),
            end_date=_parse_date(end),
            project_id=project_id,
        )
        return f"{kind.capitalize()} created successfully"

    return handler


def _delete(kind: str) -> Handler:
    async def handler(db, args):
        if not args:
            return MISSING_INFORMATION
        await entity_service.delete_entity(db, kind, args[0])
        return f"{kind.capitalize()} deleted successfully"

    return handler


# ---------------------------------------------------------------------------
# Archives
# ---------------------------------------------------------------------------


async def _archives(db, args):
    return await archive_service.list_archives(db)


async def _archive(db, args):
    if not args:
        return MISSING_INFORMATION
    archive = await archive_service.get_archive(db, args[0])
    return archive if archive is not None else "Archive not found"


async def _archive_delete(db, args):
    """Restore the archived document and drop the archive entry."""
    if not args:
        return MISSING_INFORMATION
    archive = await archive_service.get_archive(db, args[0])
    if archive is None:
        return "Archive not found"
    if archive["type"] == "user":
        await user_service.restore_user(db, archive["data"])
    else:
        await entity_service.restore_entity(db, archive["type"], archive["data"])
    await archive_service.delete_archive(db, archive["_id"])
    return "Archive deleted successfully"


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------


async def _images(db, args):
    return await user_service.list_images(db)


async def _image(db, args):
    if not args:
        return MISSING_INFORMATION
    picture = await user_service.get_profile_picture(db, args[0])
    if picture is None:
        return "Image not found"
    content_type, data = picture
    encoded = base64.b64encode(data).decode("ascii")
    return {"_id": args[0], "image": f"data:{content_type};base64,{encoded}"}


async def _image_delete(db, args):
    if not args:
        return MISSING_INFORMATION
    if not await user_service.delete_profile_picture(db, args[0]):
        return "Image not found"
    return "Image deleted successfully"


async def _image_update(db, args):
    if len(args) < 2:
        return MISSING_INFORMATION
    user_id, data_url = args[:2]
    await user_service.require_user(db, user_id)
    await user_service.set_profile_picture(
        db, user_id, data_url, max_bytes=get_settings().max_image_bytes
    )
    return "Image updated successfully"


COMMANDS: dict[str, Handler] = {
    "users": _users,
    "user": _user,
    "userCreate": _user_create,
    "userDelete": _user_delete,
    "projects": _list("project"),
    "project": _get("project"),
    "projectCreate": _create("project"),
    "projectDelete": _delete("project"),
    "tasks": _list("task"),
    "task": _get("task"),
    "taskCreate": _create("task"),
    "taskDelete": _delete("task"),
    "archives": _archives,
    "archive": _archive,
    "archiveDelete": _archive_delete,
    "images": _images,
    "image": _image,
    "imageDelete": _image_delete,
    "imageUpdate": _image_update,
}


async def run_command(db: aiosqlite.Connection, content: str) -> object:
    """Run one console line and return its output.

    Raises ``CommandNotFoundError`` for an unknown command or missing prefix.
    """
    parsed = parse_command(content)
    if parsed is None:
        raise CommandNotFoundError(content)
    name, args = parsed

    if name == "":
        return WELCOME
    if name == "help":
        return ", ".join(COMMANDS)

    handler = COMMANDS.get(name)
    if handler is None:
        raise CommandNotFoundError(name)

    logger.info("Admin console: %s %s", name, " ".join(args))
    try:
        return await handler(db, args)
    except (NotFoundError, InvalidRequestError, ConflictError) as exc:
        return exc.message
