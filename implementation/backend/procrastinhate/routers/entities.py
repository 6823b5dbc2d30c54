"""Shared router for tasks and projects.

Tasks and projects expose the same endpoints; ``make_entity_router`` builds
them for one kind and ``tasks.py`` / ``projects.py`` add the kind-specific
extras on top.

Endpoints (``{prefix}`` is ``/tasks`` or ``/projects``):
- GET {prefix}                                     -> list all
- GET {prefix}/user/{user_id}                      -> created or accepted by user
- GET {prefix}/{entity_id}                         -> one document
- PUT {prefix}                                     -> create
- PATCH {prefix}/{entity_id}                       -> update fields
- PATCH {prefix}/{entity_id}/status                -> set completed
- DELETE {prefix}/{entity_id}                      -> archive + delete (creator only)
- POST {prefix}/{entity_id}/collaborators          -> invite (creator only)
- DELETE {prefix}/{entity_id}/collaborators/{uid}  -> remove (creator only)

Every mutation schedules a WebSocket fan-out through ``notification_service``
as a background task, so the HTTP response goes out before any push.
"""

# No ``from __future__ import annotations``: the request models below are
# closure variables and FastAPI must resolve them at decoration time.

import logging

import aiosqlite
from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import BaseModel

from procrastinhate.dependencies import get_connection_registry, get_current_user, get_db
from procrastinhate.models import AddCollaboratorRequest, StatusRequest
from procrastinhate.services import entity_service, notification_service, user_service
from procrastinhate.services.connection_registry import ConnectionRegistry

logger = logging.getLogger(__name__)


def create_kwargs(kind: str, body: BaseModel) -> dict:
    """Map a create request onto ``entity_service.create_entity`` keywords."""
    kwargs = {
        "title": body.title,
        "description": body.description,
        "label": body.label,
        "start_date": body.dates.start.isoformat(),
        "end_date": body.dates.end.isoformat(),
        "collaborator_ids": body.collaborators,
    }
    if kind == "task":
        kwargs["checklist"] = body.checklist
        kwargs["project_id"] = body.project
    return kwargs


def update_changes(body: BaseModel) -> dict:
    """Map an update request onto ``entity_service.update_entity`` changes.

    Fields left out of the request (or sent as ``null``) are not changed.
    """
    data = body.model_dump(exclude_none=True)
    changes = {key: data[key] for key in ("title", "description", "label") if key in data}
    dates = data.get("dates") or {}
    if "start" in dates:
        changes["start_date"] = dates["start"].isoformat()
    if "end" in dates:
        changes["end_date"] = dates["end"].isoformat()
    if "checklist" in data:
        changes["checklist"] = data["checklist"]
    if "project" in data:
        changes["project_id"] = data["project"]
    return changes


def make_entity_router(kind: str, create_model: type, update_model: type) -> APIRouter:
    """Build the common endpoints for *kind* (``"task"`` or ``"project"``)."""
    router = APIRouter()
    noun = kind.capitalize()

    # -- Reads ---------------------------------------------------------------

    @router.get("")
    async def list_all(db: aiosqlite.Connection = Depends(get_db)):
        return await entity_service.list_entities(db, kind)

    @router.get("/user/{user_id}")
    async def list_for_user(user_id: str, db: aiosqlite.Connection = Depends(get_db)):
        return await entity_service.list_for_user(db, kind, user_id)

    @router.get("/{entity_id}")
    async def get_one(entity_id: str, db: aiosqlite.Connection = Depends(get_db)):
        return await entity_service.require_entity(db, kind, entity_id)

    # -- Create / update -----------------------------------------------------

    @router.put("", status_code=201)
    async def create(
        body: create_model,
        background_tasks: BackgroundTasks,
        user: dict = Depends(get_current_user),
        db: aiosqlite.Connection = Depends(get_db),
        registry: ConnectionRegistry = Depends(get_connection_registry),
    ):
        document = await entity_service.create_entity(
            db, kind, creator_id=user["id"], **create_kwargs(kind, body)
        )
        logger.info("User %s created %s %s", user["id"], kind, document["_id"])
        background_tasks.add_task(
            notification_service.notify_created,
            registry,
            document,
            kind=kind,
            creator_name=user["name"],
        )
        return {"message": f"{noun} created successfully", kind: document}

    @router.patch("/{entity_id}")
    async def update(
        entity_id: str,
        body: update_model,
        background_tasks: BackgroundTasks,
        user: dict = Depends(get_current_user),
        db: aiosqlite.Connection = Depends(get_db),
        registry: ConnectionRegistry = Depends(get_connection_registry),
    ):
        current = await entity_service.require_entity(db, kind, entity_id)
        entity_service.ensure_member(current, user["id"])
        document = await entity_service.update_entity(db, kind, entity_id, update_changes(body))
        background_tasks.add_task(
            notification_service.notify_changed,
            registry,
            document,
            f'{user["name"]} updated the {kind} "{document["title"]}"',
        )
        return {"message": f"{noun} updated successfully", kind: document}

    @router.patch("/{entity_id}/status")
    async def set_status(
        entity_id: str,
        body: StatusRequest,
        background_tasks: BackgroundTasks,
        user: dict = Depends(get_current_user),
        db: aiosqlite.Connection = Depends(get_db),
        registry: ConnectionRegistry = Depends(get_connection_registry),
    ):
        current = await entity_service.require_entity(db, kind, entity_id)
        entity_service.ensure_member(current, user["id"])
        document = await entity_service.set_completed(db, kind, entity_id, body.completed)
        state = "completed" if body.completed else "not completed"
        background_tasks.add_task(
            notification_service.notify_changed,
            registry,
            document,
            f'{user["name"]} marked the {kind} "{document["title"]}" as {state}',
        )
        return {"message": f"{noun} status updated successfully", kind: document}

    # -- Delete ----------------------------------------------------------------

    @router.delete("/{entity_id}")
    async def delete(
        entity_id: str,
        background_tasks: BackgroundTasks,
        user: dict = Depends(get_current_user),
        db: aiosqlite.Connection = Depends(get_db),
        registry: ConnectionRegistry = Depends(get_connection_registry),
    ):
        current = await entity_service.require_entity(db, kind, entity_id)
        entity_service.ensure_creator(current, user["id"])
        document = await entity_service.delete_entity(db, kind, entity_id)
        logger.info("User %s deleted %s %s", user["id"], kind, entity_id)
        background_tasks.add_task(
            notification_service.notify_changed,
            registry,
            document,
            f'{user["name"]} deleted the {kind} "{document["title"]}"',
        )
        return {"message": f"{noun} deleted successfully"}

    # -- Collaborators -------------------------------------------------------

    @router.post("/{entity_id}/collaborators")
    async def add_collaborator(
        entity_id: str,
        body: AddCollaboratorRequest,
        background_tasks: BackgroundTasks,
        user: dict = Depends(get_current_user),
        db: aiosqlite.Connection = Depends(get_db),
        registry: ConnectionRegistry = Depends(get_connection_registry),
    ):
        current = await entity_service.require_entity(db, kind, entity_id)
        entity_service.ensure_creator(current, user["id"])
        document = await entity_service.add_collaborator(db, kind, entity_id, body.id)
        invitee = await user_service.require_user(db, body.id)
        title = document["title"]
        background_tasks.add_task(
            notification_service.notify_membership,
            registry,
            document,
            body.id,
            affected_message=f'{user["name"]} invited you to collaborate on the {kind} "{title}"',
            message=f'{invitee["name"]} was invited to the {kind} "{title}"',
        )
        return {"message": "Collaborator added successfully", kind: document}

    @router.delete("/{entity_id}/collaborators/{user_id}")
    async def remove_collaborator(
        entity_id: str,
        user_id: str,
        background_tasks: BackgroundTasks,
        user: dict = Depends(get_current_user),
        db: aiosqlite.Connection = Depends(get_db),
        registry: ConnectionRegistry = Depends(get_connection_registry),
    ):
        current = await entity_service.require_entity(db, kind, entity_id)
        entity_service.ensure_creator(current, user["id"])
        document = await entity_service.remove_collaborator(db, kind, entity_id, user_id)
        removed = await user_service.get_user(db, user_id)
        removed_name = removed["name"] if removed is not None else "A collaborator"
        title = document["title"]
        background_tasks.add_task(
            notification_service.notify_membership,
            registry,
            document,
            user_id,
            affected_message=f'You were removed from the {kind} "{title}"',
            message=f'{removed_name} was removed from the {kind} "{title}"',
        )
        return {"message": "Collaborator removed successfully", kind: document}

    return router
