"""Tasks router: the shared task/project endpoints plus checklist items.

Extra endpoint:
- PATCH /tasks/{task_id}/checklist/{item_id} -> set_checklist_item
"""

from __future__ import annotations

import aiosqlite
from fastapi import BackgroundTasks, Depends

from procrastinhate.dependencies import get_connection_registry, get_current_user, get_db
from procrastinhate.models import ChecklistItemRequest, CreateTaskRequest, UpdateTaskRequest
from procrastinhate.routers.entities import make_entity_router
from procrastinhate.services import entity_service, notification_service
from procrastinhate.services.connection_registry import ConnectionRegistry

router = make_entity_router("task", CreateTaskRequest, UpdateTaskRequest)


@router.patch("/{task_id}/checklist/{item_id}")
async def set_checklist_item(
    task_id: str,
    item_id: int,
    body: ChecklistItemRequest,
    background_tasks: BackgroundTasks,
    user: dict = Depends(get_current_user),
    db: aiosqlite.Connection = Depends(get_db),
    registry: ConnectionRegistry = Depends(get_connection_registry),
):
    current = await entity_service.require_entity(db, "task", task_id)
    entity_service.ensure_member(current, user["id"])
    document = await entity_service.set_checklist_item(db, task_id, item_id, body.completed)
    background_tasks.add_task(
        notification_service.notify_changed,
        registry,
        document,
        f'{user["name"]} updated the checklist of "{document["title"]}"',
    )
    return {"message": "Checklist item updated successfully", "task": document}
