"""Projects router: the shared task/project endpoints plus the task listing.

Extra endpoint:
- GET /projects/{project_id}/tasks -> list_project_tasks
"""

from __future__ import annotations

import aiosqlite
from fastapi import Depends

from procrastinhate.dependencies import get_db
from procrastinhate.models import CreateProjectRequest, UpdateProjectRequest
from procrastinhate.routers.entities import make_entity_router
from procrastinhate.services import entity_service

router = make_entity_router("project", CreateProjectRequest, UpdateProjectRequest)


@router.get("/{project_id}/tasks")
async def list_project_tasks(project_id: str, db: aiosqlite.Connection = Depends(get_db)):
    return await entity_service.list_project_tasks(db, project_id)
