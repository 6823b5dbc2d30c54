"""Admins router -- admin accounts and the admin console.

Endpoints:
- GET /admins                 -> list_admins (admin)
- POST /admins                -> create_admin (open until the first admin exists)
- PUT /admins                 -> sign_in
- DELETE /admins              -> sign_out
- POST /admins/authenticate   -> authenticate
- POST /admins/command        -> run_command (admin)
- GET /admins/{admin_id}      -> get_admin (admin)
"""

from __future__ import annotations

import logging

import aiosqlite
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from procrastinhate.dependencies import get_current_admin, get_db, get_optional_admin
from procrastinhate.exceptions import AuthenticationError, NotFoundError
from procrastinhate.models import (
    AdminCredentials,
    AdminSignOutRequest,
    AuthenticationBody,
    CommandRequest,
    MessageResponse,
    SignInResponse,
)
from procrastinhate.services import admin_console, auth_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
async def list_admins(
    admin: dict = Depends(get_current_admin),
    db: aiosqlite.Connection = Depends(get_db),
):
    return await auth_service.list_admins(db)


# ---------------------------------------------------------------------------
# POST /admins
# ---------------------------------------------------------------------------


@router.post("", status_code=201)
async def create_admin(
    body: AdminCredentials,
    admin: dict | None = Depends(get_optional_admin),
    db: aiosqlite.Connection = Depends(get_db),
):
    """Create an admin.

    The very first admin can be created without credentials; after that an
    existing admin must authenticate the request.
    """
    if admin is None and await auth_service.count_admins(db) > 0:
        raise HTTPException(status_code=401, detail="Not authenticated")

    created = await auth_service.create_admin(db, body.username, body.password)
    logger.info("Admin %s created", created["username"])
    return {"message": "Admin created successfully", "admin": auth_service.public_admin(created)}


# ---------------------------------------------------------------------------
# Sign in / out / authenticate
# ---------------------------------------------------------------------------


@router.put("", response_model=SignInResponse)
async def sign_in(
    body: AdminCredentials,
    db: aiosqlite.Connection = Depends(get_db),
) -> SignInResponse:
    row, token = await auth_service.sign_in_admin(db, body.username, body.password)
    return SignInResponse(
        message="Admin signed in successfully",
        authentication=AuthenticationBody(id=row["id"], token=token),
    )


@router.delete("", response_model=MessageResponse)
async def sign_out(
    body: AdminSignOutRequest,
    db: aiosqlite.Connection = Depends(get_db),
) -> MessageResponse:
    await auth_service.sign_out_admin(db, body.username, body.token)
    return MessageResponse(message="Admin signed out successfully")


@router.post("/authenticate", response_model=MessageResponse)
async def authenticate(
    body: AuthenticationBody,
    db: aiosqlite.Connection = Depends(get_db),
) -> MessageResponse:
    if await auth_service.get_admin(db, body.id) is None:
        raise NotFoundError("Admin not found")
    if await auth_service.validate_admin_token(db, body.id, body.token) is None:
        raise AuthenticationError()
    return MessageResponse(message="Authenticated successfully")


# ---------------------------------------------------------------------------
# POST /admins/command
# ---------------------------------------------------------------------------


@router.post("/command")
async def run_command(
    body: CommandRequest,
    admin: dict = Depends(get_current_admin),
    db: aiosqlite.Connection = Depends(get_db),
):
    try:
        output = await admin_console.run_command(db, body.content)
    except admin_console.CommandNotFoundError:
        return JSONResponse(status_code=404, content={"output": "Command not found", "error": True})
    return {"output": output}


@router.get("/{admin_id}")
async def get_admin(
    admin_id: str,
    admin: dict = Depends(get_current_admin),
    db: aiosqlite.Connection = Depends(get_db),
):
    found = await auth_service.get_admin(db, admin_id)
    if found is None:
        raise NotFoundError("Admin not found")
    return found
