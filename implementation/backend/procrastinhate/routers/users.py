"""Users router -- accounts, sign in/out, profile, invitations.

Endpoints:
- GET /users                                          -> list_users
- POST /users                                         -> sign_up
- PUT /users                                          -> sign_in
- DELETE /users                                       -> sign_out
- POST /users/authenticate                            -> authenticate
- GET /users/{user_id}                                -> get_user
- PATCH /users/{user_id}                              -> update_user
- GET /users/{user_id}/connections                    -> get_connections
- PATCH /users/{user_id}/profilePicture               -> update_profile_picture
- GET /users/{user_id}/profilePicture                 -> get_profile_picture
- GET /users/{user_id}/invitations                    -> list_invitations
- POST /users/{user_id}/invitations/{kind}/{entity_id}   -> accept_invitation
- DELETE /users/{user_id}/invitations/{kind}/{entity_id} -> decline_invitation
"""

from __future__ import annotations

import logging

import aiosqlite
from fastapi import APIRouter, BackgroundTasks, Depends
from fastapi.responses import Response

from procrastinhate.config import get_settings
from procrastinhate.dependencies import get_connection_registry, get_current_user, get_db
from procrastinhate.exceptions import AuthenticationError, ForbiddenError, NotFoundError
from procrastinhate.models import (
    AuthenticationBody,
    ConnectionResponse,
    MessageResponse,
    ProfilePictureRequest,
    SignInRequest,
    SignInResponse,
    SignUpRequest,
    UpdateUserRequest,
    UserResponse,
)
from procrastinhate.services import (
    auth_service,
    entity_service,
    mail_service,
    notification_service,
    user_service,
)
from procrastinhate.services.connection_registry import ConnectionRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


def _ensure_self(user: dict, user_id: str) -> None:
    if user["id"] != user_id:
        raise ForbiddenError("You can only act on your own account")


# ---------------------------------------------------------------------------
# GET /users
# ---------------------------------------------------------------------------


@router.get("", response_model=list[UserResponse])
async def list_users(db: aiosqlite.Connection = Depends(get_db)):
    return await user_service.list_users(db)


# ---------------------------------------------------------------------------
# POST /users  (sign up)
# ---------------------------------------------------------------------------


@router.post("", status_code=201, response_model=MessageResponse)
async def sign_up(
    body: SignUpRequest,
    background_tasks: BackgroundTasks,
    db: aiosqlite.Connection = Depends(get_db),
) -> MessageResponse:
    user = await user_service.create_user(
        db, name=body.name, email=body.email, password=body.password
    )
    logger.info("User %s signed up", user["_id"])
    background_tasks.add_task(
        mail_service.send_mail, to=user["email"], mail=mail_service.welcome(user["name"])
    )
    return MessageResponse(message="User created successfully")


# ---------------------------------------------------------------------------
# PUT /users  (sign in)
# ---------------------------------------------------------------------------


@router.put("", response_model=SignInResponse)
async def sign_in(
    body: SignInRequest,
    background_tasks: BackgroundTasks,
    db: aiosqlite.Connection = Depends(get_db),
) -> SignInResponse:
    row, token = await auth_service.sign_in_user(db, body.email, body.password)
    background_tasks.add_task(
        mail_service.send_mail, to=row["email"], mail=mail_service.signed_in(row["name"])
    )
    return SignInResponse(
        message="User signed in successfully",
        authentication=AuthenticationBody(id=row["id"], token=token),
    )


# ---------------------------------------------------------------------------
# DELETE /users  (sign out)
# ---------------------------------------------------------------------------


@router.delete("", response_model=MessageResponse)
async def sign_out(
    body: AuthenticationBody,
    db: aiosqlite.Connection = Depends(get_db),
) -> MessageResponse:
    await user_service.require_user(db, body.id)
    await auth_service.sign_out_user(db, body.id, body.token)
    return MessageResponse(message="User signed out successfully")


# ---------------------------------------------------------------------------
# POST /users/authenticate
# ---------------------------------------------------------------------------


@router.post("/authenticate", response_model=MessageResponse)
async def authenticate(
    body: AuthenticationBody,
    db: aiosqlite.Connection = Depends(get_db),
) -> MessageResponse:
    await user_service.require_user(db, body.id)
    if await auth_service.validate_user_token(db, body.id, body.token) is None:
        raise AuthenticationError()
    return MessageResponse(message="User authenticated")


# ---------------------------------------------------------------------------
# GET / PATCH /users/{user_id}
# ---------------------------------------------------------------------------


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: str, db: aiosqlite.Connection = Depends(get_db)):
    return await user_service.require_user(db, user_id)


@router.patch("/{user_id}")
async def update_user(
    user_id: str,
    body: UpdateUserRequest,
    background_tasks: BackgroundTasks,
    user: dict = Depends(get_current_user),
    db: aiosqlite.Connection = Depends(get_db),
):
    _ensure_self(user, user_id)
    updated = await user_service.update_user(db, user_id, name=body.name, email=body.email)
    background_tasks.add_task(
        mail_service.send_mail,
        to=updated["email"],
        mail=mail_service.profile_updated(updated["name"]),
    )
    return {
        "message": "User updated successfully",
        "user": UserResponse(**updated).model_dump(by_alias=True),
    }


# ---------------------------------------------------------------------------
# GET /users/{user_id}/connections
# ---------------------------------------------------------------------------


@router.get("/{user_id}/connections", response_model=list[ConnectionResponse])
async def get_connections(
    user_id: str,
    db: aiosqlite.Connection = Depends(get_db),
    registry: ConnectionRegistry = Depends(get_connection_registry),
):
    """Users sharing an accepted task or project with *user_id*, with presence."""
    await user_service.require_user(db, user_id)
    tasks = await entity_service.list_for_user(db, "task", user_id)
    projects = await entity_service.list_for_user(db, "project", user_id)
    connection_ids = notification_service.presence_targets(user_id, tasks, projects)

    connections = await user_service.get_users(db, sorted(connection_ids))
    return [
        {**connection, "online": registry.is_online(connection["_id"])}
        for connection in connections
    ]


# ---------------------------------------------------------------------------
# Profile picture
# ---------------------------------------------------------------------------


@router.patch("/{user_id}/profilePicture", response_model=MessageResponse)
async def update_profile_picture(
    user_id: str,
    body: ProfilePictureRequest,
    background_tasks: BackgroundTasks,
    user: dict = Depends(get_current_user),
    db: aiosqlite.Connection = Depends(get_db),
) -> MessageResponse:
    _ensure_self(user, user_id)
    await user_service.set_profile_picture(
        db, user_id, body.image, max_bytes=get_settings().max_image_bytes
    )
    background_tasks.add_task(
        mail_service.send_mail,
        to=user["email"],
        mail=mail_service.profile_picture_updated(user["name"]),
    )
    return MessageResponse(message="Profile picture updated successfully")


@router.get("/{user_id}/profilePicture")
async def get_profile_picture(user_id: str, db: aiosqlite.Connection = Depends(get_db)):
    await user_service.require_user(db, user_id)
    picture = await user_service.get_profile_picture(db, user_id)
    if picture is None:
        raise NotFoundError("Image not found")
    content_type, data = picture
    return Response(content=data, media_type=content_type)


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------


@router.get("/{user_id}/invitations")
async def list_invitations(
    user_id: str,
    user: dict = Depends(get_current_user),
    db: aiosqlite.Connection = Depends(get_db),
):
    _ensure_self(user, user_id)
    return await entity_service.list_invitations(db, user_id)


async def _answer_invitation(
    *,
    accept: bool,
    user: dict,
    kind: str,
    entity_id: str,
    db: aiosqlite.Connection,
    registry: ConnectionRegistry,
    background_tasks: BackgroundTasks,
) -> MessageResponse:
    document = await entity_service.respond_to_invitation(
        db, kind, entity_id, user["id"], accept=accept
    )
    verb = "accepted" if accept else "declined"
    title = document["title"]

    background_tasks.add_task(
        notification_service.notify_response,
        registry,
        document,
        user["id"],
        f"{user['name']} has {verb} the invitation to collaborate on {title}",
    )

    background_tasks.add_task(
        mail_service.send_mail,
        to=user["email"],
        mail=mail_service.invitation_answered(user["name"], title, accepted=accept),
    )
    others = sorted(notification_service.accepted_identities(document) - {user["id"]})
    for collaborator in await user_service.get_users(db, others):
        background_tasks.add_task(
            mail_service.send_mail,
            to=collaborator["email"],
            mail=mail_service.collaborator_answered(
                collaborator["name"], user["name"], title, accepted=accept
            ),
        )

    logger.info("User %s %s invitation to %s %s", user["id"], verb, kind, entity_id)
    return MessageResponse(message=f"Invitation {verb}")


@router.post("/{user_id}/invitations/{kind}/{entity_id}", response_model=MessageResponse)
async def accept_invitation(
    user_id: str,
    kind: str,
    entity_id: str,
    background_tasks: BackgroundTasks,
    user: dict = Depends(get_current_user),
    db: aiosqlite.Connection = Depends(get_db),
    registry: ConnectionRegistry = Depends(get_connection_registry),
) -> MessageResponse:
    _ensure_self(user, user_id)
    return await _answer_invitation(
        accept=True,
        user=user,
        kind=kind,
        entity_id=entity_id,
        db=db,
        registry=registry,
        background_tasks=background_tasks,
    )


@router.delete("/{user_id}/invitations/{kind}/{entity_id}", response_model=MessageResponse)
async def decline_invitation(
    user_id: str,
    kind: str,
    entity_id: str,
    background_tasks: BackgroundTasks,
    user: dict = Depends(get_current_user),
    db: aiosqlite.Connection = Depends(get_db),
    registry: ConnectionRegistry = Depends(get_connection_registry),
) -> MessageResponse:
    _ensure_self(user, user_id)
    return await _answer_invitation(
        accept=False,
        user=user,
        kind=kind,
        entity_id=entity_id,
        db=db,
        registry=registry,
        background_tasks=background_tasks,
    )
