"""Pydantic request/response models for the Procrast-in-hate REST API.

Wire field names follow the web client (``_id``, ``createdAt``...); Python
attributes use snake_case with aliases.
"""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, ConfigDict, Field


class _AliasedModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class SignUpRequest(BaseModel):
    """Body for ``POST /users``."""

    name: str
    email: str
    password: str


class SignInRequest(BaseModel):
    """Body for ``PUT /users``."""

    email: str
    password: str


class AuthenticationBody(_AliasedModel):
    """``{_id, token}`` pair: sign-in result, sign-out and authenticate bodies."""

    id: str = Field(..., alias="_id", min_length=1)
    token: str = Field(..., min_length=1)


class UpdateUserRequest(BaseModel):
    """Body for ``PATCH /users/{id}``."""

    name: str | None = None
    email: str | None = None


class ProfilePictureRequest(BaseModel):
    """Body for ``PATCH /users/{id}/profilePicture``: a ``data:image/...`` URL."""

    image: str


class UserResponse(_AliasedModel):
    id: str = Field(..., alias="_id")
    name: str
    email: str
    created_at: str = Field(..., alias="createdAt")


class ConnectionResponse(UserResponse):
    online: bool


class SignInResponse(BaseModel):
    message: str
    authentication: AuthenticationBody


# ---------------------------------------------------------------------------
# Tasks and projects
# ---------------------------------------------------------------------------


class DateRange(BaseModel):
    start: date
    end: date


class PartialDateRange(BaseModel):
    start: date | None = None
    end: date | None = None


class CreateProjectRequest(BaseModel):
    """Body for ``PUT /projects``."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str
    dates: DateRange
    label: str
    collaborators: list[str] = Field(default_factory=list)


class CreateTaskRequest(CreateProjectRequest):
    """Body for ``PUT /tasks``."""

    checklist: list[str] = Field(default_factory=list)
    project: str | None = None


class UpdateProjectRequest(BaseModel):
    """Body for ``PATCH /projects/{id}``. Omitted fields are left unchanged."""

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    dates: PartialDateRange | None = None
    label: str | None = None


class UpdateTaskRequest(UpdateProjectRequest):
    """Body for ``PATCH /tasks/{id}``."""

    checklist: list[str] | None = None
    project: str | None = None


class StatusRequest(BaseModel):
    """Body for ``PATCH /{tasks,projects}/{id}/status``."""

    completed: bool


class ChecklistItemRequest(BaseModel):
    """Body for ``PATCH /tasks/{id}/checklist/{item_id}``."""

    completed: bool


class AddCollaboratorRequest(_AliasedModel):
    """Body for ``POST /{tasks,projects}/{id}/collaborators``."""

    id: str = Field(..., alias="_id", min_length=1)


# ---------------------------------------------------------------------------
# Admins
# ---------------------------------------------------------------------------


class AdminCredentials(BaseModel):
    """Body for ``POST /admins`` and ``PUT /admins``."""

    username: str
    password: str


class AdminSignOutRequest(BaseModel):
    """Body for ``DELETE /admins``."""

    username: str
    token: str


class CommandRequest(BaseModel):
    """Body for ``POST /admins/command``."""

    content: str


# ---------------------------------------------------------------------------
# Generic
# ---------------------------------------------------------------------------


class MessageResponse(BaseModel):
    message: str
