"""Pydantic schemas for users.

Request/Response models for:
- Registration and login
- Profile updates and preferences
- whoami with derived fields
"""

import re
from datetime import datetime
from typing import TYPE_CHECKING, Literal
from uuid import UUID

from pydantic import Field, field_validator

from pepyatka.core.schemas import CamelModel


if TYPE_CHECKING:
    from .models import User
    from .service import WhoAmI


USERNAME_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")
USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 25


def validate_username(value: str) -> str:
    """Lowercase and check a username shared by users and groups."""
    value = value.strip().lower()
    if not USERNAME_MIN_LENGTH <= len(value) <= USERNAME_MAX_LENGTH:
        msg = (
            f"Username must be {USERNAME_MIN_LENGTH}-{USERNAME_MAX_LENGTH} "
            "characters long"
        )
        raise ValueError(msg)
    if not USERNAME_PATTERN.match(value):
        msg = "Username may contain only letters, digits and single dashes"
        raise ValueError(msg)
    return value


# ==============================================================================
# Request Schemas
# ==============================================================================


class RegisterRequest(CamelModel):
    username: str
    password: str = Field(..., min_length=1, max_length=256)
    screen_name: str | None = Field(None, max_length=100)

    @field_validator("username")
    @classmethod
    def check_username(cls, v: str) -> str:
        return validate_username(v)


class LoginRequest(CamelModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class PreferencesUpdate(CamelModel):
    hide_comments_of_types: list[int] = Field(default_factory=list)


class UserUpdate(CamelModel):
    screen_name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=1500)
    preferences: PreferencesUpdate | None = None

    @field_validator("screen_name")
    @classmethod
    def strip_screen_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            msg = "Screen name cannot be empty"
            raise ValueError(msg)
        return v


class UpdateUserRequest(CamelModel):
    user: UserUpdate


# ==============================================================================
# Response Schemas
# ==============================================================================


class Preferences(CamelModel):
    hide_comments_of_types: list[int] = Field(default_factory=list)


class UserResponse(CamelModel):
    """Public profile of a user."""

    id: UUID
    username: str
    screen_name: str
    description: str = ""
    type: Literal["user"] = "user"
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_user(cls, user: "User") -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            screen_name=user.screen_name,
            description=user.description,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class CurrentUserResponse(UserResponse):
    """The authenticated user with private and derived fields."""

    preferences: Preferences
    ban_ids: list[UUID] = Field(default_factory=list)
    subscriptions: list[UUID] = Field(default_factory=list)
    pending_group_requests: bool = False

    @classmethod
    def from_whoami(cls, me: "WhoAmI") -> "CurrentUserResponse":
        user = me.user
        return cls(
            id=user.id,
            username=user.username,
            screen_name=user.screen_name,
            description=user.description,
            created_at=user.created_at,
            updated_at=user.updated_at,
            preferences=Preferences(
                hide_comments_of_types=sorted(user.hide_comment_types)
            ),
            ban_ids=sorted(me.banned_user_ids, key=str),
            subscriptions=[*sorted(me.subscription_ids, key=str), *me.group_ids],
            pending_group_requests=me.pending_group_requests,
        )


class AuthResponse(CamelModel):
    users: UserResponse
    auth_token: str


class WhoAmIResponse(CamelModel):
    users: CurrentUserResponse


class UserEnvelope(CamelModel):
    users: UserResponse
