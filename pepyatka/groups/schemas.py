"""Pydantic schemas for groups."""

from datetime import datetime
from typing import TYPE_CHECKING, Literal
from uuid import UUID

from pydantic import Field, field_validator

from pepyatka.core.schemas import CamelModel
from pepyatka.users.schemas import UserResponse, validate_username


if TYPE_CHECKING:
    from pepyatka.users.models import User

    from .models import Group


class GroupCreate(CamelModel):
    username: str
    screen_name: str | None = Field(None, max_length=100)
    description: str = Field("", max_length=1500)
    is_private: bool = False
    is_restricted: bool = False

    @field_validator("username")
    @classmethod
    def check_username(cls, v: str) -> str:
        return validate_username(v)


class CreateGroupRequest(CamelModel):
    group: GroupCreate


class GroupUpdate(CamelModel):
    screen_name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=1500)
    is_private: bool | None = None
    is_restricted: bool | None = None


class UpdateGroupRequest(CamelModel):
    group: GroupUpdate


class GroupResponse(CamelModel):
    id: UUID
    username: str
    screen_name: str
    description: str = ""
    is_private: bool
    is_restricted: bool
    type: Literal["group"] = "group"
    created_at: datetime
    updated_at: datetime
    administrators: list[UUID] | None = None
    members_count: int | None = None

    @classmethod
    def from_group(
        cls,
        group: "Group",
        admin_ids: list[UUID] | None = None,
        members_count: int | None = None,
    ) -> "GroupResponse":
        return cls(
            id=group.id,
            username=group.username,
            screen_name=group.screen_name,
            description=group.description,
            is_private=group.is_private,
            is_restricted=group.is_restricted,
            created_at=group.created_at,
            updated_at=group.updated_at,
            administrators=admin_ids,
            members_count=members_count,
        )


class GroupEnvelope(CamelModel):
    groups: GroupResponse
    users: list[UserResponse] | None = None


class PendingRequestsResponse(CamelModel):
    users: list[UserResponse]

    @classmethod
    def from_users(cls, users: list["User"]) -> "PendingRequestsResponse":
        return cls(users=[UserResponse.from_user(u) for u in users])
