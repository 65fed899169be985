"""Pydantic schemas for comments.

Comment responses carry `hideType` depending on the API version: v2 always
includes it, v1 only for comments that are not VISIBLE. Routes dump with
`exclude_none`, so a None hide type disappears from the payload.
"""

from datetime import datetime
from enum import IntEnum
from typing import TYPE_CHECKING
from uuid import UUID

from pydantic import Field, field_validator

from pepyatka.core.schemas import CamelModel

from .visibility import HideType


if TYPE_CHECKING:
    from .models import Comment


class ApiVersion(IntEnum):
    V1 = 1
    V2 = 2


# ==============================================================================
# Request Schemas
# ==============================================================================


class CommentCreate(CamelModel):
    body: str = Field(..., min_length=1, max_length=10000)
    post_id: UUID

    @field_validator("body")
    @classmethod
    def validate_body(cls, v: str) -> str:
        """Strip whitespace and reject empty bodies."""
        v = v.strip()
        if not v:
            msg = "Comment text must not be empty"
            raise ValueError(msg)
        return v


class CreateCommentRequest(CamelModel):
    comment: CommentCreate


# ==============================================================================
# Response Schemas
# ==============================================================================


class CommentResponse(CamelModel):
    id: UUID
    body: str
    created_by: UUID
    post_id: UUID
    created_at: datetime
    updated_at: datetime
    hide_type: int | None = None

    @classmethod
    def from_comment(
        cls,
        comment: "Comment",
        hide_type: HideType = HideType.VISIBLE,
        version: ApiVersion = ApiVersion.V2,
    ) -> "CommentResponse":
        if version is ApiVersion.V1 and hide_type is HideType.VISIBLE:
            shown: int | None = None
        else:
            shown = int(hide_type)
        return cls(
            id=comment.comment_id,
            body=comment.body,
            created_by=comment.author_id,
            post_id=comment.post_id,
            created_at=comment.created_at,
            updated_at=comment.updated_at,
            hide_type=shown,
        )


class CommentEnvelope(CamelModel):
    comments: CommentResponse
