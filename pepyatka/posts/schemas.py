"""Pydantic schemas for posts and timelines.

Responses are side-loaded envelopes: the post or timeline references
comments and users by id, and the referenced objects are listed alongside.
"""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from pydantic import Field, field_validator

from pepyatka.comments.schemas import ApiVersion, CommentResponse
from pepyatka.core.schemas import CamelModel
from pepyatka.users.schemas import UserResponse


if TYPE_CHECKING:
    from pepyatka.users.models import User

    from .service import PostView, TimelineView


# ==============================================================================
# Request Schemas
# ==============================================================================


class PostCreate(CamelModel):
    body: str = Field(..., min_length=1, max_length=10000)

    @field_validator("body")
    @classmethod
    def validate_body(cls, v: str) -> str:
        v = v.strip()
        if not v:
            msg = "Post text must not be empty"
            raise ValueError(msg)
        return v


class PostMeta(CamelModel):
    feeds: list[str] = Field(default_factory=list)

    @field_validator("feeds", mode="before")
    @classmethod
    def single_feed(cls, v: object) -> object:
        """Accept a single feed name as well as a list."""
        if isinstance(v, str):
            return [v]
        return v


class CreatePostRequest(CamelModel):
    post: PostCreate
    meta: PostMeta = Field(default_factory=PostMeta)


# ==============================================================================
# Response Schemas
# ==============================================================================


class PostResponse(CamelModel):
    id: UUID
    body: str
    created_by: UUID
    posted_to: list[UUID]
    comments: list[UUID]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_view(cls, view: "PostView") -> "PostResponse":
        post = view.post
        return cls(
            id=post.post_id,
            body=post.body,
            created_by=post.author_id,
            posted_to=post.feed_ids,
            comments=[comment.comment_id for comment, _ in view.comments],
            created_at=post.created_at,
            updated_at=post.updated_at,
        )


def _comments(views: list["PostView"], version: ApiVersion) -> list[CommentResponse]:
    return [
        CommentResponse.from_comment(comment, hide_type, version)
        for view in views
        for comment, hide_type in view.comments
    ]


def _users(users: list["User"]) -> list[UserResponse]:
    return [UserResponse.from_user(user) for user in users]


class PostEnvelope(CamelModel):
    posts: PostResponse
    comments: list[CommentResponse]
    users: list[UserResponse]

    @classmethod
    def build(
        cls, view: "PostView", users: list["User"], version: ApiVersion
    ) -> "PostEnvelope":
        return cls(
            posts=PostResponse.from_view(view),
            comments=_comments([view], version),
            users=_users(users),
        )


class TimelineInfo(CamelModel):
    id: UUID
    name: str
    posts: list[UUID] | None = None


class TimelineEnvelope(CamelModel):
    """A timeline page. `posts` is omitted when the page is empty."""

    timelines: TimelineInfo
    posts: list[PostResponse] | None = None
    comments: list[CommentResponse]
    users: list[UserResponse]

    @classmethod
    def build(
        cls, timeline: "TimelineView", users: list["User"], version: ApiVersion
    ) -> "TimelineEnvelope":
        posts = [PostResponse.from_view(view) for view in timeline.posts]
        return cls(
            timelines=TimelineInfo(
                id=timeline.owner_id,
                name=timeline.name,
                posts=[p.id for p in posts] or None,
            ),
            posts=posts or None,
            comments=_comments(timeline.posts, version),
            users=_users(users),
        )
