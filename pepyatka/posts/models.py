"""Database models for posts and feeds.

Every user and every group owns one Posts feed whose id is the owner's id.
A post is written to one or more feeds; timelines read `posts_by_feed`
newest first.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from pepyatka.users.models import ensure_utc_aware


POST_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.posts (
    post_id UUID PRIMARY KEY,
    author_id UUID,
    body TEXT,
    feed_ids LIST<UUID>,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

POSTS_BY_FEED_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.posts_by_feed (
    feed_id UUID,
    created_at TIMESTAMP,
    post_id UUID,
    author_id UUID,
    PRIMARY KEY ((feed_id), created_at, post_id)
) WITH CLUSTERING ORDER BY (created_at DESC, post_id ASC)
"""

POSTS_TABLES_CQL = [
    POST_TABLE_CQL,
    POSTS_BY_FEED_TABLE_CQL,
]


@dataclass
class Post:
    """A post and the feeds it was published to."""

    post_id: UUID
    author_id: UUID
    body: str
    feed_ids: list[UUID] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: Any) -> "Post":
        created_at = ensure_utc_aware(row.created_at)
        return cls(
            post_id=row.post_id,
            author_id=row.author_id,
            body=row.body,
            feed_ids=list(row.feed_ids or []),
            created_at=created_at,
            updated_at=ensure_utc_aware(row.updated_at) or created_at,
        )


@dataclass(frozen=True)
class FeedEntry:
    """One row of a feed: enough to merge feeds before loading posts."""

    feed_id: UUID
    post_id: UUID
    author_id: UUID
    created_at: datetime

    @classmethod
    def from_row(cls, row: Any) -> "FeedEntry":
        return cls(
            feed_id=row.feed_id,
            post_id=row.post_id,
            author_id=row.author_id,
            created_at=ensure_utc_aware(row.created_at),
        )


def create_post(author_id: UUID, body: str, feed_ids: list[UUID]) -> Post:
    """Create a new post with a fresh id and timestamps."""
    now = datetime.now(UTC)
    return Post(
        post_id=uuid4(),
        author_id=author_id,
        body=body,
        feed_ids=list(dict.fromkeys(feed_ids)),
        created_at=now,
        updated_at=now,
    )
