"""Database models for post comments.

Cassandra table definitions for:
- Comments by id: O(1) lookup, inserted with IF NOT EXISTS
- Comments by post: creation-ordered listing per post

A post's ordered comment list is the clustering order of `comments_by_post`.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from pepyatka.users.models import ensure_utc_aware


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COMMENTS_BY_ID_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comments (
    comment_id UUID PRIMARY KEY,
    post_id UUID,
    author_id UUID,
    body TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

# Partition by post, oldest first
COMMENTS_BY_POST_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comments_by_post (
    post_id UUID,
    created_at TIMESTAMP,
    comment_id UUID,
    author_id UUID,
    body TEXT,
    updated_at TIMESTAMP,
    PRIMARY KEY ((post_id), created_at, comment_id)
) WITH CLUSTERING ORDER BY (created_at ASC, comment_id ASC)
"""

COMMENTS_TABLES_CQL = [
    COMMENTS_BY_ID_TABLE_CQL,
    COMMENTS_BY_POST_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class Comment:
    """Comment on a post."""

    comment_id: UUID
    post_id: UUID
    author_id: UUID
    body: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: Any) -> "Comment":
        """Create Comment from either comments table row."""
        created_at = ensure_utc_aware(row.created_at)
        return cls(
            comment_id=row.comment_id,
            post_id=row.post_id,
            author_id=row.author_id,
            body=row.body,
            created_at=created_at,
            updated_at=ensure_utc_aware(row.updated_at) or created_at,
        )


def create_comment(post_id: UUID, author_id: UUID, body: str) -> Comment:
    """Create a new comment with a fresh id and timestamps."""
    now = datetime.now(UTC)
    return Comment(
        comment_id=uuid4(),
        post_id=post_id,
        author_id=author_id,
        body=body,
        created_at=now,
        updated_at=now,
    )
