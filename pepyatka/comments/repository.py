# ruff: noqa: S608 - CQL keyspace comes from config, not user input
"""Cassandra persistence for comments."""

from typing import TYPE_CHECKING
from uuid import UUID

from .models import Comment


if TYPE_CHECKING:
    from cassandra.cluster import Session


class CassandraCommentRepository:
    """CommentRepository over `comments` and `comments_by_post`."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        ks = self.keyspace

        # The id row is written first and guards against id collisions
        self._insert_comment = self.session.prepare(f"""
            INSERT INTO {ks}.comments
            (comment_id, post_id, author_id, body, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._insert_comment_by_post = self.session.prepare(f"""
            INSERT INTO {ks}.comments_by_post
            (post_id, created_at, comment_id, author_id, body, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """)
        self._get_comment = self.session.prepare(f"""
            SELECT * FROM {ks}.comments WHERE comment_id = ?
        """)
        self._list_comments = self.session.prepare(f"""
            SELECT * FROM {ks}.comments_by_post WHERE post_id = ?
        """)
        self._delete_comment = self.session.prepare(f"""
            DELETE FROM {ks}.comments WHERE comment_id = ?
        """)
        self._delete_comment_by_post = self.session.prepare(f"""
            DELETE FROM {ks}.comments_by_post
            WHERE post_id = ? AND created_at = ? AND comment_id = ?
        """)
        self._delete_post_comments = self.session.prepare(f"""
            DELETE FROM {ks}.comments_by_post WHERE post_id = ?
        """)

    async def insert_comment(self, comment: Comment) -> bool:
        """Store a new comment. False if its id is already in use."""
        result = await self.session.aexecute(
            self._insert_comment,
            [
                comment.comment_id,
                comment.post_id,
                comment.author_id,
                comment.body,
                comment.created_at,
                comment.updated_at,
            ],
        )
        if not result.was_applied:
            return False
        await self.session.aexecute(
            self._insert_comment_by_post,
            [
                comment.post_id,
                comment.created_at,
                comment.comment_id,
                comment.author_id,
                comment.body,
                comment.updated_at,
            ],
        )
        return True

    async def get_comment(self, comment_id: UUID) -> Comment | None:
        result = await self.session.aexecute(self._get_comment, [comment_id])
        row = result.one()
        return Comment.from_row(row) if row else None

    async def list_comments(self, post_id: UUID) -> list[Comment]:
        """Comments of a post, oldest first."""
        result = await self.session.aexecute(self._list_comments, [post_id])
        return [Comment.from_row(row) for row in result]

    async def delete_comment(self, comment: Comment) -> None:
        await self.session.aexecute(
            self._delete_comment_by_post,
            [comment.post_id, comment.created_at, comment.comment_id],
        )
        await self.session.aexecute(self._delete_comment, [comment.comment_id])

    async def delete_post_comments(self, post_id: UUID) -> None:
        for comment in await self.list_comments(post_id):
            await self.session.aexecute(self._delete_comment, [comment.comment_id])
        await self.session.aexecute(self._delete_post_comments, [post_id])
