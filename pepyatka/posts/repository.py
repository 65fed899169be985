# ruff: noqa: S608 - CQL keyspace comes from config, not user input
"""Cassandra persistence for posts and their feed entries."""

from collections.abc import Iterable
from typing import TYPE_CHECKING
from uuid import UUID

from .models import FeedEntry, Post


if TYPE_CHECKING:
    from cassandra.cluster import Session


class CassandraPostRepository:
    """PostRepository over `posts` and `posts_by_feed`."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        ks = self.keyspace

        self._insert_post = self.session.prepare(f"""
            INSERT INTO {ks}.posts
            (post_id, author_id, body, feed_ids, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """)
        self._insert_feed_entry = self.session.prepare(f"""
            INSERT INTO {ks}.posts_by_feed (feed_id, created_at, post_id, author_id)
            VALUES (?, ?, ?, ?)
        """)
        self._get_post = self.session.prepare(f"""
            SELECT * FROM {ks}.posts WHERE post_id = ?
        """)
        self._get_posts = self.session.prepare(f"""
            SELECT * FROM {ks}.posts WHERE post_id IN ?
        """)
        self._delete_post = self.session.prepare(f"""
            DELETE FROM {ks}.posts WHERE post_id = ?
        """)
        self._delete_feed_entry = self.session.prepare(f"""
            DELETE FROM {ks}.posts_by_feed
            WHERE feed_id = ? AND created_at = ? AND post_id = ?
        """)
        self._list_feed = self.session.prepare(f"""
            SELECT * FROM {ks}.posts_by_feed WHERE feed_id = ? LIMIT ?
        """)

    async def insert_post(self, post: Post) -> None:
        """Write the post, then one feed entry per destination feed."""
        await self.session.aexecute(
            self._insert_post,
            [
                post.post_id,
                post.author_id,
                post.body,
                post.feed_ids,
                post.created_at,
                post.updated_at,
            ],
        )
        for feed_id in post.feed_ids:
            await self.session.aexecute(
                self._insert_feed_entry,
                [feed_id, post.created_at, post.post_id, post.author_id],
            )

    async def get_post(self, post_id: UUID) -> Post | None:
        result = await self.session.aexecute(self._get_post, [post_id])
        row = result.one()
        return Post.from_row(row) if row else None

    async def get_posts(self, post_ids: Iterable[UUID]) -> list[Post]:
        ids = list(dict.fromkeys(post_ids))
        if not ids:
            return []
        result = await self.session.aexecute(self._get_posts, [ids])
        by_id = {row.post_id: Post.from_row(row) for row in result}
        return [by_id[post_id] for post_id in ids if post_id in by_id]

    async def delete_post(self, post: Post) -> None:
        for feed_id in post.feed_ids:
            await self.session.aexecute(
                self._delete_feed_entry, [feed_id, post.created_at, post.post_id]
            )
        await self.session.aexecute(self._delete_post, [post.post_id])

    async def list_feed(self, feed_id: UUID, limit: int) -> list[FeedEntry]:
        """Newest `limit` entries of a feed."""
        result = await self.session.aexecute(self._list_feed, [feed_id, limit])
        return [FeedEntry.from_row(row) for row in result]
