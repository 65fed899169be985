"""Post service layer.

Business logic for:
- Publishing posts to the author's feed and/or group feeds
- Reading a post with the comments visible to the viewer
- Deleting posts
- Timelines: a single Posts feed and the aggregated RiverOfNews home feed
"""

import heapq
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from pepyatka.comments.visibility import HideType, Viewer, resolve_comment_visibility
from pepyatka.core.pubsub import post_channel, timeline_channel
from pepyatka.groups.membership import can_post_to_group, can_view_group_posts
from pepyatka.users.models import AccountType
from pepyatka.users.service import UserNotFoundError

from .models import FeedEntry, Post, create_post


if TYPE_CHECKING:
    from pepyatka.comments.models import Comment
    from pepyatka.core.pubsub import RealtimePublisher
    from pepyatka.core.repository_protocols import CommentRepository, PostRepository
    from pepyatka.groups.service import GroupService
    from pepyatka.users.service import UserService


logger = structlog.get_logger(__name__)

HOME_TIMELINE_NAME = "RiverOfNews"
POSTS_TIMELINE_NAME = "Posts"


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class PostError(Exception):
    """Base post error."""

    def __init__(self, message: str, code: str = "post_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class PostNotFoundError(PostError):
    def __init__(self, message: str = "Post not found"):
        super().__init__(message, "post_not_found")


class FeedNotFoundError(PostError):
    def __init__(self, message: str = "Feed not found"):
        super().__init__(message, "feed_not_found")


class PostPermissionDeniedError(PostError):
    def __init__(self, message: str = "You can't do that"):
        super().__init__(message, "permission_denied")


# ==============================================================================
# Views
# ==============================================================================


@dataclass
class PostView:
    """A post with the comments its viewer may see, in creation order."""

    post: Post
    comments: list[tuple["Comment", HideType]] = field(default_factory=list)

    @property
    def user_ids(self) -> list[UUID]:
        ids = [self.post.author_id]
        ids.extend(comment.author_id for comment, _ in self.comments)
        return ids


@dataclass
class TimelineView:
    name: str
    owner_id: UUID
    posts: list[PostView] = field(default_factory=list)

    @property
    def user_ids(self) -> list[UUID]:
        ids = [self.owner_id]
        for view in self.posts:
            ids.extend(view.user_ids)
        return list(dict.fromkeys(ids))


# ==============================================================================
# Post Service
# ==============================================================================


class PostService:
    """Posts and the timelines that aggregate them."""

    def __init__(
        self,
        posts: "PostRepository",
        comments: "CommentRepository",
        users: "UserService",
        groups: "GroupService",
        publisher: "RealtimePublisher | None" = None,
    ):
        self.posts = posts
        self.comments = comments
        self.users = users
        self.groups = groups
        self.publisher = publisher

    # ==========================================================================
    # Create / Delete
    # ==========================================================================

    async def create_post(
        self, author_id: UUID, body: str, feeds: list[str] | None = None
    ) -> Post:
        """Publish a post.

        Args:
            author_id: Posting user.
            body: Trimmed, non-empty text.
            feeds: Usernames of destination feeds. Defaults to the author's own.
        """
        author = await self.users.get_user(author_id)
        feed_ids: list[UUID] = []
        for name in feeds or [author.username]:
            feed_ids.append(await self._resolve_destination(author.id, name))

        post = create_post(author.id, body, feed_ids)
        await self.posts.insert_post(post)

        logger.info(
            "post_created",
            post_id=str(post.post_id),
            feed_count=len(post.feed_ids),
        )
        if self.publisher is not None:
            await self.publisher.publish_many(
                [timeline_channel(feed_id) for feed_id in post.feed_ids],
                "post:new",
                {"postId": str(post.post_id), "authorId": str(post.author_id)},
            )
        return post

    async def _resolve_destination(self, author_id: UUID, name: str) -> UUID:
        try:
            owner = await self.users.resolve_account(name)
        except UserNotFoundError as e:
            raise FeedNotFoundError(f"Feed {name} not found") from e

        if owner.account_type is AccountType.USER:
            if owner.account_id != author_id:
                raise PostPermissionDeniedError("You can't post to another user's feed")
            return owner.account_id

        group = await self.groups.get_group_by_id(owner.account_id)
        if group is None:
            raise FeedNotFoundError(f"Feed {name} not found")
        state = await self.groups.get_membership_state(group.id, author_id)
        if not can_post_to_group(group, state):
            raise PostPermissionDeniedError(f"You can't post to {name}")
        return group.id

    async def delete_post(self, actor_id: UUID, post_id: UUID) -> None:
        post = await self.posts.get_post(post_id)
        if post is None:
            raise PostNotFoundError
        if post.author_id != actor_id:
            raise PostPermissionDeniedError("You can't delete another user's post")

        await self.comments.delete_post_comments(post.post_id)
        await self.posts.delete_post(post)
        logger.info("post_deleted", post_id=str(post.post_id))

        if self.publisher is not None:
            channels = [timeline_channel(feed_id) for feed_id in post.feed_ids]
            channels.append(post_channel(post.post_id))
            await self.publisher.publish_many(
                channels, "post:destroy", {"postId": str(post.post_id)}
            )

    # ==========================================================================
    # Reads
    # ==========================================================================

    async def can_view_post(self, post: Post, viewer_id: UUID | None) -> bool:
        """Visible unless every feed is a private group the viewer can't read."""
        for feed_id in post.feed_ids:
            group = await self.groups.get_group_by_id(feed_id)
            if group is None:
                return True
            state = await self.groups.get_membership_state(group.id, viewer_id)
            if can_view_group_posts(group, state):
                return True
        return not post.feed_ids

    async def find_post(self, post_id: UUID) -> Post | None:
        return await self.posts.get_post(post_id)

    async def get_visible_post(self, post_id: UUID, viewer_id: UUID | None) -> Post:
        """Load a post, failing if it is missing or hidden from the viewer."""
        post = await self.posts.get_post(post_id)
        if post is None:
            raise PostNotFoundError
        if not await self.can_view_post(post, viewer_id):
            raise PostPermissionDeniedError("This post is private")
        return post

    async def get_post_view(self, post_id: UUID, viewer_id: UUID | None) -> PostView:
        post = await self.get_visible_post(post_id, viewer_id)
        viewer = await self.users.get_viewer(viewer_id)
        return await self._build_view(post, viewer)

    async def _build_view(self, post: Post, viewer: Viewer | None) -> PostView:
        comments = await self.comments.list_comments(post.post_id)
        return PostView(post=post, comments=resolve_comment_visibility(comments, viewer))

    # ==========================================================================
    # Timelines
    # ==========================================================================

    async def home_timeline(
        self, viewer_id: UUID, offset: int = 0, limit: int = 30
    ) -> TimelineView:
        """RiverOfNews: own posts, followed users and member groups."""
        viewer = await self.users.get_viewer(viewer_id)
        feed_ids = [viewer_id]
        feed_ids.extend(await self.users.get_subscription_ids(viewer_id))
        feed_ids.extend(await self.groups.list_member_group_ids(viewer_id))

        banned = viewer.banned_user_ids if viewer is not None else frozenset()
        entries = await self._merge_feeds(
            list(dict.fromkeys(feed_ids)), offset + limit, skip_authors=banned
        )
        posts = await self.posts.get_posts(e.post_id for e in entries[offset:])
        views = [await self._build_view(post, viewer) for post in posts]
        return TimelineView(name=HOME_TIMELINE_NAME, owner_id=viewer_id, posts=views)

    async def user_timeline(
        self,
        username: str,
        viewer_id: UUID | None,
        offset: int = 0,
        limit: int = 30,
    ) -> TimelineView:
        """The Posts feed of a user or group."""
        try:
            owner = await self.users.resolve_account(username)
        except UserNotFoundError as e:
            raise FeedNotFoundError from e

        if owner.account_type is AccountType.GROUP:
            group = await self.groups.get_group_by_id(owner.account_id)
            if group is None:
                raise FeedNotFoundError
            if not await self.groups.can_view(group, viewer_id):
                raise PostPermissionDeniedError("This group is private")

        viewer = await self.users.get_viewer(viewer_id)
        entries = await self._merge_feeds([owner.account_id], offset + limit)
        posts = await self.posts.get_posts(e.post_id for e in entries[offset:])
        views = [await self._build_view(post, viewer) for post in posts]
        return TimelineView(
            name=POSTS_TIMELINE_NAME, owner_id=owner.account_id, posts=views
        )

    async def _merge_feeds(
        self,
        feed_ids: list[UUID],
        count: int,
        skip_authors: frozenset[UUID] = frozenset(),
    ) -> list[FeedEntry]:
        """Newest-first union of feeds, one entry per post."""
        feeds = [
            await self._read_feed(feed_id, count, skip_authors) for feed_id in feed_ids
        ]
        merged = heapq.merge(*feeds, key=lambda e: e.created_at, reverse=True)

        seen: set[UUID] = set()
        entries: list[FeedEntry] = []
        for entry in merged:
            if entry.post_id in seen:
                continue
            seen.add(entry.post_id)
            entries.append(entry)
            if len(entries) >= count:
                break
        return entries

    async def _read_feed(
        self, feed_id: UUID, count: int, skip_authors: frozenset[UUID]
    ) -> list[FeedEntry]:
        """The newest `count` entries of one feed not written by `skip_authors`.

        Skipped entries are made up for by reading further into the feed.
        """
        limit = count
        while True:
            rows = await self.posts.list_feed(feed_id, limit)
            kept = [e for e in rows if e.author_id not in skip_authors]
            if len(kept) >= count or len(rows) < limit:
                return kept[:count]
            limit += len(rows) - len(kept)
