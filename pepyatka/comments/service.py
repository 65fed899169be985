"""Comment service layer.

Business logic for:
- Creating comments, with per-user rate limiting
- Deleting comments (by their author or by the post's author)

Comments cannot be edited after creation.
"""

from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from pepyatka.core.pubsub import post_channel

from .models import Comment, create_comment


if TYPE_CHECKING:
    from redis.asyncio import Redis

    from pepyatka.core.pubsub import RealtimePublisher
    from pepyatka.core.repository_protocols import CommentRepository, UserRepository
    from pepyatka.posts.service import PostService


logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class CommentError(Exception):
    """Base comment error."""

    def __init__(self, message: str, code: str = "comment_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class CommentNotFoundError(CommentError):
    def __init__(self, message: str = "Comment not found"):
        super().__init__(message, "comment_not_found")


class PermissionDeniedError(CommentError):
    def __init__(self, message: str = "You can't do that"):
        super().__init__(message, "permission_denied")


class RateLimitExceededError(CommentError):
    def __init__(self, message: str = "Too many comments, slow down"):
        super().__init__(message, "rate_limit_exceeded")


class CommentConflictError(CommentError):
    def __init__(self, message: str = "Comment id already exists"):
        super().__init__(message, "comment_conflict")


# ==============================================================================
# Comment Service
# ==============================================================================


class CommentService:
    """Service for post comments."""

    COMMENTS_PER_MINUTE = 10
    COMMENTS_PER_HOUR = 100

    def __init__(
        self,
        comments: "CommentRepository",
        users: "UserRepository",
        posts: "PostService",
        redis: "Redis | None" = None,
        publisher: "RealtimePublisher | None" = None,
    ):
        self.comments = comments
        self.users = users
        self.posts = posts
        self.redis = redis
        self.publisher = publisher

    # ==========================================================================
    # Rate limiting
    # ==========================================================================

    async def check_rate_limit(self, user_id: UUID) -> None:
        """Raise RateLimitExceededError when a window is exhausted."""
        if self.redis is None:
            return

        minute_count = await self.redis.get(f"comments:rate:{user_id}:minute")
        if minute_count and int(minute_count) >= self.COMMENTS_PER_MINUTE:
            raise RateLimitExceededError("Too many comments per minute")

        hour_count = await self.redis.get(f"comments:rate:{user_id}:hour")
        if hour_count and int(hour_count) >= self.COMMENTS_PER_HOUR:
            raise RateLimitExceededError("Hourly comment limit reached")

    async def increment_rate_limit(self, user_id: UUID) -> None:
        if self.redis is None:
            return

        key_minute = f"comments:rate:{user_id}:minute"
        key_hour = f"comments:rate:{user_id}:hour"
        pipe = self.redis.pipeline()
        pipe.incr(key_minute)
        pipe.expire(key_minute, 60)
        pipe.incr(key_hour)
        pipe.expire(key_hour, 3600)
        await pipe.execute()

    # ==========================================================================
    # Create / Delete
    # ==========================================================================

    async def create_comment(self, author_id: UUID, post_id: UUID, body: str) -> Comment:
        """Add a comment to a post the author can see.

        Raises:
            PostNotFoundError / PostPermissionDeniedError: post missing or hidden.
            PermissionDeniedError: the post's author has banned the commenter.
            RateLimitExceededError: too many recent comments.
        """
        await self.check_rate_limit(author_id)

        post = await self.posts.get_visible_post(post_id, author_id)
        if await self.users.is_banned(post.author_id, author_id):
            raise PermissionDeniedError("The author of this post has banned you")

        comment = create_comment(post.post_id, author_id, body)
        if not await self.comments.insert_comment(comment):
            raise CommentConflictError

        await self.increment_rate_limit(author_id)
        logger.info(
            "comment_created",
            comment_id=str(comment.comment_id),
            post_id=str(post.post_id),
        )
        if self.publisher is not None:
            await self.publisher.publish(
                post_channel(post.post_id),
                "comment:new",
                {
                    "commentId": str(comment.comment_id),
                    "postId": str(post.post_id),
                    "authorId": str(author_id),
                },
            )
        return comment

    async def delete_comment(self, actor_id: UUID, comment_id: UUID) -> None:
        """Delete a comment. Allowed for its author and for the post's author."""
        comment = await self.comments.get_comment(comment_id)
        if comment is None:
            raise CommentNotFoundError

        if comment.author_id != actor_id:
            post = await self.posts.find_post(comment.post_id)
            if post is None or post.author_id != actor_id:
                raise PermissionDeniedError("You can't delete this comment")

        await self.comments.delete_comment(comment)
        logger.info(
            "comment_deleted",
            comment_id=str(comment.comment_id),
            post_id=str(comment.post_id),
        )
        if self.publisher is not None:
            await self.publisher.publish(
                post_channel(comment.post_id),
                "comment:destroy",
                {"commentId": str(comment.comment_id), "postId": str(comment.post_id)},
            )

