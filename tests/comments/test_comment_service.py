"""Tests for CommentService rate limiting and realtime events."""

from unittest.mock import AsyncMock, Mock

import pytest

from pepyatka.comments.service import (
    CommentNotFoundError,
    CommentService,
    RateLimitExceededError,
)
from pepyatka.core.pubsub import RealtimePublisher, post_channel
from pepyatka.groups.service import GroupService
from pepyatka.posts.service import PostService
from pepyatka.users.models import AccountType, User, create_user
from pepyatka.users.service import UserService

from ..fakes import (
    InMemoryCommentRepository,
    InMemoryGroupRepository,
    InMemoryPostRepository,
    InMemoryUserRepository,
)


@pytest.fixture
def mock_redis():
    """Mock Redis client."""
    redis_mock = AsyncMock()
    mock_pipe = Mock()
    mock_pipe.incr = Mock()
    mock_pipe.expire = Mock()
    mock_pipe.execute = AsyncMock(return_value=[1, True, 1, True])
    redis_mock.pipeline = Mock(return_value=mock_pipe)
    redis_mock.get = AsyncMock(return_value=None)
    return redis_mock


@pytest.fixture
def publisher():
    publisher = Mock(spec=RealtimePublisher)
    publisher.publish = AsyncMock()
    publisher.publish_many = AsyncMock()
    return publisher


@pytest.fixture
def users() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture
def comments() -> InMemoryCommentRepository:
    return InMemoryCommentRepository()


@pytest.fixture
def post_service(users, comments) -> PostService:
    groups = GroupService(InMemoryGroupRepository(), users)
    return PostService(
        InMemoryPostRepository(), comments, UserService(users, groups), groups
    )


@pytest.fixture
def comment_service(comments, users, post_service, mock_redis, publisher):
    return CommentService(
        comments, users, post_service, redis=mock_redis, publisher=publisher
    )


async def make_user(users: InMemoryUserRepository, username: str) -> User:
    user = create_user(username, password_hash="x")
    await users.claim_username(user.username, user.id, AccountType.USER)
    await users.insert_user(user)
    return user


class TestRateLimit:
    """Per-user comment windows kept in Redis."""

    @pytest.mark.asyncio
    async def test_minute_limit(
        self, comment_service, users, post_service, mock_redis, comments
    ) -> None:
        """A full minute window blocks the comment before anything is written."""
        mars = await make_user(users, "mars")
        post = await post_service.create_post(mars.id, "hello")
        mock_redis.get = AsyncMock(return_value="10")

        with pytest.raises(RateLimitExceededError, match="per minute"):
            await comment_service.create_comment(mars.id, post.post_id, "hi")

        assert comments.comments == {}

    @pytest.mark.asyncio
    async def test_hour_limit(
        self, comment_service, users, post_service, mock_redis
    ) -> None:
        """The hourly window is checked after the minute window."""
        mars = await make_user(users, "mars")
        post = await post_service.create_post(mars.id, "hello")
        mock_redis.get = AsyncMock(side_effect=["3", "100"])

        with pytest.raises(RateLimitExceededError, match="Hourly"):
            await comment_service.create_comment(mars.id, post.post_id, "hi")

    @pytest.mark.asyncio
    async def test_counters_incremented(
        self, comment_service, users, post_service, mock_redis
    ) -> None:
        """A successful comment bumps both windows with their expiries."""
        mars = await make_user(users, "mars")
        post = await post_service.create_post(mars.id, "hello")

        await comment_service.create_comment(mars.id, post.post_id, "hi")

        pipe = mock_redis.pipeline.return_value
        assert pipe.incr.call_count == 2
        pipe.expire.assert_any_call(f"comments:rate:{mars.id}:minute", 60)
        pipe.expire.assert_any_call(f"comments:rate:{mars.id}:hour", 3600)
        pipe.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_without_redis(self, comments, users, post_service) -> None:
        """No Redis means no limit."""
        service = CommentService(comments, users, post_service)
        mars = await make_user(users, "mars")
        post = await post_service.create_post(mars.id, "hello")

        comment = await service.create_comment(mars.id, post.post_id, "hi")

        assert comment.body == "hi"


class TestEvents:
    """Realtime notifications on the post channel."""

    @pytest.mark.asyncio
    async def test_create_and_delete_publish(
        self, comment_service, users, post_service, publisher
    ) -> None:
        mars = await make_user(users, "mars")
        post = await post_service.create_post(mars.id, "hello")

        comment = await comment_service.create_comment(mars.id, post.post_id, "hi")
        await comment_service.delete_comment(mars.id, comment.comment_id)

        events = [call.args[:2] for call in publisher.publish.await_args_list]
        assert events == [
            (post_channel(post.post_id), "comment:new"),
            (post_channel(post.post_id), "comment:destroy"),
        ]

    @pytest.mark.asyncio
    async def test_delete_missing(self, comment_service, users) -> None:
        mars = await make_user(users, "mars")
        with pytest.raises(CommentNotFoundError):
            await comment_service.delete_comment(mars.id, mars.id)
