"""Post and timeline API endpoints.

Provides routes for:
- Creating and deleting posts
- Reading a single post with its visible comments (v1 and v2)
- The RiverOfNews home timeline and per-account Posts timelines (v1 and v2)

v1 and v2 differ only in how comment `hideType` is rendered.
"""

from uuid import UUID

from fastapi import APIRouter

from pepyatka.comments.schemas import ApiVersion
from pepyatka.core.schemas import MessageResponse
from pepyatka.users.dependencies import (
    CurrentUser,
    OptionalUser,
    UserServiceDep,
    handle_user_error,
)
from pepyatka.users.service import UserError, UserService

from .dependencies import Page, PostServiceDep, handle_post_error
from .schemas import CreatePostRequest, PostEnvelope, TimelineEnvelope
from .service import PostError, PostService, PostView


router = APIRouter(tags=["posts"])


# ==============================================================================
# Posts
# ==============================================================================


@router.post(
    "/v1/posts",
    response_model=PostEnvelope,
    response_model_exclude_none=True,
    summary="Create post",
    responses={
        403: {"description": "Not allowed to post to a feed"},
        404: {"description": "Feed not found"},
    },
)
async def create_post(
    data: CreatePostRequest,
    user: CurrentUser,
    post_service: PostServiceDep,
    user_service: UserServiceDep,
) -> PostEnvelope:
    try:
        post = await post_service.create_post(user.id, data.post.body, data.meta.feeds)
        view = PostView(post=post)
        users = await user_service.get_users(view.user_ids)
    except PostError as e:
        raise handle_post_error(e) from e
    except UserError as e:
        raise handle_user_error(e) from e
    return PostEnvelope.build(view, users, ApiVersion.V2)


async def _read_post(
    version: ApiVersion,
    post_id: UUID,
    viewer_id: UUID | None,
    post_service: PostService,
    user_service: UserService,
) -> PostEnvelope:
    try:
        view = await post_service.get_post_view(post_id, viewer_id)
    except PostError as e:
        raise handle_post_error(e) from e
    users = await user_service.get_users(view.user_ids)
    return PostEnvelope.build(view, users, version)


@router.get(
    "/v1/posts/{post_id}",
    response_model=PostEnvelope,
    response_model_exclude_none=True,
    summary="Read post (v1)",
)
async def get_post_v1(
    post_id: UUID,
    user: OptionalUser,
    post_service: PostServiceDep,
    user_service: UserServiceDep,
) -> PostEnvelope:
    viewer_id = user.id if user else None
    return await _read_post(
        ApiVersion.V1, post_id, viewer_id, post_service, user_service
    )


@router.get(
    "/v2/posts/{post_id}",
    response_model=PostEnvelope,
    response_model_exclude_none=True,
    summary="Read post (v2)",
)
async def get_post_v2(
    post_id: UUID,
    user: OptionalUser,
    post_service: PostServiceDep,
    user_service: UserServiceDep,
) -> PostEnvelope:
    viewer_id = user.id if user else None
    return await _read_post(
        ApiVersion.V2, post_id, viewer_id, post_service, user_service
    )


@router.delete("/v1/posts/{post_id}", response_model=MessageResponse)
async def delete_post(
    post_id: UUID, user: CurrentUser, post_service: PostServiceDep
) -> MessageResponse:
    """Delete a post and its comments. Only the author may do this."""
    try:
        await post_service.delete_post(user.id, post_id)
    except PostError as e:
        raise handle_post_error(e) from e
    return MessageResponse(message="Post deleted")


# ==============================================================================
# Timelines
# ==============================================================================


async def _home(
    version: ApiVersion,
    viewer_id: UUID,
    page: tuple[int, int],
    post_service: PostService,
    user_service: UserService,
) -> TimelineEnvelope:
    offset, limit = page
    timeline = await post_service.home_timeline(viewer_id, offset=offset, limit=limit)
    users = await user_service.get_users(timeline.user_ids)
    return TimelineEnvelope.build(timeline, users, version)


async def _account(
    version: ApiVersion,
    username: str,
    viewer_id: UUID | None,
    page: tuple[int, int],
    post_service: PostService,
    user_service: UserService,
) -> TimelineEnvelope:
    offset, limit = page
    try:
        timeline = await post_service.user_timeline(
            username, viewer_id, offset=offset, limit=limit
        )
    except PostError as e:
        raise handle_post_error(e) from e
    users = await user_service.get_users(timeline.user_ids)
    return TimelineEnvelope.build(timeline, users, version)


@router.get(
    "/v1/timelines/home",
    response_model=TimelineEnvelope,
    response_model_exclude_none=True,
    summary="Home timeline (v1)",
)
async def home_v1(
    user: CurrentUser,
    page: Page,
    post_service: PostServiceDep,
    user_service: UserServiceDep,
) -> TimelineEnvelope:
    return await _home(ApiVersion.V1, user.id, page, post_service, user_service)


@router.get(
    "/v2/timelines/home",
    response_model=TimelineEnvelope,
    response_model_exclude_none=True,
    summary="Home timeline (v2)",
)
async def home_v2(
    user: CurrentUser,
    page: Page,
    post_service: PostServiceDep,
    user_service: UserServiceDep,
) -> TimelineEnvelope:
    return await _home(ApiVersion.V2, user.id, page, post_service, user_service)


@router.get(
    "/v1/timelines/{username}",
    response_model=TimelineEnvelope,
    response_model_exclude_none=True,
    summary="Posts timeline of a user or group (v1)",
)
async def account_timeline_v1(
    username: str,
    user: OptionalUser,
    page: Page,
    post_service: PostServiceDep,
    user_service: UserServiceDep,
) -> TimelineEnvelope:
    viewer_id = user.id if user else None
    return await _account(
        ApiVersion.V1, username, viewer_id, page, post_service, user_service
    )


@router.get(
    "/v2/timelines/{username}",
    response_model=TimelineEnvelope,
    response_model_exclude_none=True,
    summary="Posts timeline of a user or group (v2)",
)
async def account_timeline_v2(
    username: str,
    user: OptionalUser,
    page: Page,
    post_service: PostServiceDep,
    user_service: UserServiceDep,
) -> TimelineEnvelope:
    viewer_id = user.id if user else None
    return await _account(
        ApiVersion.V2, username, viewer_id, page, post_service, user_service
    )
