"""Comment API endpoints.

Provides routes for:
- Creating a comment on a visible post (rate limited)
- Deleting a comment as its author or as the post's author
"""

from uuid import UUID

import structlog
from fastapi import APIRouter

from pepyatka.core.schemas import MessageResponse
from pepyatka.posts.dependencies import handle_post_error
from pepyatka.posts.service import PostError
from pepyatka.users.dependencies import CurrentUser

from .dependencies import CommentServiceDep, handle_comment_error
from .schemas import CommentEnvelope, CommentResponse, CreateCommentRequest
from .service import CommentError


logger = structlog.get_logger(__name__)


router = APIRouter(prefix="/v1/comments", tags=["comments"])


@router.post(
    "",
    response_model=CommentEnvelope,
    summary="Create comment",
    responses={
        403: {"description": "Post is private or its author banned you"},
        404: {"description": "Post not found"},
        429: {"description": "Rate limit exceeded"},
    },
)
async def create_comment(
    data: CreateCommentRequest,
    comment_service: CommentServiceDep,
    user: CurrentUser,
) -> CommentEnvelope:
    """Create a new comment on a post.

    Rate limited to 10/min, 100/hour per user.
    """
    try:
        comment = await comment_service.create_comment(
            author_id=user.id,
            post_id=data.comment.post_id,
            body=data.comment.body,
        )
    except CommentError as e:
        raise handle_comment_error(e) from e
    except PostError as e:
        raise handle_post_error(e) from e
    return CommentEnvelope(comments=CommentResponse.from_comment(comment))


@router.delete(
    "/{comment_id}",
    response_model=MessageResponse,
    summary="Delete comment",
)
async def delete_comment(
    comment_id: UUID,
    comment_service: CommentServiceDep,
    user: CurrentUser,
) -> MessageResponse:
    try:
        await comment_service.delete_comment(user.id, comment_id)
    except CommentError as e:
        logger.info(
            "comment_delete_rejected",
            comment_id=str(comment_id),
            reason=e.code,
        )
        raise handle_comment_error(e) from e
    return MessageResponse(message="Comment deleted")
