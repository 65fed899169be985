"""FastAPI dependencies for comments.

Provides dependency injection for:
- Comment service (from app state)
- Error handlers
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import CommentError, CommentService


async def get_comment_service(request: Request) -> CommentService:
    """CommentService installed on `app.state`, or 503 before startup wires it."""
    service = getattr(request.app.state, "comment_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Comment service unavailable",
        )
    return service


CommentServiceDep = Annotated[CommentService, Depends(get_comment_service)]


def handle_comment_error(error: CommentError) -> HTTPException:
    """Convert comment errors to HTTP exceptions."""
    status_map = {
        "comment_not_found": status.HTTP_404_NOT_FOUND,
        "permission_denied": status.HTTP_403_FORBIDDEN,
        "rate_limit_exceeded": status.HTTP_429_TOO_MANY_REQUESTS,
        "comment_conflict": status.HTTP_409_CONFLICT,
    }

    status_code = status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return HTTPException(
        status_code=status_code,
        detail=error.message,
    )
