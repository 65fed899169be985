"""FastAPI dependencies for posts and timelines."""

from collections.abc import Callable
from typing import Annotated

from fastapi import Depends, HTTPException, Query, status

from pepyatka.config import get_settings

from .service import PostError, PostService


_post_service_getter: Callable[[], PostService] | None = None


def set_post_service_getter(getter: Callable[[], PostService]) -> None:
    """Set the post service getter function."""
    global _post_service_getter  # noqa: PLW0603 - Required for DI pattern
    _post_service_getter = getter


def get_post_service() -> PostService:
    if _post_service_getter is None:
        raise RuntimeError("PostService not configured - call set_post_service_getter first")
    return _post_service_getter()


PostServiceDep = Annotated[PostService, Depends(get_post_service)]


def get_page(
    offset: Annotated[int, Query(ge=0)] = 0,
    limit: Annotated[int | None, Query(ge=1)] = None,
) -> tuple[int, int]:
    """Offset/limit for timeline pages, clamped to the configured maximum."""
    settings = get_settings()
    size = limit or settings.timeline_page_size
    return offset, min(size, settings.timeline_max_page_size)


Page = Annotated[tuple[int, int], Depends(get_page)]


def handle_post_error(error: PostError) -> HTTPException:
    """Convert PostError to HTTPException."""
    status_map = {
        "post_not_found": status.HTTP_404_NOT_FOUND,
        "feed_not_found": status.HTTP_404_NOT_FOUND,
        "permission_denied": status.HTTP_403_FORBIDDEN,
    }
    return HTTPException(
        status_code=status_map.get(error.code, status.HTTP_400_BAD_REQUEST),
        detail=error.message,
    )
