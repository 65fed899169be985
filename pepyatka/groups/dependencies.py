"""FastAPI dependencies for groups."""

from collections.abc import Callable
from typing import Annotated

from fastapi import Depends, HTTPException, status

from .membership import MembershipError
from .service import GroupError, GroupService


_group_service_getter: Callable[[], GroupService] | None = None


def set_group_service_getter(getter: Callable[[], GroupService]) -> None:
    """Set the group service getter function."""
    global _group_service_getter  # noqa: PLW0603 - Required for DI pattern
    _group_service_getter = getter


def get_group_service() -> GroupService:
    if _group_service_getter is None:
        raise RuntimeError("GroupService not configured - call set_group_service_getter first")
    return _group_service_getter()


GroupServiceDep = Annotated[GroupService, Depends(get_group_service)]


def handle_group_error(error: GroupError | MembershipError) -> HTTPException:
    """Convert group and membership errors to HTTP exceptions.

    Membership errors carry their own kind; group errors are mapped by code.
    """
    if isinstance(error, MembershipError):
        return HTTPException(status_code=error.kind.http_status, detail=error.message)

    status_map = {
        "group_not_found": status.HTTP_404_NOT_FOUND,
        "username_taken": status.HTTP_403_FORBIDDEN,
        "permission_denied": status.HTTP_403_FORBIDDEN,
    }
    return HTTPException(
        status_code=status_map.get(error.code, status.HTTP_400_BAD_REQUEST),
        detail=error.message,
    )
