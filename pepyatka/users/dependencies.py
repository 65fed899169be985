"""FastAPI dependencies for users.

Provides dependency injection for:
- Current user extraction from the Bearer JWT
- The configured UserService
- UserError -> HTTPException mapping
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError

from pepyatka.core.context import set_user_id

from .security import decode_access_token
from .service import UserError, UserService


# ==============================================================================
# Service getter
# ==============================================================================


_user_service_getter: Callable[[], UserService] | None = None


def set_user_service_getter(getter: Callable[[], UserService]) -> None:
    """Set the user service getter function."""
    global _user_service_getter  # noqa: PLW0603 - Required for DI pattern
    _user_service_getter = getter


def get_user_service() -> UserService:
    if _user_service_getter is None:
        raise RuntimeError("UserService not configured - call set_user_service_getter first")
    return _user_service_getter()


UserServiceDep = Annotated[UserService, Depends(get_user_service)]


# ==============================================================================
# Authentication
# ==============================================================================


@dataclass(frozen=True)
class AuthenticatedUser:
    """Identity carried by a valid access token."""

    id: UUID
    username: str


def get_token_from_header(request: Request) -> str | None:
    """Extract Bearer token from Authorization header.

    Returns:
        Token string or None if not present
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    expected_parts = 2
    parts = auth_header.split()
    if len(parts) != expected_parts or parts[0].lower() != "bearer":
        return None

    return parts[1]


def _authenticate(token: str) -> AuthenticatedUser:
    try:
        payload = decode_access_token(token)
        user_id = UUID(payload["sub"])
    except (JWTError, ValueError) as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    # Set user_id in context for logging
    set_user_id(str(user_id))
    return AuthenticatedUser(id=user_id, username=payload.get("username", ""))


async def get_current_user(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> AuthenticatedUser:
    """Require a valid access token.

    Raises:
        HTTPException(401): If token is missing, invalid, or expired
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _authenticate(token)


async def get_current_user_optional(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> AuthenticatedUser | None:
    """Anonymous readers get None. A token that is present must be valid."""
    if not token:
        return None
    return _authenticate(token)


CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]
OptionalUser = Annotated[AuthenticatedUser | None, Depends(get_current_user_optional)]


# ==============================================================================
# Error Handling
# ==============================================================================


def handle_user_error(error: UserError) -> HTTPException:
    """Convert UserError to HTTPException."""
    status_map = {
        "user_not_found": status.HTTP_404_NOT_FOUND,
        "username_taken": status.HTTP_403_FORBIDDEN,
        "invalid_credentials": status.HTTP_401_UNAUTHORIZED,
        "invalid_operation": status.HTTP_422_UNPROCESSABLE_ENTITY,
    }
    return HTTPException(
        status_code=status_map.get(error.code, status.HTTP_400_BAD_REQUEST),
        detail=error.message,
    )
