"""User service layer.

Business logic for:
- Registration and login
- Profile and preference updates
- Bans and follows
- The whoami view with read-time derived fields
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from pepyatka.comments.visibility import HideType, Viewer
from pepyatka.config import get_settings

from .models import AccountType, User, UsernameOwner, create_user
from .security import create_access_token, hash_password, verify_password


if TYPE_CHECKING:
    from pepyatka.core.repository_protocols import UserRepository
    from pepyatka.groups.service import GroupService


logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class UserError(Exception):
    """Base user error."""

    def __init__(self, message: str, code: str = "user_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class UserNotFoundError(UserError):
    def __init__(self, message: str = "User not found"):
        super().__init__(message, "user_not_found")


class UsernameTakenError(UserError):
    def __init__(self, message: str = "Username is already taken"):
        super().__init__(message, "username_taken")


class InvalidCredentialsError(UserError):
    def __init__(self, message: str = "Invalid username or password"):
        super().__init__(message, "invalid_credentials")


class InvalidUserOperationError(UserError):
    def __init__(self, message: str):
        super().__init__(message, "invalid_operation")


@dataclass
class WhoAmI:
    """The current user plus everything derived for them at read time."""

    user: User
    banned_user_ids: set[UUID]
    subscription_ids: set[UUID]
    group_ids: list[UUID]
    pending_group_requests: bool


# ==============================================================================
# User Service
# ==============================================================================


class UserService:
    """Accounts, bans and follows."""

    def __init__(self, users: "UserRepository", groups: "GroupService"):
        self.users = users
        self.groups = groups

    # ==========================================================================
    # Registration / Login
    # ==========================================================================

    async def register(
        self,
        username: str,
        password: str,
        screen_name: str | None = None,
    ) -> tuple[User, str]:
        """Create an account and return it with a fresh access token."""
        if len(password) < get_settings().auth_min_password_length:
            raise InvalidUserOperationError("Password is too short")
        user = create_user(
            username=username,
            password_hash=hash_password(password),
            screen_name=screen_name,
        )
        if not await self.users.claim_username(user.username, user.id, AccountType.USER):
            raise UsernameTakenError

        await self.users.insert_user(user)
        logger.info("user_registered", user_id=str(user.id), username=user.username)
        return user, create_access_token(user.id, user.username)

    async def authenticate(self, username: str, password: str) -> tuple[User, str]:
        user = await self.users.get_user_by_username(username)
        if user is None:
            raise InvalidCredentialsError

        is_valid, new_hash = verify_password(password, user.password_hash)
        if not is_valid:
            logger.info("login_failed", username=user.username)
            raise InvalidCredentialsError

        if new_hash:
            user.password_hash = new_hash
            await self.users.insert_user(user)

        logger.info("user_logged_in", user_id=str(user.id))
        return user, create_access_token(user.id, user.username)

    # ==========================================================================
    # Lookups
    # ==========================================================================

    async def get_user(self, user_id: UUID) -> User:
        user = await self.users.get_user_by_id(user_id)
        if user is None:
            raise UserNotFoundError
        return user

    async def get_user_by_username(self, username: str) -> User:
        user = await self.users.get_user_by_username(username)
        if user is None:
            raise UserNotFoundError
        return user

    async def get_users(self, user_ids: Iterable[UUID]) -> list[User]:
        return await self.users.get_users_by_ids(user_ids)

    async def resolve_account(self, username: str) -> UsernameOwner:
        """Find the user or group that owns `username`."""
        owner = await self.users.resolve_username(username)
        if owner is None:
            raise UserNotFoundError
        return owner

    async def get_viewer(self, user_id: UUID | None) -> Viewer | None:
        """Build the visibility context for a reader. None for anonymous."""
        if user_id is None:
            return None
        user = await self.users.get_user_by_id(user_id)
        if user is None:
            return None
        banned = await self.users.get_banned_ids(user_id)
        return Viewer.build(user.id, banned, user.hide_comment_types)

    async def whoami(self, user_id: UUID) -> WhoAmI:
        user = await self.get_user(user_id)
        return WhoAmI(
            user=user,
            banned_user_ids=await self.users.get_banned_ids(user_id),
            subscription_ids=await self.users.get_subscription_ids(user_id),
            group_ids=await self.groups.list_member_group_ids(user_id),
            pending_group_requests=await self.groups.has_pending_group_requests(
                user_id
            ),
        )

    # ==========================================================================
    # Profile
    # ==========================================================================

    async def update_profile(
        self,
        user_id: UUID,
        screen_name: str | None = None,
        description: str | None = None,
        hide_comment_types: Iterable[int] | None = None,
    ) -> User:
        user = await self.get_user(user_id)
        if screen_name is not None:
            user.screen_name = screen_name
        if description is not None:
            user.description = description
        if hide_comment_types is not None:
            codes = set(hide_comment_types)
            known = {int(t) for t in HideType if t is not HideType.VISIBLE}
            unknown = codes - known
            if unknown:
                raise InvalidUserOperationError(
                    f"Unknown comment hide types: {sorted(unknown)}"
                )
            user.hide_comment_types = codes
        user.updated_at = datetime.now(UTC)

        await self.users.update_user(user)
        logger.info("user_profile_updated", user_id=str(user.id))
        return user

    # ==========================================================================
    # Bans / Follows
    # ==========================================================================

    async def ban(self, user_id: UUID, username: str) -> None:
        target = await self.get_user_by_username(username)
        if target.id == user_id:
            raise InvalidUserOperationError("You cannot ban yourself")
        await self.users.add_ban(user_id, target.id)
        logger.info("user_banned", banned_user_id=str(target.id))

    async def unban(self, user_id: UUID, username: str) -> None:
        target = await self.get_user_by_username(username)
        await self.users.remove_ban(user_id, target.id)
        logger.info("user_unbanned", banned_user_id=str(target.id))

    async def follow(self, user_id: UUID, target_id: UUID) -> None:
        if target_id == user_id:
            raise InvalidUserOperationError("You cannot subscribe to yourself")
        if target_id in await self.users.get_subscription_ids(user_id):
            raise InvalidUserOperationError("You are already subscribed")
        await self.users.add_subscription(user_id, target_id)
        logger.info("user_subscribed", target_id=str(target_id))

    async def unfollow(self, user_id: UUID, target_id: UUID) -> None:
        if target_id not in await self.users.get_subscription_ids(user_id):
            raise InvalidUserOperationError("You are not subscribed")
        await self.users.remove_subscription(user_id, target_id)
        logger.info("user_unsubscribed", target_id=str(target_id))

    async def get_subscription_ids(self, user_id: UUID) -> set[UUID]:
        return await self.users.get_subscription_ids(user_id)
