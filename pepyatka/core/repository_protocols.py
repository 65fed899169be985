"""Persistence contracts used by the services.

The Cassandra repositories in each package implement these structurally,
as do the in-memory doubles used in tests. Services depend on the Protocols
only, so they never see CQL.
"""

from collections.abc import Iterable
from typing import TYPE_CHECKING, Protocol
from uuid import UUID


if TYPE_CHECKING:
    from pepyatka.comments.models import Comment
    from pepyatka.groups.membership import MembershipState
    from pepyatka.groups.models import Group, Membership
    from pepyatka.posts.models import FeedEntry, Post
    from pepyatka.users.models import AccountType, User, UsernameOwner


class UserRepository(Protocol):
    """Accounts, the shared username registry, bans and follows."""

    async def claim_username(
        self, username: str, account_id: UUID, account_type: "AccountType"
    ) -> bool: ...
    async def resolve_username(self, username: str) -> "UsernameOwner | None": ...
    async def insert_user(self, user: "User") -> None: ...
    async def update_user(self, user: "User") -> None: ...
    async def get_user_by_id(self, user_id: UUID) -> "User | None": ...
    async def get_user_by_username(self, username: str) -> "User | None": ...
    async def get_users_by_ids(self, user_ids: Iterable[UUID]) -> list["User"]: ...
    async def is_banned(self, viewer_id: UUID, author_id: UUID) -> bool: ...
    async def get_banned_ids(self, user_id: UUID) -> set[UUID]: ...
    async def add_ban(self, user_id: UUID, banned_user_id: UUID) -> None: ...
    async def remove_ban(self, user_id: UUID, banned_user_id: UUID) -> None: ...
    async def add_subscription(self, user_id: UUID, target_id: UUID) -> None: ...
    async def remove_subscription(self, user_id: UUID, target_id: UUID) -> None: ...
    async def get_subscription_ids(self, user_id: UUID) -> set[UUID]: ...


class GroupRepository(Protocol):
    """Groups and their authoritative membership rows."""

    async def insert_group(self, group: "Group") -> None: ...
    async def update_group(self, group: "Group") -> None: ...
    async def get_group_by_id(self, group_id: UUID) -> "Group | None": ...
    async def get_membership_state(
        self, group_id: UUID, user_id: UUID
    ) -> "MembershipState": ...
    async def compare_and_set_membership(
        self,
        group_id: UUID,
        user_id: UUID,
        expected: "MembershipState",
        new: "MembershipState",
    ) -> bool: ...
    async def list_memberships(self, group_id: UUID) -> list["Membership"]: ...
    async def list_user_memberships(self, user_id: UUID) -> list["Membership"]: ...


class PostRepository(Protocol):
    async def insert_post(self, post: "Post") -> None: ...
    async def get_post(self, post_id: UUID) -> "Post | None": ...
    async def get_posts(self, post_ids: Iterable[UUID]) -> list["Post"]: ...
    async def delete_post(self, post: "Post") -> None: ...
    async def list_feed(self, feed_id: UUID, limit: int) -> list["FeedEntry"]: ...


class CommentRepository(Protocol):
    async def insert_comment(self, comment: "Comment") -> bool: ...
    async def get_comment(self, comment_id: UUID) -> "Comment | None": ...
    async def list_comments(self, post_id: UUID) -> list["Comment"]: ...
    async def delete_comment(self, comment: "Comment") -> None: ...
    async def delete_post_comments(self, post_id: UUID) -> None: ...
