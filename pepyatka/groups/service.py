"""Group service layer.

Business logic for:
- Group creation and settings
- Membership transitions (requests, admin actions, subscribe/leave)
- Read-time derived data: pending requests, feed membership

Transitions are evaluated by `apply_group_transition` and persisted with a
compare-and-set on the (group, user) row. A lost race re-reads the state and
re-evaluates the guards, so the loser fails with the error it would have got
had it arrived second.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from pepyatka.core.pubsub import user_channel
from pepyatka.users.models import AccountType

from .membership import (
    GroupAction,
    MembershipError,
    MembershipErrorKind,
    MembershipState,
    MembershipSubject,
    apply_group_transition,
    can_view_group_posts,
)
from .models import Group, create_group


if TYPE_CHECKING:
    from pepyatka.core.pubsub import RealtimePublisher
    from pepyatka.core.repository_protocols import GroupRepository, UserRepository
    from pepyatka.users.models import User


logger = structlog.get_logger(__name__)

MAX_TRANSITION_ATTEMPTS = 3


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class GroupError(Exception):
    """Base group error."""

    def __init__(self, message: str, code: str = "group_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class GroupNotFoundError(GroupError):
    def __init__(self, message: str = "Group not found"):
        super().__init__(message, "group_not_found")


class GroupUsernameTakenError(GroupError):
    def __init__(self, message: str = "Username is already taken"):
        super().__init__(message, "username_taken")


class GroupPermissionDeniedError(GroupError):
    def __init__(self, message: str = "You aren't an administrator"):
        super().__init__(message, "permission_denied")


# ==============================================================================
# Group Service
# ==============================================================================


class GroupService:
    """Groups and the membership state machine around them."""

    def __init__(
        self,
        groups: "GroupRepository",
        users: "UserRepository",
        publisher: "RealtimePublisher | None" = None,
    ):
        self.groups = groups
        self.users = users
        self.publisher = publisher

    # ==========================================================================
    # Lookups
    # ==========================================================================

    async def find_group(self, username: str) -> Group | None:
        owner = await self.users.resolve_username(username)
        if owner is None or owner.account_type is not AccountType.GROUP:
            return None
        return await self.groups.get_group_by_id(owner.account_id)

    async def get_group(self, username: str) -> Group:
        group = await self.find_group(username)
        if group is None:
            raise GroupNotFoundError
        return group

    async def get_group_by_id(self, group_id: UUID) -> Group | None:
        return await self.groups.get_group_by_id(group_id)

    async def get_membership_state(
        self, group_id: UUID, user_id: UUID | None
    ) -> MembershipState:
        if user_id is None:
            return MembershipState.NONE
        return await self.groups.get_membership_state(group_id, user_id)

    async def get_group_profile(self, username: str) -> tuple[Group, list["User"], int]:
        """Return the group, its admins and its member count."""
        group = await self.get_group(username)
        memberships = await self.groups.list_memberships(group.id)
        admin_ids = [
            m.user_id for m in memberships if m.state is MembershipState.ADMIN
        ]
        member_count = sum(1 for m in memberships if m.state.is_member)
        admins = await self.users.get_users_by_ids(admin_ids)
        return group, admins, member_count

    async def can_view(self, group: Group, user_id: UUID | None) -> bool:
        state = await self.get_membership_state(group.id, user_id)
        return can_view_group_posts(group, state)

    # ==========================================================================
    # Create / Update
    # ==========================================================================

    async def create_group(
        self,
        creator_id: UUID,
        username: str,
        screen_name: str | None = None,
        description: str = "",
        is_private: bool = False,
        is_restricted: bool = False,
    ) -> Group:
        """Register a group and make its creator the first admin."""
        group = create_group(
            username=username,
            creator_id=creator_id,
            screen_name=screen_name,
            description=description,
            is_private=is_private,
            is_restricted=is_restricted,
        )
        claimed = await self.users.claim_username(
            group.username, group.id, AccountType.GROUP
        )
        if not claimed:
            raise GroupUsernameTakenError

        await self.groups.insert_group(group)
        await self._run_transition(GroupAction.CREATE, group, creator_id)

        logger.info(
            "group_created",
            group_id=str(group.id),
            username=group.username,
            is_private=group.is_private,
            is_restricted=group.is_restricted,
        )
        return group

    async def update_group(
        self,
        actor_id: UUID,
        username: str,
        screen_name: str | None = None,
        description: str | None = None,
        is_private: bool | None = None,
        is_restricted: bool | None = None,
    ) -> Group:
        """Change group settings. Admins only."""
        group = await self.get_group(username)
        state = await self.groups.get_membership_state(group.id, actor_id)
        if state is not MembershipState.ADMIN:
            raise GroupPermissionDeniedError

        if screen_name is not None:
            group.screen_name = screen_name
        if description is not None:
            group.description = description
        if is_private is not None:
            group.is_private = is_private
        if is_restricted is not None:
            group.is_restricted = is_restricted
        group.updated_at = datetime.now(UTC)

        await self.groups.update_group(group)
        logger.info("group_updated", group_id=str(group.id))
        return group

    async def list_pending_requests(
        self, actor_id: UUID, username: str
    ) -> list["User"]:
        """Users waiting for approval. Admins only."""
        group = await self.get_group(username)
        state = await self.groups.get_membership_state(group.id, actor_id)
        if state is not MembershipState.ADMIN:
            raise GroupPermissionDeniedError

        memberships = await self.groups.list_memberships(group.id)
        pending = [
            m.user_id
            for m in memberships
            if m.state is MembershipState.PENDING_REQUEST
        ]
        return await self.users.get_users_by_ids(pending)

    # ==========================================================================
    # Membership transitions
    # ==========================================================================

    async def send_request(self, actor_id: UUID, group_username: str) -> None:
        group = await self.find_group(group_username)
        await self._run_transition(GroupAction.SEND_REQUEST, group, actor_id)

    async def subscribe(self, actor_id: UUID, group_username: str) -> None:
        group = await self.find_group(group_username)
        await self._run_transition(GroupAction.SUBSCRIBE, group, actor_id)

    async def leave(self, actor_id: UUID, group_username: str) -> None:
        group = await self.find_group(group_username)
        await self._run_transition(GroupAction.LEAVE, group, actor_id)

    async def accept_request(
        self, actor_id: UUID, group_username: str, target_username: str
    ) -> None:
        await self._targeted(
            GroupAction.ACCEPT_REQUEST, actor_id, group_username, target_username
        )

    async def reject_request(
        self, actor_id: UUID, group_username: str, target_username: str
    ) -> None:
        await self._targeted(
            GroupAction.REJECT_REQUEST, actor_id, group_username, target_username
        )

    async def unsubscribe_member(
        self, actor_id: UUID, group_username: str, target_username: str
    ) -> None:
        await self._targeted(
            GroupAction.UNSUBSCRIBE_MEMBER, actor_id, group_username, target_username
        )

    async def promote_admin(
        self, actor_id: UUID, group_username: str, target_username: str
    ) -> None:
        await self._targeted(
            GroupAction.PROMOTE_ADMIN, actor_id, group_username, target_username
        )

    async def demote_admin(
        self, actor_id: UUID, group_username: str, target_username: str
    ) -> None:
        await self._targeted(
            GroupAction.DEMOTE_ADMIN, actor_id, group_username, target_username
        )

    async def _targeted(
        self,
        action: GroupAction,
        actor_id: UUID,
        group_username: str,
        target_username: str,
    ) -> None:
        group = await self.find_group(group_username)
        if group is None:
            raise MembershipError(MembershipErrorKind.NOT_FOUND, "Group not found")
        target = await self.users.get_user_by_username(target_username)
        if target is None:
            raise MembershipError(MembershipErrorKind.NOT_FOUND, "User not found")
        await self._run_transition(action, group, actor_id, target.id)

    async def _run_transition(
        self,
        action: GroupAction,
        group: Group | None,
        actor_id: UUID,
        target_id: UUID | None = None,
    ) -> MembershipState:
        """Evaluate and persist one transition with bounded CAS retries."""
        if group is None:
            raise MembershipError(MembershipErrorKind.NOT_FOUND, "Group not found")

        for attempt in range(1, MAX_TRANSITION_ATTEMPTS + 1):
            actor = MembershipSubject(
                actor_id, await self.groups.get_membership_state(group.id, actor_id)
            )
            if action.needs_target and target_id is not None:
                target = MembershipSubject(
                    target_id,
                    await self.groups.get_membership_state(group.id, target_id),
                )
            else:
                target = actor

            new_state = apply_group_transition(action, group, actor, target)

            applied = await self.groups.compare_and_set_membership(
                group.id, target.user_id, target.state, new_state
            )
            if applied:
                logger.info(
                    "membership_transition_applied",
                    action=action.value,
                    group_id=str(group.id),
                    target_id=str(target.user_id),
                    from_state=target.state.value,
                    to_state=new_state.value,
                    attempt=attempt,
                )
                await self._publish_membership(group, target.user_id, action, new_state)
                return new_state

            logger.info(
                "membership_transition_conflict",
                action=action.value,
                group_id=str(group.id),
                target_id=str(target.user_id),
                expected_state=target.state.value,
                attempt=attempt,
            )

        raise MembershipError(
            MembershipErrorKind.INVALID_STATE,
            "Membership changed concurrently, please retry",
        )

    async def _publish_membership(
        self,
        group: Group,
        user_id: UUID,
        action: GroupAction,
        state: MembershipState,
    ) -> None:
        if self.publisher is None:
            return
        await self.publisher.publish(
            user_channel(user_id),
            "group:membership",
            {
                "groupId": str(group.id),
                "userId": str(user_id),
                "action": action.value,
                "state": state.value,
            },
        )

    # ==========================================================================
    # Derived data
    # ==========================================================================

    async def list_member_group_ids(self, user_id: UUID) -> list[UUID]:
        """Groups whose timeline belongs in the user's home feed."""
        memberships = await self.groups.list_user_memberships(user_id)
        return [m.group_id for m in memberships if m.state.is_member]

    async def has_pending_group_requests(self, user_id: UUID) -> bool:
        """True iff a group administered by `user_id` has a pending request."""
        memberships = await self.groups.list_user_memberships(user_id)
        for membership in memberships:
            if membership.state is not MembershipState.ADMIN:
                continue
            rows = await self.groups.list_memberships(membership.group_id)
            if any(row.state is MembershipState.PENDING_REQUEST for row in rows):
                return True
        return False
