"""Group membership state machine.

Each (group, user) pair holds exactly one MembershipState. ADMIN refines
MEMBER, so every admin counts as a member and a user can never be both a
pending requester and a member. `apply_group_transition` is pure: it checks
the guards for one action and returns the target's next state, or raises
MembershipError. Persisting the result atomically is the caller's job.
"""

from enum import Enum
from typing import NamedTuple, Protocol
from uuid import UUID


class MembershipState(str, Enum):
    """Role of a user within a group. NONE is never stored."""

    NONE = "none"
    PENDING_REQUEST = "pending"
    MEMBER = "member"
    ADMIN = "admin"

    @property
    def is_member(self) -> bool:
        return self in (MembershipState.MEMBER, MembershipState.ADMIN)


class GroupAction(str, Enum):
    CREATE = "create"
    SEND_REQUEST = "send_request"
    ACCEPT_REQUEST = "accept_request"
    REJECT_REQUEST = "reject_request"
    PROMOTE_ADMIN = "promote_admin"
    DEMOTE_ADMIN = "demote_admin"
    UNSUBSCRIBE_MEMBER = "unsubscribe_member"
    SUBSCRIBE = "subscribe"
    LEAVE = "leave"

    @property
    def needs_target(self) -> bool:
        """True when the action is performed by one user on another."""
        return self in _TARGETED_ACTIONS


_TARGETED_ACTIONS = frozenset(
    {
        GroupAction.ACCEPT_REQUEST,
        GroupAction.REJECT_REQUEST,
        GroupAction.PROMOTE_ADMIN,
        GroupAction.DEMOTE_ADMIN,
        GroupAction.UNSUBSCRIBE_MEMBER,
    }
)


class MembershipErrorKind(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    INVALID_STATE = "invalid_state"

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self]


_HTTP_STATUS = {
    MembershipErrorKind.UNAUTHENTICATED: 401,
    MembershipErrorKind.NOT_FOUND: 404,
    MembershipErrorKind.FORBIDDEN: 403,
    MembershipErrorKind.INVALID_STATE: 422,
}


class MembershipError(Exception):
    """A transition guard failed."""

    def __init__(self, kind: MembershipErrorKind, message: str):
        self.kind = kind
        self.message = message
        super().__init__(message)

    @property
    def code(self) -> str:
        return self.kind.value


class GroupFlags(Protocol):
    is_private: bool
    is_restricted: bool


class MembershipSubject(NamedTuple):
    """A user together with their current state in the group."""

    user_id: UUID
    state: MembershipState


def _fail(kind: MembershipErrorKind, message: str) -> MembershipError:
    return MembershipError(kind, message)


def _require_admin(actor: MembershipSubject) -> None:
    if actor.state is not MembershipState.ADMIN:
        raise _fail(MembershipErrorKind.FORBIDDEN, "You aren't an administrator")


def apply_group_transition(
    action: GroupAction,
    group: GroupFlags | None,
    actor: MembershipSubject | None,
    target: MembershipSubject | None = None,
) -> MembershipState:
    """Return the next state of the affected user for `action`.

    For self-service actions (create, sendRequest, subscribe, leave) the
    affected user is the actor and `target` is ignored. For admin actions
    it is `target`.

    Raises:
        MembershipError: UNAUTHENTICATED without an actor, NOT_FOUND for a
            missing group or target, FORBIDDEN or INVALID_STATE when a guard
            rejects the transition.
    """
    if actor is None:
        raise _fail(MembershipErrorKind.UNAUTHENTICATED, "Authentication required")
    if group is None:
        raise _fail(MembershipErrorKind.NOT_FOUND, "Group not found")
    if action.needs_target and target is None:
        raise _fail(MembershipErrorKind.NOT_FOUND, "User not found")

    state = actor.state

    if action is GroupAction.CREATE:
        if state is not MembershipState.NONE:
            raise _fail(MembershipErrorKind.INVALID_STATE, "Group already exists")
        return MembershipState.ADMIN

    if action is GroupAction.SEND_REQUEST:
        if not group.is_private:
            raise _fail(
                MembershipErrorKind.INVALID_STATE,
                "Subscription requests are only for private groups",
            )
        if state is MembershipState.PENDING_REQUEST:
            raise _fail(MembershipErrorKind.FORBIDDEN, "Request already sent")
        if state.is_member:
            raise _fail(MembershipErrorKind.FORBIDDEN, "You are already subscribed")
        return MembershipState.PENDING_REQUEST

    if action is GroupAction.SUBSCRIBE:
        if group.is_private:
            raise _fail(
                MembershipErrorKind.FORBIDDEN, "Private groups require a request"
            )
        if state.is_member:
            raise _fail(MembershipErrorKind.FORBIDDEN, "You are already subscribed")
        return MembershipState.MEMBER

    if action is GroupAction.LEAVE:
        if state is MembershipState.ADMIN:
            raise _fail(
                MembershipErrorKind.FORBIDDEN, "Administrators cannot leave the group"
            )
        if state is not MembershipState.MEMBER:
            raise _fail(MembershipErrorKind.INVALID_STATE, "You are not subscribed")
        return MembershipState.NONE

    # Admin actions on another user
    _require_admin(actor)
    if target is None:
        raise _fail(MembershipErrorKind.NOT_FOUND, "User not found")
    target_state = target.state

    if action in (GroupAction.ACCEPT_REQUEST, GroupAction.REJECT_REQUEST):
        if target_state is not MembershipState.PENDING_REQUEST:
            raise _fail(
                MembershipErrorKind.INVALID_STATE, "Invalid subscription request"
            )
        if action is GroupAction.ACCEPT_REQUEST:
            return MembershipState.MEMBER
        return MembershipState.NONE

    if action is GroupAction.PROMOTE_ADMIN:
        if target_state is not MembershipState.MEMBER:
            raise _fail(
                MembershipErrorKind.INVALID_STATE,
                "Only plain members can be made administrators",
            )
        return MembershipState.ADMIN

    if action is GroupAction.DEMOTE_ADMIN:
        if target.user_id == actor.user_id:
            raise _fail(
                MembershipErrorKind.FORBIDDEN, "You cannot remove your own admin rights"
            )
        if target_state is not MembershipState.ADMIN:
            raise _fail(MembershipErrorKind.INVALID_STATE, "User is not an administrator")
        return MembershipState.MEMBER

    if action is GroupAction.UNSUBSCRIBE_MEMBER:
        if target.user_id == actor.user_id:
            raise _fail(
                MembershipErrorKind.FORBIDDEN, "You cannot unsubscribe yourself"
            )
        if target_state is MembershipState.ADMIN:
            raise _fail(
                MembershipErrorKind.FORBIDDEN, "Administrators cannot be unsubscribed"
            )
        if target_state is not MembershipState.MEMBER:
            raise _fail(MembershipErrorKind.FORBIDDEN, "User is not subscribed")
        return MembershipState.NONE

    raise ValueError(f"Unhandled group action: {action}")


def can_view_group_posts(group: GroupFlags, state: MembershipState) -> bool:
    """Public groups are readable by anyone, private ones by members only."""
    return not group.is_private or state.is_member


def can_post_to_group(group: GroupFlags, state: MembershipState) -> bool:
    """Members may post. Restricted groups accept posts from admins only."""
    if group.is_restricted:
        return state is MembershipState.ADMIN
    return state.is_member
