"""Group API endpoints.

Provides routes for:
- Creating groups and reading/updating their profile
- Join requests for private groups and their review by admins
- Removing members and managing administrators
"""

from fastapi import APIRouter, status

from pepyatka.core.schemas import MessageResponse
from pepyatka.users.dependencies import CurrentUser
from pepyatka.users.schemas import UserResponse

from .dependencies import GroupServiceDep, handle_group_error
from .membership import MembershipError
from .schemas import (
    CreateGroupRequest,
    GroupEnvelope,
    GroupResponse,
    PendingRequestsResponse,
    UpdateGroupRequest,
)
from .service import GroupError


router = APIRouter(prefix="/v1/groups", tags=["groups"])


# ==============================================================================
# Groups
# ==============================================================================


@router.post(
    "",
    response_model=GroupEnvelope,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
    summary="Create group",
    responses={403: {"description": "Username already taken"}},
)
async def create_group(
    data: CreateGroupRequest,
    user: CurrentUser,
    group_service: GroupServiceDep,
) -> GroupEnvelope:
    """Create a group. The creator becomes its first administrator."""
    try:
        group = await group_service.create_group(
            creator_id=user.id,
            username=data.group.username,
            screen_name=data.group.screen_name,
            description=data.group.description,
            is_private=data.group.is_private,
            is_restricted=data.group.is_restricted,
        )
    except (GroupError, MembershipError) as e:
        raise handle_group_error(e) from e
    return GroupEnvelope(groups=GroupResponse.from_group(group, [user.id], 1))


@router.get(
    "/{group}",
    response_model=GroupEnvelope,
    response_model_exclude_none=True,
    summary="Group profile",
)
async def get_group(group: str, group_service: GroupServiceDep) -> GroupEnvelope:
    try:
        found, admins, member_count = await group_service.get_group_profile(group)
    except GroupError as e:
        raise handle_group_error(e) from e
    return GroupEnvelope(
        groups=GroupResponse.from_group(found, [a.id for a in admins], member_count),
        users=[UserResponse.from_user(a) for a in admins],
    )


@router.put(
    "/{group}",
    response_model=GroupEnvelope,
    response_model_exclude_none=True,
    summary="Update group settings",
)
async def update_group(
    group: str,
    data: UpdateGroupRequest,
    user: CurrentUser,
    group_service: GroupServiceDep,
) -> GroupEnvelope:
    try:
        updated = await group_service.update_group(
            user.id,
            group,
            screen_name=data.group.screen_name,
            description=data.group.description,
            is_private=data.group.is_private,
            is_restricted=data.group.is_restricted,
        )
    except GroupError as e:
        raise handle_group_error(e) from e
    return GroupEnvelope(groups=GroupResponse.from_group(updated))


@router.get(
    "/{group}/requests",
    response_model=PendingRequestsResponse,
    summary="Pending join requests",
)
async def list_requests(
    group: str, user: CurrentUser, group_service: GroupServiceDep
) -> PendingRequestsResponse:
    try:
        users = await group_service.list_pending_requests(user.id, group)
    except GroupError as e:
        raise handle_group_error(e) from e
    return PendingRequestsResponse.from_users(users)


# ==============================================================================
# Membership
# ==============================================================================


@router.post(
    "/{group}/sendRequest",
    response_model=MessageResponse,
    summary="Ask to join a private group",
    responses={
        403: {"description": "Already a member or request already pending"},
        404: {"description": "Group not found"},
        422: {"description": "Group is public"},
    },
)
async def send_request(
    group: str, user: CurrentUser, group_service: GroupServiceDep
) -> MessageResponse:
    try:
        await group_service.send_request(user.id, group)
    except MembershipError as e:
        raise handle_group_error(e) from e
    return MessageResponse(message=f"Request to join {group} sent")


@router.post("/{group}/acceptRequest/{username}", response_model=MessageResponse)
async def accept_request(
    group: str, username: str, user: CurrentUser, group_service: GroupServiceDep
) -> MessageResponse:
    try:
        await group_service.accept_request(user.id, group, username)
    except MembershipError as e:
        raise handle_group_error(e) from e
    return MessageResponse(message=f"Request from {username} accepted")


@router.post("/{group}/rejectRequest/{username}", response_model=MessageResponse)
async def reject_request(
    group: str, username: str, user: CurrentUser, group_service: GroupServiceDep
) -> MessageResponse:
    try:
        await group_service.reject_request(user.id, group, username)
    except MembershipError as e:
        raise handle_group_error(e) from e
    return MessageResponse(message=f"Request from {username} rejected")


@router.post(
    "/{group}/unsubscribeFromGroup/{username}",
    response_model=MessageResponse,
    summary="Remove a member",
)
async def unsubscribe_from_group(
    group: str, username: str, user: CurrentUser, group_service: GroupServiceDep
) -> MessageResponse:
    try:
        await group_service.unsubscribe_member(user.id, group, username)
    except MembershipError as e:
        raise handle_group_error(e) from e
    return MessageResponse(message=f"{username} removed from {group}")


@router.post(
    "/{group}/subscribers/{username}/admin",
    response_model=MessageResponse,
    summary="Promote a member to administrator",
)
async def promote_admin(
    group: str, username: str, user: CurrentUser, group_service: GroupServiceDep
) -> MessageResponse:
    try:
        await group_service.promote_admin(user.id, group, username)
    except MembershipError as e:
        raise handle_group_error(e) from e
    return MessageResponse(message=f"{username} is now an administrator")


@router.post(
    "/{group}/subscribers/{username}/unadmin",
    response_model=MessageResponse,
    summary="Demote an administrator",
)
async def demote_admin(
    group: str, username: str, user: CurrentUser, group_service: GroupServiceDep
) -> MessageResponse:
    try:
        await group_service.demote_admin(user.id, group, username)
    except MembershipError as e:
        raise handle_group_error(e) from e
    return MessageResponse(message=f"{username} is no longer an administrator")
