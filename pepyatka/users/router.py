"""User API endpoints.

Provides routes for:
- Registration and session creation
- whoami and public profiles
- Profile and preference updates
- Bans, follows and group subscriptions
"""

from fastapi import APIRouter, status

from pepyatka.core.schemas import MessageResponse
from pepyatka.groups.dependencies import GroupServiceDep, handle_group_error
from pepyatka.groups.membership import MembershipError
from pepyatka.groups.schemas import GroupEnvelope, GroupResponse
from pepyatka.groups.service import GroupError

from .dependencies import CurrentUser, UserServiceDep, handle_user_error
from .models import AccountType
from .schemas import (
    AuthResponse,
    CurrentUserResponse,
    LoginRequest,
    RegisterRequest,
    UpdateUserRequest,
    UserEnvelope,
    UserResponse,
    WhoAmIResponse,
)
from .service import UserError


router = APIRouter(prefix="/v1", tags=["users"])


# ==============================================================================
# Public Endpoints (No Auth Required)
# ==============================================================================


@router.post(
    "/users",
    response_model=AuthResponse,
    summary="Register new user",
    responses={
        403: {"description": "Username already taken"},
        422: {"description": "Validation error"},
    },
)
async def register(data: RegisterRequest, user_service: UserServiceDep) -> AuthResponse:
    try:
        user, token = await user_service.register(
            username=data.username,
            password=data.password,
            screen_name=data.screen_name,
        )
    except UserError as e:
        raise handle_user_error(e) from e
    return AuthResponse(users=UserResponse.from_user(user), auth_token=token)


@router.post(
    "/session",
    response_model=AuthResponse,
    summary="User login",
    responses={401: {"description": "Invalid credentials"}},
)
async def login(data: LoginRequest, user_service: UserServiceDep) -> AuthResponse:
    try:
        user, token = await user_service.authenticate(data.username, data.password)
    except UserError as e:
        raise handle_user_error(e) from e
    return AuthResponse(users=UserResponse.from_user(user), auth_token=token)


# ==============================================================================
# Current User
# ==============================================================================


@router.get("/users/whoami", response_model=WhoAmIResponse, summary="Current user")
async def whoami(user: CurrentUser, user_service: UserServiceDep) -> WhoAmIResponse:
    """The authenticated user with bans, subscriptions and pending requests."""
    try:
        me = await user_service.whoami(user.id)
    except UserError as e:
        raise handle_user_error(e) from e
    return WhoAmIResponse(users=CurrentUserResponse.from_whoami(me))


@router.put("/users/me", response_model=UserEnvelope, summary="Update profile")
async def update_me(
    data: UpdateUserRequest,
    user: CurrentUser,
    user_service: UserServiceDep,
) -> UserEnvelope:
    preferences = data.user.preferences
    try:
        updated = await user_service.update_profile(
            user.id,
            screen_name=data.user.screen_name,
            description=data.user.description,
            hide_comment_types=(
                preferences.hide_comments_of_types if preferences else None
            ),
        )
    except UserError as e:
        raise handle_user_error(e) from e
    return UserEnvelope(users=UserResponse.from_user(updated))


# ==============================================================================
# Profiles
# ==============================================================================


@router.get(
    "/users/{username}",
    response_model=UserEnvelope | GroupEnvelope,
    response_model_exclude_none=True,
    summary="Public profile of a user or group",
)
async def get_profile(
    username: str,
    user_service: UserServiceDep,
    group_service: GroupServiceDep,
) -> UserEnvelope | GroupEnvelope:
    try:
        owner = await user_service.resolve_account(username)
        if owner.is_group:
            group, admins, member_count = await group_service.get_group_profile(
                username
            )
            return GroupEnvelope(
                groups=GroupResponse.from_group(
                    group, [a.id for a in admins], member_count
                ),
                users=[UserResponse.from_user(a) for a in admins],
            )
        profile = await user_service.get_user(owner.account_id)
    except UserError as e:
        raise handle_user_error(e) from e
    except GroupError as e:
        raise handle_group_error(e) from e
    return UserEnvelope(users=UserResponse.from_user(profile))


# ==============================================================================
# Bans
# ==============================================================================


@router.post("/users/{username}/ban", response_model=MessageResponse)
async def ban(
    username: str, user: CurrentUser, user_service: UserServiceDep
) -> MessageResponse:
    try:
        await user_service.ban(user.id, username)
    except UserError as e:
        raise handle_user_error(e) from e
    return MessageResponse(message=f"You have banned {username}")


@router.post("/users/{username}/unban", response_model=MessageResponse)
async def unban(
    username: str, user: CurrentUser, user_service: UserServiceDep
) -> MessageResponse:
    try:
        await user_service.unban(user.id, username)
    except UserError as e:
        raise handle_user_error(e) from e
    return MessageResponse(message=f"You have unbanned {username}")


# ==============================================================================
# Subscriptions
# ==============================================================================


@router.post(
    "/users/{username}/subscribe",
    response_model=MessageResponse,
    status_code=status.HTTP_200_OK,
    summary="Follow a user or join a public group",
)
async def subscribe(
    username: str,
    user: CurrentUser,
    user_service: UserServiceDep,
    group_service: GroupServiceDep,
) -> MessageResponse:
    try:
        owner = await user_service.resolve_account(username)
        if owner.account_type is AccountType.GROUP:
            await group_service.subscribe(user.id, username)
        else:
            await user_service.follow(user.id, owner.account_id)
    except UserError as e:
        raise handle_user_error(e) from e
    except (GroupError, MembershipError) as e:
        raise handle_group_error(e) from e
    return MessageResponse(message=f"You are now subscribed to {username}")


@router.post(
    "/users/{username}/unsubscribe",
    response_model=MessageResponse,
    summary="Unfollow a user or leave a group",
)
async def unsubscribe(
    username: str,
    user: CurrentUser,
    user_service: UserServiceDep,
    group_service: GroupServiceDep,
) -> MessageResponse:
    try:
        owner = await user_service.resolve_account(username)
        if owner.account_type is AccountType.GROUP:
            await group_service.leave(user.id, username)
        else:
            await user_service.unfollow(user.id, owner.account_id)
    except UserError as e:
        raise handle_user_error(e) from e
    except (GroupError, MembershipError) as e:
        raise handle_group_error(e) from e
    return MessageResponse(message=f"You are no longer subscribed to {username}")
