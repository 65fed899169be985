"""Tests for GroupService over in-memory repositories."""

import asyncio
from uuid import UUID

import pytest

from pepyatka.groups.membership import (
    MembershipError,
    MembershipErrorKind,
    MembershipState,
)
from pepyatka.groups.models import Group
from pepyatka.groups.service import (
    GroupPermissionDeniedError,
    GroupService,
    GroupUsernameTakenError,
)
from pepyatka.users.models import AccountType, User, create_user

from ..fakes import InMemoryGroupRepository, InMemoryUserRepository


@pytest.fixture
def users() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture
def groups() -> InMemoryGroupRepository:
    return InMemoryGroupRepository()


@pytest.fixture
def service(groups, users) -> GroupService:
    return GroupService(groups, users)


async def make_user(users: InMemoryUserRepository, username: str) -> User:
    user = create_user(username, password_hash="x")
    await users.claim_username(user.username, user.id, AccountType.USER)
    await users.insert_user(user)
    return user


async def state_of(groups: InMemoryGroupRepository, group: Group, user_id: UUID):
    return await groups.get_membership_state(group.id, user_id)


def kinds(results: list) -> list:
    return sorted(
        (r.kind.value if isinstance(r, MembershipError) else "ok" for r in results)
    )


class TestCreateGroup:
    """Group creation."""

    @pytest.mark.asyncio
    async def test_creator_is_admin(self, service, users, groups) -> None:
        """The creator ends up as the only admin."""
        luna = await make_user(users, "luna")

        group = await service.create_group(luna.id, "pepyatka-dev", is_private=True)

        assert await state_of(groups, group, luna.id) is MembershipState.ADMIN
        _, admins, member_count = await service.get_group_profile("pepyatka-dev")
        assert [a.id for a in admins] == [luna.id]
        assert member_count == 1

    @pytest.mark.asyncio
    async def test_username_shared_with_users(self, service, users) -> None:
        """A group can't take a user's name."""
        luna = await make_user(users, "luna")
        with pytest.raises(GroupUsernameTakenError):
            await service.create_group(luna.id, "luna")

    @pytest.mark.asyncio
    async def test_update_requires_admin(self, service, users) -> None:
        """Only admins change settings."""
        luna = await make_user(users, "luna")
        mars = await make_user(users, "mars")
        await service.create_group(luna.id, "pepyatka-dev")

        with pytest.raises(GroupPermissionDeniedError):
            await service.update_group(mars.id, "pepyatka-dev", is_private=True)

        group = await service.update_group(luna.id, "pepyatka-dev", is_private=True)
        assert group.is_private is True


class TestRequests:
    """Join requests for a private group."""

    @pytest.mark.asyncio
    async def test_request_and_accept(self, service, users, groups) -> None:
        """sendRequest then acceptRequest makes a member."""
        luna = await make_user(users, "luna")
        yole = await make_user(users, "yole")
        group = await service.create_group(luna.id, "pepyatka-dev", is_private=True)

        await service.send_request(yole.id, "pepyatka-dev")
        assert await service.has_pending_group_requests(luna.id) is True

        await service.accept_request(luna.id, "pepyatka-dev", "yole")

        assert await state_of(groups, group, yole.id) is MembershipState.MEMBER
        assert await service.has_pending_group_requests(luna.id) is False
        assert await service.list_member_group_ids(yole.id) == [group.id]

    @pytest.mark.asyncio
    async def test_reject_clears_request(self, service, users, groups) -> None:
        """Rejected users are back to NONE."""
        luna = await make_user(users, "luna")
        yole = await make_user(users, "yole")
        group = await service.create_group(luna.id, "pepyatka-dev", is_private=True)
        await service.send_request(yole.id, "pepyatka-dev")

        await service.reject_request(luna.id, "pepyatka-dev", "yole")

        assert await state_of(groups, group, yole.id) is MembershipState.NONE
        assert await service.list_member_group_ids(yole.id) == []

    @pytest.mark.asyncio
    async def test_pending_requests_list(self, service, users) -> None:
        """Admins can list who is waiting."""
        luna = await make_user(users, "luna")
        yole = await make_user(users, "yole")
        await service.create_group(luna.id, "pepyatka-dev", is_private=True)
        await service.send_request(yole.id, "pepyatka-dev")

        pending = await service.list_pending_requests(luna.id, "pepyatka-dev")

        assert [u.username for u in pending] == ["yole"]
        with pytest.raises(GroupPermissionDeniedError):
            await service.list_pending_requests(yole.id, "pepyatka-dev")

    @pytest.mark.asyncio
    async def test_unknown_target(self, service, users) -> None:
        """Accepting an unknown user is NOT_FOUND."""
        luna = await make_user(users, "luna")
        await service.create_group(luna.id, "pepyatka-dev", is_private=True)

        with pytest.raises(MembershipError) as exc_info:
            await service.accept_request(luna.id, "pepyatka-dev", "nobody")
        assert exc_info.value.kind is MembershipErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_unknown_group(self, service, users) -> None:
        """Requests to a missing group are NOT_FOUND."""
        yole = await make_user(users, "yole")
        with pytest.raises(MembershipError) as exc_info:
            await service.send_request(yole.id, "no-such-group")
        assert exc_info.value.kind is MembershipErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_user_name_is_not_a_group(self, service, users) -> None:
        """A username owned by a user doesn't resolve as a group."""
        luna = await make_user(users, "luna")
        await make_user(users, "mars")
        with pytest.raises(MembershipError) as exc_info:
            await service.send_request(luna.id, "mars")
        assert exc_info.value.kind is MembershipErrorKind.NOT_FOUND


class TestConcurrency:
    """Racing transitions on the same membership row."""

    @pytest.mark.asyncio
    async def test_concurrent_accepts(self, service, users, groups) -> None:
        """Two admins accepting the same request: one wins, one gets 422."""
        luna = await make_user(users, "luna")
        mars = await make_user(users, "mars")
        yole = await make_user(users, "yole")
        group = await service.create_group(luna.id, "pepyatka-dev", is_private=True)
        await service.send_request(mars.id, "pepyatka-dev")
        await service.accept_request(luna.id, "pepyatka-dev", "mars")
        await service.promote_admin(luna.id, "pepyatka-dev", "mars")
        await service.send_request(yole.id, "pepyatka-dev")

        results = await asyncio.gather(
            service.accept_request(luna.id, "pepyatka-dev", "yole"),
            service.accept_request(mars.id, "pepyatka-dev", "yole"),
            return_exceptions=True,
        )

        assert kinds(results) == ["invalid_state", "ok"]
        assert await state_of(groups, group, yole.id) is MembershipState.MEMBER

    @pytest.mark.asyncio
    async def test_concurrent_send_requests(self, service, users, groups) -> None:
        """Two identical requests: one wins, one gets 403."""
        luna = await make_user(users, "luna")
        yole = await make_user(users, "yole")
        group = await service.create_group(luna.id, "pepyatka-dev", is_private=True)

        results = await asyncio.gather(
            service.send_request(yole.id, "pepyatka-dev"),
            service.send_request(yole.id, "pepyatka-dev"),
            return_exceptions=True,
        )

        assert kinds(results) == ["forbidden", "ok"]
        assert await state_of(groups, group, yole.id) is MembershipState.PENDING_REQUEST

    @pytest.mark.asyncio
    async def test_accept_races_reject(self, service, users, groups) -> None:
        """Accept and reject of one request: exactly one applies."""
        luna = await make_user(users, "luna")
        yole = await make_user(users, "yole")
        group = await service.create_group(luna.id, "pepyatka-dev", is_private=True)
        await service.send_request(yole.id, "pepyatka-dev")

        results = await asyncio.gather(
            service.accept_request(luna.id, "pepyatka-dev", "yole"),
            service.reject_request(luna.id, "pepyatka-dev", "yole"),
            return_exceptions=True,
        )

        assert kinds(results) == ["invalid_state", "ok"]
        final = await state_of(groups, group, yole.id)
        assert final in (MembershipState.MEMBER, MembershipState.NONE)
