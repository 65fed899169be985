"""Tests for the Cassandra membership compare-and-set."""

from unittest.mock import AsyncMock, Mock
from uuid import UUID, uuid4

import pytest
from cassandra.cluster import Session

from pepyatka.groups.membership import MembershipState
from pepyatka.groups.repository import CassandraGroupRepository


@pytest.fixture
def mock_session():
    """Mock Cassandra session with one distinct statement per prepare()."""
    session = Mock(spec=Session)
    session.prepare = Mock(side_effect=lambda cql: Mock(name="statement"))
    session.aexecute = AsyncMock()
    return session


@pytest.fixture
def repository(mock_session) -> CassandraGroupRepository:
    return CassandraGroupRepository(mock_session, "test_keyspace")


@pytest.fixture
def group_id() -> UUID:
    return uuid4()


@pytest.fixture
def user_id() -> UUID:
    return uuid4()


def lwt_result(applied: bool) -> Mock:
    result = Mock()
    result.was_applied = applied
    return result


def state_result(state: str | None) -> Mock:
    """Result of the authoritative membership read."""
    result = Mock()
    result.one.return_value = Mock(state=state) if state else None
    return result


class TestCompareAndSet:
    """LWT selection and projection upkeep."""

    @pytest.mark.asyncio
    async def test_insert_from_none(
        self, repository, mock_session, group_id, user_id
    ) -> None:
        """NONE -> PENDING uses INSERT IF NOT EXISTS, then writes the index."""
        mock_session.aexecute.side_effect = [
            lwt_result(True),
            Mock(),
            state_result("pending"),
        ]

        applied = await repository.compare_and_set_membership(
            group_id, user_id, MembershipState.NONE, MembershipState.PENDING_REQUEST
        )

        assert applied is True
        calls = mock_session.aexecute.await_args_list
        assert calls[0].args[0] is repository._cas_insert
        assert calls[0].args[1][:3] == [group_id, user_id, "pending"]
        assert calls[1].args[0] is repository._upsert_projection
        assert calls[2].args[0] is repository._get_membership
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_update_between_states(
        self, repository, mock_session, group_id, user_id
    ) -> None:
        """PENDING -> MEMBER conditions the UPDATE on the expected state."""
        mock_session.aexecute.side_effect = [
            lwt_result(True),
            Mock(),
            state_result("member"),
        ]

        await repository.compare_and_set_membership(
            group_id, user_id, MembershipState.PENDING_REQUEST, MembershipState.MEMBER
        )

        first = mock_session.aexecute.await_args_list[0]
        assert first.args[0] is repository._cas_update
        params = first.args[1]
        assert params[0] == "member"
        assert params[-1] == "pending"

    @pytest.mark.asyncio
    async def test_delete_to_none(
        self, repository, mock_session, group_id, user_id
    ) -> None:
        """MEMBER -> NONE deletes the row and its index entry."""
        mock_session.aexecute.side_effect = [lwt_result(True), Mock(), state_result(None)]

        await repository.compare_and_set_membership(
            group_id, user_id, MembershipState.MEMBER, MembershipState.NONE
        )

        calls = mock_session.aexecute.await_args_list
        assert calls[0].args[0] is repository._cas_delete
        assert calls[0].args[1] == [group_id, user_id, "member"]
        assert calls[1].args[0] is repository._delete_projection
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_index_restored_after_racing_subscribe(
        self, repository, mock_session, group_id, user_id
    ) -> None:
        """A leave whose index delete lands after a re-subscribe rewrites the entry."""
        mock_session.aexecute.side_effect = [
            lwt_result(True),
            Mock(),
            state_result("member"),
            Mock(),
        ]

        applied = await repository.compare_and_set_membership(
            group_id, user_id, MembershipState.MEMBER, MembershipState.NONE
        )

        assert applied is True
        calls = mock_session.aexecute.await_args_list
        assert calls[1].args[0] is repository._delete_projection
        assert calls[3].args[0] is repository._upsert_projection
        assert calls[3].args[1][:3] == [user_id, group_id, "member"]

    @pytest.mark.asyncio
    async def test_index_removed_after_racing_leave(
        self, repository, mock_session, group_id, user_id
    ) -> None:
        """An upsert that lands after the row was deleted is undone."""
        mock_session.aexecute.side_effect = [
            lwt_result(True),
            Mock(),
            state_result(None),
            Mock(),
        ]

        await repository.compare_and_set_membership(
            group_id, user_id, MembershipState.NONE, MembershipState.MEMBER
        )

        calls = mock_session.aexecute.await_args_list
        assert calls[1].args[0] is repository._upsert_projection
        assert calls[3].args[0] is repository._delete_projection
        assert calls[3].args[1] == [user_id, group_id]

    @pytest.mark.asyncio
    async def test_not_applied(
        self, repository, mock_session, group_id, user_id
    ) -> None:
        """A lost race returns False and leaves the index alone."""
        mock_session.aexecute.return_value = lwt_result(False)

        applied = await repository.compare_and_set_membership(
            group_id, user_id, MembershipState.PENDING_REQUEST, MembershipState.MEMBER
        )

        assert applied is False
        assert mock_session.aexecute.await_count == 1

    @pytest.mark.asyncio
    async def test_noop_rejected(self, repository, group_id, user_id) -> None:
        """Same-state transitions are a programming error."""
        with pytest.raises(ValueError, match="No-op"):
            await repository.compare_and_set_membership(
                group_id, user_id, MembershipState.MEMBER, MembershipState.MEMBER
            )


class TestReads:
    """Membership lookups."""

    @pytest.mark.asyncio
    async def test_missing_row_is_none(
        self, repository, mock_session, group_id, user_id
    ) -> None:
        """No row means NONE."""
        result = Mock()
        result.one.return_value = None
        mock_session.aexecute.return_value = result

        state = await repository.get_membership_state(group_id, user_id)

        assert state is MembershipState.NONE

    @pytest.mark.asyncio
    async def test_stale_projection_skipped(
        self, repository, mock_session, group_id, user_id
    ) -> None:
        """Index rows without an authoritative row are ignored."""
        live_group = uuid4()
        projection = [Mock(group_id=group_id), Mock(group_id=live_group)]
        missing = Mock()
        missing.one.return_value = None
        present = Mock()
        present.one.return_value = Mock(state="admin")
        mock_session.aexecute.side_effect = [projection, missing, present]

        memberships = await repository.list_user_memberships(user_id)

        assert [(m.group_id, m.state) for m in memberships] == [
            (live_group, MembershipState.ADMIN)
        ]
