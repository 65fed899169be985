# ruff: noqa: S608 - CQL keyspace comes from config, not user input
"""Cassandra persistence for groups and memberships.

Membership rows change only through lightweight transactions, so two
concurrent transitions on the same (group, user) can never both apply.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from .membership import MembershipState
from .models import Group, Membership


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = structlog.get_logger(__name__)


class CassandraGroupRepository:
    """GroupRepository over `groups`, `group_memberships` and the per-user
    `group_memberships_by_user` index."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        ks = self.keyspace

        self._insert_group = self.session.prepare(f"""
            INSERT INTO {ks}.groups
            (id, username, screen_name, description, is_private, is_restricted,
             creator_id, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._update_group = self.session.prepare(f"""
            UPDATE {ks}.groups
            SET screen_name = ?, description = ?, is_private = ?, is_restricted = ?,
                updated_at = ?
            WHERE id = ?
        """)
        self._get_group = self.session.prepare(f"""
            SELECT * FROM {ks}.groups WHERE id = ?
        """)

        # Lightweight transactions on the authoritative row
        self._cas_insert = self.session.prepare(f"""
            INSERT INTO {ks}.group_memberships (group_id, user_id, state, updated_at)
            VALUES (?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._cas_update = self.session.prepare(f"""
            UPDATE {ks}.group_memberships SET state = ?, updated_at = ?
            WHERE group_id = ? AND user_id = ?
            IF state = ?
        """)
        self._cas_delete = self.session.prepare(f"""
            DELETE FROM {ks}.group_memberships
            WHERE group_id = ? AND user_id = ?
            IF state = ?
        """)

        self._get_membership = self.session.prepare(f"""
            SELECT * FROM {ks}.group_memberships WHERE group_id = ? AND user_id = ?
        """)
        self._list_memberships = self.session.prepare(f"""
            SELECT * FROM {ks}.group_memberships WHERE group_id = ?
        """)

        self._upsert_projection = self.session.prepare(f"""
            INSERT INTO {ks}.group_memberships_by_user
            (user_id, group_id, state, updated_at)
            VALUES (?, ?, ?, ?)
        """)
        self._delete_projection = self.session.prepare(f"""
            DELETE FROM {ks}.group_memberships_by_user
            WHERE user_id = ? AND group_id = ?
        """)
        self._list_projection = self.session.prepare(f"""
            SELECT group_id FROM {ks}.group_memberships_by_user WHERE user_id = ?
        """)

    # ==========================================================================
    # Groups
    # ==========================================================================

    async def insert_group(self, group: Group) -> None:
        await self.session.aexecute(
            self._insert_group,
            [
                group.id,
                group.username,
                group.screen_name,
                group.description,
                group.is_private,
                group.is_restricted,
                group.creator_id,
                group.created_at,
                group.updated_at,
            ],
        )

    async def update_group(self, group: Group) -> None:
        await self.session.aexecute(
            self._update_group,
            [
                group.screen_name,
                group.description,
                group.is_private,
                group.is_restricted,
                group.updated_at,
                group.id,
            ],
        )

    async def get_group_by_id(self, group_id: UUID) -> Group | None:
        result = await self.session.aexecute(self._get_group, [group_id])
        row = result.one()
        return Group.from_row(row) if row else None

    # ==========================================================================
    # Memberships
    # ==========================================================================

    async def get_membership_state(
        self, group_id: UUID, user_id: UUID
    ) -> MembershipState:
        result = await self.session.aexecute(self._get_membership, [group_id, user_id])
        row = result.one()
        return MembershipState(row.state) if row else MembershipState.NONE

    async def compare_and_set_membership(
        self,
        group_id: UUID,
        user_id: UUID,
        expected: MembershipState,
        new: MembershipState,
    ) -> bool:
        """Move the (group, user) row from `expected` to `new` atomically.

        Returns:
            False when the stored state no longer matches `expected`.
        """
        if expected is new:
            raise ValueError(f"No-op membership transition: {expected.value}")

        now = datetime.now(UTC)
        if expected is MembershipState.NONE:
            result = await self.session.aexecute(
                self._cas_insert, [group_id, user_id, new.value, now]
            )
        elif new is MembershipState.NONE:
            result = await self.session.aexecute(
                self._cas_delete, [group_id, user_id, expected.value]
            )
        else:
            result = await self.session.aexecute(
                self._cas_update, [new.value, now, group_id, user_id, expected.value]
            )

        if not result.was_applied:
            return False

        await self._write_projection(group_id, user_id, new, now)

        # A racing transition may have written its index entry before ours
        actual = await self.get_membership_state(group_id, user_id)
        if actual is not new:
            logger.info(
                "membership_projection_reconciled",
                group_id=str(group_id),
                user_id=str(user_id),
                written=new.value,
                actual=actual.value,
            )
            await self._write_projection(group_id, user_id, actual, datetime.now(UTC))
        return True

    async def _write_projection(
        self, group_id: UUID, user_id: UUID, state: MembershipState, now: datetime
    ) -> None:
        if state is MembershipState.NONE:
            await self.session.aexecute(self._delete_projection, [user_id, group_id])
        else:
            await self.session.aexecute(
                self._upsert_projection, [user_id, group_id, state.value, now]
            )

    async def list_memberships(self, group_id: UUID) -> list[Membership]:
        result = await self.session.aexecute(self._list_memberships, [group_id])
        return [Membership.from_row(row) for row in result]

    async def list_user_memberships(self, user_id: UUID) -> list[Membership]:
        """Memberships of `user_id`, each confirmed against the group's row."""
        result = await self.session.aexecute(self._list_projection, [user_id])
        memberships: list[Membership] = []
        for row in result:
            state = await self.get_membership_state(row.group_id, user_id)
            if state is MembershipState.NONE:
                logger.debug(
                    "stale_membership_projection",
                    user_id=str(user_id),
                    group_id=str(row.group_id),
                )
                continue
            memberships.append(Membership(row.group_id, user_id, state))
        return memberships
