# ruff: noqa: S608 - CQL keyspace comes from config, not user input
"""Cassandra persistence for users, usernames, bans and follows."""

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from .models import AccountType, User, UsernameOwner, normalize_username


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = structlog.get_logger(__name__)


class CassandraUserRepository:
    """UserRepository backed by the `users`, `usernames`, `user_bans` and
    `user_subscriptions` tables."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        ks = self.keyspace

        self._claim_username = self.session.prepare(f"""
            INSERT INTO {ks}.usernames (username, account_id, account_type, created_at)
            VALUES (?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._get_username = self.session.prepare(f"""
            SELECT * FROM {ks}.usernames WHERE username = ?
        """)

        self._insert_user = self.session.prepare(f"""
            INSERT INTO {ks}.users
            (id, username, screen_name, description, password_hash,
             hide_comment_types, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._update_user = self.session.prepare(f"""
            UPDATE {ks}.users
            SET screen_name = ?, description = ?, hide_comment_types = ?, updated_at = ?
            WHERE id = ?
        """)
        self._get_user = self.session.prepare(f"""
            SELECT * FROM {ks}.users WHERE id = ?
        """)
        self._get_users = self.session.prepare(f"""
            SELECT * FROM {ks}.users WHERE id IN ?
        """)

        self._insert_ban = self.session.prepare(f"""
            INSERT INTO {ks}.user_bans (user_id, banned_user_id, created_at)
            VALUES (?, ?, ?)
        """)
        self._delete_ban = self.session.prepare(f"""
            DELETE FROM {ks}.user_bans WHERE user_id = ? AND banned_user_id = ?
        """)
        self._get_ban = self.session.prepare(f"""
            SELECT banned_user_id FROM {ks}.user_bans
            WHERE user_id = ? AND banned_user_id = ?
        """)
        self._get_bans = self.session.prepare(f"""
            SELECT banned_user_id FROM {ks}.user_bans WHERE user_id = ?
        """)

        self._insert_subscription = self.session.prepare(f"""
            INSERT INTO {ks}.user_subscriptions (user_id, target_id, created_at)
            VALUES (?, ?, ?)
        """)
        self._delete_subscription = self.session.prepare(f"""
            DELETE FROM {ks}.user_subscriptions WHERE user_id = ? AND target_id = ?
        """)
        self._get_subscriptions = self.session.prepare(f"""
            SELECT target_id FROM {ks}.user_subscriptions WHERE user_id = ?
        """)

    # ==========================================================================
    # Username registry
    # ==========================================================================

    async def claim_username(
        self, username: str, account_id: UUID, account_type: AccountType
    ) -> bool:
        """Reserve `username` for an account. False when it is already taken."""
        result = await self.session.aexecute(
            self._claim_username,
            [
                normalize_username(username),
                account_id,
                account_type.value,
                datetime.now(UTC),
            ],
        )
        if not result.was_applied:
            logger.info("username_claim_rejected", username=username)
        return result.was_applied

    async def resolve_username(self, username: str) -> UsernameOwner | None:
        result = await self.session.aexecute(
            self._get_username, [normalize_username(username)]
        )
        row = result.one()
        return UsernameOwner.from_row(row) if row else None

    # ==========================================================================
    # Users
    # ==========================================================================

    async def insert_user(self, user: User) -> None:
        await self.session.aexecute(
            self._insert_user,
            [
                user.id,
                user.username,
                user.screen_name,
                user.description,
                user.password_hash,
                user.hide_comment_types,
                user.created_at,
                user.updated_at,
            ],
        )

    async def update_user(self, user: User) -> None:
        await self.session.aexecute(
            self._update_user,
            [
                user.screen_name,
                user.description,
                user.hide_comment_types,
                user.updated_at,
                user.id,
            ],
        )

    async def get_user_by_id(self, user_id: UUID) -> User | None:
        result = await self.session.aexecute(self._get_user, [user_id])
        row = result.one()
        return User.from_row(row) if row else None

    async def get_user_by_username(self, username: str) -> User | None:
        owner = await self.resolve_username(username)
        if owner is None or owner.account_type is not AccountType.USER:
            return None
        return await self.get_user_by_id(owner.account_id)

    async def get_users_by_ids(self, user_ids: Iterable[UUID]) -> list[User]:
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return []
        result = await self.session.aexecute(self._get_users, [ids])
        by_id = {row.id: User.from_row(row) for row in result}
        return [by_id[user_id] for user_id in ids if user_id in by_id]

    # ==========================================================================
    # Bans
    # ==========================================================================

    async def is_banned(self, viewer_id: UUID, author_id: UUID) -> bool:
        """True when `viewer_id` has banned `author_id`."""
        result = await self.session.aexecute(self._get_ban, [viewer_id, author_id])
        return result.one() is not None

    async def get_banned_ids(self, user_id: UUID) -> set[UUID]:
        result = await self.session.aexecute(self._get_bans, [user_id])
        return {row.banned_user_id for row in result}

    async def add_ban(self, user_id: UUID, banned_user_id: UUID) -> None:
        await self.session.aexecute(
            self._insert_ban, [user_id, banned_user_id, datetime.now(UTC)]
        )

    async def remove_ban(self, user_id: UUID, banned_user_id: UUID) -> None:
        await self.session.aexecute(self._delete_ban, [user_id, banned_user_id])

    # ==========================================================================
    # Follows
    # ==========================================================================

    async def add_subscription(self, user_id: UUID, target_id: UUID) -> None:
        await self.session.aexecute(
            self._insert_subscription, [user_id, target_id, datetime.now(UTC)]
        )

    async def remove_subscription(self, user_id: UUID, target_id: UUID) -> None:
        await self.session.aexecute(self._delete_subscription, [user_id, target_id])

    async def get_subscription_ids(self, user_id: UUID) -> set[UUID]:
        result = await self.session.aexecute(self._get_subscriptions, [user_id])
        return {row.target_id for row in result}
