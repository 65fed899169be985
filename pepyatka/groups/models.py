"""Database models for groups and memberships.

Cassandra table definitions for:
- Groups: profile and privacy flags
- Group memberships: authoritative (group, user) -> state rows, changed only
  through lightweight transactions
- Group memberships by user: per-user index, verified on read
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from pepyatka.groups.membership import MembershipState
from pepyatka.users.models import ensure_utc_aware, normalize_username


GROUP_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.groups (
    id UUID PRIMARY KEY,
    username TEXT,
    screen_name TEXT,
    description TEXT,
    is_private BOOLEAN,
    is_restricted BOOLEAN,
    creator_id UUID,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

GROUP_MEMBERSHIPS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.group_memberships (
    group_id UUID,
    user_id UUID,
    state TEXT,
    updated_at TIMESTAMP,
    PRIMARY KEY ((group_id), user_id)
)
"""

GROUP_MEMBERSHIPS_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.group_memberships_by_user (
    user_id UUID,
    group_id UUID,
    state TEXT,
    updated_at TIMESTAMP,
    PRIMARY KEY ((user_id), group_id)
)
"""

GROUPS_TABLES_CQL = [
    GROUP_TABLE_CQL,
    GROUP_MEMBERSHIPS_TABLE_CQL,
    GROUP_MEMBERSHIPS_BY_USER_TABLE_CQL,
]


@dataclass
class Group:
    """A group profile. Shares the username namespace with users."""

    id: UUID
    username: str
    screen_name: str
    description: str
    is_private: bool
    is_restricted: bool
    creator_id: UUID
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: Any) -> "Group":
        created_at = ensure_utc_aware(row.created_at)
        return cls(
            id=row.id,
            username=row.username,
            screen_name=row.screen_name or row.username,
            description=row.description or "",
            is_private=bool(row.is_private),
            is_restricted=bool(row.is_restricted),
            creator_id=row.creator_id,
            created_at=created_at,
            updated_at=ensure_utc_aware(row.updated_at) or created_at,
        )


@dataclass
class Membership:
    """One authoritative membership row."""

    group_id: UUID
    user_id: UUID
    state: MembershipState

    @classmethod
    def from_row(cls, row: Any) -> "Membership":
        return cls(
            group_id=row.group_id,
            user_id=row.user_id,
            state=MembershipState(row.state),
        )


def create_group(
    username: str,
    creator_id: UUID,
    screen_name: str | None = None,
    description: str = "",
    is_private: bool = False,
    is_restricted: bool = False,
) -> Group:
    """Build a new Group with a fresh id and timestamps."""
    now = datetime.now(UTC)
    name = normalize_username(username)
    return Group(
        id=uuid4(),
        username=name,
        screen_name=screen_name or name,
        description=description,
        is_private=is_private,
        is_restricted=is_restricted,
        creator_id=creator_id,
        created_at=now,
        updated_at=now,
    )
