"""Database models for user accounts.

Cassandra table definitions for:
- Users: profile, password hash and comment-hiding preferences
- Usernames: registry shared by users and groups (claimed with LWT)
- User bans: directed (banner, banned) edges
- User subscriptions: users a user follows, feeding the home timeline
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.users (
    id UUID PRIMARY KEY,
    username TEXT,
    screen_name TEXT,
    description TEXT,
    password_hash TEXT,
    hide_comment_types SET<INT>,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

# Username registry - one row per claimed name, user or group
USERNAME_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.usernames (
    username TEXT PRIMARY KEY,
    account_id UUID,
    account_type TEXT,
    created_at TIMESTAMP
)
"""

USER_BANS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.user_bans (
    user_id UUID,
    banned_user_id UUID,
    created_at TIMESTAMP,
    PRIMARY KEY ((user_id), banned_user_id)
)
"""

USER_SUBSCRIPTIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.user_subscriptions (
    user_id UUID,
    target_id UUID,
    created_at TIMESTAMP,
    PRIMARY KEY ((user_id), target_id)
)
"""

USERS_TABLES_CQL = [
    USER_TABLE_CQL,
    USERNAME_TABLE_CQL,
    USER_BANS_TABLE_CQL,
    USER_SUBSCRIPTIONS_TABLE_CQL,
]


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (Cassandra returns naive timestamps)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def normalize_username(username: str) -> str:
    return username.strip().lower()


class AccountType(str, Enum):
    """Owner kind of a registered username."""

    USER = "user"
    GROUP = "group"


class UsernameOwner:
    """Resolved entry of the username registry."""

    def __init__(self, username: str, account_id: UUID, account_type: AccountType):
        self.username = username
        self.account_id = account_id
        self.account_type = account_type

    @classmethod
    def from_row(cls, row: Any) -> "UsernameOwner":
        return cls(
            username=row.username,
            account_id=row.account_id,
            account_type=AccountType(row.account_type),
        )

    @property
    def is_group(self) -> bool:
        return self.account_type is AccountType.GROUP

    def __repr__(self) -> str:
        return f"<UsernameOwner {self.username} ({self.account_type.value})>"


class User:
    """User account.

    Attributes:
        id: Unique identifier
        username: Lowercase unique name, shared namespace with groups
        screen_name: Display name
        description: Free-form profile text
        password_hash: Argon2id hash
        hide_comment_types: Hide-reason codes whose comments the user never sees
        created_at: Registration timestamp
        updated_at: Last profile change
    """

    def __init__(
        self,
        id: UUID | None = None,
        username: str = "",
        screen_name: str = "",
        description: str = "",
        password_hash: str = "",
        hide_comment_types: set[int] | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.username = normalize_username(username)
        self.screen_name = screen_name or self.username
        self.description = description
        self.password_hash = password_hash
        self.hide_comment_types = set(hide_comment_types or ())
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at) or self.created_at

    @classmethod
    def from_row(cls, row: Any) -> "User":
        """Create User from a Cassandra row."""
        return cls(
            id=row.id,
            username=row.username,
            screen_name=row.screen_name,
            description=row.description or "",
            password_hash=row.password_hash,
            hide_comment_types=row.hide_comment_types,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def __repr__(self) -> str:
        return f"<User {self.username}>"


def create_user(
    username: str,
    password_hash: str,
    screen_name: str | None = None,
    description: str = "",
) -> User:
    """Build a new User with a fresh id and timestamps."""
    now = datetime.now(UTC)
    return User(
        id=uuid4(),
        username=username,
        screen_name=screen_name or "",
        description=description,
        password_hash=password_hash,
        hide_comment_types=set(),
        created_at=now,
        updated_at=now,
    )
