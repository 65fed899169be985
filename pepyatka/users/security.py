"""Password hashing and session tokens.

Provides:
- Argon2id password hashing with transparent rehash on parameter change
- JWT access tokens carrying the user id and username
"""

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerifyMismatchError
from jose import JWTError, jwt

from pepyatka.config.settings import get_settings


_password_hasher = PasswordHasher(
    time_cost=2,
    memory_cost=19456,
    parallelism=1,
    hash_len=32,
    salt_len=16,
)


def hash_password(password: str) -> str:
    """Hash a password with Argon2id. The result embeds salt and parameters."""
    return _password_hasher.hash(password)


def verify_password(password: str, password_hash: str) -> tuple[bool, str | None]:
    """Check `password` against a stored hash.

    Returns:
        (is_valid, new_hash). `new_hash` is set when the stored hash was made
        with outdated parameters and should be replaced.
    """
    try:
        _password_hasher.verify(password_hash, password)
    except (VerifyMismatchError, InvalidHashError):
        return False, None

    if _password_hasher.check_needs_rehash(password_hash):
        return True, hash_password(password)
    return True, None


def create_access_token(
    user_id: UUID,
    username: str,
    expires_delta: timedelta | None = None,
) -> str:
    """Issue a signed access token for a user."""
    settings = get_settings()
    now = datetime.now(UTC)
    expire = now + (
        expires_delta or timedelta(minutes=settings.auth_access_token_expire_minutes)
    )
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "username": username,
        "exp": expire,
        "iat": now,
        "type": "access",
    }
    return jwt.encode(payload, settings.auth_secret_key, algorithm=settings.auth_algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    """Validate signature, expiry and token type.

    Raises:
        JWTError: If the token is invalid, expired or not an access token.
    """
    settings = get_settings()
    payload = jwt.decode(
        token,
        settings.auth_secret_key,
        algorithms=[settings.auth_algorithm],
    )
    if payload.get("type") != "access":
        msg = "Invalid token type: expected 'access'"
        raise JWTError(msg)
    if "sub" not in payload:
        msg = "Token missing subject"
        raise JWTError(msg)
    return payload
