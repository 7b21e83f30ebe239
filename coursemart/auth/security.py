"""Password hashing (Argon2id) and JWT issuance.

Each (actor type, token kind) pair is signed with its own secret, so a
learner token never verifies as an administrator token and an access token
never verifies as a refresh token.
"""

from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any
from uuid import uuid4

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from jose import JWTError, jwt

from coursemart.auth.actors import ActorType
from coursemart.config.settings import get_settings


# OWASP minimum for Argon2id: 19 MiB, 2 passes
_password_hasher = PasswordHasher(
    time_cost=2,
    memory_cost=19456,
    parallelism=1,
    hash_len=32,
    salt_len=16,
)


class TokenKind(str, Enum):
    """Token purpose, embedded in the "type" claim."""

    ACCESS = "access"
    REFRESH = "refresh"


def hash_password(password: str) -> str:
    """Encoded Argon2id hash; parameters and salt travel inside it."""
    return _password_hasher.hash(password)


def verify_password(password: str, password_hash: str) -> tuple[bool, str | None]:
    """Check a login password.

    Returns (matches, replacement_hash). The replacement is set when the
    stored hash was made with older parameters and should be rewritten.
    """
    try:
        _password_hasher.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False, None

    if _password_hasher.check_needs_rehash(password_hash):
        return True, hash_password(password)
    return True, None


def _encode(
    actor_type: ActorType,
    kind: TokenKind,
    data: dict[str, Any],
    expires_delta: timedelta | None,
) -> str:
    settings = get_settings()
    prefix = actor_type.settings_prefix
    now = datetime.now(UTC)

    claims = {
        **data,
        "exp": now + (expires_delta or settings.token_lifetime(prefix, kind.value)),
        "iat": now,
        "type": kind.value,
        "actor": actor_type.value,
        "jti": str(uuid4()),
    }
    return jwt.encode(
        claims,
        settings.token_secret(prefix, kind.value),
        algorithm=settings.token_algorithm,
    )


def create_access_token(
    actor_type: ActorType,
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """Sign an access token with the actor type's access secret.

    data usually holds sub, username and email. exp, iat, type, actor and a
    random jti are added.
    """
    return _encode(actor_type, TokenKind.ACCESS, data, expires_delta)


def create_refresh_token(
    actor_type: ActorType,
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT refresh token.

    The random jti guarantees that two rotations within the same second
    still produce different tokens, which the stored-token comparison
    depends on.
    """
    return _encode(actor_type, TokenKind.REFRESH, data, expires_delta)


def decode_token(token: str, kind: TokenKind, actor_type: ActorType) -> dict[str, Any]:
    """Decode and validate a token of the given kind for the given actor type.

    Args:
        token: Encoded JWT
        kind: Expected token kind
        actor_type: Expected actor type (selects the secret)

    Returns:
        Decoded payload

    Raises:
        JWTError: If the token is invalid, expired, signed with another
            secret, or carries the wrong type/actor claim
    """
    settings = get_settings()
    payload = jwt.decode(
        token,
        settings.token_secret(actor_type.settings_prefix, kind.value),
        algorithms=[settings.token_algorithm],
    )

    if payload.get("type") != kind.value:
        raise JWTError("Invalid token type")
    if payload.get("actor") != actor_type.value:
        raise JWTError("Invalid token actor")
    if not payload.get("sub"):
        raise JWTError("Missing subject")

    return payload


def decode_access_token(token: str, actor_type: ActorType) -> dict[str, Any]:
    """Decode and validate an access token."""
    return decode_token(token, TokenKind.ACCESS, actor_type)


def decode_refresh_token(token: str, actor_type: ActorType) -> dict[str, Any]:
    """Decode and validate a refresh token."""
    return decode_token(token, TokenKind.REFRESH, actor_type)
