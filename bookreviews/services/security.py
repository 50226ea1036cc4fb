"""
Security Service

Handles the Bearer tokens issued by the authentication service.

Tokens are HS256 JWTs signed with the shared SECRET_KEY:
- sub: the user id
- role: "user" or "moderator"
- type: "access"

This service only verifies tokens and turns them into an Actor.
create_access_token exists for tooling and tests that need to act as a
given user; in production, tokens come from the authentication service.

Usage:
    from bookreviews.services.security import actor_from_token

    actor = actor_from_token(token)
    if actor is None:
        ...  # 401
"""

import logging
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from bookreviews.config import get_settings
from bookreviews.models.user import Actor, Role

logger = logging.getLogger(__name__)
settings = get_settings()

ACCESS_TOKEN_EXPIRE_MINUTES = 15


def create_access_token(
    user_id: int,
    role: Role = Role.USER,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a signed access token for a user.

    Example:
        >>> token = create_access_token(7, Role.MODERATOR)
        >>> token.count(".") == 2  # JWT format: header.payload.signature
        True
    """
    expire = datetime.now(UTC) + (
        expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode = {
        "sub": str(user_id),
        "role": Role(role).value,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict | None:
    """
    Decode and validate a JWT token.

    Returns:
        Decoded payload if valid, None if invalid or expired
    """
    try:
        return jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as e:
        logger.warning(f"JWT decode error: {e}")
        return None


def actor_from_token(token: str) -> Actor | None:
    """
    Build the acting user from an access token.

    Returns:
        Actor if the token is a valid access token with a numeric subject
        and a known role, None otherwise
    """
    payload = decode_token(token)
    if payload is None:
        return None

    if payload.get("type") != "access":
        logger.warning(f"Token type mismatch: expected access, got {payload.get('type')}")
        return None

    try:
        user_id = int(payload["sub"])
        role = Role(payload.get("role", Role.USER.value))
    except (KeyError, TypeError, ValueError):
        logger.warning("Access token with malformed subject or role")
        return None

    return Actor(user_id=user_id, role=role)
