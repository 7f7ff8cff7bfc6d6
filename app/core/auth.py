"""JWT utilities for API access tokens and OAuth state tokens."""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from app.settings import settings

# Validate JWT secret key at startup
_DEFAULT_SECRET = "dev-secret-key-change-in-production"

OAUTH_STATE_PURPOSE = "telephony_oauth_state"

if settings.is_production and settings.jwt_secret_key == _DEFAULT_SECRET:
    raise RuntimeError(
        "SECURITY ERROR: JWT_SECRET_KEY environment variable must be set in production. "
        "Cannot use default secret key."
    )


def create_access_token(data: dict[str, Any], expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token.

    Args:
        data: Data to encode in the token
        expires_delta: Optional expiration time delta

    Returns:
        Encoded JWT token
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.jwt_access_token_expire_minutes
        )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Decode and verify a JWT access token.

    Args:
        token: JWT token to decode

    Returns:
        Decoded token payload or None if invalid
    """
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


def create_oauth_state(user_id: int) -> tuple[str, str]:
    """Create a signed, short-lived OAuth state parameter for a user.

    Returns:
        Tuple of (state token, nonce). The nonce identifies the state for
        single-use bookkeeping.
    """
    nonce = secrets.token_urlsafe(16)
    state = create_access_token(
        {"sub": str(user_id), "purpose": OAUTH_STATE_PURPOSE, "nonce": nonce},
        expires_delta=timedelta(seconds=settings.telephony_oauth_state_ttl_seconds),
    )
    return state, nonce


def decode_oauth_state(state: str) -> tuple[int, str] | None:
    """Verify an OAuth state parameter.

    Returns:
        Tuple of (user_id, nonce), or None if the state is invalid or expired
    """
    payload = decode_access_token(state)
    if not payload or payload.get("purpose") != OAUTH_STATE_PURPOSE:
        return None
    try:
        return int(payload["sub"]), str(payload["nonce"])
    except (KeyError, TypeError, ValueError):
        return None
