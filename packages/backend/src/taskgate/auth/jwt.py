"""JWT token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication.
- Access token: short-lived (60min), carries `sub` and a cached `role`
- Refresh token: long-lived (30 days), carries only `sub` — so every
  refresh is a cache miss and re-reads the role from the store
- OAuth state token: ~10min, round-trips through the provider redirect
  to tie the callback to the authorize request

Nothing here touches the database; enrichment happens in auth.session.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from taskgate.config import settings

ACCESS = "access"
REFRESH = "refresh"
OAUTH_STATE = "oauth_state"


class TokenError(Exception):
    """Raised when token creation/verification fails."""


def _encode(payload: dict, lifetime: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload = {**payload, "iat": now, "exp": now + lifetime}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_access_token(
    identity_id: str,
    role: Optional[str] = None,
    expires_minutes: Optional[int] = None,
) -> str:
    """Create a JWT access token. role is omitted when unknown."""
    payload = {"sub": identity_id, "type": ACCESS}
    if role:
        payload["role"] = role
    return _encode(
        payload,
        timedelta(minutes=expires_minutes or settings.access_token_expire_minutes),
    )


def create_refresh_token(
    identity_id: str,
    expires_days: Optional[int] = None,
) -> str:
    """Create a JWT refresh token."""
    return _encode(
        {"sub": identity_id, "type": REFRESH},
        timedelta(days=expires_days or settings.refresh_token_expire_days),
    )


def create_state_token(provider: str) -> str:
    """Signed, short-lived OAuth `state` value bound to one provider."""
    return _encode(
        {"provider": provider, "nonce": secrets.token_urlsafe(16), "type": OAUTH_STATE},
        timedelta(seconds=settings.oauth_state_ttl_seconds),
    )


def verify_token(token: str, expected_type: Optional[str] = None) -> dict:
    """Verify and decode a JWT token.

    Returns the payload dict on success.
    Raises TokenError on failure, including a type mismatch.
    """
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")

    if expected_type and payload.get("type") != expected_type:
        raise TokenError(f"Wrong token type, expected {expected_type}")
    return payload
