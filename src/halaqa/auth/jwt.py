"""JWT token creation and verification.

- Access token: short-lived, sent as Bearer on API calls
- Refresh token: long-lived, exchanged at /auth/refresh for a new pair

Both carry the account id as ``sub``. The access token also carries the
center the session was opened for (``center_id``) when there was one.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from halaqa.config import settings


class TokenError(Exception):
    """Raised when token creation/verification fails."""


def _encode(payload: dict) -> str:
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_access_token(
    account_id: str,
    center_id: Optional[str] = None,
    expires_minutes: Optional[int] = None,
) -> str:
    """Create a JWT access token."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": account_id,
        "type": "access",
        "jti": uuid.uuid4().hex,
        "exp": now + timedelta(
            minutes=expires_minutes or settings.access_token_expire_minutes
        ),
        "iat": now,
    }
    if center_id:
        payload["center_id"] = center_id
    return _encode(payload)


def create_refresh_token(
    account_id: str,
    center_id: Optional[str] = None,
    expires_days: Optional[int] = None,
) -> str:
    """Create a JWT refresh token."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": account_id,
        "type": "refresh",
        "jti": uuid.uuid4().hex,
        "exp": now + timedelta(
            days=expires_days or settings.refresh_token_expire_days
        ),
        "iat": now,
    }
    if center_id:
        payload["center_id"] = center_id
    return _encode(payload)


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
        raise TokenError(f"Expected a {expected_type} token")
    return payload
