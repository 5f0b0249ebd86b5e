"""Bearer token creation and verification.

Learn: Legacy clients authenticate with a self-contained HS256 JWT instead
of the session cookie. The token carries the user id (`sub`), role and
email, and expires after COLLAB_TOKEN_EXPIRE_DAYS (7 by default).
Only the `sub` claim is trusted for identity; role and email are reloaded
from the users table on every request.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from collabspace.config import settings


class TokenError(Exception):
    """Raised when token verification fails."""


def create_access_token(
    user_id: str,
    role: str,
    email: str,
    expires_days: Optional[int] = None,
) -> str:
    """Create a signed bearer token for a user."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "role": role,
        "email": email,
        "iat": now,
        "exp": now + timedelta(days=expires_days or settings.token_expire_days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict:
    """Verify and decode a bearer token.

    Returns the payload dict on success.
    Raises TokenError on failure (bad signature, expired, malformed).
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")
    return payload
