"""Credential extraction strategies and the authenticator that chains them.

Learn: Each strategy looks at one part of the request (a cookie, a header)
and either yields a user id or None. The Authenticator tries them in order
and the first hit wins, so the session cookie takes precedence over a
bearer token sent on the same request.

Nothing here raises for "not authenticated". A missing, expired, forged
or dangling credential resolves to None, and the route decides the status.
"""

import uuid
from typing import Optional, Protocol, Sequence

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import HTTPConnection

from collabspace.auth.jwt import TokenError, verify_token
from collabspace.auth.sessions import SessionStore
from collabspace.config import settings
from collabspace.db.models import User

logger = structlog.get_logger()


class CurrentUser:
    """The authenticated user, minus anything secret.

    Built from a User row; the password hash is deliberately not copied.
    """

    def __init__(
        self,
        id: uuid.UUID,
        email: str,
        name: Optional[str] = None,
        role: str = "user",
        via: str = "session",
    ):
        self.id = id
        self.email = email
        self.name = name
        self.role = role
        self.via = via  # "session" or "bearer"

    @classmethod
    def from_user(cls, user: User, via: str) -> "CurrentUser":
        return cls(id=user.id, email=user.email, name=user.name, role=user.role, via=via)

    @property
    def display_name(self) -> str:
        return self.name or self.email

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "email": self.email,
            "name": self.name,
            "role": self.role,
        }


class CredentialStrategy(Protocol):
    name: str

    async def extract_user_id(
        self, conn: HTTPConnection, db: AsyncSession
    ) -> Optional[uuid.UUID]:
        ...


class SessionCookieStrategy:
    """`sid` cookie → live session row → user id."""

    name = "session"

    def __init__(self, cookie_name: str = "sid"):
        self.cookie_name = cookie_name

    async def extract_user_id(
        self, conn: HTTPConnection, db: AsyncSession
    ) -> Optional[uuid.UUID]:
        sid = conn.cookies.get(self.cookie_name)
        if not sid:
            return None
        session = await SessionStore(db).get_session_by_sid(sid)
        if session is None or session.is_expired():
            return None
        return session.user_id


class BearerTokenStrategy:
    """`Authorization: Bearer <jwt>` → verified `sub` claim → user id."""

    name = "bearer"

    async def extract_user_id(
        self, conn: HTTPConnection, db: AsyncSession
    ) -> Optional[uuid.UUID]:
        token = _bearer_token(conn.headers.get("authorization"))
        if not token:
            return None
        try:
            payload = verify_token(token)
            return uuid.UUID(str(payload["sub"]))
        except (TokenError, ValueError) as e:
            logger.debug("auth.bearer_rejected", reason=str(e))
            return None


def _bearer_token(header: Optional[str]) -> Optional[str]:
    if not header:
        return None
    scheme, _, token = header.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class Authenticator:
    """Resolve a request to a CurrentUser using an ordered strategy list."""

    def __init__(self, strategies: Sequence[CredentialStrategy]):
        self.strategies = list(strategies)

    async def resolve_user(
        self, conn: HTTPConnection, db: AsyncSession
    ) -> Optional[CurrentUser]:
        for strategy in self.strategies:
            user_id = await strategy.extract_user_id(conn, db)
            if user_id is None:
                continue
            user = await db.get(User, user_id)
            if user is None:
                # Credential outlived its account; let the next source try.
                continue
            return CurrentUser.from_user(user, via=strategy.name)
        return None


def build_authenticator() -> Authenticator:
    """Authenticator configured from settings (cookie first, then bearer)."""
    strategies: list[CredentialStrategy] = [
        SessionCookieStrategy(settings.session_cookie_name)
    ]
    if settings.bearer_auth_enabled:
        strategies.append(BearerTokenStrategy())
    return Authenticator(strategies)


def require_role(user: Optional[CurrentUser], role: str) -> bool:
    """True if the user holds `role`. Admin satisfies every role check."""
    if user is None or not user.role:
        return False
    return user.role == role or user.role == "admin"
