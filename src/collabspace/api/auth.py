"""Auth API — registration, cookie-session login/logout, profile.

Learn: Routes for the account lifecycle:
- POST /auth/register → create a user (201)
- POST /auth/login → throttle check, password check, new session + cookie
- POST /auth/logout → delete the cookie's session, expire the cookie
- GET /auth/me → current user (never includes the password hash)
- POST /auth/change-password → requires the current password, ends the
  user's other sessions
- POST /auth/update-profile → email / name

Login failures always answer "invalid credentials" whether the email
exists or not; five failures from one client inside the window lock that
client out with 429 until the window passes.
"""

import math
from datetime import timedelta
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from collabspace.auth.dependencies import get_current_user
from collabspace.auth.jwt import create_access_token
from collabspace.auth.sessions import SessionStore
from collabspace.auth.strategies import CurrentUser
from collabspace.auth.throttle import (
    LoginThrottle,
    RedisAttemptStore,
    SqlAttemptStore,
    client_key,
)
from collabspace.config import settings
from collabspace.db.engine import get_db
from collabspace.db.models import User
from collabspace.errors import TooManyRequests, Unauthenticated
from collabspace.realtime.pubsub import get_redis, redis_available
from collabspace.services.user_service import UserService

logger = structlog.get_logger()
router = APIRouter(prefix="/auth")


# ─── Schemas ─────────────────────────────────────────────


class RegisterRequest(BaseModel):
    email: str = Field(..., max_length=255)
    password: str
    name: Optional[str] = Field(None, max_length=100)


class LoginRequest(BaseModel):
    email: str
    password: str


class ChangePasswordRequest(BaseModel):
    currentPassword: str
    newPassword: str


class UpdateProfileRequest(BaseModel):
    email: str = ""
    name: Optional[str] = Field(None, max_length=100)


def user_payload(user: User | CurrentUser) -> dict:
    return {
        "id": str(user.id),
        "email": user.email,
        "name": user.name,
        "role": user.role,
    }


def get_login_throttle(db: AsyncSession = Depends(get_db)) -> LoginThrottle:
    """Throttle backed by the configured counter store.

    Falls back to the database when Redis was requested but isn't connected.
    """
    if settings.rate_limit_backend == "redis" and redis_available():
        store = RedisAttemptStore(get_redis())
    else:
        store = SqlAttemptStore(db)
    return LoginThrottle(
        store,
        max_attempts=settings.login_max_attempts,
        window=timedelta(minutes=settings.login_window_minutes),
    )


def set_session_cookie(response: Response, sid: str) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=sid,
        max_age=settings.session_ttl_seconds,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )


def clear_session_cookie(response: Response) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value="",
        max_age=0,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )


# ─── Register ────────────────────────────────────────────


@router.post("/register", status_code=201)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """Create a new user account."""
    user = await UserService(db).register(
        email=body.email, password=body.password, name=body.name
    )
    return {"ok": True, "user": user_payload(user)}


# ─── Login / logout ──────────────────────────────────────


@router.post("/login")
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    throttle: LoginThrottle = Depends(get_login_throttle),
):
    """Email + password → server-side session (cookie)."""
    key = client_key(request)
    decision = await throttle.check(key)
    limit_headers = {
        "X-RateLimit-Limit": str(throttle.max_attempts),
        "X-RateLimit-Remaining": str(decision.remaining),
    }
    if not decision.allowed:
        logger.warning("auth.login_locked", client=key)
        raise TooManyRequests(
            "too many login attempts",
            headers={**limit_headers, "Retry-After": str(decision.retry_after)},
            detail=(
                "Too many login attempts. Please try again in "
                f"{math.ceil(decision.retry_after / 60)} minutes."
            ),
            retryAfter=decision.retry_after,
        )

    user = await UserService(db).authenticate(body.email, body.password)
    if user is None:
        await throttle.record_failure(key)
        logger.info("auth.login_failed", client=key)
        raise Unauthenticated("invalid credentials", headers=limit_headers)

    await throttle.reset(key)
    session = await SessionStore(db).create_session(user.id)
    set_session_cookie(response, session.sid)
    response.headers.update(limit_headers)
    logger.info("auth.login", user_id=str(user.id))

    payload = {"ok": True, "user": user_payload(user)}
    if settings.bearer_auth_enabled:
        payload["token"] = create_access_token(str(user.id), user.role, user.email)
    return payload


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Drop the current session (if any) and expire the cookie."""
    sid = request.cookies.get(settings.session_cookie_name)
    if sid:
        await SessionStore(db).delete_session_by_sid(sid)
    clear_session_cookie(response)
    return {"ok": True}


# ─── Current user ───────────────────────────────────────


@router.get("/me")
async def get_me(user: CurrentUser = Depends(get_current_user)):
    return {"ok": True, "user": user_payload(user)}


@router.post("/change-password")
async def change_password(
    body: ChangePasswordRequest,
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await UserService(db).change_password(
        user.id, body.currentPassword, body.newPassword
    )
    # Other logins end here; bearer tokens run out on their own expiry.
    revoked = await SessionStore(db).delete_sessions_for_user(
        user.id, keep_sid=request.cookies.get(settings.session_cookie_name)
    )
    logger.info("auth.password_changed", user_id=str(user.id), revoked_sessions=revoked)
    return {"ok": True, "message": "password changed"}


@router.post("/update-profile")
async def update_profile(
    body: UpdateProfileRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    updated = await UserService(db).update_profile(user.id, body.email, body.name)
    return {"ok": True, "message": "profile updated", "user": user_payload(updated)}
