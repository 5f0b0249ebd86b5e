"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to extract and
validate the current user from the request. get_current_user_optional is
the "soft" form (None when anonymous); get_current_user is the "hard" form
that answers 401 before the handler body runs, so no side effects happen
for unauthenticated callers.
"""

from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from collabspace.auth.strategies import Authenticator, CurrentUser, build_authenticator
from collabspace.db.engine import get_db
from collabspace.errors import Unauthenticated


def get_authenticator(request: Request) -> Authenticator:
    """The app's authenticator (built once in create_app)."""
    authenticator = getattr(request.app.state, "authenticator", None)
    if authenticator is None:
        authenticator = build_authenticator()
        request.app.state.authenticator = authenticator
    return authenticator


async def get_current_user_optional(
    request: Request,
    db: AsyncSession = Depends(get_db),
    authenticator: Authenticator = Depends(get_authenticator),
) -> Optional[CurrentUser]:
    return await authenticator.resolve_user(request, db)


async def get_current_user(
    user: Optional[CurrentUser] = Depends(get_current_user_optional),
) -> CurrentUser:
    if user is None:
        raise Unauthenticated()
    return user
