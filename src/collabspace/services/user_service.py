"""User service — registration, credential checks, profile changes.

Learn: Service layer separates business logic from HTTP routing. Routes
call services, services call the database, so the same logic is usable
from the CLI (create-admin) and from tests without HTTP.
"""

import re
import uuid
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from collabspace.auth.password import hash_password, needs_rehash, verify_password
from collabspace.db.models import User
from collabspace.errors import Conflict, InvalidInput, NotFound, Unauthenticated

logger = structlog.get_logger()

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 8
MIN_NEW_PASSWORD_LENGTH = 6


def is_email(value: Optional[str]) -> bool:
    return isinstance(value, str) and bool(EMAIL_RE.match(value))


class UserService:
    """Business logic for accounts."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalars().first()

    async def get(self, user_id: uuid.UUID) -> Optional[User]:
        return await self.db.get(User, user_id)

    # ─── Registration ───────────────────────────────────

    async def register(
        self,
        email: str,
        password: str,
        name: Optional[str] = None,
        role: str = "user",
    ) -> User:
        if not is_email(email):
            raise InvalidInput("invalid email")
        if len(password.strip()) < MIN_PASSWORD_LENGTH:
            raise InvalidInput(f"password too short (min {MIN_PASSWORD_LENGTH})")
        if await self.get_by_email(email):
            raise Conflict("user exists")

        user = User(
            email=email,
            name=name or None,
            password_hash=hash_password(password),
            role=role,
        )
        self.db.add(user)
        await self.db.commit()
        logger.info("users.registered", user_id=str(user.id))
        return user

    # ─── Credentials ────────────────────────────────────

    async def authenticate(self, email: str, password: str) -> Optional[User]:
        """Return the user if the password matches, else None.

        Unknown email and wrong password are indistinguishable to callers.
        """
        user = await self.get_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            return None

        # Transparently move old hashes to the configured cost.
        if needs_rehash(user.password_hash):
            user.password_hash = hash_password(password)
            await self.db.commit()
        return user

    async def change_password(
        self, user_id: uuid.UUID, current_password: str, new_password: str
    ) -> None:
        if len(new_password) < MIN_NEW_PASSWORD_LENGTH:
            raise InvalidInput(
                f"password must be at least {MIN_NEW_PASSWORD_LENGTH} characters"
            )
        user = await self.get(user_id)
        if user is None or not verify_password(current_password, user.password_hash):
            raise Unauthenticated("invalid credentials")

        user.password_hash = hash_password(new_password)
        await self.db.commit()
        logger.info("users.password_changed", user_id=str(user_id))

    async def update_profile(
        self, user_id: uuid.UUID, email: str, name: Optional[str] = None
    ) -> User:
        email = (email or "").strip()
        if not email:
            raise InvalidInput("email required")
        if not is_email(email):
            raise InvalidInput("invalid email")

        user = await self.get(user_id)
        if user is None:
            raise NotFound("user not found")

        result = await self.db.execute(
            select(User).where(User.email == email, User.id != user_id)
        )
        if result.scalars().first():
            raise Conflict("email already in use")

        user.email = email
        if name is not None:
            user.name = name.strip() or None
        await self.db.commit()
        return user

    async def set_role(self, user_id: uuid.UUID, role: str) -> User:
        if role not in ("user", "admin"):
            raise InvalidInput("role must be user or admin")
        user = await self.get(user_id)
        if user is None:
            raise NotFound("user not found")
        user.role = role
        await self.db.commit()
        return user
