"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] +
mapped_column). Each class = one collection of documents. Portable column
types (Uuid, JSON) keep the same models working on PostgreSQL in
production and SQLite in tests.

Key concepts:
- UUID primary keys, stringified whenever they leave the database
- JSON columns for list-valued document fields (members, tags)
- UTC-aware timestamps everywhere (see UTCDateTime)
"""

import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


class UTCDateTime(TypeDecorator):
    """DateTime that always comes back timezone-aware (UTC).

    SQLite has no timezone support and returns naive values; comparing
    those with datetime.now(timezone.utc) would raise.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


# ══════════════════════════════════════════════════════════════
# Identity: users, sessions, login throttling
# ══════════════════════════════════════════════════════════════


class User(Base):
    """A registered account.

    Learn: password_hash never leaves the service layer. Routes and the
    authenticator hand out CurrentUser / UserRead, which have no such field.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default="user"
    )  # user, admin
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow
    )


class AuthSession(Base):
    """Server-side login session, addressed by the opaque `sid` cookie.

    Learn: One row per successful login. expires_at is fixed at creation
    (no sliding renewal). Rows past expires_at are ignored by the
    authenticator and deleted by the purge loop.
    """

    __tablename__ = "sessions"
    __table_args__ = (
        Index("idx_sessions_expires_at", "expires_at"),
        Index("idx_sessions_user", "user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sid: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.expires_at <= (now or utcnow())


class LoginAttempt(Base):
    """Failed-login counter for one throttle key (client IP) and window."""

    __tablename__ = "login_attempts"
    __table_args__ = (
        UniqueConstraint("key", name="uq_login_attempts_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(255), nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    first_attempt_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


# ══════════════════════════════════════════════════════════════
# Collaboration: projects and their scoped resources
# ══════════════════════════════════════════════════════════════


class Project(Base):
    """A shared workspace. Members can read and write its resources.

    Learn: `members` is the single canonical membership list (user id
    strings). The owner and creator count as members even if unlisted.
    """

    __tablename__ = "projects"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    members: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow
    )


class Note(Base):
    __tablename__ = "notes"
    __table_args__ = (
        Index("idx_notes_author", "author_id"),
        Index("idx_notes_project", "project_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    body_markdown: Mapped[str] = mapped_column(Text, nullable=False, default="")
    project_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    visibility: Mapped[str] = mapped_column(
        String(20), nullable=False, default="project"
    )  # project, private
    author_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow
    )


class Todo(Base):
    __tablename__ = "todos"
    __table_args__ = (
        Index("idx_todos_owner", "owner_id"),
        Index("idx_todos_project", "project_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    done: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    project_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow
    )


class ChatMessage(Base):
    """A project chat message. Members other than the author get a
    `chat-message` realtime event when it is posted."""

    __tablename__ = "messages"
    __table_args__ = (
        Index("idx_messages_project_created", "project_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    project_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    author_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)


class Invitation(Base):
    __tablename__ = "invitations"
    __table_args__ = (
        Index("idx_invitations_invitee_status", "invited_user_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    project_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    project_name: Mapped[str] = mapped_column(String(200), nullable=False)
    inviter_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    inviter_name: Mapped[str] = mapped_column(String(255), nullable=False)
    invited_user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    invited_user_email: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending"
    )  # pending, accepted, declined
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    responded_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime, nullable=True
    )
