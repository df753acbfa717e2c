"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Each class = one table. Alembic migrations mirror these definitions.

Key concepts:
- UUID primary keys for users (generated at creation, never change)
- Small integer ids for the fixed role set (referenced by clients as role_id)
- Sessions hold the opaque refresh token; the access JWT is never stored
- The generic Uuid type maps to native UUID on PostgreSQL and CHAR(32)
  elsewhere, so the same models run against SQLite in tests
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Integer,
    String,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


def as_utc(value: datetime) -> datetime:
    """Attach UTC to datetimes read back without a zone (SQLite)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ─── Roles ─────────────────────────────────────────────────

ROLE_CHILD = "Child"
ROLE_PARENT = "Parent"
ROLE_CONTENT_MANAGER = "Content-manager"
ROLE_ADMINISTRATOR = "Administrator"

# id → name, in the order the platform has always numbered them.
DEFAULT_ROLES: dict[int, str] = {
    1: ROLE_CHILD,
    2: ROLE_PARENT,
    3: ROLE_CONTENT_MANAGER,
    4: ROLE_ADMINISTRATOR,
}

# Roles an anonymous caller may pick at signup. Staff accounts are created
# by an administrator (edtech create-user).
SELF_SIGNUP_ROLES = (ROLE_CHILD, ROLE_PARENT)


class Role(Base):
    """A user role. Read-mostly reference data seeded by the migration."""

    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)


# ─── Users ─────────────────────────────────────────────────

USER_ACTIVE = "active"
USER_INACTIVE = "inactive"


class User(Base):
    """A platform account (child, parent, content manager or admin).

    Learn: password_hash is a bcrypt hash ($2b$...). The plaintext
    password is never stored or logged.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=new_uuid
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    surname: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("roles.id"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=USER_ACTIVE
    )  # active, inactive
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    @property
    def is_active(self) -> bool:
        return self.status == USER_ACTIVE


# ─── Sessions ──────────────────────────────────────────────


class Session(Base):
    """A refresh session backing the session_token cookie.

    Learn: A row past its expires_at is dead even if it is still in the
    table; reads filter on expiry instead of relying on cleanup.
    """

    __tablename__ = "sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    refresh_token: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
