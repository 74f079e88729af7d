"""SQLAlchemy ORM models — single source of truth for the database schema.

Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Generic column types (Uuid, String, Boolean) keep the schema portable:
PostgreSQL via asyncpg in production, SQLite via aiosqlite in tests.

Tables:
- centers: the tenants (memorization centers)
- accounts: people who can sign in; display names are NOT unique
- memberships: (account, role, center) grants; center is NULL for super_admin
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from halaqa.identity.roles import Grant, Role


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


class Center(Base):
    """A memorization center — the tenant boundary for roles and data."""

    __tablename__ = "centers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    requires_approval: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    memberships: Mapped[list["Membership"]] = relationship(back_populates="center")


class Account(Base):
    """Someone who can sign in.

    full_name is what people type on the login screen and is not unique.
    email is an optional contact address. login_handle is the canonical
    credential key; for accounts created without an email it is a
    synthetic address nobody reads.
    """

    __tablename__ = "accounts"
    __table_args__ = (
        Index("ix_accounts_full_name", "full_name"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(
        String(255), unique=True, nullable=True
    )
    login_handle: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False
    )
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )

    memberships: Mapped[list["Membership"]] = relationship(
        back_populates="account", cascade="all, delete-orphan"
    )


class Membership(Base):
    """A role granted to an account, scoped to a center.

    Immutable once created; revoking a role deletes the row.
    """

    __tablename__ = "memberships"
    __table_args__ = (
        UniqueConstraint(
            "account_id", "role", "center_id", name="uq_memberships_account_role_center"
        ),
        Index("ix_memberships_account", "account_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id"), nullable=False
    )
    role: Mapped[str] = mapped_column(String(32), nullable=False)
    center_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("centers.id"), nullable=True
    )  # NULL only for global roles
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    account: Mapped["Account"] = relationship(back_populates="memberships")
    center: Mapped[Optional["Center"]] = relationship(back_populates="memberships")

    def to_grant(self) -> Grant:
        return Grant(role=Role(self.role), center_id=self.center_id, id=self.id)
