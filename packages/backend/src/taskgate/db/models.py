"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Each class = one table. Relationships, constraints, and indexes defined here.
Alembic auto-generates migrations by comparing these models to the actual DB.

Key concepts:
- UUID primary keys for identities (opaque, store-assigned)
- The two uniqueness constraints the auth core relies on are declared here:
  identities.email and linked_accounts(provider, provider_account_id).
  Concurrent find-or-create races turn into IntegrityError instead of
  duplicate rows.
- Portable column types (Uuid, JSON) so the same schema runs on PostgreSQL
  in production and SQLite in tests
- Timestamps are set Python-side in UTC, so they are populated right after
  flush without a refresh
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from taskgate.identity.roles import Role


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo), convert aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


# Column widths that request schemas and services validate against.
NAME_MAX_LENGTH = 100
EMAIL_MAX_LENGTH = 255


# ══════════════════════════════════════════════════════════════
# Identities and linked provider accounts
# ══════════════════════════════════════════════════════════════


class Identity(Base):
    """The canonical user record.

    Learn: One row per human, however they sign in. password_hash is only
    set once credential registration (or a password reset) happened; pure
    OAuth identities leave it NULL and can never pass the password check.
    role is nullable only because legacy rows may lack it — new rows always
    get USER, and nothing automated ever writes SUPER.
    """

    __tablename__ = "identities"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=new_uuid
    )
    name: Mapped[Optional[str]] = mapped_column(String(NAME_MAX_LENGTH), nullable=True)
    email: Mapped[str] = mapped_column(String(EMAIL_MAX_LENGTH), unique=True, nullable=False)
    password_hash: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )  # NULL for OAuth-only identities
    image: Mapped[Optional[str]] = mapped_column(
        Text, nullable=True
    )  # URL or data: URI, stored verbatim
    role: Mapped[Optional[str]] = mapped_column(
        String(10), nullable=True, default=Role.USER.value
    )  # USER, SUPER
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    # Relationships
    accounts: Mapped[list["LinkedAccount"]] = relationship(back_populates="owner")


class LinkedAccount(Base):
    """Binding from one external provider account to exactly one Identity.

    Learn: Created lazily on the first successful OAuth sign-in for a
    (provider, provider_account_id) pair and never reassigned. The provider
    tokens are stored as an opaque JSON blob — nothing in taskgate reads them.
    """

    __tablename__ = "linked_accounts"
    __table_args__ = (
        UniqueConstraint(
            "provider", "provider_account_id", name="uq_linked_accounts_provider"
        ),
        Index("ix_linked_accounts_owner", "owner_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=new_uuid
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("identities.id"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False, default="oauth")
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    provider_account_id: Mapped[str] = mapped_column(String(255), nullable=False)
    tokens: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    owner: Mapped["Identity"] = relationship(back_populates="accounts")


# ══════════════════════════════════════════════════════════════
# Tasks
# ══════════════════════════════════════════════════════════════


class Task(Base):
    """A scheduled to-do item owned by one identity.

    Learn: completed_at is stamped when a task flips to completed and
    cleared when it flips back; the notification window orders the
    "recently completed" list by it.
    """

    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_owner_scheduled", "owner_id", "scheduled_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("identities.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    scheduled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )
