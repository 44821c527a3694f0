# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Database schema for Assent using SQLAlchemy.

Assumptions:
- All entities have id (UUID string), created_at, updated_at
- A user may have no password (provider-only account)
- (provider, uid) identifies an external account and is linked to exactly
  one user; (provider, uid, user_id) is the upsert key
"""
from datetime import datetime, UTC
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    Boolean, DateTime, Integer, String, ForeignKey, UniqueConstraint,
    create_engine
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class TimestampMixin:
    """Mixin for timestamp fields.
    
    Assumptions:
    - created_at is set on insert
    - updated_at is updated on every change
    """
    created_at: Mapped[datetime] = mapped_column(DateTime, default=lambda: datetime.now(UTC), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC), nullable=False)


class User(Base, TimestampMixin):
    """Local user account.
    
    Assumptions:
    - email is the user id field; unique when present
    - password_hash is None for accounts created through a provider
    - version increments on every update
    """
    __tablename__ = "users"
    
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True, index=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    
    # Relationships
    user_identities: Mapped[list["UserIdentity"]] = relationship(
        "UserIdentity",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="UserIdentity.created_at"
    )


class UserIdentity(Base, TimestampMixin):
    """External provider identity linked to a user.
    
    Assumptions:
    - uid is always stored as a string
    - Identities are removed with their user
    """
    __tablename__ = "user_identities"
    __table_args__ = (
        UniqueConstraint("provider", "uid", name="user_identities_uid_provider_index"),
        UniqueConstraint("provider", "uid", "user_id", name="user_identities_uid_provider_user_id_index"),
    )
    
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    provider: Mapped[str] = mapped_column(String(255), nullable=False)
    uid: Mapped[str] = mapped_column(String(255), nullable=False)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    
    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="user_identities")


def init_db(engine=None):
    """Initialize database by creating all tables.
    
    Args:
        engine: SQLAlchemy engine (optional, creates default if not provided)
        
    Assumptions:
    - Creates all tables defined in Base.metadata
    - Safe to call multiple times (no-op if tables exist)
    """
    if engine is None:
        from assent.config import settings
        engine = create_engine(settings.database_url)
    
    Base.metadata.create_all(engine)
    return engine
