# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
User account management functions.

Handles user lookup, the optional password credential and the email
validation shared with provider sign-up.

Assumptions:
- All functions accept session parameter
- Email is the user id field, stored lowercase
- Users are created through provider sign-up; a password is optional and
  provider-only users have password_hash None
"""
from datetime import datetime, UTC
from typing import Optional

from pydantic import EmailStr, TypeAdapter, ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from assent.auth.password import hash_password, verify_password
from assent.database.schema import User

_email_adapter = TypeAdapter(EmailStr)


def normalize_email(email: str) -> str:
    """Validate and normalize an email address.
    
    Args:
        email: Email address as entered or returned by a provider
        
    Returns:
        str: Lowercased, stripped address
        
    Raises:
        ValueError: If the address is not a valid email
    """
    email = (email or "").strip().lower()
    try:
        _email_adapter.validate_python(email)
    except ValidationError as exc:
        raise ValueError(f"Invalid email address: {email!r}") from exc
    return email


def authenticate_user(session: Session, email: str, password: str) -> Optional[User]:
    """Authenticate a user with email and password.
    
    Returns:
        User: User object if authentication succeeds, None otherwise
        
    Assumptions:
    - Returns None for unknown, inactive and password-less users
    - Does not raise exceptions
    """
    user = get_user_by_email(session, email)
    
    if user is None or not user.is_active:
        return None
    
    if not verify_password(password, user.password_hash):
        return None
    
    return user


def get_user_by_email(session: Session, email: str) -> Optional[User]:
    """Get user by email address (case-insensitive)."""
    stmt = select(User).where(User.email == email.lower().strip())
    return session.scalar(stmt)


def get_user_by_id(session: Session, user_id: str) -> Optional[User]:
    """Get user by ID."""
    return session.get(User, user_id)


def set_password(session: Session, user: User, password: str) -> User:
    """Set or replace the user's password.
    
    Gives provider-only users a second way to sign in, which allows them to
    unlink their last identity.
    """
    user.password_hash = hash_password(password)
    user.version += 1
    user.updated_at = datetime.now(UTC)
    
    session.commit()
    session.refresh(user)
    
    return user
