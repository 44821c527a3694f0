# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
User identity context.

Links external provider identities to local users: lookup by provider uid,
upsert for a signed-in user, create a new user bound to an identity, and
unlink a provider.

Assumptions:
- All functions accept session parameter and commit their own writes
- The (provider, uid) unique constraint is the only guard against two users
  claiming the same external account; no in-process locking
- uid values are compared and stored as strings
- A user must keep at least one way to sign in (an identity or a password)
"""
from datetime import datetime, UTC
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import delete as sql_delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from assent.auth.user import get_user_by_email, normalize_email
from assent.database.schema import User, UserIdentity
from assent.errors import (
    BoundToDifferentUserError, IdentityValidationError,
    InvalidUserIdFieldError, NoPasswordError
)
from assent.logging_utils import log_audit_event, log_security_event

KEY_FIELDS = ("provider", "uid")
PROTECTED_FIELDS = {"id", "user_id", "provider", "uid", "created_at", "updated_at"}
USER_FIELDS = ("email", "name")


def get_user_by_provider_uid(session: Session, provider: str, uid: Any) -> Optional[User]:
    """Find the user linked to a provider uid.

    Args:
        session: Database session
        provider: Provider name (e.g. "github")
        uid: External user id; integers are stringified

    Returns:
        User: Linked user, or None
    """
    stmt = (
        select(User)
        .join(UserIdentity, UserIdentity.user_id == User.id)
        .where(UserIdentity.provider == provider, UserIdentity.uid == str(uid))
    )
    return session.scalar(stmt)


def upsert(session: Session, user: User, user_identity_params: Mapping[str, Any]) -> UserIdentity:
    """Insert or update an identity for the user.

    Args:
        session: Database session
        user: User to link the identity to
        user_identity_params: Must contain provider and uid; other keys
            update matching identity columns

    Returns:
        UserIdentity: The inserted or updated identity

    Raises:
        BoundToDifferentUserError: If (provider, uid) is linked to another user
        IdentityValidationError: If provider or uid is missing

    Assumptions:
    - Calling twice with the same (user, provider, uid) updates, never duplicates
    - On conflict nothing is written for either user
    """
    params = _convert_params(user_identity_params)
    additional_params = {key: value for key, value in params.items() if key not in KEY_FIELDS}

    identity = _get_for_user(session, user, params["provider"], params["uid"])

    if identity is not None:
        return _update_identity(session, user, identity, additional_params)

    identity = UserIdentity(
        user_id=user.id,
        provider=params["provider"],
        uid=params["uid"],
        **_identity_columns(additional_params)
    )
    session.add(identity)

    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        # Lost an insert race; the row may be ours or someone else's
        identity = _get_by_provider_uid(session, params["provider"], params["uid"])
        if identity is not None and identity.user_id == user.id:
            return _update_identity(session, user, identity, additional_params)
        _raise_bound_to_different_user(user.id, params, exc)

    session.refresh(identity)

    log_audit_event(
        user_id=user.id,
        operation="create",
        entity_type="UserIdentity",
        entity_id=identity.id,
        changes={"provider": identity.provider, "uid": identity.uid}
    )

    return identity


def create_user(
    session: Session,
    user_identity_params: Mapping[str, Any],
    user_params: Optional[Mapping[str, Any]] = None,
    user_id_params: Optional[Mapping[str, Any]] = None
) -> User:
    """Create a password-less user together with its first identity.

    Args:
        session: Database session
        user_identity_params: Must contain provider and uid
        user_params: Profile fields for the user (email, name)
        user_id_params: User id field override, e.g. {"email": ...} entered
            by the user when the provider didn't supply one

    Returns:
        User: Created user with user_identities loaded

    Raises:
        BoundToDifferentUserError: If (provider, uid) is already linked
        InvalidUserIdFieldError: If email is missing, invalid or taken
        IdentityValidationError: If provider or uid is missing

    Assumptions:
    - User and identity are written in one commit; either both exist or neither
    """
    params = _convert_params(user_identity_params)
    attributes = {
        key: value
        for key, value in {**(user_params or {}), **(user_id_params or {})}.items()
        if key in USER_FIELDS
    }

    try:
        attributes["email"] = normalize_email(attributes.get("email") or "")
    except ValueError as exc:
        raise InvalidUserIdFieldError(str(exc)) from exc

    if _get_by_provider_uid(session, params["provider"], params["uid"]) is not None:
        _raise_bound_to_different_user(None, params)

    if get_user_by_email(session, attributes["email"]) is not None:
        raise InvalidUserIdFieldError(f"Email {attributes['email']!r} has already been taken")

    user = User(password_hash=None, is_active=True, **attributes)
    user.user_identities.append(
        UserIdentity(
            provider=params["provider"],
            uid=params["uid"],
            **_identity_columns({key: value for key, value in params.items() if key not in KEY_FIELDS})
        )
    )
    session.add(user)

    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        if _get_by_provider_uid(session, params["provider"], params["uid"]) is not None:
            _raise_bound_to_different_user(None, params, exc)
        if get_user_by_email(session, attributes["email"]) is not None:
            raise InvalidUserIdFieldError(f"Email {attributes['email']!r} has already been taken") from exc
        raise IdentityValidationError(str(exc.orig)) from exc

    session.refresh(user)

    log_audit_event(
        user_id=user.id,
        operation="create",
        entity_type="User",
        entity_id=user.id,
        changes={"email": user.email, "provider": params["provider"], "uid": params["uid"]}
    )

    return user


def delete(session: Session, user: User, provider: str) -> int:
    """Remove all of the user's identities for a provider.

    Args:
        session: Database session
        user: Identity owner
        provider: Provider name

    Returns:
        int: Number of identities deleted

    Raises:
        NoPasswordError: If the user has no password and no identity for
            another provider; nothing is deleted
    """
    identities = all(session, user)
    rest = [identity for identity in identities if identity.provider != provider]

    if not rest and user.password_hash is None:
        log_security_event(
            "identity_delete_blocked",
            user_id=user.id,
            provider=provider,
            reason="no_password"
        )
        raise NoPasswordError("User has no password set and no other identity")

    result = session.execute(
        sql_delete(UserIdentity).where(
            UserIdentity.user_id == user.id,
            UserIdentity.provider == provider
        )
    )
    session.commit()
    session.expire(user, ["user_identities"])

    log_audit_event(
        user_id=user.id,
        operation="delete",
        entity_type="UserIdentity",
        entity_id=provider,
        changes={"provider": provider, "deleted": result.rowcount}
    )

    return result.rowcount


def all(session: Session, user: User) -> List[UserIdentity]:
    """Return the user's identities, oldest first."""
    stmt = (
        select(UserIdentity)
        .where(UserIdentity.user_id == user.id)
        .order_by(UserIdentity.created_at, UserIdentity.id)
    )
    return list(session.scalars(stmt))


def _convert_params(params: Mapping[str, Any]) -> Dict[str, Any]:
    converted = {str(key): value for key, value in params.items()}

    for key in KEY_FIELDS:
        if converted.get(key) in (None, ""):
            raise IdentityValidationError(f"`{key}` is required")

    converted["uid"] = str(converted["uid"])
    converted["provider"] = str(converted["provider"])
    return converted


def _identity_columns(params: Mapping[str, Any]) -> Dict[str, Any]:
    columns = set(UserIdentity.__table__.columns.keys()) - PROTECTED_FIELDS
    return {key: value for key, value in params.items() if key in columns}


def _get_for_user(session: Session, user: User, provider: str, uid: str) -> Optional[UserIdentity]:
    stmt = select(UserIdentity).where(
        UserIdentity.user_id == user.id,
        UserIdentity.provider == provider,
        UserIdentity.uid == uid
    )
    return session.scalar(stmt)


def _get_by_provider_uid(session: Session, provider: str, uid: str) -> Optional[UserIdentity]:
    stmt = select(UserIdentity).where(
        UserIdentity.provider == provider,
        UserIdentity.uid == uid
    )
    return session.scalar(stmt)


def _update_identity(
    session: Session,
    user: User,
    identity: UserIdentity,
    additional_params: Mapping[str, Any]
) -> UserIdentity:
    changes = _identity_columns(additional_params)
    for key, value in changes.items():
        setattr(identity, key, value)
    identity.updated_at = datetime.now(UTC)

    session.commit()
    session.refresh(identity)

    log_audit_event(
        user_id=user.id,
        operation="update",
        entity_type="UserIdentity",
        entity_id=identity.id,
        changes=changes or None
    )

    return identity


def _raise_bound_to_different_user(user_id: Optional[str], params: Mapping[str, Any], cause: Optional[Exception] = None) -> None:
    log_security_event(
        "identity_bound_to_different_user",
        user_id=user_id,
        provider=params["provider"],
        reason="bound_to_different_user",
        uid=params["uid"]
    )
    raise BoundToDifferentUserError(
        f"{params['provider']} account {params['uid']} is already linked to another user"
    ) from cause
