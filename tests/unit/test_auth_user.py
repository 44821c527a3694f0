# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Unit tests for local user accounts.

Tests password hashing, email validation and password authentication.

Assumptions:
- Passwords are hashed with bcrypt
- Email addresses are unique and stored lowercase
- Provider-only users have no password and never authenticate by password
"""
import pytest


@pytest.mark.unit
def test_hash_password():
    """Test password hashing function.
    
    Assumptions:
    - Hashes are different for same password (salt)
    - Hash is not reversible
    """
    from assent.auth.password import hash_password
    
    password = "SecurePassword123!"
    hash1 = hash_password(password)
    hash2 = hash_password(password)
    
    assert hash1 != hash2
    assert hash1 != password
    assert len(hash1) > 20


@pytest.mark.unit
def test_verify_password():
    """Test password verification with correct and incorrect password."""
    from assent.auth.password import hash_password, verify_password
    
    password_hash = hash_password("SecurePassword123!")
    
    assert verify_password("SecurePassword123!", password_hash) is True
    assert verify_password("WrongPassword123!", password_hash) is False


@pytest.mark.unit
def test_verify_password_without_hash():
    """Test that a missing or malformed hash never verifies."""
    from assent.auth.password import verify_password
    
    assert verify_password("anything", None) is False
    assert verify_password("anything", "not-a-bcrypt-hash") is False


@pytest.mark.unit
def test_normalize_email():
    """Test email validation shared with provider sign-up.
    
    Assumptions:
    - Addresses are stripped and lowercased
    """
    from assent.auth.user import normalize_email
    
    assert normalize_email(" Test@Example.com ") == "test@example.com"


@pytest.mark.unit
@pytest.mark.parametrize("email", ["", "not-an-email", "a@", None])
def test_normalize_email_invalid(email):
    from assent.auth.user import normalize_email
    
    with pytest.raises(ValueError):
        normalize_email(email)


@pytest.mark.unit
def test_set_password(db_session, user):
    """Test setting a password on a provider-only user.
    
    Assumptions:
    - Password is hashed
    - Version increments on update
    """
    from assent.auth.user import set_password
    
    set_password(db_session, user, "SecurePassword123!")
    
    assert user.password_hash is not None
    assert user.password_hash != "SecurePassword123!"
    assert user.version == 2


@pytest.mark.unit
def test_authenticate_user(db_session, user):
    """Test user authentication with correct and wrong credentials."""
    from assent.auth.user import authenticate_user, set_password
    
    set_password(db_session, user, "SecurePassword123!")
    
    authenticated = authenticate_user(session=db_session, email="USER@example.com", password="SecurePassword123!")
    
    assert authenticated is not None
    assert authenticated.id == user.id
    assert authenticate_user(session=db_session, email="user@example.com", password="wrong") is None
    assert authenticate_user(session=db_session, email="nobody@example.com", password="wrong") is None


@pytest.mark.unit
def test_authenticate_inactive_user(db_session, user):
    from assent.auth.user import authenticate_user, set_password
    
    set_password(db_session, user, "SecurePassword123!")
    user.is_active = False
    db_session.commit()
    
    assert authenticate_user(session=db_session, email=user.email, password="SecurePassword123!") is None


@pytest.mark.unit
def test_authenticate_provider_only_user(db_session, user):
    """Test that a password-less user can't sign in with a password."""
    from assent.auth.user import authenticate_user
    
    assert authenticate_user(session=db_session, email=user.email, password="") is None


@pytest.mark.unit
def test_get_user_by_email_and_id(db_session, user):
    from assent.auth.user import get_user_by_email, get_user_by_id
    
    assert get_user_by_email(db_session, " USER@example.com ").id == user.id
    assert get_user_by_id(db_session, user.id).email == user.email
    assert get_user_by_id(db_session, "missing") is None


@pytest.mark.unit
def test_set_password_allows_unlinking_last_identity(db_session, user):
    """Test that a provider-only user can unlink after setting a password."""
    from assent.auth import user_identities
    from assent.auth.user import set_password
    
    user_identities.upsert(db_session, user, {"provider": "github", "uid": "1"})
    
    set_password(db_session, user, "SecurePassword123!")
    
    assert user_identities.delete(db_session, user, "github") == 1
