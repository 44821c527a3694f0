# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Provider authentication API endpoints.

Provides REST API for signing in through OAuth providers and managing the
identities linked to the signed-in user.

Assumptions:
- All endpoints under /api/v1/auth
- Provider credentials come from settings.providers
- Signed-in state is the "session" cookie; the OAuth state in flight is the
  "oauth_session" cookie, both backed by in-memory stores
- Returns JSON responses
"""
import secrets
from datetime import datetime
from typing import Annotated, Any, Dict, Optional

import httpx
from fastapi import APIRouter, Cookie, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from sqlalchemy.orm import Session

from assent.auth import user_identities
from assent.auth.user import authenticate_user, get_user_by_id, set_password
from assent.config import settings
from assent.database.schema import User
from assent.database.session import get_db
from assent.errors import (
    BoundToDifferentUserError, CallbackCSRFError, CallbackError,
    ConfigurationError, DecodeError, IdentityValidationError,
    InvalidUserIdFieldError, NoPasswordError, RequestError
)
from assent.logging_config import bind_context, clear_context
from assent.logging_utils import log_application_event, log_security_event
from assent.strategies.registry import get_flow

router = APIRouter(prefix=f"/api/{settings.api_version}/auth", tags=["auth"])


# Response models
class UserResponse(BaseModel):
    """Response model for user (without password)."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: Optional[str]
    name: Optional[str]
    is_active: bool
    created_at: datetime


class UserIdentityResponse(BaseModel):
    """Response model for a linked identity."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    provider: str
    uid: str
    created_at: datetime


class CallbackResponse(BaseModel):
    """Result of a completed provider callback.

    status is one of: signed_in, registered, linked
    """
    status: str
    user: UserResponse


class AddUserId(BaseModel):
    """Request model for completing sign-up when the provider had no email."""
    email: str


class UserLogin(BaseModel):
    """Request model for password sign-in."""
    email: EmailStr
    password: str


class PasswordSet(BaseModel):
    """Request model for setting the signed-in user's password."""
    password: str = Field(min_length=8)


# Session management
# Simple in-memory session storage (replace with Redis/DB in production)
_sessions: dict[str, str] = {}  # session_id -> user_id
_oauth_sessions: dict[str, Dict[str, Any]] = {}  # oauth_session_id -> flow state


def create_session(user_id: str) -> str:
    """Create a new signed-in session for a user.

    Returns:
        str: Session ID for the "session" cookie
    """
    session_id = secrets.token_urlsafe(32)
    _sessions[session_id] = user_id
    return session_id


def get_session_user(session_id: Optional[str], db: Session) -> Optional[User]:
    """Get user from session ID, or None if the session is unknown."""
    if not session_id:
        return None

    user_id = _sessions.get(session_id)
    if not user_id:
        return None

    return get_user_by_id(db, user_id)


def require_auth(
    session: Annotated[str | None, Cookie()] = None,
    db: Session = Depends(get_db)
) -> User:
    """Require a signed-in user.

    Raises:
        HTTPException: 401 if not authenticated
    """
    user = get_session_user(session, db)
    if user is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user


def get_http_client() -> Optional[httpx.Client]:
    """HTTP client used for provider requests.

    None lets each request open a short-lived client. Tests override this
    dependency to route provider traffic to a mock transport.
    """
    return None


def provider_config(provider: str, http_client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Build the config for a provider from settings.

    Raises:
        HTTPException: 404 if the provider isn't configured
    """
    config = settings.providers.get(provider)
    if config is None:
        raise HTTPException(
            status_code=404,
            detail={"error": "unknown_provider", "message": f"Provider {provider} is not configured"}
        )

    config = dict(config)
    config.setdefault(
        "redirect_uri",
        f"{settings.base_url.rstrip('/')}/api/{settings.api_version}/auth/{provider}/callback"
    )
    if http_client is not None:
        config["http_client"] = http_client

    return config


def _flow(provider: str):
    try:
        return get_flow(provider)
    except ConfigurationError:
        raise HTTPException(
            status_code=404,
            detail={"error": "unknown_provider", "message": f"No strategy for provider {provider}"}
        ) from None


def _signed_in_response(user: User, status_name: str, status_code: int = 200) -> JSONResponse:
    body = CallbackResponse(status=status_name, user=UserResponse.model_validate(user))
    response = JSONResponse(content=body.model_dump(mode="json"), status_code=status_code)
    response.set_cookie("session", create_session(user.id), httponly=True, samesite="lax")
    response.delete_cookie("oauth_session")
    return response


# Endpoints
@router.get("/{provider}/new")
def authorize(
    provider: str,
    http_client: Optional[httpx.Client] = Depends(get_http_client)
) -> RedirectResponse:
    """Redirect the browser to the provider's authorization page.

    Assumptions:
    - State is kept server-side, keyed by the oauth_session cookie
    """
    flow = _flow(provider)
    config = provider_config(provider, http_client)

    try:
        result = flow.authorize_url(config)
    except ConfigurationError as exc:
        raise HTTPException(status_code=500, detail={"error": "configuration_error", "message": str(exc)})

    oauth_session_id = secrets.token_urlsafe(32)
    _oauth_sessions[oauth_session_id] = {
        "provider": provider,
        "session_params": result["session_params"],
    }

    response = RedirectResponse(result["url"], status_code=status.HTTP_302_FOUND)
    response.set_cookie("oauth_session", oauth_session_id, httponly=True, samesite="lax")
    return response


@router.get("/{provider}/callback", response_model=CallbackResponse)
def callback(
    provider: str,
    request: Request,
    session: Annotated[str | None, Cookie()] = None,
    oauth_session: Annotated[str | None, Cookie()] = None,
    db: Session = Depends(get_db),
    http_client: Optional[httpx.Client] = Depends(get_http_client)
):
    """Complete the provider flow and sign in, register or link.

    Assumptions:
    - A signed-in user links the identity to their account
    - Otherwise an existing identity signs its user in
    - Otherwise a new user is registered; without a usable email the
      profile is kept pending for POST /{provider}/create
    - Log entries for the callback carry provider and request_id
    """
    bind_context(provider=provider, request_id=secrets.token_hex(8))
    try:
        return _complete_callback(provider, request, session, oauth_session, db, http_client)
    finally:
        clear_context()


def _complete_callback(
    provider: str,
    request: Request,
    session: Optional[str],
    oauth_session: Optional[str],
    db: Session,
    http_client: Optional[httpx.Client]
):
    flow = _flow(provider)
    config = provider_config(provider, http_client)

    state = _oauth_sessions.pop(oauth_session, None) if oauth_session else None
    session_params = state.get("session_params", {}) if state and state["provider"] == provider else {}

    try:
        result = flow.callback({**config, "session_params": session_params}, dict(request.query_params))
    except CallbackCSRFError as exc:
        raise HTTPException(status_code=400, detail={"error": "csrf_detected", "message": exc.message})
    except CallbackError as exc:
        raise HTTPException(status_code=400, detail={"error": exc.error, "message": exc.message})
    except (RequestError, DecodeError) as exc:
        raise HTTPException(status_code=502, detail={"error": getattr(exc, "error", None) or "decode_error", "message": str(exc)})
    except ConfigurationError as exc:
        raise HTTPException(status_code=500, detail={"error": "configuration_error", "message": str(exc)})

    profile = result["user"]
    identity_params = {"provider": provider, "uid": profile["uid"]}

    current_user = get_session_user(session, db)
    if current_user is not None:
        try:
            user_identities.upsert(db, current_user, identity_params)
        except BoundToDifferentUserError as exc:
            raise HTTPException(status_code=409, detail={"error": exc.reason, "message": str(exc)})
        log_application_event("identity_linked", provider=provider, user_id=current_user.id)
        body = CallbackResponse(status="linked", user=UserResponse.model_validate(current_user))
        return JSONResponse(content=body.model_dump(mode="json"))

    user = user_identities.get_user_by_provider_uid(db, provider, profile["uid"])
    if user is not None:
        return _signed_in_response(user, "signed_in")

    try:
        user = user_identities.create_user(db, identity_params, profile)
    except BoundToDifferentUserError as exc:
        raise HTTPException(status_code=409, detail={"error": exc.reason, "message": str(exc)})
    except InvalidUserIdFieldError as exc:
        pending_id = secrets.token_urlsafe(32)
        _oauth_sessions[pending_id] = {
            "provider": provider,
            "pending": {"identity_params": identity_params, "user_params": profile},
        }
        response = JSONResponse(
            status_code=422,
            content={"detail": {"error": exc.reason, "message": str(exc)}}
        )
        response.set_cookie("oauth_session", pending_id, httponly=True, samesite="lax")
        return response
    except IdentityValidationError as exc:
        raise HTTPException(status_code=422, detail={"error": exc.reason, "message": str(exc)})

    return _signed_in_response(user, "registered", status_code=201)


@router.post("/{provider}/create", response_model=CallbackResponse, status_code=201)
def create_pending_user(
    provider: str,
    data: AddUserId,
    oauth_session: Annotated[str | None, Cookie()] = None,
    db: Session = Depends(get_db)
):
    """Register a pending provider user with a user-supplied email."""
    state = _oauth_sessions.get(oauth_session) if oauth_session else None
    if not state or state["provider"] != provider or "pending" not in state:
        raise HTTPException(status_code=400, detail={"error": "no_pending_registration"})

    pending = state["pending"]
    try:
        user = user_identities.create_user(
            db, pending["identity_params"], pending["user_params"], {"email": data.email}
        )
    except InvalidUserIdFieldError as exc:
        raise HTTPException(status_code=422, detail={"error": exc.reason, "message": str(exc)})
    except BoundToDifferentUserError as exc:
        _oauth_sessions.pop(oauth_session, None)
        raise HTTPException(status_code=409, detail={"error": exc.reason, "message": str(exc)})

    _oauth_sessions.pop(oauth_session, None)
    return _signed_in_response(user, "registered", status_code=201)


@router.post("/login", response_model=UserResponse)
def login(
    user_data: UserLogin,
    db: Session = Depends(get_db)
):
    """Sign in with email and password.

    Raises:
        HTTPException: 401 if credentials are invalid

    Assumptions:
    - Provider-only users have no password and always get 401
    """
    user = authenticate_user(db, user_data.email, user_data.password)

    if user is None:
        log_security_event("password_login_failed", reason="invalid_credentials")
        raise HTTPException(status_code=401, detail="Invalid email or password")

    response = JSONResponse(content=UserResponse.model_validate(user).model_dump(mode="json"))
    response.set_cookie("session", create_session(user.id), httponly=True, samesite="lax")
    return response


@router.put("/password", response_model=UserResponse)
def update_password(
    data: PasswordSet,
    user: User = Depends(require_auth),
    db: Session = Depends(get_db)
):
    """Set or replace the signed-in user's password.

    Gives provider-only users a second way to sign in, so they can unlink
    their last identity.
    """
    user = set_password(db, user, data.password)
    log_application_event("password_set", user_id=user.id)
    return user


@router.get("/identities", response_model=list[UserIdentityResponse])
def list_identities(
    user: User = Depends(require_auth),
    db: Session = Depends(get_db)
):
    """List identities linked to the signed-in user."""
    return user_identities.all(db, user)


@router.delete("/{provider}")
def delete_identity(
    provider: str,
    user: User = Depends(require_auth),
    db: Session = Depends(get_db)
):
    """Unlink the signed-in user's identities for a provider.

    Assumptions:
    - Refused with 409 when it would leave the user without a way to sign in
    """
    try:
        deleted = user_identities.delete(db, user, provider)
    except NoPasswordError as exc:
        raise HTTPException(status_code=409, detail={"error": exc.reason, "message": str(exc)})

    return {"provider": provider, "deleted": deleted}
