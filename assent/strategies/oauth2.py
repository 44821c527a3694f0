# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Generic OAuth 2.0 authorization code flow.

Two round trips: the caller redirects the user to authorize_url(), then
passes the provider's callback params to callback(), which exchanges the
code for a token and fetches the user.

Assumptions:
- config is a plain dict (see OAuth2Flow for how it is assembled)
- session_params returned by authorize_url() are round-tripped by the caller
  and passed back in config["session_params"]
- State comparison is plain equality (CSRF nonce, not a credential)
- No retries, no timeouts beyond what the transport sets
"""
import secrets
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlencode

from assent.errors import CallbackCSRFError, CallbackError, ConfigurationError, RequestError
from assent.logging_utils import log_application_event, log_security_event
from assent.strategy import HTTPResponse, authorization_headers, request, to_url

DEFAULT_AUTHORIZE_URL = "/oauth/authorize"
DEFAULT_TOKEN_URL = "/oauth/token"


def authorize_url(config: Mapping[str, Any]) -> Dict[str, Any]:
    """Build the provider authorization URL with a fresh CSRF state.
    
    Args:
        config: Provider config (client_id and site are required)
        
    Returns:
        dict: {"url": str, "session_params": {"state": str}}
        
    Raises:
        ConfigurationError: If client_id or site is missing
    """
    client_id = _fetch(config, "client_id")
    site = _fetch(config, "site")
    state = secrets.token_urlsafe(24)
    
    params: Dict[str, Any] = {"client_id": client_id}
    if config.get("redirect_uri"):
        params["redirect_uri"] = config["redirect_uri"]
    params["response_type"] = "code"
    params["state"] = state
    params.update(config.get("authorization_params") or {})
    
    url = to_url(site, config.get("authorize_url") or DEFAULT_AUTHORIZE_URL, params)
    
    return {"url": url, "session_params": {"state": state}}


def callback(config: Mapping[str, Any], params: Mapping[str, Any], strategy: Any = None) -> Dict[str, Any]:
    """Handle the provider callback: validate state, grant token, fetch user.
    
    Args:
        config: Provider config including session_params
        params: Query params the provider redirected back with
        strategy: Object with get_user(config, token); defaults to this module
        
    Returns:
        dict: {"user": raw profile dict, "token": token dict}
        
    Raises:
        ConfigurationError: If session_params is missing from config
        CallbackCSRFError: If the state param doesn't match the session
        CallbackError: If the provider returned an error or no code
        RequestError: If the token or user request fails
    """
    session_params = config.get("session_params")
    if session_params is None:
        raise ConfigurationError("No `session_params` set in config")
    
    _check_state(config, session_params, params)
    _check_error_params(params)
    
    code = params.get("code")
    if not code:
        raise CallbackError("Expected `code` in callback params", error="invalid_request")
    
    token = grant_access_token(config, "authorization_code", code=code, redirect_uri=config.get("redirect_uri"))
    
    get_user_fn = strategy.get_user if strategy is not None else get_user
    user = get_user_fn(config, token)
    
    if not isinstance(user, dict):
        raise RequestError(
            f"An unexpected user response was received:\n\n{user!r}",
            error=RequestError.UNEXPECTED_RESPONSE
        )
    
    return {"user": user, "token": token}


def grant_access_token(config: Mapping[str, Any], grant_type: str, **grant_params: Any) -> Dict[str, Any]:
    """Exchange a grant for an access token at the token endpoint.
    
    Args:
        config: Provider config
        grant_type: OAuth2 grant type (e.g. "authorization_code")
        **grant_params: Grant fields (code, redirect_uri, ...); None values are dropped
        
    Returns:
        dict: Decoded token response containing access_token
        
    Raises:
        RequestError: invalid_server_response on non-2xx,
            unexpected_response when access_token is missing
    """
    site = _fetch(config, "site")
    url = to_url(site, config.get("token_url") or DEFAULT_TOKEN_URL)
    
    form = {
        "grant_type": grant_type,
        "client_id": _fetch(config, "client_id"),
        "client_secret": config.get("client_secret"),
        **grant_params,
        **(config.get("token_params") or {}),
    }
    body = urlencode({key: value for key, value in form.items() if value is not None})
    headers = [
        ("content-type", "application/x-www-form-urlencoded"),
        ("accept", "application/json"),
    ]
    
    response = request("post", url, body, headers, config)
    
    if not response.ok:
        raise RequestError.invalid(response)
    
    if not isinstance(response.body, dict) or "access_token" not in response.body:
        raise RequestError.unexpected(response)
    
    log_application_event(
        "oauth2_token_granted",
        provider=_provider_name(config),
        token_type=response.body.get("token_type")
    )
    
    return response.body


def get_user(config: Mapping[str, Any], token: Mapping[str, Any], params: Optional[Mapping[str, Any]] = None) -> Any:
    """Fetch the raw user profile from config["user_url"] with the token.
    
    Raises:
        ConfigurationError: If user_url is not set
        RequestError: invalid_server_response on non-2xx
    """
    user_url = _fetch(config, "user_url")
    response = get(config, token, user_url, params)
    
    if not response.ok:
        raise RequestError.invalid(response)
    
    return response.body


def get(
    config: Mapping[str, Any],
    token: Mapping[str, Any],
    url: str,
    params: Optional[Mapping[str, Any]] = None
) -> HTTPResponse:
    """Authenticated GET against the provider API.
    
    The caller decides what a non-2xx response means.
    """
    url = to_url(_fetch(config, "site"), url, params)
    headers = authorization_headers(token) + [("accept", "application/json")]
    
    return request("get", url, None, headers, config)


def _check_state(config: Mapping[str, Any], session_params: Mapping[str, Any], params: Mapping[str, Any]) -> None:
    expected = session_params.get("state")
    if not expected or params.get("state") != expected:
        log_security_event(
            "oauth_csrf_detected",
            provider=_provider_name(config),
            reason="state mismatch"
        )
        raise CallbackCSRFError()


def _check_error_params(params: Mapping[str, Any]) -> None:
    error = params.get("error")
    if not error:
        return
    
    raise CallbackError(
        params.get("error_description") or error,
        error=error,
        error_uri=params.get("error_uri")
    )


def _fetch(config: Mapping[str, Any], key: str) -> Any:
    value = config.get(key)
    if not value:
        raise ConfigurationError(f"No `{key}` set in config")
    return value


def _provider_name(config: Mapping[str, Any]) -> Optional[str]:
    strategy = config.get("strategy")
    return getattr(strategy, "name", None)
