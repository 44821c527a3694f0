# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Unit tests for the generic OAuth2 flow.

Assumptions:
- The fake provider answers on http://localhost:4000
- CSRF and provider errors are detected before any network call
"""
from urllib.parse import parse_qs, urlparse

import pytest

from assent.errors import CallbackCSRFError, CallbackError, ConfigurationError, RequestError
from assent.strategies import oauth2


@pytest.mark.unit
def test_authorize_url(oauth2_config):
    """Test authorize URL carries client_id, redirect_uri, state and extras."""
    config = {**oauth2_config, "authorization_params": {"scope": "user:read user:write"}}
    
    result = oauth2.authorize_url(config)
    url = urlparse(result["url"])
    query = parse_qs(url.query)
    
    assert f"{url.scheme}://{url.netloc}{url.path}" == "http://localhost:4000/oauth/authorize"
    assert query["client_id"] == ["id"]
    assert query["redirect_uri"] == ["http://localhost:8000/auth/callback"]
    assert query["response_type"] == ["code"]
    assert query["scope"] == ["user:read user:write"]
    assert query["state"] == [result["session_params"]["state"]]


@pytest.mark.unit
def test_authorize_url_generates_unique_state(oauth2_config, oauth2_server):
    first = oauth2.authorize_url(oauth2_config)["session_params"]["state"]
    second = oauth2.authorize_url(oauth2_config)["session_params"]["state"]
    
    assert first != second
    assert len(first) >= 24
    assert oauth2_server.requests == []


@pytest.mark.unit
@pytest.mark.parametrize("missing", ["client_id", "site"])
def test_authorize_url_requires_config(oauth2_config, missing):
    config = {key: value for key, value in oauth2_config.items() if key != missing}
    
    with pytest.raises(ConfigurationError):
        oauth2.authorize_url(config)


@pytest.mark.unit
def test_callback(oauth2_config, callback_params, oauth2_server):
    """Test code exchange and user fetch."""
    oauth2_server.expect_access_token_request()
    oauth2_server.expect_user_request({"id": 1, "name": "Dan"})
    config = {**oauth2_config, "user_url": "/api/user"}
    
    result = oauth2.callback(config, callback_params)
    
    assert result["user"] == {"id": 1, "name": "Dan"}
    assert result["token"]["access_token"] == "access_token"
    assert oauth2_server.token_requests == [{
        "grant_type": "authorization_code",
        "client_id": "id",
        "client_secret": "secret",
        "code": "test",
        "redirect_uri": "http://localhost:8000/auth/callback",
    }]


@pytest.mark.unit
def test_callback_token_params(oauth2_config, callback_params, oauth2_server):
    oauth2_server.expect_access_token_request()
    oauth2_server.expect_user_request({"id": 1})
    config = {**oauth2_config, "user_url": "/api/user", "token_params": {"type": "web_server"}}
    
    oauth2.callback(config, callback_params)
    
    assert oauth2_server.token_requests[0]["type"] == "web_server"


@pytest.mark.unit
def test_callback_state_mismatch(oauth2_config, oauth2_server):
    """Test CSRF detection makes no network call."""
    with pytest.raises(CallbackCSRFError):
        oauth2.callback(oauth2_config, {"code": "test", "state": "other"})
    
    with pytest.raises(CallbackCSRFError):
        oauth2.callback(oauth2_config, {"code": "test"})
    
    with pytest.raises(CallbackCSRFError):
        oauth2.callback({**oauth2_config, "session_params": {}}, {"code": "test"})
    
    assert oauth2_server.requests == []


@pytest.mark.unit
def test_callback_requires_session_params(oauth2_config, callback_params):
    config = {key: value for key, value in oauth2_config.items() if key != "session_params"}
    
    with pytest.raises(ConfigurationError):
        oauth2.callback(config, callback_params)


@pytest.mark.unit
def test_callback_error_params(oauth2_config, oauth2_server):
    """Test provider error response surfaces verbatim."""
    params = {
        "state": "test",
        "error": "access_denied",
        "error_description": "The user denied access",
        "error_uri": "https://example.com/errors/access_denied",
    }
    
    with pytest.raises(CallbackError) as exc_info:
        oauth2.callback(oauth2_config, params)
    
    assert exc_info.value.error == "access_denied"
    assert exc_info.value.message == "The user denied access"
    assert exc_info.value.error_uri == "https://example.com/errors/access_denied"
    assert oauth2_server.requests == []


@pytest.mark.unit
def test_callback_missing_code(oauth2_config):
    with pytest.raises(CallbackError) as exc_info:
        oauth2.callback(oauth2_config, {"state": "test"})
    
    assert exc_info.value.error == "invalid_request"


@pytest.mark.unit
def test_callback_token_invalid_response(oauth2_config, callback_params, oauth2_server):
    """Test non-2xx token response."""
    oauth2_server.expect_access_token_request(params={"error": "invalid_grant"}, status_code=401)
    
    with pytest.raises(RequestError) as exc_info:
        oauth2.callback({**oauth2_config, "user_url": "/api/user"}, callback_params)
    
    assert exc_info.value.error == "invalid_server_response"
    assert exc_info.value.response.status == 401
    assert exc_info.value.response.body == {"error": "invalid_grant"}


@pytest.mark.unit
def test_callback_token_missing_access_token(oauth2_config, callback_params, oauth2_server):
    """Test 2xx token response without access_token stops the flow."""
    oauth2_server.expect_access_token_request(params={"token_type": "bearer"})
    oauth2_server.expect_user_request({"id": 1})
    
    with pytest.raises(RequestError) as exc_info:
        oauth2.callback({**oauth2_config, "user_url": "/api/user"}, callback_params)
    
    assert exc_info.value.error == "unexpected_response"
    assert [request.url.path for request in oauth2_server.requests] == ["/oauth/token"]


@pytest.mark.unit
def test_callback_unreachable(oauth2_config, callback_params, oauth2_server):
    oauth2_server.down()
    
    with pytest.raises(RequestError) as exc_info:
        oauth2.callback({**oauth2_config, "user_url": "/api/user"}, callback_params)
    
    assert exc_info.value.error == "unreachable"


@pytest.mark.unit
def test_callback_user_invalid_response(oauth2_config, callback_params, oauth2_server):
    oauth2_server.expect_access_token_request()
    oauth2_server.expect_api_request("/api/user", {"error": "boom"}, status_code=500)
    
    with pytest.raises(RequestError) as exc_info:
        oauth2.callback({**oauth2_config, "user_url": "/api/user"}, callback_params)
    
    assert exc_info.value.error == "invalid_server_response"


@pytest.mark.unit
def test_callback_user_unexpected_payload(oauth2_config, callback_params, oauth2_server):
    oauth2_server.expect_access_token_request()
    oauth2_server.expect_user_request(["not", "a", "profile"])
    
    with pytest.raises(RequestError) as exc_info:
        oauth2.callback({**oauth2_config, "user_url": "/api/user"}, callback_params)
    
    assert exc_info.value.error == "unexpected_response"


@pytest.mark.unit
def test_get_user_requires_user_url(oauth2_config):
    with pytest.raises(ConfigurationError):
        oauth2.get_user(oauth2_config, {"access_token": "access_token"})
