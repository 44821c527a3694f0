# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
HTTP and JSON helpers shared by all strategies.

Assumptions:
- The HTTP transport is an httpx.Client supplied in config["http_client"];
  without one a short-lived client is created per request
- Response bodies are decoded by content-type, charset suffixes ignored
- Timeouts and retries are the transport's concern
"""
import json
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import parse_qsl, urlencode

import httpx

from assent.errors import DecodeError, RequestError


@dataclass(frozen=True)
class HTTPResponse:
    """Decoded HTTP response.
    
    Assumptions:
    - headers keep the order and duplicates the server sent
    - body is a str until decode_response replaces it
    """
    status: int
    headers: List[Tuple[str, str]] = field(default_factory=list)
    body: Any = None
    
    def header(self, name: str) -> Optional[str]:
        """Return the first header value matching name (case-insensitive)."""
        name = name.lower()
        for key, value in self.headers:
            if key.lower() == name:
                return value
        return None
    
    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def request(
    method: str,
    url: str,
    body: Optional[Any] = None,
    headers: Optional[List[Tuple[str, str]]] = None,
    config: Optional[Mapping[str, Any]] = None
) -> HTTPResponse:
    """Send a request through the configured transport and decode the reply.
    
    Args:
        method: HTTP method ("get", "post", ...)
        url: Absolute URL
        body: Request body (already encoded)
        headers: Request headers as (name, value) pairs
        config: Provider config; http_client and json_decoder are read from it
        
    Returns:
        HTTPResponse: Response with body decoded by content-type
        
    Raises:
        RequestError: error="unreachable" on any transport failure
        DecodeError: If the body doesn't parse per its content-type
    """
    config = config or {}
    client = config.get("http_client")
    
    try:
        if client is not None:
            raw = client.request(method.upper(), url, content=body, headers=headers)
        else:
            with httpx.Client() as client:
                raw = client.request(method.upper(), url, content=body, headers=headers)
    except httpx.TransportError as exc:
        raise RequestError(
            f"Server was unreachable with {type(exc).__name__}: {exc}",
            error=RequestError.UNREACHABLE
        ) from exc
    
    response = HTTPResponse(
        status=raw.status_code,
        headers=list(raw.headers.multi_items()),
        body=raw.text
    )
    
    return decode_response(response, config)


def decode_response(response: HTTPResponse, config: Optional[Mapping[str, Any]] = None) -> HTTPResponse:
    """Decode the response body according to its content-type header.
    
    Args:
        response: Response with a raw string body
        config: Provider config (json_decoder is read from it)
        
    Returns:
        HTTPResponse: Copy of the response with the decoded body
        
    Raises:
        DecodeError: If the declared content-type parser rejects the body
        
    Assumptions:
    - JSON content types are any type containing "json"
    - Unknown content types and empty bodies pass through untouched
    """
    content_type = (response.header("content-type") or "").split(";")[0].strip().lower()
    body = response.body
    
    if not isinstance(body, (str, bytes)) or not body:
        return response
    
    try:
        if "json" in content_type:
            body = decode_json(body, config)
        elif content_type == "application/x-www-form-urlencoded":
            if isinstance(body, bytes):
                body = body.decode("utf-8")
            body = dict(parse_qsl(body, keep_blank_values=True, strict_parsing=True))
    except ValueError as exc:
        raise DecodeError(f"Could not decode {content_type} response: {exc}") from exc
    
    return replace(response, body=body)


def decode_json(string: Any, config: Optional[Mapping[str, Any]] = None) -> Any:
    """Decode a JSON string with the configured decoder (json.loads by default)."""
    decoder = (config or {}).get("json_decoder") or json.loads
    return decoder(string)


def prune(mapping: Mapping[str, Any]) -> Dict[str, Any]:
    """Remove None values from a mapping, recursing into nested mappings.
    
    Empty strings, False and 0 are kept.
    
    >>> prune({"a": "ok", "b": None, "c": "", "d": {"a": "ok", "b": None}})
    {'a': 'ok', 'c': '', 'd': {'a': 'ok'}}
    """
    return {
        key: prune(value) if isinstance(value, Mapping) else value
        for key, value in mapping.items()
        if value is not None
    }


def to_url(site: str, url: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Build an absolute URL from a site and an endpoint path.
    
    Args:
        site: Base URL, e.g. "https://api.github.com"
        url: Endpoint path or absolute URL
        params: Optional query parameters
        
    Returns:
        str: Absolute URL with encoded query string
    """
    if not url.startswith(("http://", "https://")):
        url = f"{site.rstrip('/')}/{url.lstrip('/')}"
    
    if params:
        separator = "&" if "?" in url else "?"
        url = f"{url}{separator}{urlencode(params)}"
    
    return url


def authorization_headers(token: Mapping[str, Any]) -> List[Tuple[str, str]]:
    """Build the Authorization header for a token response.
    
    Raises:
        RequestError: If the token type isn't bearer
    """
    token_type = str(token.get("token_type") or "bearer").lower()
    
    if token_type != "bearer":
        raise RequestError(
            f"Authorization with token type `{token_type}` not supported",
            error=RequestError.UNEXPECTED_RESPONSE
        )
    
    return [("authorization", f"Bearer {token['access_token']}")]
