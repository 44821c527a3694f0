# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Basecamp (37signals Launchpad) OAuth 2.0 strategy.

Assumptions:
- Launchpad requires type=web_server on both authorize and token requests
- /authorization.json returns {"identity": {...}, "accounts": [...]}; the
  accounts list is carried into the canonical profile
"""
from typing import Any, Dict, Mapping

from assent.errors import RequestError
from assent.strategies import oauth2
from assent.strategies.base import Strategy


class Basecamp(Strategy):
    name = "basecamp"
    
    def default_config(self, config: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            "site": "https://launchpad.37signals.com",
            "authorize_url": "/authorization/new",
            "token_url": "/authorization/token",
            "user_url": "/authorization.json",
            "authorization_params": {"type": "web_server"},
            "token_params": {"type": "web_server"},
        }
    
    def normalize(self, config: Mapping[str, Any], user: Mapping[str, Any]) -> Dict[str, Any]:
        first_name = user.get("first_name")
        last_name = user.get("last_name")
        
        return {
            "uid": str(user["id"]),
            "name": " ".join(part for part in (first_name, last_name) if part) or None,
            "first_name": first_name,
            "last_name": last_name,
            "email": user.get("email_address"),
            "accounts": user.get("accounts"),
        }
    
    def get_user(self, config: Mapping[str, Any], token: Mapping[str, Any]) -> Any:
        body = oauth2.get_user(config, token)
        
        if not isinstance(body, dict) or not isinstance(body.get("identity"), dict):
            raise RequestError(
                f"An unexpected user response was received:\n\n{body!r}",
                error=RequestError.UNEXPECTED_RESPONSE
            )
        
        return {**body["identity"], "accounts": body.get("accounts", [])}
