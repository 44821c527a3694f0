# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Instagram OAuth 2.0 strategy.

Instagram returns the user profile inside the access token response, so no
separate profile request is made.
"""
from typing import Any, Dict, Mapping

from assent.errors import RequestError
from assent.strategies.base import Strategy


class Instagram(Strategy):
    name = "instagram"
    
    def default_config(self, config: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            "site": "https://api.instagram.com",
            "authorization_params": {"scope": "basic"},
        }
    
    def normalize(self, config: Mapping[str, Any], user: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            "uid": str(user["id"]),
            "name": user.get("full_name"),
            "image": user.get("profile_picture"),
            "nickname": user.get("username"),
        }
    
    def get_user(self, config: Mapping[str, Any], token: Mapping[str, Any]) -> Any:
        user = token.get("user")
        
        if not isinstance(user, dict):
            raise RequestError(
                f"Token response is missing user:\n\n{token!r}",
                error=RequestError.UNEXPECTED_RESPONSE
            )
        
        return user
