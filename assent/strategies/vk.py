# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
VK.com OAuth 2.0 strategy.

Assumptions:
- The VK API takes the access token as a query param, not a header
- users.get wraps the profile as {"response": [user]}
- VK returns the email in the token response, not the profile
- user_url_params in caller config are merged over the defaults
"""
from typing import Any, Dict, Mapping

from assent.errors import RequestError
from assent.strategies import oauth2
from assent.strategies.base import Strategy
from assent.strategy import request, to_url

PROFILE_FIELDS = ["uid", "first_name", "last_name", "photo_200", "screen_name", "verified"]
URL_PARAMS = {"fields": ",".join(PROFILE_FIELDS), "v": "5.69", "https": "1"}


class VK(Strategy):
    name = "vk"
    
    def default_config(self, config: Mapping[str, Any]) -> Dict[str, Any]:
        user_url_params = {**URL_PARAMS, **(config.get("user_url_params") or {})}
        
        return {
            "site": "https://api.vk.com",
            "authorize_url": "https://oauth.vk.com/authorize",
            "token_url": "https://oauth.vk.com/access_token",
            "user_url": "/method/users.get",
            "authorization_params": {"scope": "email"},
            "user_url_params": user_url_params,
        }
    
    def normalize(self, config: Mapping[str, Any], user: Mapping[str, Any]) -> Dict[str, Any]:
        first_name = user.get("first_name")
        last_name = user.get("last_name")
        
        return {
            "uid": str(user["id"]),
            "nickname": user.get("screen_name"),
            "first_name": first_name,
            "last_name": last_name,
            "name": " ".join(part for part in (first_name, last_name) if part) or None,
            "email": user.get("email"),
            "image": user.get("photo_200"),
            "verified": (user.get("verified") or 0) > 0,
        }
    
    def get_user(self, config: Mapping[str, Any], token: Mapping[str, Any]) -> Any:
        params = {**config["user_url_params"], "access_token": token["access_token"]}
        url = to_url(config["site"], config["user_url"], params)
        
        response = request("get", url, None, [("accept", "application/json")], config)
        
        if not response.ok:
            raise RequestError.invalid(response)
        
        body = response.body
        if not isinstance(body, dict) or not isinstance(body.get("response"), list) or len(body["response"]) != 1:
            raise RequestError.unexpected(response)
        
        user = dict(body["response"][0])
        user.setdefault("email", token.get("email"))
        
        return user
