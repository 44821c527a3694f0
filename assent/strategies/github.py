# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
GitHub OAuth 2.0 strategy.

Assumptions:
- /user doesn't return private emails, so the primary verified address is
  looked up at /user/emails
- The emails lookup is best effort; when it fails the public email from
  /user is kept
"""
from typing import Any, Dict, List, Mapping, Optional

from assent.errors import AssentError
from assent.logging_utils import log_application_event
from assent.strategies import oauth2
from assent.strategies.base import Strategy


class Github(Strategy):
    name = "github"
    
    def default_config(self, config: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            "site": "https://api.github.com",
            "authorize_url": "https://github.com/login/oauth/authorize",
            "token_url": "https://github.com/login/oauth/access_token",
            "user_url": "/user",
            "user_emails_url": "/user/emails",
            "authorization_params": {"scope": "read:user,user:email"},
        }
    
    def normalize(self, config: Mapping[str, Any], user: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            "uid": str(user["id"]),
            "nickname": user.get("login"),
            "email": user.get("email"),
            "name": user.get("name"),
            "image": user.get("avatar_url"),
            "urls": {
                "GitHub": user.get("html_url"),
                "Blog": user.get("blog"),
            },
        }
    
    def get_user(self, config: Mapping[str, Any], token: Mapping[str, Any]) -> Any:
        user = oauth2.get_user(config, token)
        
        if not isinstance(user, dict):
            return user
        
        emails = self._get_emails(config, token)
        if emails is None:
            return user
        
        primary = next(
            (email.get("email") for email in emails if email.get("primary") and email.get("verified")),
            None
        )
        return {**user, "email": primary}
    
    def _get_emails(self, config: Mapping[str, Any], token: Mapping[str, Any]) -> Optional[List[Dict[str, Any]]]:
        try:
            response = oauth2.get(config, token, config["user_emails_url"])
        except AssentError as exc:
            log_application_event("github_emails_unavailable", reason=str(exc))
            return None
        
        if not response.ok or not isinstance(response.body, list):
            log_application_event("github_emails_unavailable", status=response.status)
            return None
        
        return [email for email in response.body if isinstance(email, dict)]
