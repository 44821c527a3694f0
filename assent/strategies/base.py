# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Provider strategy contract and the OAuth2 flow that drives it.

A provider is a Strategy subclass with fixed endpoints (default_config) and a
field mapping (normalize). OAuth2Flow wraps a strategy and runs the generic
OAuth2 core with the merged config.

Usage:
    flow = OAuth2Flow(Github())
    result = flow.authorize_url({"client_id": "...", "client_secret": "..."})
    ...
    result = flow.callback({**config, "session_params": session_params}, params)
    result["user"]  # canonical profile

Assumptions:
- Caller config wins over strategy defaults (shallow merge)
- Canonical profiles always carry a string uid and never carry None values
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping

from assent.errors import RequestError
from assent.logging_utils import log_application_event
from assent.strategies import oauth2
from assent.strategy import prune


class Strategy(ABC):
    """Base class for provider strategies.
    
    Subclasses set name and implement default_config() and normalize().
    Providers whose profile fetch isn't a single bearer GET override get_user().
    """
    
    name: str = ""
    
    @abstractmethod
    def default_config(self, config: Mapping[str, Any]) -> Dict[str, Any]:
        """Return fixed endpoints and default scopes for the provider."""
    
    @abstractmethod
    def normalize(self, config: Mapping[str, Any], user: Mapping[str, Any]) -> Dict[str, Any]:
        """Map a raw provider profile to canonical fields (must include uid).
        
        KeyError, TypeError and ValueError from a malformed profile are
        reported by OAuth2Flow as unexpected_response.
        """
    
    def get_user(self, config: Mapping[str, Any], token: Mapping[str, Any]) -> Any:
        return oauth2.get_user(config, token)


class OAuth2Flow:
    """Runs the OAuth2 authorization code flow for one strategy."""
    
    def __init__(self, strategy: Strategy):
        self.strategy = strategy
    
    def authorize_url(self, config: Mapping[str, Any]) -> Dict[str, Any]:
        """Build the authorization redirect.
        
        Returns:
            dict: {"url": str, "session_params": {"state": str}}
        """
        return oauth2.authorize_url(self.build_config(config))
    
    def callback(self, config: Mapping[str, Any], params: Mapping[str, Any]) -> Dict[str, Any]:
        """Complete the flow and normalize the user.
        
        Returns:
            dict: {"user": canonical profile, "token": token dict}
            
        Raises:
            CallbackCSRFError, CallbackError, ConfigurationError,
            RequestError, DecodeError
        """
        config = self.build_config(config)
        result = oauth2.callback(config, params, self.strategy)
        
        try:
            user = self.strategy.normalize(config, result["user"])
        except (KeyError, TypeError, ValueError) as exc:
            raise RequestError(
                f"Could not normalize user, missing or invalid {exc}:\n\n{result['user']!r}",
                error=RequestError.UNEXPECTED_RESPONSE
            ) from exc

        if user.get("uid") is None:
            raise RequestError(
                f"Normalized user is missing uid:\n\n{result['user']!r}",
                error=RequestError.UNEXPECTED_RESPONSE
            )
        
        user = prune({**user, "uid": str(user["uid"])})
        
        log_application_event("oauth2_callback_succeeded", provider=self.strategy.name, uid=user["uid"])
        
        return {"user": user, "token": result["token"]}
    
    def build_config(self, config: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            **self.strategy.default_config(config),
            **config,
            "strategy": self.strategy,
        }
