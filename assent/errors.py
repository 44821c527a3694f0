# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Error types raised by strategies and the identity context.

Assumptions:
- Every failure surfaces as a typed exception to the immediate caller
- Nothing is retried internally
- RequestError.error is one of "unreachable", "invalid_server_response",
  "unexpected_response"
"""
from typing import Any, Optional


class AssentError(Exception):
    """Base class for all Assent errors."""
    pass


class ConfigurationError(AssentError):
    """Raised when static provider configuration is missing or invalid."""
    pass


class CallbackError(AssentError):
    """Raised when the provider reports an OAuth error on callback."""
    
    def __init__(self, message: str, error: Optional[str] = None, error_uri: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error = error
        self.error_uri = error_uri


class CallbackCSRFError(AssentError):
    """Raised when the callback state does not match the session state."""
    
    def __init__(self, message: str = "CSRF detected"):
        super().__init__(message)
        self.message = message


class DecodeError(AssentError):
    """Raised when a response body does not parse per its content-type."""
    pass


class RequestError(AssentError):
    """Raised when an outbound provider request fails.
    
    Attributes:
        error: Failure kind
        response: The HTTPResponse involved, when there was one
    """
    
    UNREACHABLE = "unreachable"
    INVALID_SERVER_RESPONSE = "invalid_server_response"
    UNEXPECTED_RESPONSE = "unexpected_response"
    
    def __init__(self, message: str, error: Optional[str] = None, response: Any = None):
        super().__init__(message)
        self.message = message
        self.error = error
        self.response = response
    
    @classmethod
    def unexpected(cls, response: Any) -> "RequestError":
        """Build an error for a 2xx response with an unusable payload."""
        return cls(
            f"An unexpected success response was received:\n\n{response.body!r}",
            error=cls.UNEXPECTED_RESPONSE,
            response=response
        )
    
    @classmethod
    def invalid(cls, response: Any) -> "RequestError":
        """Build an error for a non-2xx response."""
        headers = "".join(f"\n{key}: {value}" for key, value in response.headers)
        return cls(
            f"Server responded with status: {response.status}\n\n"
            f"Headers:{headers}\n\n"
            f"Body:\n{response.body!r}",
            error=cls.INVALID_SERVER_RESPONSE,
            response=response
        )


class IdentityError(AssentError):
    """Base class for identity-linking failures.
    
    Attributes:
        reason: Short machine-readable reason
    """
    reason = "invalid"


class BoundToDifferentUserError(IdentityError):
    """Raised when a provider uid is already linked to another user."""
    reason = "bound_to_different_user"


class InvalidUserIdFieldError(IdentityError):
    """Raised when the user id field (email) fails validation."""
    reason = "invalid_user_id_field"


class NoPasswordError(IdentityError):
    """Raised when removing an identity would leave the user without a login method."""
    reason = "no_password"


class IdentityValidationError(IdentityError):
    """Raised when identity or user params fail validation."""
    reason = "invalid"
