# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Logging utilities for Assent.

Provides specialized logging functions for:
- Application logs (OAuth flow steps)
- Audit logs (identity link/unlink)
- Security logs (CSRF failures, identity conflicts)

Assumptions:
- All logs use structlog for structured output
- Access tokens, client secrets and passwords are never logged
"""
from typing import Any, Dict, Optional

from assent.logging_config import get_logger

app_logger = get_logger("assent.application")
audit_logger = get_logger("assent.audit")
security_logger = get_logger("assent.security")

SENSITIVE_FIELDS = {
    "password", "password_hash", "secret", "client_secret",
    "token", "access_token", "refresh_token", "id_token", "code",
}


def log_application_event(
    event: str,
    **kwargs: Any
) -> None:
    """Log an application operational event.
    
    Args:
        event: Event name (e.g., "oauth2_token_granted")
        **kwargs: Additional context (provider, url, status, etc.)
    """
    app_logger.info(event, **_sanitize_data(kwargs))


def log_audit_event(
    user_id: str,
    operation: str,
    entity_type: str,
    entity_id: str,
    changes: Optional[Dict[str, Any]] = None,
    **kwargs: Any
) -> None:
    """Log an audit event for identity changes.
    
    Args:
        user_id: User whose account changed
        operation: Operation type (create, update, delete)
        entity_type: Type of entity (UserIdentity, User)
        entity_id: ID of the entity (or provider name for bulk deletes)
        changes: Dictionary of changes made
        **kwargs: Additional context
    """
    sanitized_changes = _sanitize_data(changes) if changes else None
    
    audit_logger.info(
        "audit_event",
        user_id=user_id,
        operation=operation,
        entity_type=entity_type,
        entity_id=entity_id,
        changes=sanitized_changes,
        **kwargs
    )


def log_security_event(
    event: str,
    user_id: Optional[str] = None,
    provider: Optional[str] = None,
    reason: Optional[str] = None,
    **kwargs: Any
) -> None:
    """Log a security event for forensics.
    
    Args:
        event: Security event type (oauth_csrf_detected, identity_conflict, etc.)
        user_id: User involved (if known)
        provider: OAuth provider involved (if any)
        reason: Reason for security event
        **kwargs: Additional context
    """
    security_logger.warning(
        event,
        user_id=user_id,
        provider=provider,
        reason=reason,
        **_sanitize_data(kwargs)
    )


def _sanitize_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """Redact sensitive values from a log payload.
    
    Args:
        data: Dictionary that may contain sensitive data
        
    Returns:
        Dict: Copy with sensitive fields replaced by "[REDACTED]"
    """
    if not data:
        return data
    
    sanitized = {}
    for key, value in data.items():
        if key.lower() in SENSITIVE_FIELDS:
            sanitized[key] = "[REDACTED]"
        elif isinstance(value, dict):
            sanitized[key] = _sanitize_data(value)
        elif isinstance(value, list):
            sanitized[key] = [
                _sanitize_data(item) if isinstance(item, dict) else item
                for item in value
            ]
        else:
            sanitized[key] = value
    
    return sanitized
