"""Structured audit logging for dashboard operations."""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from simple_docker_manager.utils.logging import get_logger


class AuditEventType(str, Enum):
    """Types of audit events."""

    # Authentication events
    AUTH_LOGIN_SUCCESS = "auth_login_success"
    AUTH_LOGIN_FAILURE = "auth_login_failure"
    AUTH_LOGOUT = "auth_logout"

    # Container events
    CONTAINER_CREATE = "container_create"
    CONTAINER_START = "container_start"
    CONTAINER_STOP = "container_stop"
    CONTAINER_RESTART = "container_restart"

    # System events
    SYSTEM_STARTUP = "system_startup"
    SYSTEM_SHUTDOWN = "system_shutdown"


class AuditLogger:
    """Structured audit logger for tracking who did what."""

    SENSITIVE_KEYS = frozenset(
        {
            "password",
            "token",
            "secret",
            "session",
            "cookie",
            "hash",
            "credentials",
        }
    )

    def __init__(self):
        """Initialize the audit logger."""
        self._logger = get_logger("audit")
        # Audit events are always emitted regardless of the root level
        self._logger.setLevel(logging.INFO)

    def log_event(
        self,
        event_type: AuditEventType,
        username: Optional[str] = None,
        container_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        Log an audit event.

        Args:
            event_type: Type of event being logged
            username: User performing the action (or attempting to)
            container_id: Container ID if relevant
            details: Additional event-specific details
        """
        sanitized_details = self._sanitize_details(details or {})

        event = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type.value,
        }

        if username:
            event["username"] = username
        if container_id:
            event["container_id"] = container_id
        if sanitized_details:
            event["details"] = sanitized_details

        self._logger.info("audit_event", extra=event)

    def _sanitize_details(self, details: dict[str, Any]) -> dict[str, Any]:
        """
        Redact sensitive values from event details.

        Args:
            details: Raw event details

        Returns:
            Sanitized details with sensitive fields redacted
        """
        sanitized = {}
        for key, value in details.items():
            if any(word in key.lower() for word in self.SENSITIVE_KEYS):
                sanitized[key] = "***REDACTED***"
            elif isinstance(value, dict):
                sanitized[key] = self._sanitize_details(value)
            elif isinstance(value, list):
                sanitized[key] = [
                    self._sanitize_details(item) if isinstance(item, dict) else item
                    for item in value
                ]
            else:
                sanitized[key] = value

        return sanitized


# Global audit logger instance
_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """
    Get the global audit logger instance.

    Returns:
        AuditLogger instance
    """
    global _audit_logger
    if _audit_logger is None:
        _audit_logger = AuditLogger()
    return _audit_logger
