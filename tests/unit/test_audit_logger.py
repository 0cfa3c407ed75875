"""Unit tests for audit logger."""

from unittest.mock import MagicMock

import pytest

from simple_docker_manager.utils.audit_logger import AuditEventType, AuditLogger, get_audit_logger


@pytest.fixture
def audit_logger():
    """Audit logger writing to a mock."""
    logger = AuditLogger()
    logger._logger = MagicMock()
    return logger


def test_audit_logger_singleton():
    """Test that get_audit_logger returns singleton instance."""
    assert get_audit_logger() is get_audit_logger()


def test_log_basic_event(audit_logger):
    """Test logging a basic event."""
    audit_logger.log_event(AuditEventType.CONTAINER_STOP, username="admin", container_id="c1")

    call_args = audit_logger._logger.info.call_args
    assert call_args[0][0] == "audit_event"
    extra = call_args[1]["extra"]
    assert extra["event_type"] == "container_stop"
    assert extra["username"] == "admin"
    assert extra["container_id"] == "c1"
    assert "timestamp" in extra
    assert "details" not in extra


def test_log_event_omits_empty_fields(audit_logger):
    """Test that absent username and container are left out."""
    audit_logger.log_event(AuditEventType.SYSTEM_STARTUP)

    extra = audit_logger._logger.info.call_args[1]["extra"]
    assert "username" not in extra
    assert "container_id" not in extra


def test_sensitive_details_redacted(audit_logger):
    """Test redaction of secrets, including nested ones."""
    audit_logger.log_event(
        AuditEventType.AUTH_LOGIN_FAILURE,
        username="admin",
        details={
            "password": "hunter2",
            "session_id": "abc",
            "image": "nginx",
            "nested": {"api_token": "t", "ok": 1},
            "items": [{"cookie": "c"}, "plain"],
        },
    )

    details = audit_logger._logger.info.call_args[1]["extra"]["details"]
    assert details["password"] == "***REDACTED***"
    assert details["session_id"] == "***REDACTED***"
    assert details["image"] == "nginx"
    assert details["nested"] == {"api_token": "***REDACTED***", "ok": 1}
    assert details["items"] == [{"cookie": "***REDACTED***"}, "plain"]
