"""Tests for audit logging."""

import logging
from datetime import UTC, datetime

from app.core.audit import (
    AuditAction,
    AuditEvent,
    log_audit,
    log_auth_event,
    log_em_calculation,
)


class TestAuditEvent:
    """Tests for AuditEvent model."""

    def test_audit_event_required_fields(self) -> None:
        """Test AuditEvent with required fields only."""
        event = AuditEvent(
            action=AuditAction.CALCULATE,
            resource_type="em_level",
        )
        assert event.action == AuditAction.CALCULATE
        assert event.resource_type == "em_level"
        assert event.success is True
        assert event.timestamp is not None

    def test_audit_event_all_fields(self) -> None:
        """Test AuditEvent with all fields."""
        event = AuditEvent(
            action=AuditAction.INFER,
            resource_type="em_level",
            resource_id="99214",
            encounter_id="enc-123",
            user_id="user-456",
            ip_address="192.168.1.1",
            details={"source": "ai"},
            success=True,
        )
        assert event.resource_id == "99214"
        assert event.encounter_id == "enc-123"
        assert event.user_id == "user-456"
        assert event.ip_address == "192.168.1.1"
        assert event.details == {"source": "ai"}

    def test_audit_event_timestamp_auto_set(self) -> None:
        """Test that timestamp is automatically set."""
        before = datetime.now(UTC)
        event = AuditEvent(action=AuditAction.CALCULATE, resource_type="test")
        after = datetime.now(UTC)
        assert before <= event.timestamp <= after


class TestAuditActions:
    """Tests for audit action types."""

    def test_audit_action_coding_operations(self) -> None:
        """Test coding action types exist."""
        assert AuditAction.CALCULATE == "calculate"
        assert AuditAction.INFER == "infer"

    def test_audit_action_auth_operations(self) -> None:
        """Test authentication action types exist."""
        assert AuditAction.AUTH_SUCCESS == "auth_success"
        assert AuditAction.AUTH_FAILURE == "auth_failure"


class TestLogFunctions:
    """Tests for audit logging convenience functions."""

    def test_log_audit_returns_event(self) -> None:
        """Test log_audit returns the audit event."""
        event = log_audit(
            action=AuditAction.CALCULATE,
            resource_type="em_level",
            resource_id="99213",
        )
        assert isinstance(event, AuditEvent)
        assert event.resource_id == "99213"

    def test_log_audit_writes_to_audit_logger(self, caplog) -> None:
        """Test events go to the dedicated audit logger."""
        with caplog.at_level(logging.INFO, logger="audit"):
            log_audit(action=AuditAction.CALCULATE, resource_type="em_level", encounter_id="enc-9")
        record = caplog.records[-1]
        assert record.name == "audit"
        assert "encounter=enc-9" in record.getMessage()
        assert record.audit_event["action"] == AuditAction.CALCULATE

    def test_log_em_calculation_manual(self) -> None:
        """Test manual calculations record ranks."""
        event = log_em_calculation(
            code="99214",
            source="manual",
            encounter_id="enc-1",
            ranks={"history": 3, "exam": 3, "mdm": 3},
        )
        assert event.action == AuditAction.CALCULATE
        assert event.resource_id == "99214"
        assert event.details["ranks"] == {"history": 3, "exam": 3, "mdm": 3}
        assert "unrecognized" not in event.details
        assert event.success is True

    def test_log_em_calculation_ai_with_degraded_input(self) -> None:
        """Test AI calculations record unrecognized axes."""
        event = log_em_calculation(code="99212", source="ai", unrecognized=["exam"])
        assert event.action == AuditAction.INFER
        assert event.details["unrecognized"] == ["exam"]

    def test_log_em_calculation_failure(self, caplog) -> None:
        """Test failures are logged at WARNING."""
        with caplog.at_level(logging.INFO, logger="audit"):
            event = log_em_calculation(code=None, source="manual", error="Unrecognized exam complexity")
        assert event.success is False
        assert event.details["error"] == "Unrecognized exam complexity"
        assert caplog.records[-1].levelno == logging.WARNING

    def test_log_auth_event_failure(self) -> None:
        """Test log_auth_event for failed auth."""
        event = log_auth_event(
            success=False,
            ip_address="10.0.0.1",
            reason="Invalid API key",
        )
        assert event.action == AuditAction.AUTH_FAILURE
        assert event.success is False
        assert event.details["reason"] == "Invalid API key"
