"""Audit logging for coding decisions and access.

Provides logging for:
- E/M level calculations (manual and AI-assisted)
- Authentication events

Coding decisions feed billing, so every calculation is recorded with the
ranks that produced it. This audit log should be persisted to a secure,
append-only store in production.
"""

import logging
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

# Separate audit logger for security-critical events
audit_logger = logging.getLogger("audit")


class AuditAction(str, Enum):
    """Types of auditable actions."""

    # Coding
    CALCULATE = "calculate"
    INFER = "infer"

    # Authentication
    AUTH_SUCCESS = "auth_success"
    AUTH_FAILURE = "auth_failure"

    # System
    ERROR = "error"


class AuditEvent(BaseModel):
    """Audit event record.

    Contains all relevant context for an auditable action.
    """

    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    action: AuditAction = Field(..., description="Type of action performed")
    resource_type: str = Field(..., description="Type of resource accessed")
    resource_id: str | None = Field(None, description="ID of specific resource")
    encounter_id: str | None = Field(None, description="Encounter ID if applicable")
    user_id: str | None = Field(None, description="User who performed action")
    ip_address: str | None = Field(None, description="Client IP address")
    details: dict | None = Field(None, description="Additional context")
    success: bool = Field(True, description="Whether action succeeded")


def log_audit(
    action: AuditAction,
    resource_type: str,
    resource_id: str | None = None,
    encounter_id: str | None = None,
    user_id: str | None = None,
    ip_address: str | None = None,
    details: dict | None = None,
    success: bool = True,
) -> AuditEvent:
    """Log an audit event.

    Args:
        action: Type of action being audited
        resource_type: The type of resource being accessed
        resource_id: Specific resource identifier
        encounter_id: Encounter the action concerns
        user_id: User performing the action
        ip_address: Client IP address
        details: Additional context
        success: Whether the action succeeded

    Returns:
        The created AuditEvent
    """
    event = AuditEvent(
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        encounter_id=encounter_id,
        user_id=user_id,
        ip_address=ip_address,
        details=details,
        success=success,
    )

    log_level = logging.INFO if success else logging.WARNING
    audit_logger.log(
        log_level,
        f"AUDIT: {action.value} {resource_type}"
        f"{f'/{resource_id}' if resource_id else ''}"
        f"{f' encounter={encounter_id}' if encounter_id else ''}"
        f" success={success}",
        extra={"audit_event": event.model_dump()},
    )

    return event


def log_em_calculation(
    code: str | None,
    source: str,
    encounter_id: str | None = None,
    ip_address: str | None = None,
    ranks: dict[str, int] | None = None,
    unrecognized: list[str] | None = None,
    error: str | None = None,
) -> AuditEvent:
    """Log an E/M level calculation.

    Args:
        code: Resulting E/M code, or None if the calculation failed
        source: "manual" for supplied complexities, "ai" for inferred ones
        encounter_id: Encounter being coded
        ip_address: Client IP address
        ranks: Ranks per axis used for the decision
        unrecognized: Axes whose input was degraded to the lowest rank
        error: Failure reason if applicable

    Returns:
        The created AuditEvent
    """
    details: dict = {"source": source}
    if ranks is not None:
        details["ranks"] = ranks
    if unrecognized:
        details["unrecognized"] = unrecognized
    if error:
        details["error"] = error

    return log_audit(
        action=AuditAction.INFER if source == "ai" else AuditAction.CALCULATE,
        resource_type="em_level",
        resource_id=code,
        encounter_id=encounter_id,
        ip_address=ip_address,
        details=details,
        success=error is None,
    )


def log_auth_event(
    success: bool,
    user_id: str | None = None,
    ip_address: str | None = None,
    reason: str | None = None,
) -> AuditEvent:
    """Log an authentication event.

    Args:
        success: Whether authentication succeeded
        user_id: User attempting to authenticate
        ip_address: Client IP address
        reason: Reason for failure if applicable

    Returns:
        The created AuditEvent
    """
    action = AuditAction.AUTH_SUCCESS if success else AuditAction.AUTH_FAILURE
    details = {"reason": reason} if reason else None

    return log_audit(
        action=action,
        resource_type="auth",
        user_id=user_id,
        ip_address=ip_address,
        details=details,
        success=success,
    )
