"""Core application configuration and utilities."""

from app.core.audit import AuditAction, AuditEvent, log_audit, log_auth_event, log_em_calculation
from app.core.config import settings
from app.core.security import RequireAuth, verify_api_key

__all__ = [
    # Config
    "settings",
    # Security
    "RequireAuth",
    "verify_api_key",
    # Audit
    "AuditAction",
    "AuditEvent",
    "log_audit",
    "log_auth_event",
    "log_em_calculation",
]
