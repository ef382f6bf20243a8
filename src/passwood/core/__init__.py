# Core Module - Shared Utilities
#
# Core module provides shared functionality across Passwood modules:
# - Audit logging

from .audit_log import (
    AuditLogger,
    EventSeverity,
    EventType,
    get_audit_logger,
    log_security_event,
    set_audit_logger,
)

__all__ = [
    # Audit Logging
    "AuditLogger",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
    "set_audit_logger",
    "log_security_event",
]
