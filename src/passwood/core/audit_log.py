# Core - Audit Logging
#
# Append-only audit trail for vault access: create, unlock, lock, save,
# record and tag changes. One JSON line per event, written through
# structlog into a daily file.
#
# Never pass secrets, master passwords or key material in details.

import logging
import os
import socket
import sys
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import uuid4

import structlog

AUDIT_LOGGER_NAME = "passwood.audit"


class EventType(str, Enum):
    """Types of events that can be logged."""

    # Vault lifecycle
    VAULT_CREATED = "vault.created"
    VAULT_UNLOCKED = "vault.unlocked"
    VAULT_LOCKED = "vault.locked"
    VAULT_UNLOCK_FAILED = "vault.unlock.failed"
    VAULT_SAVED = "vault.saved"
    VAULT_TIMEOUT = "vault.timeout"
    VAULT_ERROR = "vault.error"

    # Vault contents
    RECORD_ADDED = "vault.record.added"
    RECORD_UPDATED = "vault.record.updated"
    RECORD_ACCESSED = "vault.record.accessed"
    RECORD_DELETED = "vault.record.deleted"
    TAG_CHANGED = "vault.tag.changed"

    # Storage
    BLOB_DELETED = "storage.blob.deleted"

    # System Events
    SYSTEM_START = "system.start"
    SYSTEM_STOP = "system.stop"


class EventSeverity(str, Enum):
    """
    Severity levels for audit events.

    - INFO: Normal activity
    - ALERT: Failed unlock, lockout, timeout
    - CRITICAL: Unexpected failure (corrupt vault, storage error)
    """
    INFO = "info"
    ALERT = "alert"
    CRITICAL = "critical"


class AuditLogger:
    """
    Append-only audit logger for vault events.

    Features:
    - Structured JSON logging (structlog)
    - Automatic timestamp and event ID
    - OS user / host context
    """

    def __init__(self, log_dir: Optional[Path] = None):
        """
        Initialize audit logger.

        Args:
            log_dir: Directory for audit logs (default: ./audit_logs)
        """
        self.log_dir = Path(log_dir) if log_dir else Path("./audit_logs")
        self.log_dir.mkdir(parents=True, exist_ok=True)

        # Setup structured logging
        structlog.configure(
            processors=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer()
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=False,
        )

        self._file_handler = self._setup_file_handler()
        self.logger = structlog.get_logger(AUDIT_LOGGER_NAME)

    def _setup_file_handler(self) -> logging.FileHandler:
        """Attach a daily log file to the audit logger."""
        today = datetime.now().strftime("%Y-%m-%d")
        log_file = self.log_dir / f"audit_{today}.log"

        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter('%(message)s'))  # structlog handles formatting

        audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)
        audit_logger.addHandler(file_handler)
        audit_logger.setLevel(logging.INFO)
        return file_handler

    @property
    def log_file(self) -> Path:
        return Path(self._file_handler.baseFilename)

    def close(self) -> None:
        """Detach and close the file handler."""
        logging.getLogger(AUDIT_LOGGER_NAME).removeHandler(self._file_handler)
        self._file_handler.close()

    def log_event(
        self,
        event_type: EventType,
        severity: EventSeverity,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        user_context: Optional[Dict[str, Any]] = None
    ) -> str:
        """
        Log an audit event (append-only).

        Args:
            event_type: Type of event (from EventType enum)
            severity: Severity level (from EventSeverity enum)
            message: Human-readable event description
            details: Additional event details (never secrets)
            user_context: User context (defaults to OS user / host)

        Returns:
            str: Event ID (UUID) for reference
        """
        event_id = str(uuid4())

        self.logger.info(
            "audit_event",
            event_id=event_id,
            event_type=event_type.value,
            severity=severity.value,
            message=message,
            timestamp=datetime.now(timezone.utc).isoformat(),
            details=details or {},
            user_context=user_context or self._get_default_user_context(),
        )

        return event_id

    def log_vault_event(
        self,
        event_type: EventType,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: EventSeverity = EventSeverity.INFO,
    ) -> str:
        """Log a vault event with a "Vault:" message prefix."""
        return self.log_event(
            event_type=event_type,
            severity=severity,
            message=f"Vault: {message}",
            details=details
        )

    def _get_default_user_context(self) -> Dict[str, Any]:
        """Get default user context (OS user, hostname, etc.)."""
        return {
            "os_user": os.getenv("USERNAME") or os.getenv("USER"),
            "hostname": socket.gethostname(),
            "platform": sys.platform,
        }


# Global logger instance
_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """Get global audit logger (singleton pattern)."""
    global _audit_logger
    if _audit_logger is None:
        from ..config import get_settings

        _audit_logger = AuditLogger(get_settings().audit_log_dir)
    return _audit_logger


def set_audit_logger(logger: Optional[AuditLogger]) -> None:
    """Replace the global audit logger (tests, embedding applications)."""
    global _audit_logger
    _audit_logger = logger


def log_security_event(
    event_type: EventType,
    severity: EventSeverity,
    message: str,
    **kwargs
) -> str:
    """
    Convenience function for logging audit events.

    Usage:
        log_security_event(
            EventType.VAULT_UNLOCK_FAILED,
            EventSeverity.ALERT,
            "Unlock failed",
            details={"blob": "personal.pass"}
        )
    """
    return get_audit_logger().log_event(event_type, severity, message, **kwargs)
