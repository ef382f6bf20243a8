# Vault Session - Explicit Unlocked-Vault Context
#
# Holds one open vault: the blob it came from, the decrypted Vault value
# and the master password needed to save it again. Callers pass the
# session around instead of relying on global "is unlocked" state.
#
# Security:
# - Wrong-password attempts back off exponentially (none, 2s, 4s, 8s, 16s cap)
# - Idle sessions lock themselves after the configured timeout
# - lock() drops the vault and password references
# - Audit logging for create/unlock/lock/save and record access

import logging
import threading
import time
from typing import Any, Callable, Optional

from .core import EventSeverity, EventType, get_audit_logger
from .storage import BlobNotFoundError, BlobStore
from .vault import codec, operations
from .vault.exceptions import (
    DecryptionError,
    DuplicateNameError,
    ValidationError,
    VaultError,
)
from .vault.models import Vault
from .vault.passwords import verify_master_password

logger = logging.getLogger(__name__)

MAX_LOCKOUT_SECONDS = 16

_OPERATION_EVENTS = {
    "add_record": EventType.RECORD_ADDED,
    "update_record": EventType.RECORD_UPDATED,
    "delete_record": EventType.RECORD_DELETED,
    "add_tag": EventType.TAG_CHANGED,
    "rename_tag": EventType.TAG_CHANGED,
    "delete_tag": EventType.TAG_CHANGED,
    "set_tag_color": EventType.TAG_CHANGED,
    "reorder_tags": EventType.TAG_CHANGED,
}


class SessionLockedError(VaultError):
    """Raised when a locked session is asked for vault contents."""

    def __init__(self, message: str = "Vault is locked. Unlock vault first."):
        super().__init__(message)


class UnlockThrottledError(VaultError):
    """Raised when unlock is attempted during a back-off period."""

    def __init__(self, retry_after: float):
        self.retry_after = retry_after
        super().__init__(
            f"Too many failed attempts. Please wait {int(retry_after + 0.999)} seconds."
        )


class VaultSession:
    """
    One open vault, bound to a blob store.

    Args:
        store: Where the encrypted vault blob lives.
        timeout: Idle seconds before auto-lock (0/None disables).
        iterations: PBKDF2 iterations for saves (default: settings).
        algorithm_id: AEAD cipher for saves (default: settings).
        clock: Monotonic time source (injectable for tests).
    """

    def __init__(
        self,
        store: BlobStore,
        timeout: Optional[float] = None,
        iterations: Optional[int] = None,
        algorithm_id: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if timeout is None or iterations is None or algorithm_id is None:
            from .config import get_settings

            settings = get_settings()
            timeout = settings.session_timeout if timeout is None else timeout
            iterations = settings.kdf_iterations if iterations is None else iterations
            algorithm_id = (
                settings.cipher_algorithm_id if algorithm_id is None else algorithm_id
            )

        self.store = store
        self.timeout = timeout
        self.iterations = iterations
        self.algorithm_id = algorithm_id
        self._clock = clock
        self._lock = threading.RLock()

        self.blob_name: Optional[str] = None
        self._vault: Optional[Vault] = None
        self._password: Optional[str] = None
        self._last_activity = 0.0
        self.dirty = False

        # Rate limiting for unlock attempts (prevent brute force)
        self.failed_attempts = 0
        self.lockout_until: Optional[float] = None

        self.audit = get_audit_logger()

    # ── State ────────────────────────────────────────────────────────

    @property
    def is_unlocked(self) -> bool:
        with self._lock:
            self._expire_if_idle()
            return self._vault is not None

    def _expire_if_idle(self) -> None:
        if self._vault is None or not self.timeout:
            return
        if self._clock() - self._last_activity > self.timeout:
            self.audit.log_vault_event(
                EventType.VAULT_TIMEOUT,
                "Session timed out",
                details={"blob": self.blob_name, "unsaved_changes": self.dirty},
                severity=EventSeverity.ALERT,
            )
            self._clear()

    def _require_unlocked(self) -> Vault:
        self._expire_if_idle()
        if self._vault is None:
            raise SessionLockedError()
        self._last_activity = self._clock()
        return self._vault

    @property
    def vault(self) -> Vault:
        """The decrypted vault. Raises SessionLockedError when locked."""
        with self._lock:
            return self._require_unlocked()

    def _open(self, name: str, vault: Vault, password: str) -> None:
        self.blob_name = name
        self._vault = vault
        self._password = password
        self._last_activity = self._clock()
        self.dirty = False

    def _clear(self) -> None:
        self._vault = None
        self._password = None
        self.blob_name = None
        self.dirty = False

    # ── Lifecycle ────────────────────────────────────────────────────

    def create(self, name: str, password: str, enforce_policy: bool = True) -> Vault:
        """
        Create and save a new empty vault, leaving it unlocked.

        Raises:
            ValidationError: Master password fails the policy.
            DuplicateNameError: A blob with this name already exists.
        """
        if enforce_policy:
            is_valid, errors = verify_master_password(password)
            if not is_valid:
                raise ValidationError("; ".join(errors))

        with self._lock:
            if self.store.exists(name):
                raise DuplicateNameError(f"Vault already exists: {name}. Unlock it instead.")

            vault = operations.create_vault()
            blob = codec.encode(
                vault, password, iterations=self.iterations, algorithm_id=self.algorithm_id
            )
            self.store.write_blob(name, blob)
            self._open(name, vault, password)

        self.audit.log_vault_event(
            EventType.VAULT_CREATED,
            "Vault initialized with master password",
            details={"blob": name},
        )
        return vault

    def unlock(self, name: str, password: str) -> Vault:
        """
        Read and decrypt a vault blob.

        Raises:
            UnlockThrottledError: Still inside a back-off period.
            BlobNotFoundError: No such blob.
            DecryptionError: Wrong password or tampered file.
            FormatError / CorruptionError: Not a usable vault file.
        """
        with self._lock:
            now = self._clock()
            if self.lockout_until is not None and now < self.lockout_until:
                remaining = self.lockout_until - now
                self.audit.log_vault_event(
                    EventType.VAULT_UNLOCK_FAILED,
                    f"Unlock attempt during lockout period ({remaining:.0f}s remaining)",
                    details={"blob": name},
                    severity=EventSeverity.ALERT,
                )
                raise UnlockThrottledError(remaining)

            blob = self.store.read_blob(name)
            try:
                vault = codec.decode(blob, password)
            except DecryptionError:
                self._handle_failed_unlock(name)
                raise
            except VaultError as exc:
                self.audit.log_vault_event(
                    EventType.VAULT_ERROR,
                    f"Vault could not be opened: {exc}",
                    details={"blob": name, "error": type(exc).__name__},
                    severity=EventSeverity.CRITICAL,
                )
                raise

            # Password verified; reset rate limiting
            self.failed_attempts = 0
            self.lockout_until = None
            self._open(name, vault, password)

        self.audit.log_vault_event(
            EventType.VAULT_UNLOCKED,
            "Vault unlocked successfully",
            details={"blob": name, "records": len(vault)},
        )
        return vault

    def _handle_failed_unlock(self, name: str) -> None:
        """Exponential back-off after a wrong password."""
        self.failed_attempts += 1
        if self.failed_attempts == 1:
            delay_seconds = 0
        else:
            delay_seconds = min(2 ** (self.failed_attempts - 1), MAX_LOCKOUT_SECONDS)
        self.lockout_until = self._clock() + delay_seconds if delay_seconds else None

        self.audit.log_vault_event(
            EventType.VAULT_UNLOCK_FAILED,
            f"Vault unlock failed (attempt {self.failed_attempts}, {delay_seconds}s lockout)",
            details={"blob": name},
            severity=EventSeverity.ALERT,
        )

    def save(self) -> None:
        """Re-encrypt the vault (fresh salt and nonce) and write it back."""
        with self._lock:
            vault = self._require_unlocked()
            blob = codec.encode(
                vault, self._password, iterations=self.iterations, algorithm_id=self.algorithm_id
            )
            self.store.write_blob(self.blob_name, blob)
            self.dirty = False
            name = self.blob_name

        self.audit.log_vault_event(
            EventType.VAULT_SAVED,
            "Vault saved",
            details={"blob": name, "records": len(vault), "bytes": len(blob)},
        )

    def lock(self) -> None:
        """Forget the decrypted vault and master password."""
        with self._lock:
            name = self.blob_name
            had_changes = self.dirty
            self._clear()

        if name is not None:
            if had_changes:
                logger.warning("Locking %s with unsaved changes", name)
            self.audit.log_vault_event(
                EventType.VAULT_LOCKED,
                "Vault locked",
                details={"blob": name, "unsaved_changes": had_changes},
            )

    def __enter__(self) -> "VaultSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.lock()

    # ── Contents ─────────────────────────────────────────────────────

    def apply(self, operation: Callable[..., Any], *args, **kwargs) -> Any:
        """
        Run a vault operation against the open vault.

        Operations that return a Vault replace the session's vault and mark
        it dirty; anything else (search results, lookups) is returned as is.

        Usage:
            session.apply(operations.rename_tag, "work", "job")
            hits = session.apply(operations.search_records, "git")
        """
        with self._lock:
            current = self._require_unlocked()
            result = operation(current, *args, **kwargs)
            if isinstance(result, Vault):
                self._vault = result
                self.dirty = True

        event_type = _OPERATION_EVENTS.get(getattr(operation, "__name__", ""))
        if event_type is not None:
            self.audit.log_vault_event(
                event_type,
                f"{operation.__name__.replace('_', ' ')}",
                details={"blob": self.blob_name},
            )
        return result

    def reveal_secret(self, record_id: str) -> str:
        """Return a record's secret and audit the access."""
        record = self.apply(operations.get_record, record_id)
        self.audit.log_vault_event(
            EventType.RECORD_ACCESSED,
            f"Password accessed: {record.title}",
            details={"blob": self.blob_name, "record_id": record_id},
        )
        return record.secret

    def delete_vault(self) -> None:
        """Delete the open vault's blob and lock the session."""
        with self._lock:
            self._require_unlocked()
            name = self.blob_name
            try:
                self.store.delete_blob(name)
            except BlobNotFoundError:
                logger.info("Blob %s already gone", name)
            self._clear()

        self.audit.log_vault_event(
            EventType.BLOB_DELETED, "Vault deleted", details={"blob": name}
        )
