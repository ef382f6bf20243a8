# Vault - Key Derivation
#
# Master password → encryption key (PBKDF2-HMAC-SHA256)
# Master password → header HMAC key (PBKDF2, label-separated salt)
# Keys are returned as bytearrays so callers can wipe them after use.

import os

from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.backends import default_backend

# PBKDF2 parameters (OWASP recommendations)
MIN_ITERATIONS = 600_000  # OWASP 2023: 600k iterations for PBKDF2-SHA256
DEFAULT_ITERATIONS = MIN_ITERATIONS
MAX_ITERATIONS = 10_000_000  # upper bound a file header may request
KEY_LENGTH = 32  # 256 bits for AES-256
SALT_LENGTH = 32  # 256-bit salt

INTEGRITY_LABEL = b"passwood/header-hmac"

# Format version 1 files (written by the web client) derived the HMAC key from the
# raw salt with a fixed iteration count.
LEGACY_INTEGRITY_ITERATIONS = 100_000


def generate_salt() -> bytes:
    """Generate cryptographically random salt."""
    return os.urandom(SALT_LENGTH)


def _pbkdf2(password: str, salt: bytes, iterations: int) -> bytearray:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=iterations,
        backend=default_backend()
    )
    return bytearray(kdf.derive(password.encode('utf-8')))


def derive_encryption_key(password: str, salt: bytes, iterations: int) -> bytearray:
    """
    Derive the payload encryption key from the master password.

    Args:
        password: User's master password
        salt: Random salt (stored in the file header)
        iterations: PBKDF2 iteration count (read from the header on decode)

    Returns:
        256-bit key as a wipeable bytearray
    """
    assert len(salt) > 0, "KDF salt must not be empty"
    assert iterations > 0, "KDF iteration count must be positive"
    return _pbkdf2(password, bytes(salt), iterations)


def derive_integrity_key(
    password: str,
    salt: bytes,
    iterations: int = DEFAULT_ITERATIONS,
    format_version: int = 2,
) -> bytearray:
    """
    Derive the header HMAC key from the master password.

    The salt is prefixed with INTEGRITY_LABEL so the result is independent
    of the encryption key derived from the same password and salt.
    """
    assert len(salt) > 0, "KDF salt must not be empty"
    if format_version == 1:
        return _pbkdf2(password, bytes(salt), LEGACY_INTEGRITY_ITERATIONS)
    assert iterations > 0, "KDF iteration count must be positive"
    return _pbkdf2(password, INTEGRITY_LABEL + bytes(salt), iterations)


def wipe(buffer: bytearray) -> None:
    """Zero key material in place (best effort)."""
    for i in range(len(buffer)):
        buffer[i] = 0
