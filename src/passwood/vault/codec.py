"""Vault file encoding: header + nonce + AEAD ciphertext.

Follows the same cryptographic pattern as the rest of the vault package:
- PBKDF2-SHA256 (600k iterations minimum) for key derivation
- HMAC-SHA256 over the header under a separately derived key
- AES-256-GCM (or ChaCha20-Poly1305) for the JSON payload
- Random 32-byte salt + 12-byte nonce per file, fresh on every save

File format: header(256) + nonce(12) + ciphertext+tag
"""

import asyncio
import logging
from typing import Optional

from . import cipher, kdf, serialization
from .exceptions import FormatError
from .header import (
    HEADER_SIZE,
    MAGIC,
    VaultFileHeader,
    sign,
    verify_tag,
)
from .models import Vault
from .operations import validate_vault

logger = logging.getLogger(__name__)

FORMAT_VERSION = 2
SUPPORTED_VERSIONS = frozenset({1, 2})

# Minimum blob size: header + nonce
_MIN_SIZE = HEADER_SIZE + cipher.NONCE_LENGTH


def encode(
    vault: Vault,
    password: str,
    *,
    iterations: Optional[int] = None,
    algorithm_id: int = cipher.AES_256_GCM,
) -> bytes:
    """Encrypt a vault with the master password.

    Args:
        vault: Vault to persist.
        password: Master password.
        iterations: PBKDF2 iterations (default and floor: kdf.MIN_ITERATIONS).
        algorithm_id: AEAD cipher id written to the header.

    Returns: header(256) + nonce(12) + ciphertext_with_tag

    Raises:
        ValidationError: A record is missing its title or secret.
        ValueError: ``iterations`` below the minimum.
    """
    if iterations is None:
        iterations = kdf.DEFAULT_ITERATIONS
    if iterations < kdf.MIN_ITERATIONS or iterations > kdf.MAX_ITERATIONS:
        raise ValueError(
            f"KDF iterations must be between {kdf.MIN_ITERATIONS} and {kdf.MAX_ITERATIONS}"
        )
    validate_vault(vault)

    salt = kdf.generate_salt()
    encryption_key = kdf.derive_encryption_key(password, salt, iterations)
    integrity_key = kdf.derive_integrity_key(password, salt, iterations, FORMAT_VERSION)
    try:
        nonce, ciphertext = cipher.encrypt(
            serialization.dumps(vault), encryption_key, algorithm_id
        )
        header = sign(
            VaultFileHeader(
                format_version=FORMAT_VERSION,
                cipher_algorithm_id=algorithm_id,
                kdf_salt=salt,
                kdf_iterations=iterations,
            ),
            integrity_key,
        )
    finally:
        kdf.wipe(encryption_key)
        kdf.wipe(integrity_key)

    logger.debug("Encoded vault: %d records, %d bytes", len(vault), len(ciphertext))
    return header.serialize() + nonce + ciphertext


def read_header(blob: bytes) -> VaultFileHeader:
    """Parse and structurally check the header of a vault blob.

    Raises:
        FormatError: Truncated blob, bad magic, unsupported version,
            unknown cipher or out-of-range KDF parameters.
    """
    if len(blob) < _MIN_SIZE:
        raise FormatError("Invalid file: too small")

    header = VaultFileHeader.deserialize(blob[:HEADER_SIZE])
    if header.magic != MAGIC:
        raise FormatError("Invalid file: incorrect magic bytes")
    if header.format_version not in SUPPORTED_VERSIONS:
        raise FormatError(f"Unsupported file version: {header.format_version}")
    if header.cipher_algorithm_id not in cipher.ALGORITHM_NAMES.values():
        raise FormatError(f"Unsupported cipher algorithm: {header.cipher_algorithm_id}")
    if not 0 < header.kdf_iterations <= kdf.MAX_ITERATIONS:
        raise FormatError(f"Invalid KDF iteration count: {header.kdf_iterations}")
    return header


def decode(blob: bytes, password: str) -> Vault:
    """Decrypt a vault blob.

    Raises:
        FormatError: Not a vault file.
        DecryptionError: Wrong password or tampered file. Raised as
            IntegrityError (header) or AuthenticationError (payload), both
            with the same message.
        CorruptionError: Payload authenticated but is not a vault document.
    """
    header = read_header(blob)

    # Header integrity first; nothing is decrypted from an unverified header
    integrity_key = kdf.derive_integrity_key(
        password, header.kdf_salt, header.kdf_iterations, header.format_version
    )
    try:
        verify_tag(header, integrity_key)
    finally:
        kdf.wipe(integrity_key)

    nonce = blob[HEADER_SIZE:_MIN_SIZE]
    ciphertext = blob[_MIN_SIZE:]
    encryption_key = kdf.derive_encryption_key(
        password, header.kdf_salt, header.kdf_iterations
    )
    try:
        plaintext = cipher.decrypt(
            nonce, ciphertext, encryption_key, header.cipher_algorithm_id
        )
    finally:
        kdf.wipe(encryption_key)

    return serialization.loads(plaintext)


async def encode_async(vault: Vault, password: str, **kwargs) -> bytes:
    """``encode`` on a worker thread; the KDF takes hundreds of ms."""
    return await asyncio.to_thread(encode, vault, password, **kwargs)


async def decode_async(blob: bytes, password: str) -> Vault:
    """``decode`` on a worker thread."""
    return await asyncio.to_thread(decode, blob, password)
