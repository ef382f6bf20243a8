# Vault - Authenticated Cipher
#
# AES-256-GCM (default) or ChaCha20-Poly1305 over the serialized vault.
# 96-bit random nonce per call, 128-bit tag appended to the ciphertext.

import os
from typing import Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

from .exceptions import AuthenticationError, FormatError

NONCE_LENGTH = 12  # 96-bit nonce for GCM (recommended)
TAG_LENGTH = 16

AES_256_GCM = 1
CHACHA20_POLY1305 = 2

_ALGORITHMS = {
    AES_256_GCM: AESGCM,
    CHACHA20_POLY1305: ChaCha20Poly1305,
}

ALGORITHM_NAMES = {
    "aes-256-gcm": AES_256_GCM,
    "chacha20-poly1305": CHACHA20_POLY1305,
}


def get_aead(algorithm_id: int, key: bytearray):
    """Build the AEAD primitive for a header cipher id."""
    try:
        aead_class = _ALGORITHMS[algorithm_id]
    except KeyError:
        raise FormatError(f"Unsupported cipher algorithm: {algorithm_id}")
    return aead_class(key)


def encrypt(
    plaintext: bytes, key: bytearray, algorithm_id: int = AES_256_GCM
) -> Tuple[bytes, bytes]:
    """
    Encrypt plaintext with an AEAD cipher.

    Args:
        plaintext: Serialized vault
        key: 256-bit encryption key
        algorithm_id: Cipher id stored in the file header

    Returns:
        Tuple of (nonce, ciphertext_with_tag)
    """
    # Generate random nonce (must be unique per encryption)
    nonce = os.urandom(NONCE_LENGTH)
    ciphertext = get_aead(algorithm_id, key).encrypt(nonce, plaintext, None)
    return nonce, ciphertext


def decrypt(
    nonce: bytes, ciphertext: bytes, key: bytearray, algorithm_id: int = AES_256_GCM
) -> bytes:
    """
    Decrypt and authenticate ciphertext.

    Raises:
        AuthenticationError: If the tag does not verify (wrong key or
            tampered data). The message never says which.
    """
    aead = get_aead(algorithm_id, key)
    if len(ciphertext) < TAG_LENGTH:
        raise AuthenticationError()
    try:
        return aead.decrypt(nonce, ciphertext, None)
    except InvalidTag:
        raise AuthenticationError() from None
