"""Fixed-size binary header for .pass vault files.

Layout (little-endian, 256 bytes total)::

    offset  size  field
    0       4     magic ("PSWD")
    4       4     format_version
    8       4     cipher_algorithm_id
    12      32    kdf_salt
    44      4     kdf_iterations
    48      4     kdf_memory_cost   (reserved)
    52      4     kdf_parallelism   (reserved)
    56      32    integrity_tag     (HMAC-SHA256)
    88      168   reserved (written as zeros, covered by the HMAC)

This module only does lossless (de)serialization and the HMAC over it.
Magic and version checks belong to the codec.
"""

import struct
from dataclasses import dataclass, replace

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac

from .exceptions import FormatError, IntegrityError

MAGIC = b"PSWD"
HEADER_SIZE = 256
TAG_LENGTH = 32
SALT_LENGTH = 32

_LAYOUT = struct.Struct("<4sII32sIII32s")
_EMPTY_TAG = bytes(TAG_LENGTH)
RESERVED_SIZE = HEADER_SIZE - _LAYOUT.size

# Placeholders for a future memory-hard KDF
DEFAULT_MEMORY_COST = 65536  # KiB
DEFAULT_PARALLELISM = 4


@dataclass(frozen=True)
class VaultFileHeader:
    """Unencrypted prefix of a vault file."""

    format_version: int
    cipher_algorithm_id: int
    kdf_salt: bytes
    kdf_iterations: int
    kdf_memory_cost: int = DEFAULT_MEMORY_COST
    kdf_parallelism: int = DEFAULT_PARALLELISM
    integrity_tag: bytes = _EMPTY_TAG
    magic: bytes = MAGIC
    # Carried verbatim so the HMAC covers every header byte
    reserved: bytes = bytes(RESERVED_SIZE)

    def serialize(self) -> bytes:
        """Pack into exactly HEADER_SIZE bytes."""
        if len(self.magic) != 4:
            raise ValueError("Header magic must be 4 bytes")
        if len(self.kdf_salt) != SALT_LENGTH:
            raise ValueError(f"KDF salt must be {SALT_LENGTH} bytes")
        if len(self.integrity_tag) != TAG_LENGTH:
            raise ValueError(f"Integrity tag must be {TAG_LENGTH} bytes")
        if len(self.reserved) != RESERVED_SIZE:
            raise ValueError(f"Reserved area must be {RESERVED_SIZE} bytes")

        packed = _LAYOUT.pack(
            self.magic,
            self.format_version,
            self.cipher_algorithm_id,
            self.kdf_salt,
            self.kdf_iterations,
            self.kdf_memory_cost,
            self.kdf_parallelism,
            self.integrity_tag,
        )
        return packed + bytes(self.reserved)

    @classmethod
    def deserialize(cls, buffer: bytes) -> "VaultFileHeader":
        """Unpack the first HEADER_SIZE bytes of ``buffer``.

        Raises:
            FormatError: Buffer shorter than HEADER_SIZE.
        """
        if len(buffer) < HEADER_SIZE:
            raise FormatError("Invalid header: buffer too small")

        (
            magic,
            format_version,
            cipher_algorithm_id,
            kdf_salt,
            kdf_iterations,
            kdf_memory_cost,
            kdf_parallelism,
            integrity_tag,
        ) = _LAYOUT.unpack_from(bytes(buffer[:HEADER_SIZE]))

        return cls(
            reserved=bytes(buffer[_LAYOUT.size:HEADER_SIZE]),
            magic=magic,
            format_version=format_version,
            cipher_algorithm_id=cipher_algorithm_id,
            kdf_salt=kdf_salt,
            kdf_iterations=kdf_iterations,
            kdf_memory_cost=kdf_memory_cost,
            kdf_parallelism=kdf_parallelism,
            integrity_tag=integrity_tag,
        )

    def without_tag(self) -> "VaultFileHeader":
        return replace(self, integrity_tag=_EMPTY_TAG)

    def with_tag(self, tag: bytes) -> "VaultFileHeader":
        return replace(self, integrity_tag=tag)


def compute_tag(header: VaultFileHeader, key: bytearray) -> bytes:
    """HMAC-SHA256 over the header serialized with a zeroed tag field."""
    mac = hmac.HMAC(key, hashes.SHA256())
    mac.update(header.without_tag().serialize())
    return mac.finalize()


def sign(header: VaultFileHeader, key: bytearray) -> VaultFileHeader:
    """Return a copy of ``header`` carrying its real integrity tag."""
    return header.with_tag(compute_tag(header, key))


def verify_tag(header: VaultFileHeader, key: bytearray) -> None:
    """Recompute the header HMAC and compare in constant time.

    Raises:
        IntegrityError: Tag mismatch (tampered header or wrong password).
    """
    mac = hmac.HMAC(key, hashes.SHA256())
    mac.update(header.without_tag().serialize())
    try:
        mac.verify(header.integrity_tag)
    except InvalidSignature:
        raise IntegrityError() from None
