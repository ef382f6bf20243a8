"""Blob store interface.

A blob store keeps opaque encrypted vault files by name. It never
inspects or transforms the bytes it is given.
"""

import re
from abc import ABC, abstractmethod
from typing import List

BLOB_EXTENSION = ".pass"

_VALID_NAME = re.compile(r"^[\w\-. ]+\.pass$")


class StorageError(Exception):
    """Raised for storage failures (I/O, HTTP, invalid names)."""


class BlobNotFoundError(StorageError):
    """Raised when a named blob does not exist."""


def validate_blob_name(name: str) -> str:
    """Reject names that are not plain ``*.pass`` file names.

    Raises:
        StorageError: Path separators, traversal or wrong extension.
    """
    if not name or name in (".", "..") or "/" in name or "\\" in name:
        raise StorageError(f"Invalid blob name: {name!r}")
    if not name.lower().endswith(BLOB_EXTENSION) or not _VALID_NAME.match(name):
        raise StorageError(f"Blob name must be a plain '{BLOB_EXTENSION}' file name: {name!r}")
    return name


class BlobStore(ABC):
    """Named byte storage for encrypted vault files."""

    @abstractmethod
    def read_blob(self, name: str) -> bytes:
        """Return the stored bytes. Raises BlobNotFoundError."""

    @abstractmethod
    def write_blob(self, name: str, data: bytes) -> None:
        """Create or replace a blob."""

    @abstractmethod
    def list_blobs(self) -> List[str]:
        """Names of all stored blobs, sorted."""

    @abstractmethod
    def delete_blob(self, name: str) -> None:
        """Remove a blob. Raises BlobNotFoundError."""

    def exists(self, name: str) -> bool:
        return name in self.list_blobs()
