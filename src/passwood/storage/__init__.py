# Storage Module - Opaque Blob Stores
#
# Local directory and remote server backends behind one interface.
# Stores move encrypted bytes only; they never decrypt.

from .base import BlobNotFoundError, BlobStore, StorageError, validate_blob_name
from .local import LocalBlobStore
from .remote import RemoteBlobStore

__all__ = [
    "BlobStore",
    "LocalBlobStore",
    "RemoteBlobStore",
    "StorageError",
    "BlobNotFoundError",
    "validate_blob_name",
]
