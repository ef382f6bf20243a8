# Storage - Local Directory Backend
#
# One .pass file per vault in a single directory. Writes go to a temp
# file in the same directory and are renamed into place, so a crash never
# leaves a half-written vault. Files are owner read/write only.

import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional, Union

from .base import (
    BLOB_EXTENSION,
    BlobNotFoundError,
    BlobStore,
    StorageError,
    validate_blob_name,
)

logger = logging.getLogger(__name__)


class LocalBlobStore(BlobStore):
    """Blob store backed by a local directory.

    Args:
        directory: Where .pass files live. Created if missing.
    """

    def __init__(self, directory: Optional[Union[str, Path]] = None):
        if directory is None:
            from ..config import get_settings

            directory = get_settings().data_dir
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, name: str) -> Path:
        validate_blob_name(name)
        path = (self.directory / name).resolve()
        # Security check: the path must stay inside the store directory
        if path.parent != self.directory.resolve():
            raise StorageError(f"Access denied: {name!r}")
        return path

    def read_blob(self, name: str) -> bytes:
        path = self._path(name)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise BlobNotFoundError(f"Password file not found: {name}") from None
        except OSError as exc:
            raise StorageError(f"Failed to read {name}: {exc}") from exc

    def write_blob(self, name: str, data: bytes) -> None:
        path = self._path(name)
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=".tmp_", suffix=BLOB_EXTENSION)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            # Ensure file permissions: owner read/write only
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, path)
        except OSError as exc:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise StorageError(f"Failed to write {name}: {exc}") from exc
        logger.debug("Wrote %s (%d bytes)", name, len(data))

    def list_blobs(self) -> List[str]:
        return sorted(
            p.name for p in self.directory.iterdir()
            if p.is_file()
            and p.suffix.lower() == BLOB_EXTENSION
            and not p.name.startswith(".tmp_")
        )

    def delete_blob(self, name: str) -> None:
        path = self._path(name)
        try:
            path.unlink()
        except FileNotFoundError:
            raise BlobNotFoundError(f"Password file not found: {name}") from None
        except OSError as exc:
            raise StorageError(f"Failed to delete {name}: {exc}") from exc
