# Storage - Remote Server Backend
#
# Blob store over the password-file REST API:
#   GET    {base}/password_files            list ({"files": [{"filename", ...}]})
#   GET    {base}/password_files/{name}     download raw bytes
#   POST   {base}/password_files/{name}     upload {"data": base64}
#   DELETE {base}/password_files/{name}     delete
#
# The server may be gated by an app password sent as x-app-password.
# Retry with exponential backoff on 429 / 5xx / transport errors.

import base64
import logging
import time
from typing import List, Optional

import httpx

from .base import BlobNotFoundError, BlobStore, StorageError, validate_blob_name

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
INITIAL_BACKOFF_SEC = 1.0
BACKOFF_MULTIPLIER = 2.0
REQUEST_TIMEOUT_SEC = 30


class RemoteBlobStore(BlobStore):
    """Blob store backed by the password-file HTTP API.

    Usage::

        store = RemoteBlobStore("https://vault.example.com/api", app_password="...")
        names = store.list_blobs()
        blob = store.read_blob(names[0])

    Args:
        base_url: API root (the part before ``/password_files``).
        app_password: Optional shared app password (x-app-password header).
        client: Preconfigured httpx.Client (tests inject a MockTransport).
        initial_backoff: First retry delay in seconds.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        app_password: Optional[str] = None,
        client: Optional[httpx.Client] = None,
        initial_backoff: float = INITIAL_BACKOFF_SEC,
    ):
        if base_url is None:
            from ..config import get_settings

            settings = get_settings()
            base_url = settings.server_url
            app_password = app_password or settings.app_password
        if not base_url:
            raise StorageError("No server URL configured (PASSWOOD_SERVER_URL)")

        self.base_url = base_url.rstrip("/")
        self._app_password = app_password
        self._client = client or httpx.Client(timeout=REQUEST_TIMEOUT_SEC)
        self._initial_backoff = initial_backoff

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    def _headers(self) -> dict:
        headers = {"User-Agent": "Passwood/0.1"}
        if self._app_password:
            headers["x-app-password"] = self._app_password
        return headers

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Execute an HTTP request with retry + exponential backoff."""
        url = f"{self.base_url}{path}"
        backoff = self._initial_backoff
        last_exc: Optional[Exception] = None

        for attempt in range(1, MAX_RETRIES + 1):
            try:
                resp = self._client.request(method, url, headers=self._headers(), **kwargs)
            except httpx.TransportError as exc:
                last_exc = exc
                if attempt < MAX_RETRIES:
                    logger.warning(
                        "Blob store request failed (%s), retrying in %.1fs "
                        "(attempt %d/%d)",
                        exc, backoff, attempt, MAX_RETRIES,
                    )
                    time.sleep(backoff)
                    backoff *= BACKOFF_MULTIPLIER
                continue

            if resp.status_code == 429 or resp.status_code >= 500:
                last_exc = StorageError(f"Server returned {resp.status_code}")
                if attempt < MAX_RETRIES:
                    retry_after = resp.headers.get("Retry-After")
                    wait = float(retry_after) if retry_after else backoff
                    logger.warning(
                        "Blob store returned %d, retrying in %.1fs (attempt %d/%d)",
                        resp.status_code, wait, attempt, MAX_RETRIES,
                    )
                    time.sleep(wait)
                    backoff *= BACKOFF_MULTIPLIER
                continue

            return resp

        raise StorageError(
            f"{method} {path} failed after {MAX_RETRIES} attempts: {last_exc}"
        )

    def _check(self, resp: httpx.Response, name: str = "") -> None:
        if resp.status_code == 404:
            raise BlobNotFoundError(f"Password file not found: {name}")
        if resp.status_code in (401, 403):
            raise StorageError("Server rejected the app password")
        if resp.status_code >= 400:
            raise StorageError(f"Server returned {resp.status_code} for {name or 'listing'}")

    # ------------------------------------------------------------------
    # BlobStore interface
    # ------------------------------------------------------------------

    def read_blob(self, name: str) -> bytes:
        validate_blob_name(name)
        resp = self._request("GET", f"/password_files/{name}")
        self._check(resp, name)
        return resp.content

    def write_blob(self, name: str, data: bytes) -> None:
        validate_blob_name(name)
        payload = {"data": base64.b64encode(data).decode("ascii")}
        resp = self._request("POST", f"/password_files/{name}", json=payload)
        self._check(resp, name)
        logger.debug("Uploaded %s (%d bytes)", name, len(data))

    def list_blobs(self) -> List[str]:
        resp = self._request("GET", "/password_files")
        self._check(resp)
        try:
            files = resp.json()["files"]
            return sorted(f["filename"] for f in files)
        except (ValueError, KeyError, TypeError) as exc:
            raise StorageError(f"Malformed file listing from server: {exc}") from exc

    def delete_blob(self, name: str) -> None:
        validate_blob_name(name)
        # The server answers 500 rather than 404 for a missing file
        if not self.exists(name):
            raise BlobNotFoundError(f"Password file not found: {name}")
        resp = self._request("DELETE", f"/password_files/{name}")
        self._check(resp, name)
