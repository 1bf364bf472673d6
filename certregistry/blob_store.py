"""
Off-chain storage for encrypted certificate metadata.

Blobs are opaque bytes. The IPFS backend returns the content id as the
reference; the local backend returns a generated ``local-...`` file name.
``FallbackBlobStore`` writes to IPFS and drops to local storage when the
node can't be reached.
"""
import logging
import os
import secrets
import time
from pathlib import Path

import requests

from .errors import BlobNotFound, StoreUnavailable

logger = logging.getLogger(__name__)

LOCAL_PREFIX = "local-"


class LocalBlobStore:
    def __init__(self, path):
        self.path = Path(path)

    def _resolve(self, ref: str) -> Path:
        if not ref or not ref.startswith(LOCAL_PREFIX) or os.path.basename(ref) != ref:
            raise BlobNotFound(f"Not a local blob reference: {ref!r}")
        return self.path / ref

    def store(self, blob: bytes) -> str:
        try:
            self.path.mkdir(parents=True, exist_ok=True)
            ref = f"{LOCAL_PREFIX}{int(time.time() * 1000)}-{secrets.token_hex(4)}.json"
            (self.path / ref).write_bytes(blob)
        except OSError as e:
            raise StoreUnavailable(f"Failed to save data to local storage: {e}") from e
        logger.info(f"Saved to local storage: {ref}")
        return ref

    def fetch(self, ref: str) -> bytes:
        filepath = self._resolve(ref)
        try:
            data = filepath.read_bytes()
        except FileNotFoundError:
            raise BlobNotFound(f"Blob not found: {ref}")
        logger.info(f"Retrieved from local storage: {ref}")
        return data


class IpfsBlobStore:
    """Client for the IPFS HTTP API (``/api/v0``) of a kubo node."""

    def __init__(self, api_url="http://localhost:5001", timeout=10.0, session=None):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _post(self, endpoint, **kwargs):
        try:
            response = self.session.post(
                f"{self.api_url}/api/v0/{endpoint}", timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            raise StoreUnavailable(f"IPFS node unreachable: {e}") from e
        if response.status_code >= 500 and "not found" not in response.text.lower():
            raise StoreUnavailable(f"IPFS {endpoint} failed: HTTP {response.status_code}")
        return response

    def store(self, blob: bytes) -> str:
        response = self._post("add", params={"pin": "true"}, files={"file": ("blob.json", blob)})
        if response.status_code != 200:
            raise StoreUnavailable(f"IPFS add failed: HTTP {response.status_code}")
        try:
            cid = response.json()["Hash"]
        except (ValueError, KeyError, TypeError) as e:
            raise StoreUnavailable(f"IPFS add returned a malformed response: {e}") from e
        logger.info(f"Uploaded to IPFS: {cid}")
        return cid

    def fetch(self, ref: str) -> bytes:
        response = self._post("cat", params={"arg": ref})
        if response.status_code != 200:
            raise BlobNotFound(f"IPFS has no blob {ref}")
        logger.info(f"Retrieved from IPFS: {ref}")
        return response.content


class FallbackBlobStore:
    def __init__(self, primary, local: LocalBlobStore):
        self.primary = primary
        self.local = local

    def store(self, blob: bytes) -> str:
        try:
            return self.primary.store(blob)
        except StoreUnavailable as e:
            logger.warning(f"Remote store failed, falling back to local storage: {e}")
        return self.local.store(blob)

    def fetch(self, ref: str) -> bytes:
        # local refs never touch the remote; remote refs only live remotely
        if ref.startswith(LOCAL_PREFIX):
            return self.local.fetch(ref)
        try:
            return self.primary.fetch(ref)
        except StoreUnavailable as e:
            logger.warning(f"Remote fetch failed for {ref}: {e}")
            raise


def build_blob_store(config):
    local = LocalBlobStore(config["IPFS_STORAGE_PATH"])
    if not config.get("USE_IPFS"):
        logger.info("Using local filesystem storage (IPFS disabled)")
        return local
    remote = IpfsBlobStore(config["IPFS_API_URL"], timeout=config.get("IPFS_TIMEOUT", 10.0))
    logger.info(f"IPFS client initialized: {remote.api_url}")
    return FallbackBlobStore(remote, local)
