"""Mock Storage Adapter - local-disk ObjectStoragePort for development and tests.

Mirrors the S3 adapter's contract without credentials: presigned URLs point at
this service's ``/mock-storage/{key}`` endpoint and carry an ``expires``
timestamp plus an HMAC-SHA256 ``signature``. The endpoint checks both before
reading or writing anything, so an expired or edited URL is rejected just as
S3 would reject it.

Signed message layout (newline separated):
    PUT: method, key, expires, content type, content length, metadata
    GET: method, key, expires, download file name ("" if none)
"""

import hashlib
import hmac
import json
import logging
import time
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple
from urllib.parse import quote, urlencode

from domain.documents.ports.object_storage_port import ObjectStoragePort, StorageError, canonical_metadata

logger = logging.getLogger(__name__)

MOCK_STORAGE_PATH = "/mock-storage"
_META_SUFFIX = ".meta.json"


class MockStorageAdapter(ObjectStoragePort):
    """Object storage on the local filesystem with HMAC-signed URLs.

    Example:
        storage = MockStorageAdapter(
            root_dir="./.mock-storage",
            base_url="http://localhost:8000",
            signing_secret="dev-secret",
        )
        url = await storage.generate_presigned_download_url(key, 3600, "scan.pdf")
    """

    backend_name = "mock"

    def __init__(
        self,
        root_dir: str,
        base_url: str,
        signing_secret: str,
        clock: Callable[[], float] = time.time,
    ):
        if not signing_secret:
            raise StorageError("Mock storage requires a signing secret")
        self.root = Path(root_dir).resolve()
        self.base_url = base_url.rstrip("/")
        self._secret = signing_secret.encode("utf-8")
        self._clock = clock

        logger.info(f"Initialized mock storage adapter: root={self.root}, base_url={self.base_url}")

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------

    def sign(self, method: str, storage_key: str, expires: int, *parts: str) -> str:
        message = "\n".join([method.upper(), storage_key, str(expires), *[str(p) for p in parts]])
        return hmac.new(self._secret, message.encode("utf-8"), hashlib.sha256).hexdigest()

    def verify(
        self,
        method: str,
        storage_key: str,
        expires: str,
        signature: str,
        *parts: str,
    ) -> Tuple[bool, Optional[str]]:
        """Check a presented URL signature.

        Returns:
            (True, None) if valid, else (False, reason)
        """
        try:
            expires_at = int(expires)
        except (TypeError, ValueError):
            return False, "Malformed expiry"

        if expires_at < int(self._clock()):
            return False, "Request has expired"

        expected = self.sign(method, storage_key, expires_at, *parts)
        if not signature or not hmac.compare_digest(expected, signature):
            return False, "Signature does not match"

        return True, None

    def _signed_url(self, storage_key: str, query: Dict[str, str]) -> str:
        return f"{self.base_url}{MOCK_STORAGE_PATH}/{quote(storage_key, safe='/')}?{urlencode(query)}"

    # ------------------------------------------------------------------
    # Filesystem helpers
    # ------------------------------------------------------------------

    def object_path(self, storage_key: str) -> Path:
        """Resolve a key to a path inside the storage root.

        Raises:
            StorageError: If the key escapes the storage root
        """
        path = (self.root / storage_key).resolve()
        if self.root not in path.parents:
            raise StorageError(f"Invalid storage key: {storage_key}")
        return path

    def write_object(
        self,
        storage_key: str,
        data: bytes,
        content_type: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> None:
        path = self.object_path(storage_key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
            path.with_name(path.name + _META_SUFFIX).write_text(
                json.dumps({"content_type": content_type, "metadata": metadata or {}})
            )
        except OSError as e:
            logger.error(f"Mock storage write failed: storage_key={storage_key}, error={e}")
            raise StorageError(f"Failed to write object: {e}")

        logger.info(
            f"Stored object: storage_key={storage_key}, size={len(data)}",
            extra={"storage_key": storage_key, "backend": self.backend_name},
        )

    def object_info(self, storage_key: str) -> Dict[str, object]:
        """Content type and metadata recorded when the object was written.

        Raises:
            FileNotFoundError: If the object doesn't exist
        """
        path = self.object_path(storage_key)
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {storage_key}")
        meta_path = path.with_name(path.name + _META_SUFFIX)
        if not meta_path.is_file():
            return {"content_type": "application/octet-stream", "metadata": {}}
        return json.loads(meta_path.read_text())

    # ------------------------------------------------------------------
    # Port implementation
    # ------------------------------------------------------------------

    async def generate_presigned_upload_url(
        self,
        storage_key: str,
        content_type: str,
        content_length: int,
        metadata: Dict[str, str],
        expires_in_seconds: int,
    ) -> str:
        self.object_path(storage_key)
        expires = int(self._clock()) + expires_in_seconds
        signature = self.sign(
            "PUT", storage_key, expires, content_type, str(content_length), canonical_metadata(metadata)
        )
        return self._signed_url(storage_key, {"expires": str(expires), "signature": signature})

    async def generate_presigned_download_url(
        self,
        storage_key: str,
        expires_in_seconds: int,
        response_file_name: Optional[str] = None,
    ) -> str:
        self.object_path(storage_key)
        expires = int(self._clock()) + expires_in_seconds
        signature = self.sign("GET", storage_key, expires, response_file_name or "")
        query = {"expires": str(expires), "signature": signature}
        if response_file_name:
            query["filename"] = response_file_name
        return self._signed_url(storage_key, query)

    async def read_object_head(self, storage_key: str, num_bytes: int) -> bytes:
        path = self.object_path(storage_key)
        try:
            with open(path, "rb") as f:
                return f.read(num_bytes)
        except FileNotFoundError:
            logger.warning(f"Object not found: storage_key={storage_key}")
            raise
        except OSError as e:
            logger.error(f"Mock storage read failed: storage_key={storage_key}, error={e}")
            raise StorageError(f"Failed to read object: {e}")

    async def file_exists(self, storage_key: str) -> bool:
        return self.object_path(storage_key).is_file()

    async def verify_ready(self) -> bool:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Mock storage root is not usable: {e}")
        if not self.root.is_dir():
            raise StorageError(f"Mock storage root is not a directory: {self.root}")
        return True
