"""Object Storage Port - Domain interface for presigned object storage access.

The vault never streams file bodies through the API process. Clients upload
and download directly against the object store using short-lived signed URLs;
the only bytes the server ever reads are the leading bytes of an uploaded
object, for content sniffing.

Architecture: Hexagonal - Port interface in domain layer. Two adapters exist
(S3StorageAdapter, MockStorageAdapter); one is chosen at process startup.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional


#: Header prefix S3 uses for user metadata; the mock backend accepts the same
METADATA_HEADER_PREFIX = "x-amz-meta-"


def metadata_headers(metadata: Dict[str, str]) -> Dict[str, str]:
    """Request headers that carry object metadata on a presigned PUT."""
    return {f"{METADATA_HEADER_PREFIX}{name}": value for name, value in metadata.items()}


def canonical_metadata(metadata: Dict[str, str]) -> str:
    """Order-independent text form of metadata, for signing."""
    return "&".join(f"{name.lower()}={value}" for name, value in sorted(metadata.items()))


class StorageError(Exception):
    """Base exception for storage backend failures (signing, connectivity)."""
    pass


class ObjectStoragePort(ABC):
    """Port interface for presigned object storage operations.

    Implementations must behave identically with respect to TTLs and key
    handling; validation happens before the port is ever called.
    """

    #: Short backend name used in logs and metrics ('s3', 'mock')
    backend_name: str = "unknown"

    @abstractmethod
    async def generate_presigned_upload_url(
        self,
        storage_key: str,
        content_type: str,
        content_length: int,
        metadata: Dict[str, str],
        expires_in_seconds: int,
    ) -> str:
        """Generate a write-capable URL for a single PUT of one object.

        Args:
            storage_key: Key the object will be stored under
            content_type: Declared MIME type (bound into the signature)
            content_length: Declared size in bytes (bound into the signature)
            metadata: ASCII metadata stored with the object; bound into the
                signature, so the client must send it as ``x-amz-meta-*``
                headers with identical values
            expires_in_seconds: URL lifetime

        Returns:
            str: Presigned upload URL

        Raises:
            StorageError: If the URL cannot be signed
        """
        pass

    @abstractmethod
    async def generate_presigned_download_url(
        self,
        storage_key: str,
        expires_in_seconds: int,
        response_file_name: Optional[str] = None,
    ) -> str:
        """Generate a read-only URL for one object.

        Args:
            storage_key: Key of the object
            expires_in_seconds: URL lifetime
            response_file_name: If given, the download is served with
                ``Content-Disposition: attachment; filename="..."``

        Returns:
            str: Presigned download URL

        Raises:
            StorageError: If the URL cannot be signed
        """
        pass

    @abstractmethod
    async def read_object_head(self, storage_key: str, num_bytes: int) -> bytes:
        """Read at most ``num_bytes`` leading bytes of a stored object.

        Raises:
            FileNotFoundError: If the object has not been uploaded
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def file_exists(self, storage_key: str) -> bool:
        """Check if an object exists (HEAD request for S3)."""
        pass

    @abstractmethod
    async def verify_ready(self) -> bool:
        """Verify the backend can serve requests (bucket/directory exists).

        Raises:
            StorageError: If the backend is not usable
        """
        pass
