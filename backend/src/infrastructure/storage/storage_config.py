"""Storage configuration for the document vault object store.

Builds typed backend configuration from ``Settings`` and decides, once at
startup, which backend serves the process. Supports AWS S3 and S3-compatible
services (MinIO) as well as the local mock backend.
"""

from dataclasses import dataclass
from typing import Optional

from config import Settings


BACKEND_S3 = "s3"
BACKEND_MOCK = "mock"


@dataclass
class StorageConfig:
    """Configuration for S3-compatible object storage.

    Attributes:
        endpoint_url: S3 endpoint URL (e.g., 'http://localhost:9000' for MinIO,
                      None for AWS S3 which uses default regional endpoints)
        access_key: S3 access key ID
        secret_key: S3 secret access key
        bucket_name: S3 bucket name for storing documents
        region: AWS region (default: 'us-east-1')
    """
    endpoint_url: Optional[str]
    access_key: str
    secret_key: str
    bucket_name: str
    region: str = "us-east-1"


@dataclass
class MockStorageConfig:
    """Configuration for the local-disk mock backend.

    Attributes:
        root_dir: Directory objects are written to
        base_url: Public base URL of this service (signed URLs point at it)
        signing_secret: HMAC key for signed URLs
    """
    root_dir: str
    base_url: str
    signing_secret: str


def resolve_backend(settings: Settings) -> str:
    """Pick the storage backend for this process.

    'auto' selects S3 when credentials and a bucket are configured, otherwise
    the mock backend. Explicit 's3' without credentials is a configuration
    error rather than a silent downgrade.

    Raises:
        ValueError: If 's3' is requested but not configured
    """
    backend = settings.STORAGE_BACKEND.lower()
    if backend == "auto":
        return BACKEND_S3 if settings.s3_configured else BACKEND_MOCK
    if backend == BACKEND_S3 and not settings.s3_configured:
        raise ValueError(
            "STORAGE_BACKEND=s3 requires S3_ACCESS_KEY_ID, S3_SECRET_ACCESS_KEY "
            "and S3_BUCKET_NAME"
        )
    return backend


def load_storage_config(settings: Settings) -> StorageConfig:
    """Build S3 configuration from settings.

    Raises:
        ValueError: If required settings are missing or invalid
    """
    config = StorageConfig(
        endpoint_url=settings.S3_ENDPOINT_URL or None,
        access_key=settings.S3_ACCESS_KEY_ID or "",
        secret_key=settings.S3_SECRET_ACCESS_KEY or "",
        bucket_name=settings.S3_BUCKET_NAME or "",
        region=settings.S3_REGION,
    )
    validate_storage_config(config)
    return config


def load_mock_storage_config(settings: Settings) -> MockStorageConfig:
    return MockStorageConfig(
        root_dir=settings.MOCK_STORAGE_ROOT,
        base_url=settings.MOCK_STORAGE_BASE_URL.rstrip("/"),
        signing_secret=settings.MOCK_STORAGE_SIGNING_SECRET,
    )


def validate_storage_config(config: StorageConfig) -> None:
    """Validate storage configuration.

    Args:
        config: Storage configuration to validate

    Raises:
        ValueError: If configuration is invalid
    """
    if not config.access_key:
        raise ValueError("Storage access_key is required")

    if not config.secret_key:
        raise ValueError("Storage secret_key is required")

    if not config.bucket_name:
        raise ValueError("Storage bucket_name is required")

    if config.endpoint_url:
        # MinIO configuration
        if not config.endpoint_url.startswith(("http://", "https://")):
            raise ValueError(
                f"Invalid endpoint_url: {config.endpoint_url}. "
                "Must start with http:// or https://"
            )
    elif not config.region:
        raise ValueError("AWS region is required when using S3 (S3_ENDPOINT_URL not set)")
