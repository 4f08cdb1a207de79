"""Storage backend selection.

Called once at application startup; the chosen adapter is shared for the
life of the process.
"""

import logging

from config import Settings
from domain.documents.ports.object_storage_port import ObjectStoragePort

from .mock_storage_adapter import MockStorageAdapter
from .s3_storage_adapter import S3StorageAdapter
from .storage_config import (
    BACKEND_S3,
    load_mock_storage_config,
    load_storage_config,
    resolve_backend,
)

logger = logging.getLogger(__name__)


def build_storage_adapter(settings: Settings) -> ObjectStoragePort:
    """Create the object storage adapter selected by STORAGE_BACKEND.

    Raises:
        ValueError: If the S3 backend is requested but misconfigured
        StorageError: If the adapter cannot be initialized
    """
    backend = resolve_backend(settings)

    if backend == BACKEND_S3:
        config = load_storage_config(settings)
        adapter = S3StorageAdapter(
            endpoint_url=config.endpoint_url,
            access_key=config.access_key,
            secret_key=config.secret_key,
            bucket_name=config.bucket_name,
            region=config.region,
        )
    else:
        mock_config = load_mock_storage_config(settings)
        adapter = MockStorageAdapter(
            root_dir=mock_config.root_dir,
            base_url=mock_config.base_url,
            signing_secret=mock_config.signing_secret,
        )
        if settings.ENVIRONMENT == "production":
            logger.warning("Mock object storage is active in production; configure S3 credentials")

    logger.info(f"Object storage backend selected: {adapter.backend_name}", extra={"backend": adapter.backend_name})
    return adapter
