"""Object storage adapters (S3 and local mock)"""

from .factory import build_storage_adapter
from .mock_storage_adapter import MockStorageAdapter
from .s3_storage_adapter import S3StorageAdapter

__all__ = ["build_storage_adapter", "MockStorageAdapter", "S3StorageAdapter"]
