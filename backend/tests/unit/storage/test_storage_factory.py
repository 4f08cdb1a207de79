"""Unit tests for storage backend selection and configuration"""

import pytest

from config import Settings
from infrastructure.storage.factory import build_storage_adapter
from infrastructure.storage.mock_storage_adapter import MockStorageAdapter
from infrastructure.storage.s3_storage_adapter import S3StorageAdapter
from infrastructure.storage.storage_config import (
    StorageConfig,
    load_storage_config,
    resolve_backend,
    validate_storage_config,
)


def _settings(**overrides) -> Settings:
    values = dict(
        STORAGE_BACKEND="auto",
        S3_ACCESS_KEY_ID=None,
        S3_SECRET_ACCESS_KEY=None,
        S3_BUCKET_NAME=None,
        S3_ENDPOINT_URL=None,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


S3_CREDENTIALS = dict(
    S3_ACCESS_KEY_ID="AKIATEST",
    S3_SECRET_ACCESS_KEY="secret",
    S3_BUCKET_NAME="clinic-documents",
)


class TestResolveBackend:

    def test_auto_without_credentials_uses_mock(self):
        assert resolve_backend(_settings()) == "mock"

    def test_auto_with_credentials_uses_s3(self):
        assert resolve_backend(_settings(**S3_CREDENTIALS)) == "s3"

    def test_explicit_mock_ignores_credentials(self):
        assert resolve_backend(_settings(STORAGE_BACKEND="mock", **S3_CREDENTIALS)) == "mock"

    def test_explicit_s3_without_credentials_fails(self):
        with pytest.raises(ValueError):
            resolve_backend(_settings(STORAGE_BACKEND="s3"))

    def test_unknown_backend_rejected_by_settings(self):
        with pytest.raises(ValueError):
            _settings(STORAGE_BACKEND="ftp")


class TestBuildStorageAdapter:

    def test_mock_adapter(self, tmp_path):
        adapter = build_storage_adapter(_settings(MOCK_STORAGE_ROOT=str(tmp_path)))
        assert isinstance(adapter, MockStorageAdapter)
        assert adapter.backend_name == "mock"

    def test_s3_adapter(self):
        adapter = build_storage_adapter(_settings(**S3_CREDENTIALS))
        assert isinstance(adapter, S3StorageAdapter)
        assert adapter.bucket_name == "clinic-documents"


class TestStorageConfig:

    def test_load_minio_config(self):
        config = load_storage_config(_settings(S3_ENDPOINT_URL="http://minio:9000", **S3_CREDENTIALS))
        assert config.endpoint_url == "http://minio:9000"

    def test_invalid_endpoint(self):
        config = StorageConfig(endpoint_url="minio:9000", access_key="a", secret_key="b", bucket_name="c")
        with pytest.raises(ValueError):
            validate_storage_config(config)

    @pytest.mark.parametrize("missing", ["access_key", "secret_key", "bucket_name"])
    def test_required_fields(self, missing):
        values = dict(endpoint_url=None, access_key="a", secret_key="b", bucket_name="c")
        values[missing] = ""
        with pytest.raises(ValueError):
            validate_storage_config(StorageConfig(**values))
