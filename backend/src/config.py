"""Application configuration via environment variables.

Provides type-safe settings loading using pydantic-settings.
Environment variables can be loaded from a .env file.

All values are read once at process startup and are treated as immutable
for the lifetime of the process (see get_settings()).
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_ALLOWED_MIME_TYPES = [
    "image/jpeg",
    "image/png",
    "image/gif",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings have sensible defaults for development.
    Production deployments MUST set security-critical values.

    Environment Variables:
        DATABASE_URL: SQLAlchemy connection string
        JWT_SECRET: Shared secret used to verify identity tokens from the auth provider
        ALLOWED_MIME_TYPES: JSON list of MIME types accepted for upload
        UNDETECTABLE_TEXT_MIME_TYPES: Declared types accepted when sniffing finds no signature
        MAX_FILE_SIZE_BYTES: Maximum upload size (default 10 MiB)
        UPLOAD_URL_TTL_SECONDS: Lifetime of presigned upload URLs (default 30 min)
        DOWNLOAD_URL_TTL_SECONDS: Lifetime of presigned download URLs (default 60 min)
        STORAGE_BACKEND: 's3', 'mock' or 'auto' (S3 when credentials are configured)
        S3_*: S3-compatible object store connection (AWS S3 or MinIO)
        MOCK_STORAGE_*: Local-disk mock object store used without S3 credentials
        MASK_ACCESS_DENIED_AS_NOT_FOUND: Answer 404 instead of 403 on denied reads
        LOG_LEVEL / LOG_JSON: Logging configuration
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        frozen=True,
    )

    # Database
    DATABASE_URL: str = "sqlite:///./clinic_vault.db"

    # Identity tokens (issued by the external auth provider)
    JWT_SECRET: str = "dev-jwt-secret-CHANGE-IN-PRODUCTION"
    JWT_ALGORITHM: str = "HS256"

    # Upload rules
    ALLOWED_MIME_TYPES: List[str] = DEFAULT_ALLOWED_MIME_TYPES
    UNDETECTABLE_TEXT_MIME_TYPES: List[str] = ["text/plain"]
    MAX_FILE_SIZE_BYTES: int = 10 * 1024 * 1024

    # Presigned URL lifetimes
    UPLOAD_URL_TTL_SECONDS: int = 30 * 60
    DOWNLOAD_URL_TTL_SECONDS: int = 60 * 60

    # Object Storage (S3/MinIO)
    STORAGE_BACKEND: str = "auto"
    S3_ENDPOINT_URL: Optional[str] = None
    S3_ACCESS_KEY_ID: Optional[str] = None
    S3_SECRET_ACCESS_KEY: Optional[str] = None
    S3_BUCKET_NAME: Optional[str] = None
    S3_REGION: str = "us-east-1"

    # Mock object storage (local development without credentials)
    MOCK_STORAGE_ROOT: str = "./.mock-storage"
    MOCK_STORAGE_BASE_URL: str = "http://localhost:8000"
    MOCK_STORAGE_SIGNING_SECRET: str = "dev-mock-storage-secret-CHANGE-IN-PRODUCTION"

    # API behaviour
    MASK_ACCESS_DENIED_AS_NOT_FOUND: bool = True
    CORS_ORIGINS: str = "http://localhost:3000"

    # Application
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    @field_validator("STORAGE_BACKEND")
    @classmethod
    def _check_storage_backend(cls, value: str) -> str:
        value = value.lower()
        if value not in ("s3", "mock", "auto"):
            raise ValueError("STORAGE_BACKEND must be one of: s3, mock, auto")
        return value

    @field_validator("MAX_FILE_SIZE_BYTES", "UPLOAD_URL_TTL_SECONDS", "DOWNLOAD_URL_TTL_SECONDS")
    @classmethod
    def _check_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value

    @property
    def s3_configured(self) -> bool:
        """True when enough S3 settings are present to sign real URLs."""
        return bool(self.S3_ACCESS_KEY_ID and self.S3_SECRET_ACCESS_KEY and self.S3_BUCKET_NAME)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache for singleton behavior.
    Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
