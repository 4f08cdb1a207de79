"""S3 Storage Adapter - Implementation of ObjectStoragePort using boto3.

Issues SigV4 presigned URLs for AWS S3, MinIO, and other S3-compatible
services. File bodies go straight between the client and the bucket; the
adapter itself only reads the leading bytes of an object for content sniffing.

Architecture: Hexagonal - Adapter implementation in infrastructure layer
"""

import logging
from typing import Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from domain.documents.ports.object_storage_port import ObjectStoragePort, StorageError

logger = logging.getLogger(__name__)

_MISSING_OBJECT_CODES = ("NoSuchKey", "404", "NotFound")


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "Unknown")


class S3StorageAdapter(ObjectStoragePort):
    """S3-compatible storage adapter using boto3.

    The boto3 client is created once and shared by all requests. Presigning is
    a local computation; only ``read_object_head``, ``file_exists`` and
    ``verify_ready`` talk to the service.

    Example:
        config = load_storage_config(get_settings())
        storage = S3StorageAdapter(
            endpoint_url=config.endpoint_url,
            access_key=config.access_key,
            secret_key=config.secret_key,
            bucket_name=config.bucket_name,
            region=config.region,
        )
        url = await storage.generate_presigned_upload_url(
            storage_key="documents/pat_1/2026-10-18/4f1c...e2.pdf",
            content_type="application/pdf",
            content_length=52311,
            metadata={"category": "LAB_RESULTS"},
            expires_in_seconds=1800,
        )
    """

    backend_name = "s3"

    def __init__(
        self,
        endpoint_url: Optional[str],
        access_key: str,
        secret_key: str,
        bucket_name: str,
        region: str = "us-east-1",
    ):
        """Initialize S3 storage adapter.

        Args:
            endpoint_url: S3 endpoint URL (None for AWS S3, URL for MinIO)
            access_key: S3 access key ID
            secret_key: S3 secret access key
            bucket_name: S3 bucket name
            region: AWS region (default: 'us-east-1')

        Raises:
            StorageError: If S3 client initialization fails
        """
        try:
            self.s3_client = boto3.client(
                "s3",
                endpoint_url=endpoint_url,
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
                region_name=region,
                config=Config(signature_version="s3v4"),
            )
            self.bucket_name = bucket_name
            self.region = region

            logger.info(
                f"Initialized S3 storage adapter: bucket={bucket_name}, "
                f"endpoint={endpoint_url or 'AWS S3'}, region={region}"
            )
        except NoCredentialsError as e:
            raise StorageError(f"Invalid S3 credentials: {e}")
        except (BotoCoreError, ValueError) as e:
            raise StorageError(f"Failed to initialize S3 client: {e}")

    async def generate_presigned_upload_url(
        self,
        storage_key: str,
        content_type: str,
        content_length: int,
        metadata: Dict[str, str],
        expires_in_seconds: int,
    ) -> str:
        """Generate a presigned PUT URL bound to type, length and metadata.

        The client must send matching ``Content-Type``, ``Content-Length`` and
        ``x-amz-meta-*`` headers or S3 rejects the signature.

        Raises:
            StorageError: If URL generation fails
        """
        try:
            url = self.s3_client.generate_presigned_url(
                "put_object",
                Params={
                    "Bucket": self.bucket_name,
                    "Key": storage_key,
                    "ContentType": content_type,
                    "ContentLength": content_length,
                    "Metadata": metadata,
                },
                ExpiresIn=expires_in_seconds,
            )
        except ClientError as e:
            error_code = _error_code(e)
            logger.error(
                f"Presigned upload URL generation failed: storage_key={storage_key}, "
                f"error={error_code}"
            )
            raise StorageError(f"Failed to generate upload URL: {error_code}")
        except BotoCoreError as e:
            logger.error(f"Unexpected error generating upload URL: {e}")
            raise StorageError(f"Failed to generate upload URL: {e}")

        logger.info(
            f"Generated presigned upload URL: storage_key={storage_key}, "
            f"expires_in={expires_in_seconds}s",
            extra={"storage_key": storage_key, "backend": self.backend_name},
        )
        return url

    async def generate_presigned_download_url(
        self,
        storage_key: str,
        expires_in_seconds: int,
        response_file_name: Optional[str] = None,
    ) -> str:
        """Generate a presigned GET URL.

        The object is not checked for existence; a URL for a missing key simply
        yields 404 from S3 when used.

        Raises:
            StorageError: If URL generation fails
        """
        params = {
            "Bucket": self.bucket_name,
            "Key": storage_key,
        }
        if response_file_name:
            params["ResponseContentDisposition"] = f'attachment; filename="{response_file_name}"'

        try:
            url = self.s3_client.generate_presigned_url(
                "get_object",
                Params=params,
                ExpiresIn=expires_in_seconds,
            )
        except ClientError as e:
            error_code = _error_code(e)
            logger.error(
                f"Presigned download URL generation failed: storage_key={storage_key}, "
                f"error={error_code}"
            )
            raise StorageError(f"Failed to generate download URL: {error_code}")
        except BotoCoreError as e:
            logger.error(f"Unexpected error generating download URL: {e}")
            raise StorageError(f"Failed to generate download URL: {e}")

        logger.info(
            f"Generated presigned download URL: storage_key={storage_key}, "
            f"expires_in={expires_in_seconds}s",
            extra={"storage_key": storage_key, "backend": self.backend_name},
        )
        return url

    async def read_object_head(self, storage_key: str, num_bytes: int) -> bytes:
        """Read the first ``num_bytes`` of an object with a ranged GET.

        Raises:
            FileNotFoundError: If the object doesn't exist
            StorageError: If retrieval fails
        """
        try:
            response = self.s3_client.get_object(
                Bucket=self.bucket_name,
                Key=storage_key,
                Range=f"bytes=0-{num_bytes - 1}",
            )
            body = response["Body"]
            try:
                head = body.read(num_bytes)
            finally:
                body.close()
        except ClientError as e:
            error_code = _error_code(e)
            if error_code in _MISSING_OBJECT_CODES:
                logger.warning(f"Object not found: storage_key={storage_key}")
                raise FileNotFoundError(f"File not found: {storage_key}")
            if error_code == "InvalidRange":
                # Zero-length object
                return b""
            logger.error(
                f"S3 ranged read failed: storage_key={storage_key}, "
                f"error={error_code}"
            )
            raise StorageError(f"Failed to read object: {error_code}")
        except BotoCoreError as e:
            logger.error(f"Unexpected error during ranged read: {e}")
            raise StorageError(f"Failed to read object: {e}")

        return head[:num_bytes]

    async def file_exists(self, storage_key: str) -> bool:
        """Check if a file exists in S3.

        Uses HEAD request (faster than GET).

        Raises:
            StorageError: For errors other than a missing object
        """
        try:
            self.s3_client.head_object(
                Bucket=self.bucket_name,
                Key=storage_key,
            )
            return True
        except ClientError as e:
            error_code = _error_code(e)
            if error_code in _MISSING_OBJECT_CODES:
                return False
            logger.warning(
                f"Error checking file existence: storage_key={storage_key}, "
                f"error={error_code}"
            )
            raise StorageError(f"Failed to check object: {error_code}")
        except BotoCoreError as e:
            raise StorageError(f"Failed to check object: {e}")

    async def verify_ready(self) -> bool:
        """Verify that the configured bucket exists.

        This should be called on application startup to fail fast if
        bucket doesn't exist.

        Raises:
            StorageError: If bucket check fails or bucket doesn't exist
        """
        try:
            self.s3_client.head_bucket(Bucket=self.bucket_name)
            logger.info(f"Verified bucket exists: {self.bucket_name}")
            return True
        except ClientError as e:
            error_code = _error_code(e)
            if error_code in ("404", "NoSuchBucket"):
                raise StorageError(
                    f"Bucket '{self.bucket_name}' does not exist. "
                    f"Create it first or update the S3_BUCKET_NAME setting."
                )
            raise StorageError(f"Failed to verify bucket: {error_code}")
        except BotoCoreError as e:
            raise StorageError(f"Failed to verify bucket: {e}")
