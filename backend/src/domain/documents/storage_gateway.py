"""Storage gateway - presigned URL lifecycle for clinical documents.

Sits between the vault service and an ObjectStoragePort adapter. All
validation happens here, before a key is minted or the backend is called, so
the S3 and mock backends behave identically.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
from urllib.parse import quote

from observability.metrics import (
    download_urls_issued_total,
    upload_requests_rejected_total,
    upload_urls_issued_total,
)

from .ports.object_storage_port import ObjectStoragePort, StorageError, metadata_headers
from .results import Ok, Result, not_found, storage_error, validation_error
from .storage_keys import build_storage_key, is_valid_patient_segment, new_file_id
from .validation import (
    DEFAULT_RULES,
    SNIFF_HEAD_BYTES,
    FileRules,
    check_declared_file,
    is_file_size_allowed as _is_file_size_allowed,
    is_file_type_allowed as _is_file_type_allowed,
    sanitize_filename,
)


logger = logging.getLogger(__name__)

DEFAULT_UPLOAD_URL_TTL = 30 * 60
DEFAULT_DOWNLOAD_URL_TTL = 60 * 60


# S3 caps user metadata at 2 KB, counted over key and value lengths
METADATA_MAX_BYTES = 2048


@dataclass(frozen=True)
class UploadRequest:
    """Declared metadata for a file the client is about to upload."""
    file_name: str
    file_type: str
    file_size: int
    patient_id: str
    category: str
    appointment_id: Optional[str] = None


@dataclass(frozen=True)
class UploadTicket:
    """A presigned PUT plus the headers the client must send with it.

    ``upload_headers`` holds Content-Type and every ``x-amz-meta-*`` header
    bound into the signature; sending anything different fails the upload.
    """
    upload_url: str
    storage_key: str
    file_id: str
    expires_in: int
    upload_headers: Dict[str, str]


@dataclass(frozen=True)
class DownloadLink:
    download_url: str
    expires_in: int


def _quote_within(value: str, limit: int) -> str:
    # Truncates on character boundaries so the value still unquotes cleanly
    quoted = []
    used = 0
    for char in value:
        piece = quote(char, safe="")
        if used + len(piece) > limit:
            break
        quoted.append(piece)
        used += len(piece)
    return "".join(quoted)


def build_object_metadata(entries: List[Tuple[str, Optional[str]]]) -> Dict[str, str]:
    """URL-quote metadata values to ASCII and fit them into the S3 limit.

    Entries are taken in order; empty values are omitted and the value that
    overflows the limit is truncated. Put the entry that may be shortened
    (the original file name) last.
    """
    metadata = {}
    budget = METADATA_MAX_BYTES
    for name, value in entries:
        if not value:
            continue
        quoted = _quote_within(value, budget - len(name))
        if not quoted:
            continue
        metadata[name] = quoted
        budget -= len(name) + len(quoted)
    return metadata


class StorageGateway:
    """Issues time-bounded upload/download URLs against one storage backend.

    The backend is chosen once at startup (see infrastructure.storage.factory)
    and never swapped per call.
    """

    def __init__(
        self,
        backend: ObjectStoragePort,
        rules: FileRules = DEFAULT_RULES,
        upload_ttl_seconds: int = DEFAULT_UPLOAD_URL_TTL,
        download_ttl_seconds: int = DEFAULT_DOWNLOAD_URL_TTL,
    ):
        self.backend = backend
        self.rules = rules
        self.upload_ttl_seconds = upload_ttl_seconds
        self.download_ttl_seconds = download_ttl_seconds

    @property
    def backend_name(self) -> str:
        return self.backend.backend_name

    def is_file_type_allowed(self, mime_type: Optional[str]) -> bool:
        return _is_file_type_allowed(mime_type, self.rules)

    def is_file_size_allowed(self, size_bytes: int) -> bool:
        return _is_file_size_allowed(size_bytes, self.rules)

    async def generate_upload_url(self, request: UploadRequest) -> Result[UploadTicket]:
        """Validate declared metadata, mint a storage key and sign a PUT URL.

        Args:
            request: Declared file name, type, size and ownership

        Returns:
            Ok(UploadTicket) or Err(VALIDATION_ERROR | STORAGE_ERROR)
        """
        error = check_declared_file(request.file_name, request.file_type, request.file_size, self.rules)
        if error is not None:
            upload_requests_rejected_total.labels(reason="validation").inc()
            logger.info(f"Upload request rejected: {error}", extra={"patient_id": request.patient_id})
            return validation_error(
                error,
                file_type=request.file_type,
                file_size=request.file_size,
                max_file_size=self.rules.max_file_size,
            )

        if not is_valid_patient_segment(request.patient_id):
            upload_requests_rejected_total.labels(reason="validation").inc()
            return validation_error("Invalid patient id", field="patient_id")

        now = datetime.now(timezone.utc)
        file_id = new_file_id()
        storage_key = build_storage_key(request.patient_id, request.file_name, file_id, now)
        metadata = build_object_metadata([
            ("uploaded-at", now.isoformat()),
            ("patient-id", request.patient_id),
            ("category", request.category),
            ("appointment-id", request.appointment_id),
            ("original-filename", request.file_name),
        ])

        try:
            upload_url = await self.backend.generate_presigned_upload_url(
                storage_key=storage_key,
                content_type=request.file_type,
                content_length=request.file_size,
                metadata=metadata,
                expires_in_seconds=self.upload_ttl_seconds,
            )
        except StorageError as e:
            upload_requests_rejected_total.labels(reason="storage").inc()
            logger.error(
                f"Failed to issue upload URL: {e}",
                extra={"storage_key": storage_key, "backend": self.backend_name},
            )
            return storage_error("Failed to generate upload URL", backend=self.backend_name)

        upload_urls_issued_total.labels(backend=self.backend_name).inc()
        return Ok(UploadTicket(
            upload_url=upload_url,
            storage_key=storage_key,
            file_id=file_id,
            expires_in=self.upload_ttl_seconds,
            upload_headers={"Content-Type": request.file_type, **metadata_headers(metadata)},
        ))

    async def generate_download_url(
        self,
        storage_key: str,
        file_name: Optional[str] = None,
    ) -> Result[DownloadLink]:
        """Sign a read-only URL; a file name forces an attachment download."""
        response_file_name = sanitize_filename(file_name) if file_name else None
        try:
            download_url = await self.backend.generate_presigned_download_url(
                storage_key=storage_key,
                expires_in_seconds=self.download_ttl_seconds,
                response_file_name=response_file_name,
            )
        except StorageError as e:
            logger.error(
                f"Failed to issue download URL: {e}",
                extra={"storage_key": storage_key, "backend": self.backend_name},
            )
            return storage_error("Failed to generate download URL", backend=self.backend_name)

        download_urls_issued_total.labels(backend=self.backend_name).inc()
        return Ok(DownloadLink(download_url=download_url, expires_in=self.download_ttl_seconds))

    async def read_content_head(self, storage_key: str) -> Result[bytes]:
        """Leading bytes of an uploaded object, enough for content sniffing."""
        try:
            head = await self.backend.read_object_head(storage_key, SNIFF_HEAD_BYTES)
        except FileNotFoundError:
            return not_found("Uploaded file not found in storage", storage_key=storage_key)
        except StorageError as e:
            logger.error(
                f"Failed to read uploaded object: {e}",
                extra={"storage_key": storage_key, "backend": self.backend_name},
            )
            return storage_error("Failed to read uploaded file", backend=self.backend_name)
        return Ok(head)
