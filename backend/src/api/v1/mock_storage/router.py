"""Mock object storage endpoints (development only).

Serves the presigned URLs issued by MockStorageAdapter so the upload/download
flow works end to end without S3. Mounted by main.create_app only when the
mock backend is active.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query, Request, Response, status
from fastapi.responses import FileResponse, JSONResponse

from domain.documents.ports.object_storage_port import METADATA_HEADER_PREFIX, StorageError, canonical_metadata
from infrastructure.storage.mock_storage_adapter import MOCK_STORAGE_PATH, MockStorageAdapter

logger = logging.getLogger(__name__)

router = APIRouter(prefix=MOCK_STORAGE_PATH, tags=["mock-storage"], include_in_schema=False)


def _storage_error(status_code: int, code: str, message: str) -> JSONResponse:
    # Same shape as the S3 error codes clients already handle
    return JSONResponse(status_code=status_code, content={"Code": code, "Message": message})


def _adapter(request: Request) -> MockStorageAdapter:
    return request.app.state.storage_adapter


@router.put("/{storage_key:path}")
async def put_object(
    storage_key: str,
    request: Request,
    expires: Optional[str] = Query(None),
    signature: Optional[str] = Query(None),
):
    """Store an object uploaded with a presigned PUT URL.

    Like S3, the ``x-amz-meta-*`` headers are part of the signature: missing,
    extra or edited metadata is rejected.
    """
    storage = _adapter(request)
    content_type = request.headers.get("content-type", "")
    content_length = request.headers.get("content-length", "")
    metadata = {
        name.lower()[len(METADATA_HEADER_PREFIX):]: value
        for name, value in request.headers.items()
        if name.lower().startswith(METADATA_HEADER_PREFIX)
    }

    is_valid, reason = storage.verify(
        "PUT", storage_key, expires, signature, content_type, content_length, canonical_metadata(metadata)
    )
    if not is_valid:
        logger.warning(f"Rejected mock upload: {reason}", extra={"storage_key": storage_key})
        return _storage_error(status.HTTP_403_FORBIDDEN, "AccessDenied", reason)

    body = await request.body()
    if str(len(body)) != content_length:
        return _storage_error(
            status.HTTP_400_BAD_REQUEST,
            "IncompleteBody",
            "Body length does not match the signed Content-Length",
        )

    try:
        storage.write_object(storage_key, body, content_type, metadata)
    except StorageError as e:
        return _storage_error(status.HTTP_400_BAD_REQUEST, "InvalidRequest", str(e))

    return Response(status_code=status.HTTP_200_OK)


@router.get("/{storage_key:path}")
async def get_object(
    storage_key: str,
    request: Request,
    expires: Optional[str] = Query(None),
    signature: Optional[str] = Query(None),
    filename: Optional[str] = Query(None),
):
    """Serve an object for a presigned GET URL."""
    storage = _adapter(request)

    is_valid, reason = storage.verify("GET", storage_key, expires, signature, filename or "")
    if not is_valid:
        logger.warning(f"Rejected mock download: {reason}", extra={"storage_key": storage_key})
        return _storage_error(status.HTTP_403_FORBIDDEN, "AccessDenied", reason)

    try:
        info = storage.object_info(storage_key)
        path = storage.object_path(storage_key)
    except FileNotFoundError:
        return _storage_error(status.HTTP_404_NOT_FOUND, "NoSuchKey", "The specified key does not exist.")
    except StorageError as e:
        return _storage_error(status.HTTP_400_BAD_REQUEST, "InvalidRequest", str(e))

    headers = {}
    if filename:
        headers["Content-Disposition"] = f'attachment; filename="{filename}"'
    return FileResponse(path, media_type=info["content_type"], headers=headers)
