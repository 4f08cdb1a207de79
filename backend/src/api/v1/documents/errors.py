"""Mapping of vault error kinds to HTTP responses"""

import logging

from fastapi import status
from fastapi.responses import JSONResponse

from domain.documents.results import Err, ErrorKind

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.ACCESS_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorKind.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.DATABASE_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.STORAGE_ERROR: status.HTTP_502_BAD_GATEWAY,
}


def error_response(result: Err, mask_access_denied: bool = True) -> JSONResponse:
    """Translate an ``Err`` into the JSON error body.

    With ``mask_access_denied`` an ACCESS_DENIED is reported exactly like
    NOT_FOUND, so callers cannot probe for documents they may not see.
    """
    error = result.error
    kind = error.kind
    body = {"error": kind.value, "message": error.message, "details": error.details}

    if kind == ErrorKind.ACCESS_DENIED and mask_access_denied:
        kind = ErrorKind.NOT_FOUND
        document_id = (error.details or {}).get("document_id")
        body = {
            "error": kind.value,
            "message": "Document not found",
            "details": {"document_id": document_id} if document_id else None,
        }
    elif kind in (ErrorKind.DATABASE_ERROR, ErrorKind.STORAGE_ERROR):
        logger.error(f"Vault operation failed: {error.kind.value}: {error.message}")

    return JSONResponse(status_code=ERROR_STATUS_CODES[kind], content=body)
