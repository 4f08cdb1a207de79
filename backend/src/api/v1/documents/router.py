"""Document vault API endpoints.

Provides the REST API for the clinical document vault. File bytes never pass
through these endpoints: clients receive presigned URLs and talk to object
storage directly.

Upload flow:
    POST /documents/upload-url      -> presigned PUT URL + PENDING record
    (client PUTs the file to upload_url, sending upload_headers verbatim)
    POST /documents/{id}/confirm    -> content check, ACTIVE or QUARANTINED
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from auth.dependencies import get_current_actor
from config import Settings
from dependencies import get_app_settings, get_vault_service
from domain.documents.document_status import DocumentStatus
from domain.documents.entities import (
    Actor,
    DocumentFilter,
    DocumentSort,
    DocumentSortField,
    SortOrder,
    UpdateDocumentInput,
)
from domain.documents.results import Err
from domain.documents.storage_gateway import UploadRequest
from services.document_vault import DocumentVaultService
from .errors import error_response
from .schemas import (
    ConfirmUploadResponse,
    DocumentListResponse,
    DocumentResponse,
    DocumentUpdateRequest,
    DownloadUrlResponse,
    ErrorResponse,
    PatientStatsResponse,
    ShareRequest,
    UploadUrlRequest,
    UploadUrlResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["documents"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
}


def _document(document) -> DocumentResponse:
    return DocumentResponse.model_validate(document, from_attributes=True)


@router.post(
    "/upload-url",
    response_model=UploadUrlResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    summary="Request a presigned upload URL",
)
async def request_upload_url(
    body: UploadUrlRequest,
    actor: Actor = Depends(get_current_actor),
    service: DocumentVaultService = Depends(get_vault_service),
    settings: Settings = Depends(get_app_settings),
):
    """Validate the declared file and issue a presigned PUT URL.

    The document is created in PENDING state and cannot be downloaded until
    the upload is confirmed.
    """
    result = await service.request_upload(
        actor,
        UploadRequest(
            file_name=body.file_name,
            file_type=body.file_type,
            file_size=body.file_size,
            patient_id=body.patient_id,
            category=body.category,
            appointment_id=body.appointment_id,
        ),
        description=body.description,
        is_shared_with_patient=body.is_shared_with_patient,
    )
    if isinstance(result, Err):
        return error_response(result, settings.MASK_ACCESS_DENIED_AS_NOT_FOUND)

    uploaded = result.value
    return UploadUrlResponse(
        upload_url=uploaded.upload.upload_url,
        storage_key=uploaded.upload.storage_key,
        file_id=uploaded.upload.file_id,
        expires_in=uploaded.upload.expires_in,
        upload_headers=uploaded.upload.upload_headers,
        document=_document(uploaded.document),
    )


@router.post(
    "/{document_id}/confirm",
    response_model=ConfirmUploadResponse,
    responses=ERROR_RESPONSES,
    summary="Confirm an upload and verify its content",
)
async def confirm_upload(
    document_id: str,
    actor: Actor = Depends(get_current_actor),
    service: DocumentVaultService = Depends(get_vault_service),
    settings: Settings = Depends(get_app_settings),
):
    """Check the uploaded bytes against the declared type.

    Returns 400 with the detected and declared types when the content does not
    match; the document is then QUARANTINED.
    """
    result = await service.confirm_upload(actor, document_id)
    if isinstance(result, Err):
        return error_response(result, settings.MASK_ACCESS_DENIED_AS_NOT_FOUND)

    confirmation = result.value
    return ConfirmUploadResponse(
        document=_document(confirmation.document),
        verdict=confirmation.content_check.verdict.value,
        detected_mime_type=confirmation.content_check.detected_mime_type,
        needs_review=confirmation.content_check.needs_review,
    )


@router.get(
    "",
    response_model=DocumentListResponse,
    responses=ERROR_RESPONSES,
    summary="List documents",
)
def list_documents(
    patient_id: Optional[str] = Query(None),
    appointment_id: Optional[str] = Query(None),
    uploader_id: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    created_from: Optional[datetime] = Query(None),
    created_to: Optional[datetime] = Query(None),
    is_shared_with_patient: Optional[bool] = Query(None),
    document_status: Optional[DocumentStatus] = Query(None, alias="status"),
    include_deleted: bool = Query(False, description="Staff only"),
    sort_by: DocumentSortField = Query(DocumentSortField.CREATED_AT),
    sort_order: SortOrder = Query(SortOrder.DESC),
    limit: int = Query(20, description="Page size (clamped to 100)"),
    offset: int = Query(0),
    actor: Actor = Depends(get_current_actor),
    service: DocumentVaultService = Depends(get_vault_service),
    settings: Settings = Depends(get_app_settings),
):
    """List documents visible to the caller.

    Patients always get their own readable documents only, regardless of the
    patient_id filter.
    """
    result = service.list_documents(
        actor,
        filter=DocumentFilter(
            patient_id=patient_id,
            appointment_id=appointment_id,
            uploader_id=uploader_id,
            category=category,
            created_from=created_from,
            created_to=created_to,
            is_shared_with_patient=is_shared_with_patient,
            status=document_status,
            include_deleted=include_deleted,
        ),
        sort=DocumentSort(field=sort_by, order=sort_order),
        limit=limit,
        offset=offset,
    )
    if isinstance(result, Err):
        return error_response(result, settings.MASK_ACCESS_DENIED_AS_NOT_FOUND)

    page = result.value
    return DocumentListResponse(
        items=[_document(document) for document in page.items],
        total=page.total,
        limit=page.limit,
        offset=page.offset,
    )


@router.get(
    "/patient/{patient_id}/stats",
    response_model=PatientStatsResponse,
    responses=ERROR_RESPONSES,
    summary="Document statistics for a patient",
)
def get_patient_stats(
    patient_id: str,
    actor: Actor = Depends(get_current_actor),
    service: DocumentVaultService = Depends(get_vault_service),
    settings: Settings = Depends(get_app_settings),
):
    result = service.get_patient_stats(actor, patient_id)
    if isinstance(result, Err):
        return error_response(result, settings.MASK_ACCESS_DENIED_AS_NOT_FOUND)
    return PatientStatsResponse.model_validate(result.value, from_attributes=True)


@router.get(
    "/{document_id}",
    response_model=DocumentResponse,
    responses=ERROR_RESPONSES,
    summary="Get document metadata",
)
def get_document(
    document_id: str,
    actor: Actor = Depends(get_current_actor),
    service: DocumentVaultService = Depends(get_vault_service),
    settings: Settings = Depends(get_app_settings),
):
    result = service.get_document(actor, document_id)
    if isinstance(result, Err):
        return error_response(result, settings.MASK_ACCESS_DENIED_AS_NOT_FOUND)
    return _document(result.value)


@router.patch(
    "/{document_id}",
    response_model=DocumentResponse,
    responses=ERROR_RESPONSES,
    summary="Update document metadata",
)
def update_document(
    document_id: str,
    body: DocumentUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    service: DocumentVaultService = Depends(get_vault_service),
    settings: Settings = Depends(get_app_settings),
):
    result = service.update_document(
        actor,
        document_id,
        UpdateDocumentInput(
            category=body.category,
            description=body.description,
            is_shared_with_patient=body.is_shared_with_patient,
        ),
    )
    if isinstance(result, Err):
        return error_response(result, settings.MASK_ACCESS_DENIED_AS_NOT_FOUND)
    return _document(result.value)


@router.delete(
    "/{document_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=ERROR_RESPONSES,
    summary="Soft-delete a document",
)
def delete_document(
    document_id: str,
    actor: Actor = Depends(get_current_actor),
    service: DocumentVaultService = Depends(get_vault_service),
    settings: Settings = Depends(get_app_settings),
):
    """Mark a document deleted. The stored object is kept."""
    result = service.delete_document(actor, document_id)
    if isinstance(result, Err):
        return error_response(result, settings.MASK_ACCESS_DENIED_AS_NOT_FOUND)
    return None


@router.get(
    "/{document_id}/download-url",
    response_model=DownloadUrlResponse,
    responses=ERROR_RESPONSES,
    summary="Request a presigned download URL",
)
async def get_download_url(
    document_id: str,
    actor: Actor = Depends(get_current_actor),
    service: DocumentVaultService = Depends(get_vault_service),
    settings: Settings = Depends(get_app_settings),
):
    result = await service.get_download_url(actor, document_id)
    if isinstance(result, Err):
        return error_response(result, settings.MASK_ACCESS_DENIED_AS_NOT_FOUND)
    return DownloadUrlResponse(download_url=result.value.download_url, expires_in=result.value.expires_in)


@router.patch(
    "/{document_id}/share",
    response_model=DocumentResponse,
    responses=ERROR_RESPONSES,
    summary="Share or unshare a document with its patient",
)
def set_patient_sharing(
    document_id: str,
    body: ShareRequest,
    actor: Actor = Depends(get_current_actor),
    service: DocumentVaultService = Depends(get_vault_service),
    settings: Settings = Depends(get_app_settings),
):
    result = service.set_patient_sharing(actor, document_id, body.is_shared_with_patient)
    if isinstance(result, Err):
        return error_response(result, settings.MASK_ACCESS_DENIED_AS_NOT_FOUND)
    return _document(result.value)
