"""Document API schemas - request/response models for the vault endpoints.

Pydantic models for type-safe API request/response handling. Responses are
built from the domain dataclasses with ``model_validate(..., from_attributes=True)``.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from domain.documents.document_status import DocumentStatus
from domain.documents.entities import CATEGORY_MAX_LENGTH, REFERENCE_ID_MAX_LENGTH, ActorRole


class UploadUrlRequest(BaseModel):
    """Declared metadata for a file the client is about to upload.

    Type and size are checked against the allow-list and size limit before
    any storage key is minted.
    """
    file_name: str = Field(..., description="Original client file name")
    file_type: str = Field(..., description="Declared MIME type")
    file_size: int = Field(..., description="Declared size in bytes")
    patient_id: str = Field(..., max_length=REFERENCE_ID_MAX_LENGTH, description="Owning patient")
    category: str = Field(..., max_length=CATEGORY_MAX_LENGTH, description="Document category, e.g. LAB_RESULTS")
    appointment_id: Optional[str] = Field(None, max_length=REFERENCE_ID_MAX_LENGTH, description="Related appointment")
    description: Optional[str] = Field(None, description="Free-text description")
    is_shared_with_patient: bool = Field(
        False,
        description="Make the document readable by the patient (patient uploads are always shared)",
    )


class DocumentResponse(BaseModel):
    """Document metadata as returned to clients"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    patient_id: str
    appointment_id: Optional[str] = None
    uploader_id: str
    uploader_role: ActorRole
    uploader_name: Optional[str] = Field(None, description="Present in listings")
    category: str
    description: Optional[str] = None
    file_name: str
    mime_type: str
    file_size: int
    is_shared_with_patient: bool
    status: DocumentStatus
    is_deleted: bool
    deleted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class UploadUrlResponse(BaseModel):
    """Presigned upload URL plus the PENDING document record"""
    upload_url: str = Field(..., description="PUT the file bytes here")
    storage_key: str
    file_id: str
    expires_in: int = Field(..., description="URL lifetime in seconds")
    upload_headers: Dict[str, str] = Field(
        ...,
        description="Headers the PUT must carry verbatim (Content-Type and x-amz-meta-*)",
    )
    document: DocumentResponse


class ConfirmUploadResponse(BaseModel):
    document: DocumentResponse
    verdict: str = Field(..., description="Content check verdict (MATCH, TEXT_FALLBACK)")
    detected_mime_type: Optional[str] = None
    needs_review: bool = Field(..., description="Accepted without a binary signature")


class DocumentListResponse(BaseModel):
    """Response model for a page of documents"""
    items: List[DocumentResponse]
    total: int = Field(..., description="Total matching documents (before pagination)")
    limit: int
    offset: int


class DocumentUpdateRequest(BaseModel):
    """Mutable metadata; omitted fields are left unchanged.

    Ownership, storage and file attributes are immutable and rejected.
    """
    model_config = ConfigDict(extra="forbid")

    category: Optional[str] = Field(None, max_length=CATEGORY_MAX_LENGTH)
    description: Optional[str] = None
    is_shared_with_patient: Optional[bool] = None


class ShareRequest(BaseModel):
    is_shared_with_patient: bool


class DownloadUrlResponse(BaseModel):
    download_url: str
    expires_in: int = Field(..., description="URL lifetime in seconds")


class PatientStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_documents: int
    documents_by_category: Dict[str, int]
    total_file_size: int
    recent_documents: List[DocumentResponse]


class ErrorResponse(BaseModel):
    """Error body shared by all vault endpoints"""
    error: str = Field(..., description="Error kind, e.g. NOT_FOUND, VALIDATION_ERROR")
    message: str
    details: Optional[Dict[str, Any]] = None
