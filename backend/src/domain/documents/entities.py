"""Document vault domain entities.

Plain dataclasses passed between the repository, the storage gateway and the
vault service. The SQLAlchemy row (models.document.Document) never leaves the
repository; it is converted to ``Document`` on the way out.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional
from uuid import uuid4

from .document_status import DocumentStatus


class ActorRole(str, Enum):
    """Trust level of the identity making a request.

    Supplied by the external authentication provider and trusted as-is.
    """
    PATIENT = "PATIENT"
    DOCTOR = "DOCTOR"
    STAFF = "STAFF"


# Column widths of the document table
CATEGORY_MAX_LENGTH = 64
REFERENCE_ID_MAX_LENGTH = 128

DOCUMENT_ID_PREFIX = "doc_"


def new_document_id() -> str:
    return f"{DOCUMENT_ID_PREFIX}{uuid4().hex}"


@dataclass(frozen=True)
class Actor:
    """Already-authenticated identity (actor_id, actor_role)."""
    actor_id: str
    role: ActorRole


@dataclass
class Document:
    """Clinical document metadata record."""
    id: str
    patient_id: str
    uploader_id: str
    uploader_role: ActorRole
    category: str
    file_name: str
    mime_type: str
    file_size: int
    storage_key: str
    created_at: datetime
    updated_at: datetime
    appointment_id: Optional[str] = None
    description: Optional[str] = None
    is_shared_with_patient: bool = False
    status: DocumentStatus = DocumentStatus.PENDING
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None


@dataclass
class DocumentWithUploader(Document):
    """Document joined with a summary of the uploading user."""
    uploader_name: str = "Unknown"


@dataclass
class CreateDocumentInput:
    patient_id: str
    uploader_id: str
    uploader_role: ActorRole
    category: str
    file_name: str
    mime_type: str
    file_size: int
    storage_key: str
    appointment_id: Optional[str] = None
    description: Optional[str] = None
    is_shared_with_patient: bool = False


@dataclass
class UpdateDocumentInput:
    """Mutable metadata. ``None`` means "leave unchanged"."""
    category: Optional[str] = None
    description: Optional[str] = None
    is_shared_with_patient: Optional[bool] = None

    def is_empty(self) -> bool:
        return self.category is None and self.description is None and self.is_shared_with_patient is None


@dataclass
class DocumentFilter:
    patient_id: Optional[str] = None
    appointment_id: Optional[str] = None
    uploader_id: Optional[str] = None
    category: Optional[str] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    is_shared_with_patient: Optional[bool] = None
    status: Optional[DocumentStatus] = None
    # Restrict to what the owning patient may read (shared, or uploaded by them).
    # Only meaningful together with patient_id.
    patient_visible_only: bool = False
    include_deleted: bool = False


class DocumentSortField(str, Enum):
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"
    FILE_NAME = "file_name"
    CATEGORY = "category"
    FILE_SIZE = "file_size"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass
class DocumentSort:
    field: DocumentSortField = DocumentSortField.CREATED_AT
    order: SortOrder = SortOrder.DESC


@dataclass
class PatientDocumentStats:
    total_documents: int
    documents_by_category: Dict[str, int]
    total_file_size: int
    recent_documents: List[Document] = field(default_factory=list)
