"""Document Repository Port - persistence contract for document metadata.

Any persistence engine may implement this interface. Every method returns a
tagged ``Ok``/``Err`` result (see domain.documents.results) instead of raising
for expected failures.

Common semantics:
- Soft-deleted documents are invisible unless a method/filter explicitly
  opts into ``include_deleted``.
- ``limit`` defaults to DEFAULT_PAGE_SIZE and is clamped to MAX_PAGE_SIZE.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from ..document_status import DocumentStatus
from ..entities import (
    ActorRole,
    CreateDocumentInput,
    Document,
    DocumentFilter,
    DocumentSort,
    DocumentWithUploader,
    PatientDocumentStats,
    UpdateDocumentInput,
)
from ..results import Result


DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
RECENT_DOCUMENTS_LIMIT = 5


class DocumentRepositoryPort(ABC):
    """Port interface for document metadata persistence."""

    @abstractmethod
    def create(self, data: CreateDocumentInput) -> Result[Document]:
        """Create a new record with a freshly assigned id.

        Errors: VALIDATION_ERROR (bad key/size/type/category), CONFLICT
        (storage key already used, including by soft-deleted rows).
        """

    @abstractmethod
    def find_by_id(self, document_id: str, include_deleted: bool = False) -> Result[Optional[Document]]:
        """Return the document or ``Ok(None)``."""

    @abstractmethod
    def find_many(
        self,
        filter: Optional[DocumentFilter] = None,
        sort: Optional[DocumentSort] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> Result[List[Document]]:
        pass

    @abstractmethod
    def find_many_with_uploader(
        self,
        filter: Optional[DocumentFilter] = None,
        sort: Optional[DocumentSort] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> Result[List[DocumentWithUploader]]:
        pass

    @abstractmethod
    def update(self, document_id: str, data: UpdateDocumentInput) -> Result[Document]:
        """Update metadata fields only. NOT_FOUND if absent or soft-deleted."""

    @abstractmethod
    def delete(self, document_id: str) -> Result[bool]:
        """Soft delete. Idempotent for already-deleted documents."""

    @abstractmethod
    def find_by_patient_id(self, patient_id: str, include_private: bool = False) -> Result[List[Document]]:
        """Documents of a patient.

        With ``include_private=False`` documents that are neither shared with
        the patient nor uploaded by them are excluded.
        """

    @abstractmethod
    def find_by_appointment_id(self, appointment_id: str) -> Result[List[Document]]:
        pass

    @abstractmethod
    def find_by_uploader_id(self, uploader_id: str) -> Result[List[Document]]:
        pass

    @abstractmethod
    def check_access(self, document_id: str, actor_id: str, actor_role: ActorRole) -> Result[bool]:
        """Read-access decision; NOT_FOUND if the document does not exist."""

    @abstractmethod
    def toggle_patient_sharing(self, document_id: str, is_shared: bool) -> Result[Document]:
        pass

    @abstractmethod
    def count(self, filter: Optional[DocumentFilter] = None) -> Result[int]:
        pass

    @abstractmethod
    def get_patient_document_stats(
        self,
        patient_id: str,
        include_private: bool = True,
    ) -> Result[PatientDocumentStats]:
        pass

    @abstractmethod
    def set_status(self, document_id: str, status: DocumentStatus) -> Result[Document]:
        """Move a document through the status machine. CONFLICT if not allowed."""


def normalize_page(limit: Optional[int], offset: Optional[int]) -> Tuple[int, int]:
    """Default and clamp ``limit``; negative or missing ``offset`` becomes 0."""
    if limit is None or limit < 1:
        limit = DEFAULT_PAGE_SIZE
    return min(limit, MAX_PAGE_SIZE), max(offset or 0, 0)
