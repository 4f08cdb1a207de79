"""Document Vault Service - actor-facing operations on clinical documents.

Wires the storage gateway, the repository and the access policy together.
Every operation takes the already-authenticated ``Actor`` and returns an
``Ok``/``Err`` result; the HTTP layer only translates the result.

Upload lifecycle:
    request_upload  -> declared-type/size check, key minted, PENDING record
    (client PUTs the bytes directly to object storage)
    confirm_upload  -> content sniff of the stored bytes, ACTIVE or QUARANTINED

NOT_FOUND and ACCESS_DENIED are reported separately; whether a denial is
visible to the client is decided by the HTTP layer.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional

from domain.documents.access_policy import Decision, DocumentAction, evaluate, evaluate_action
from domain.documents.document_status import DocumentStatus
from domain.documents.entities import (
    Actor,
    ActorRole,
    CreateDocumentInput,
    Document,
    DocumentFilter,
    DocumentSort,
    DocumentWithUploader,
    PatientDocumentStats,
    UpdateDocumentInput,
)
from domain.documents.ports.document_repository_port import DocumentRepositoryPort, normalize_page
from domain.documents.results import (
    Err,
    Ok,
    Result,
    access_denied,
    conflict,
    not_found,
    validation_error,
)
from domain.documents.storage_gateway import DownloadLink, StorageGateway, UploadRequest, UploadTicket
from domain.documents.validation import ContentCheck, check_content
from observability.metrics import content_checks_total


logger = logging.getLogger(__name__)


@dataclass
class UploadedDocument:
    """Pending record plus the URL the client must PUT the bytes to."""
    document: Document
    upload: UploadTicket


@dataclass
class UploadConfirmation:
    document: Document
    content_check: ContentCheck


@dataclass
class DocumentPage:
    items: List[DocumentWithUploader] = field(default_factory=list)
    total: int = 0
    limit: int = 0
    offset: int = 0


class DocumentVaultService:
    """Application service for the clinical document vault.

    Args:
        repository: Document metadata persistence
        gateway: Presigned URL issuer bound to the startup-selected backend
    """

    def __init__(self, repository: DocumentRepositoryPort, gateway: StorageGateway):
        self.repository = repository
        self.gateway = gateway

    def _load(self, document_id: str, include_deleted: bool = False) -> Result[Document]:
        result = self.repository.find_by_id(document_id, include_deleted=include_deleted)
        if isinstance(result, Err):
            return result
        if result.value is None:
            return not_found("Document not found", document_id=document_id)
        return result

    def _authorize(
        self,
        actor: Actor,
        document: Document,
        action: DocumentAction,
    ) -> Optional[Err]:
        if evaluate_action(actor.actor_id, actor.role, document, action) is Decision.ALLOW:
            return None
        logger.info(
            f"Access denied: {action.value} on {document.id}",
            extra={
                "actor_id": actor.actor_id,
                "actor_role": ActorRole(actor.role).value,
                "document_id": document.id,
            },
        )
        return access_denied(
            f"Not allowed to {action.value.lower()} this document",
            document_id=document.id,
            action=action.value,
        )

    def _load_authorized(
        self,
        actor: Actor,
        document_id: str,
        action: DocumentAction,
        include_deleted: bool = False,
    ) -> Result[Document]:
        loaded = self._load(document_id, include_deleted=include_deleted)
        if isinstance(loaded, Err):
            return loaded
        denied = self._authorize(actor, loaded.value, action)
        if denied is not None:
            return denied
        return loaded

    # ------------------------------------------------------------------
    # Upload lifecycle
    # ------------------------------------------------------------------

    async def request_upload(
        self,
        actor: Actor,
        request: UploadRequest,
        description: Optional[str] = None,
        is_shared_with_patient: bool = False,
    ) -> Result[UploadedDocument]:
        """Issue an upload URL and persist the PENDING record.

        Patients may only upload into their own record; their uploads are
        always visible to them.
        """
        role = ActorRole(actor.role)
        if role == ActorRole.PATIENT and request.patient_id != actor.actor_id:
            logger.info(
                "Patient attempted to upload for another patient",
                extra={"actor_id": actor.actor_id, "patient_id": request.patient_id},
            )
            return access_denied("Patients can only upload their own documents", patient_id=request.patient_id)

        if not request.category or not request.category.strip():
            return validation_error("Category must not be empty", field="category")

        ticket_result = await self.gateway.generate_upload_url(request)
        if isinstance(ticket_result, Err):
            return ticket_result
        ticket = ticket_result.value

        created = self.repository.create(CreateDocumentInput(
            patient_id=request.patient_id,
            uploader_id=actor.actor_id,
            uploader_role=role,
            category=request.category,
            file_name=request.file_name,
            mime_type=request.file_type,
            file_size=request.file_size,
            storage_key=ticket.storage_key,
            appointment_id=request.appointment_id,
            description=description,
            is_shared_with_patient=True if role == ActorRole.PATIENT else is_shared_with_patient,
        ))
        if isinstance(created, Err):
            return created

        logger.info(
            f"Upload URL issued for document {created.value.id}",
            extra={
                "actor_id": actor.actor_id,
                "document_id": created.value.id,
                "storage_key": ticket.storage_key,
                "backend": self.gateway.backend_name,
            },
        )
        return Ok(UploadedDocument(document=created.value, upload=ticket))

    async def confirm_upload(self, actor: Actor, document_id: str) -> Result[UploadConfirmation]:
        """Sniff the stored bytes and activate or quarantine the document.

        Returns:
            Ok(UploadConfirmation) when the content is accepted;
            Err(VALIDATION_ERROR) with detected/declared types when it is
            quarantined; Err(CONFLICT) if the document is not PENDING;
            Err(NOT_FOUND) if the client never uploaded the bytes.
        """
        loaded = self._load_authorized(actor, document_id, DocumentAction.CONFIRM)
        if isinstance(loaded, Err):
            return loaded
        document = loaded.value

        if document.status != DocumentStatus.PENDING:
            return conflict(
                f"Document is already {document.status.value}",
                document_id=document_id,
                status=document.status.value,
            )

        head_result = await self.gateway.read_content_head(document.storage_key)
        if isinstance(head_result, Err):
            return head_result

        check = check_content(head_result.value, document.mime_type, self.gateway.rules)
        content_checks_total.labels(verdict=check.verdict.value).inc()

        if not check.accepted:
            quarantined = self.repository.set_status(document_id, DocumentStatus.QUARANTINED)
            if isinstance(quarantined, Err):
                return quarantined
            logger.warning(
                f"Upload quarantined: {check.reason}",
                extra={"document_id": document_id, "verdict": check.verdict.value},
            )
            return validation_error(
                check.reason or "Uploaded content does not match the declared file type",
                document_id=document_id,
                verdict=check.verdict.value,
                declared_mime_type=check.declared_mime_type,
                detected_mime_type=check.detected_mime_type,
            )

        activated = self.repository.set_status(document_id, DocumentStatus.ACTIVE)
        if isinstance(activated, Err):
            return activated

        if check.needs_review:
            logger.warning(
                "Document activated without a binary signature; flagged for review",
                extra={"document_id": document_id, "verdict": check.verdict.value},
            )
        return Ok(UploadConfirmation(document=activated.value, content_check=check))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_document(self, actor: Actor, document_id: str) -> Result[Document]:
        return self._load_authorized(actor, document_id, DocumentAction.READ)

    def list_documents(
        self,
        actor: Actor,
        filter: Optional[DocumentFilter] = None,
        sort: Optional[DocumentSort] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> Result[DocumentPage]:
        """List documents visible to the actor.

        Patients only ever see their own readable documents; only staff may
        include soft-deleted records.
        """
        filter = filter or DocumentFilter()
        role = ActorRole(actor.role)

        if role == ActorRole.PATIENT:
            if filter.patient_id is not None and filter.patient_id != actor.actor_id:
                return access_denied("Patients can only list their own documents", patient_id=filter.patient_id)
            filter = replace(filter, patient_id=actor.actor_id, patient_visible_only=True, include_deleted=False)
        elif role != ActorRole.STAFF and filter.include_deleted:
            filter = replace(filter, include_deleted=False)

        page = self.repository.find_many_with_uploader(filter=filter, sort=sort, limit=limit, offset=offset)
        if isinstance(page, Err):
            return page
        total = self.repository.count(filter=filter)
        if isinstance(total, Err):
            return total

        items = [
            document for document in page.value
            if evaluate(actor.actor_id, role, document) is Decision.ALLOW
        ]
        limit, offset = normalize_page(limit, offset)
        return Ok(DocumentPage(items=items, total=total.value, limit=limit, offset=offset))

    def get_patient_stats(self, actor: Actor, patient_id: str) -> Result[PatientDocumentStats]:
        role = ActorRole(actor.role)
        if role == ActorRole.PATIENT and patient_id != actor.actor_id:
            return access_denied("Patients can only view their own statistics", patient_id=patient_id)
        return self.repository.get_patient_document_stats(
            patient_id,
            include_private=role != ActorRole.PATIENT,
        )

    async def get_download_url(self, actor: Actor, document_id: str) -> Result[DownloadLink]:
        loaded = self._load_authorized(actor, document_id, DocumentAction.READ)
        if isinstance(loaded, Err):
            return loaded
        document = loaded.value

        if document.status != DocumentStatus.ACTIVE:
            return validation_error(
                "Document is not available for download",
                document_id=document_id,
                status=document.status.value,
            )

        link = await self.gateway.generate_download_url(document.storage_key, document.file_name)
        if isinstance(link, Err):
            return link

        logger.info(
            f"Download URL issued for document {document_id}",
            extra={"actor_id": actor.actor_id, "document_id": document_id},
        )
        return link

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def update_document(self, actor: Actor, document_id: str, data: UpdateDocumentInput) -> Result[Document]:
        if data.is_empty():
            return validation_error("No fields to update")

        loaded = self._load_authorized(actor, document_id, DocumentAction.UPDATE)
        if isinstance(loaded, Err):
            return loaded

        if data.is_shared_with_patient is not None:
            denied = self._authorize(actor, loaded.value, DocumentAction.SHARE)
            if denied is not None:
                return denied

        return self.repository.update(document_id, data)

    def delete_document(self, actor: Actor, document_id: str) -> Result[bool]:
        """Soft delete; deleting an already-deleted document succeeds."""
        loaded = self._load_authorized(actor, document_id, DocumentAction.DELETE, include_deleted=True)
        if isinstance(loaded, Err):
            return loaded

        deleted = self.repository.delete(document_id)
        if isinstance(deleted, Ok):
            logger.info(
                f"Document deleted: {document_id}",
                extra={"actor_id": actor.actor_id, "document_id": document_id},
            )
        return deleted

    def set_patient_sharing(self, actor: Actor, document_id: str, is_shared: bool) -> Result[Document]:
        loaded = self._load_authorized(actor, document_id, DocumentAction.SHARE)
        if isinstance(loaded, Err):
            return loaded
        return self.repository.toggle_patient_sharing(document_id, is_shared)
