"""SQLAlchemy implementation of the document repository port"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from models.document import Document as DocumentModel
from models.user import UserAccount
from models.base import utcnow
from domain.documents.access_policy import Decision, evaluate
from domain.documents.document_status import DocumentStatus, can_transition
from domain.documents.entities import (
    CATEGORY_MAX_LENGTH,
    REFERENCE_ID_MAX_LENGTH,
    ActorRole,
    CreateDocumentInput,
    Document,
    DocumentFilter,
    DocumentSort,
    DocumentSortField,
    DocumentWithUploader,
    PatientDocumentStats,
    SortOrder,
    UpdateDocumentInput,
    new_document_id,
)
from domain.documents.ports.document_repository_port import (
    RECENT_DOCUMENTS_LIMIT,
    DocumentRepositoryPort,
    normalize_page,
)
from domain.documents.results import (
    Err,
    Ok,
    Result,
    conflict,
    database_error,
    not_found,
    validation_error,
)
from domain.documents.storage_keys import storage_key_patient_id
from domain.documents.validation import (
    DEFAULT_RULES,
    FileRules,
    is_file_type_allowed,
    validate_file_size,
    validate_filename,
)


logger = logging.getLogger(__name__)

_SORT_COLUMNS = {
    DocumentSortField.CREATED_AT: DocumentModel.created_at,
    DocumentSortField.UPDATED_AT: DocumentModel.updated_at,
    DocumentSortField.FILE_NAME: DocumentModel.file_name,
    DocumentSortField.CATEGORY: DocumentModel.category,
    DocumentSortField.FILE_SIZE: DocumentModel.file_size,
}


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _too_long(value: Optional[str], limit: int, field: str) -> Optional[Err]:
    if value is not None and len(value) > limit:
        return validation_error(
            f"{field} must be at most {limit} characters",
            field=field,
            max_length=limit,
        )
    return None


def _patient_visible(patient_id: str):
    """Condition for documents the owning patient may read."""
    return and_(
        DocumentModel.patient_id == patient_id,
        or_(
            DocumentModel.is_shared_with_patient.is_(True),
            DocumentModel.uploader_id == patient_id,
        ),
    )


class SqlAlchemyDocumentRepository(DocumentRepositoryPort):
    """Document repository backed by a SQLAlchemy session.

    Each mutating call commits its own transaction. Any SQLAlchemy failure is
    rolled back and reported as DATABASE_ERROR.
    """

    def __init__(self, db: Session, rules: FileRules = DEFAULT_RULES):
        self.db = db
        self.rules = rules

    # ------------------------------------------------------------------
    # Mapping helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _to_entity(row: DocumentModel) -> Document:
        return Document(
            id=row.id,
            patient_id=row.patient_id,
            uploader_id=row.uploader_id,
            uploader_role=ActorRole(row.uploader_role),
            category=row.category,
            file_name=row.file_name,
            mime_type=row.mime_type,
            file_size=row.file_size,
            storage_key=row.storage_key,
            created_at=_as_utc(row.created_at),
            updated_at=_as_utc(row.updated_at),
            appointment_id=row.appointment_id,
            description=row.description,
            is_shared_with_patient=bool(row.is_shared_with_patient),
            status=DocumentStatus(row.status),
            is_deleted=bool(row.is_deleted),
            deleted_at=_as_utc(row.deleted_at),
        )

    @classmethod
    def _to_entity_with_uploader(cls, row: DocumentModel, uploader_name: Optional[str]) -> DocumentWithUploader:
        document = cls._to_entity(row)
        return DocumentWithUploader(**vars(document), uploader_name=uploader_name or "Unknown")

    def _fail(self, operation: str, exc: SQLAlchemyError) -> Err:
        self.db.rollback()
        logger.error(f"Document repository {operation} failed: {exc}", exc_info=True)
        return database_error(f"Database error during {operation}", operation=operation)

    def _get_row(self, document_id: str, include_deleted: bool = False) -> Optional[DocumentModel]:
        query = select(DocumentModel).where(DocumentModel.id == document_id)
        if not include_deleted:
            query = query.where(DocumentModel.is_deleted.is_(False))
        return self.db.execute(query).scalar_one_or_none()

    @staticmethod
    def _filter_conditions(filter: Optional[DocumentFilter]) -> list:
        filter = filter or DocumentFilter()
        conditions = []

        if not filter.include_deleted:
            conditions.append(DocumentModel.is_deleted.is_(False))
        if filter.patient_id is not None:
            conditions.append(DocumentModel.patient_id == filter.patient_id)
            if filter.patient_visible_only:
                conditions.append(_patient_visible(filter.patient_id))
        if filter.appointment_id is not None:
            conditions.append(DocumentModel.appointment_id == filter.appointment_id)
        if filter.uploader_id is not None:
            conditions.append(DocumentModel.uploader_id == filter.uploader_id)
        if filter.category is not None:
            conditions.append(DocumentModel.category == filter.category)
        if filter.created_from is not None:
            conditions.append(DocumentModel.created_at >= _as_utc(filter.created_from))
        if filter.created_to is not None:
            conditions.append(DocumentModel.created_at <= _as_utc(filter.created_to))
        if filter.is_shared_with_patient is not None:
            conditions.append(DocumentModel.is_shared_with_patient.is_(filter.is_shared_with_patient))
        if filter.status is not None:
            conditions.append(DocumentModel.status == DocumentStatus(filter.status).value)

        return conditions

    @staticmethod
    def _order_by(sort: Optional[DocumentSort]) -> list:
        sort = sort or DocumentSort()
        column = _SORT_COLUMNS[DocumentSortField(sort.field)]
        if SortOrder(sort.order) == SortOrder.ASC:
            return [column.asc(), DocumentModel.id.asc()]
        return [column.desc(), DocumentModel.id.desc()]

    def _validate_create(self, data: CreateDocumentInput) -> Optional[Err]:
        key_patient = storage_key_patient_id(data.storage_key)
        if key_patient is None:
            return validation_error("Invalid storage key format", field="storage_key")
        if key_patient != data.patient_id:
            return validation_error(
                "Storage key does not belong to this patient",
                field="storage_key",
            )

        is_valid, error = validate_filename(data.file_name)
        if not is_valid:
            return validation_error(error, field="file_name")

        is_valid, error = validate_file_size(data.file_size, self.rules.max_file_size)
        if not is_valid:
            return validation_error(error, field="file_size", max_file_size=self.rules.max_file_size)

        if not is_file_type_allowed(data.mime_type, self.rules):
            return validation_error(
                f"File type {data.mime_type} is not allowed",
                field="mime_type",
            )

        if not data.category or not data.category.strip():
            return validation_error("Category must not be empty", field="category")
        too_long = (
            _too_long(data.category.strip(), CATEGORY_MAX_LENGTH, "category")
            or _too_long(data.patient_id, REFERENCE_ID_MAX_LENGTH, "patient_id")
            or _too_long(data.uploader_id, REFERENCE_ID_MAX_LENGTH, "uploader_id")
            or _too_long(data.appointment_id, REFERENCE_ID_MAX_LENGTH, "appointment_id")
        )
        if too_long is not None:
            return too_long

        if ActorRole(data.uploader_role) == ActorRole.PATIENT and data.uploader_id != data.patient_id:
            return validation_error(
                "Patients can only upload documents for themselves",
                field="patient_id",
            )

        return None

    # ------------------------------------------------------------------
    # Port implementation
    # ------------------------------------------------------------------

    def create(self, data: CreateDocumentInput) -> Result[Document]:
        invalid = self._validate_create(data)
        if invalid is not None:
            return invalid

        try:
            existing = self.db.execute(
                select(DocumentModel.id).where(DocumentModel.storage_key == data.storage_key)
            ).first()
            if existing is not None:
                return conflict("Storage key already in use", storage_key=data.storage_key)

            now = utcnow()
            row = DocumentModel(
                id=new_document_id(),
                patient_id=data.patient_id,
                appointment_id=data.appointment_id,
                uploader_id=data.uploader_id,
                uploader_role=ActorRole(data.uploader_role).value,
                category=data.category.strip(),
                description=data.description,
                file_name=data.file_name,
                mime_type=data.mime_type,
                file_size=data.file_size,
                storage_key=data.storage_key,
                is_shared_with_patient=data.is_shared_with_patient,
                status=DocumentStatus.PENDING.value,
                is_deleted=False,
                created_at=now,
                updated_at=now,
            )
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
        except IntegrityError:
            # Lost a race on the unique storage_key constraint
            self.db.rollback()
            return conflict("Storage key already in use", storage_key=data.storage_key)
        except SQLAlchemyError as e:
            return self._fail("create", e)

        logger.info(
            f"Document created: {row.id}",
            extra={"document_id": row.id, "patient_id": row.patient_id},
        )
        return Ok(self._to_entity(row))

    def find_by_id(self, document_id: str, include_deleted: bool = False) -> Result[Optional[Document]]:
        try:
            row = self._get_row(document_id, include_deleted=include_deleted)
        except SQLAlchemyError as e:
            return self._fail("find_by_id", e)
        return Ok(self._to_entity(row) if row is not None else None)

    def find_many(
        self,
        filter: Optional[DocumentFilter] = None,
        sort: Optional[DocumentSort] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> Result[List[Document]]:
        limit, offset = normalize_page(limit, offset)
        query = (
            select(DocumentModel)
            .where(*self._filter_conditions(filter))
            .order_by(*self._order_by(sort))
            .limit(limit)
            .offset(offset)
        )
        try:
            rows = self.db.execute(query).scalars().all()
        except SQLAlchemyError as e:
            return self._fail("find_many", e)
        return Ok([self._to_entity(row) for row in rows])

    def find_many_with_uploader(
        self,
        filter: Optional[DocumentFilter] = None,
        sort: Optional[DocumentSort] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> Result[List[DocumentWithUploader]]:
        limit, offset = normalize_page(limit, offset)
        query = (
            select(DocumentModel, UserAccount.name)
            .outerjoin(UserAccount, UserAccount.id == DocumentModel.uploader_id)
            .where(*self._filter_conditions(filter))
            .order_by(*self._order_by(sort))
            .limit(limit)
            .offset(offset)
        )
        try:
            rows = self.db.execute(query).all()
        except SQLAlchemyError as e:
            return self._fail("find_many_with_uploader", e)
        return Ok([self._to_entity_with_uploader(row, name) for row, name in rows])

    def update(self, document_id: str, data: UpdateDocumentInput) -> Result[Document]:
        if data.category is not None and not data.category.strip():
            return validation_error("Category must not be empty", field="category")
        if data.category is not None:
            too_long = _too_long(data.category.strip(), CATEGORY_MAX_LENGTH, "category")
            if too_long is not None:
                return too_long

        try:
            row = self._get_row(document_id)
            if row is None:
                return not_found("Document not found", document_id=document_id)

            if data.category is not None:
                row.category = data.category.strip()
            if data.description is not None:
                row.description = data.description
            if data.is_shared_with_patient is not None:
                row.is_shared_with_patient = data.is_shared_with_patient
            row.updated_at = utcnow()

            self.db.commit()
            self.db.refresh(row)
        except SQLAlchemyError as e:
            return self._fail("update", e)

        return Ok(self._to_entity(row))

    def delete(self, document_id: str) -> Result[bool]:
        try:
            row = self._get_row(document_id, include_deleted=True)
            if row is None:
                return not_found("Document not found", document_id=document_id)

            if not row.is_deleted:
                now = utcnow()
                row.is_deleted = True
                row.deleted_at = now
                row.updated_at = now
                self.db.commit()
                logger.info(f"Document soft-deleted: {document_id}", extra={"document_id": document_id})
        except SQLAlchemyError as e:
            return self._fail("delete", e)

        return Ok(True)

    def find_by_patient_id(self, patient_id: str, include_private: bool = False) -> Result[List[Document]]:
        conditions = [DocumentModel.is_deleted.is_(False), DocumentModel.patient_id == patient_id]
        if not include_private:
            conditions.append(_patient_visible(patient_id))
        return self._find_all("find_by_patient_id", conditions)

    def find_by_appointment_id(self, appointment_id: str) -> Result[List[Document]]:
        return self._find_all(
            "find_by_appointment_id",
            [DocumentModel.is_deleted.is_(False), DocumentModel.appointment_id == appointment_id],
        )

    def find_by_uploader_id(self, uploader_id: str) -> Result[List[Document]]:
        return self._find_all(
            "find_by_uploader_id",
            [DocumentModel.is_deleted.is_(False), DocumentModel.uploader_id == uploader_id],
        )

    def _find_all(self, operation: str, conditions: list) -> Result[List[Document]]:
        query = select(DocumentModel).where(*conditions).order_by(*self._order_by(None))
        try:
            rows = self.db.execute(query).scalars().all()
        except SQLAlchemyError as e:
            return self._fail(operation, e)
        return Ok([self._to_entity(row) for row in rows])

    def check_access(self, document_id: str, actor_id: str, actor_role: ActorRole) -> Result[bool]:
        result = self.find_by_id(document_id)
        if isinstance(result, Err):
            return result
        if result.value is None:
            return not_found("Document not found", document_id=document_id)
        return Ok(evaluate(actor_id, ActorRole(actor_role), result.value) == Decision.ALLOW)

    def toggle_patient_sharing(self, document_id: str, is_shared: bool) -> Result[Document]:
        try:
            row = self._get_row(document_id)
            if row is None:
                return not_found("Document not found", document_id=document_id)

            if bool(row.is_shared_with_patient) != is_shared:
                row.is_shared_with_patient = is_shared
                row.updated_at = utcnow()
                self.db.commit()
                self.db.refresh(row)
        except SQLAlchemyError as e:
            return self._fail("toggle_patient_sharing", e)

        return Ok(self._to_entity(row))

    def count(self, filter: Optional[DocumentFilter] = None) -> Result[int]:
        query = select(func.count(DocumentModel.id)).where(*self._filter_conditions(filter))
        try:
            total = self.db.execute(query).scalar_one()
        except SQLAlchemyError as e:
            return self._fail("count", e)
        return Ok(int(total))

    def get_patient_document_stats(
        self,
        patient_id: str,
        include_private: bool = True,
    ) -> Result[PatientDocumentStats]:
        conditions = [DocumentModel.is_deleted.is_(False), DocumentModel.patient_id == patient_id]
        if not include_private:
            conditions.append(_patient_visible(patient_id))

        try:
            by_category = self.db.execute(
                select(
                    DocumentModel.category,
                    func.count(DocumentModel.id),
                    func.coalesce(func.sum(DocumentModel.file_size), 0),
                )
                .where(*conditions)
                .group_by(DocumentModel.category)
            ).all()

            recent_rows = self.db.execute(
                select(DocumentModel)
                .where(*conditions)
                .order_by(*self._order_by(None))
                .limit(RECENT_DOCUMENTS_LIMIT)
            ).scalars().all()
        except SQLAlchemyError as e:
            return self._fail("get_patient_document_stats", e)

        documents_by_category = {category: int(count) for category, count, _ in by_category}
        return Ok(PatientDocumentStats(
            total_documents=sum(documents_by_category.values()),
            documents_by_category=documents_by_category,
            total_file_size=int(sum(size for _, _, size in by_category)),
            recent_documents=[self._to_entity(row) for row in recent_rows],
        ))

    def set_status(self, document_id: str, status: DocumentStatus) -> Result[Document]:
        status = DocumentStatus(status)
        try:
            row = self._get_row(document_id)
            if row is None:
                return not_found("Document not found", document_id=document_id)

            current = DocumentStatus(row.status)
            if not can_transition(current, status):
                return conflict(
                    f"Cannot change document status from {current.value} to {status.value}",
                    current_status=current.value,
                    requested_status=status.value,
                )

            row.status = status.value
            row.updated_at = utcnow()
            self.db.commit()
            self.db.refresh(row)
        except SQLAlchemyError as e:
            return self._fail("set_status", e)

        logger.info(
            f"Document {document_id} status {current.value} -> {status.value}",
            extra={"document_id": document_id},
        )
        return Ok(self._to_entity(row))
