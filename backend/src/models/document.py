"""Document SQLAlchemy model

Document represents one clinical file held in object storage. Only metadata
lives in the database; the bytes are uploaded and downloaded directly against
the object store via presigned URLs.
"""

from sqlalchemy import Boolean, BigInteger, Column, DateTime, Index, String, Text, CheckConstraint

from .base import Base, utcnow


class Document(Base):
    """Document model representing clinical file metadata.

    Rows are never physically deleted; ``is_deleted``/``deleted_at`` mark a
    soft delete. ``storage_key`` is unique across live and deleted rows so a
    key is never reused.
    """
    __tablename__ = "document"
    __table_args__ = (
        Index("ix_document_patient_id", "patient_id"),
        Index("ix_document_appointment_id", "appointment_id"),
        Index("ix_document_uploader_id", "uploader_id"),
        Index("ix_document_patient_created", "patient_id", "created_at"),
        CheckConstraint("file_size > 0", name="ck_document_file_size_positive"),
        CheckConstraint(
            "uploader_role IN ('PATIENT', 'DOCTOR', 'STAFF')",
            name="ck_document_uploader_role",
        ),
        CheckConstraint(
            "status IN ('PENDING', 'ACTIVE', 'QUARANTINED')",
            name="ck_document_status",
        ),
    )

    id = Column(String(64), primary_key=True)
    patient_id = Column(String(128), nullable=False)
    appointment_id = Column(String(128), nullable=True)
    uploader_id = Column(String(128), nullable=False)
    uploader_role = Column(String(16), nullable=False)
    category = Column(String(64), nullable=False)
    description = Column(Text, nullable=True)
    file_name = Column(Text, nullable=False)
    mime_type = Column(String(255), nullable=False)
    file_size = Column(BigInteger, nullable=False)
    storage_key = Column(Text, nullable=False, unique=True)
    is_shared_with_patient = Column(Boolean, nullable=False, default=False)
    status = Column(String(16), nullable=False, default="PENDING")
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<Document(id={self.id}, patient_id={self.patient_id}, status={self.status})>"
