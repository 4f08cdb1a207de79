"""Documents domain module - clinical document vault

Entities, upload lifecycle status, access policy, file validation and the
ports the repository and storage adapters implement.
"""

from .document_status import DocumentStatus, can_transition, ALLOWED_TRANSITIONS
from .entities import (
    Actor,
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
)
from .results import Err, ErrorKind, Ok, Result, VaultError
from .access_policy import Decision, DocumentAction, evaluate, evaluate_action, is_allowed
from .validation import (
    ContentCheck,
    ContentVerdict,
    FileRules,
    check_content,
    check_declared_file,
    is_file_size_allowed,
    is_file_type_allowed,
    sanitize_filename,
    validate_file_size,
    validate_filename,
    DEFAULT_ALLOWED_MIME_TYPES,
    DEFAULT_MAX_FILE_SIZE,
)

__all__ = [
    "DocumentStatus",
    "can_transition",
    "ALLOWED_TRANSITIONS",
    "Actor",
    "ActorRole",
    "CreateDocumentInput",
    "Document",
    "DocumentFilter",
    "DocumentSort",
    "DocumentSortField",
    "DocumentWithUploader",
    "PatientDocumentStats",
    "SortOrder",
    "UpdateDocumentInput",
    "Err",
    "ErrorKind",
    "Ok",
    "Result",
    "VaultError",
    "Decision",
    "DocumentAction",
    "evaluate",
    "evaluate_action",
    "is_allowed",
    "ContentCheck",
    "ContentVerdict",
    "FileRules",
    "check_content",
    "check_declared_file",
    "is_file_size_allowed",
    "is_file_type_allowed",
    "sanitize_filename",
    "validate_file_size",
    "validate_filename",
    "DEFAULT_ALLOWED_MIME_TYPES",
    "DEFAULT_MAX_FILE_SIZE",
]
