"""Global FastAPI dependencies for the document vault.

This module provides:
- get_storage_adapter / get_storage_gateway: the object storage backend
  selected once at startup (stored on ``app.state`` by main.create_app)
- get_document_repository: SQLAlchemy repository bound to the request session
- get_vault_service: the application service used by the document endpoints

Tests override these with ``app.dependency_overrides``.
"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from config import Settings, get_settings
from database import get_db
from domain.documents.ports.document_repository_port import DocumentRepositoryPort
from domain.documents.ports.object_storage_port import ObjectStoragePort
from domain.documents.storage_gateway import StorageGateway
from domain.documents.validation import FileRules
from infrastructure.repositories.document_repository import SqlAlchemyDocumentRepository
from services.document_vault import DocumentVaultService


def get_app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def get_storage_adapter(request: Request) -> ObjectStoragePort:
    return request.app.state.storage_adapter


def get_storage_gateway(request: Request) -> StorageGateway:
    return request.app.state.storage_gateway


def get_file_rules(request: Request) -> FileRules:
    return request.app.state.file_rules


def get_document_repository(
    db: Session = Depends(get_db),
    rules: FileRules = Depends(get_file_rules),
) -> DocumentRepositoryPort:
    return SqlAlchemyDocumentRepository(db, rules)


def get_vault_service(
    repository: DocumentRepositoryPort = Depends(get_document_repository),
    gateway: StorageGateway = Depends(get_storage_gateway),
) -> DocumentVaultService:
    return DocumentVaultService(repository, gateway)
