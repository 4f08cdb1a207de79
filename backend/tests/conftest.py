"""Pytest fixtures for the document vault.

Provides reusable test fixtures for:
- In-memory SQLite database session (tables created/dropped per test)
- Repository, mock storage backend, storage gateway and vault service
- FastAPI test client wired to the test session and mock storage
- JWT tokens for PATIENT / DOCTOR / STAFF actors

Usage:
    def test_get_document(client, auth_headers, make_document):
        doc = make_document(patient_id="pat_1", uploader_id="doc_smith", uploader_role=ActorRole.DOCTOR)
        response = client.get(f"/api/v1/documents/{doc.id}", headers=auth_headers("doc_smith", "DOCTOR"))
        assert response.status_code == 200
"""

import os
import sys
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Generator

# Set environment variables BEFORE any imports to ensure they take effect
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-key-256-bits-minimum-length-required-for-security")
os.environ["STORAGE_BACKEND"] = "mock"
os.environ.setdefault("MOCK_STORAGE_ROOT", tempfile.mkdtemp(prefix="vault-mock-storage-"))
os.environ.setdefault("LOG_JSON", "false")

backend_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(backend_src))

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from config import Settings, get_settings
from database import get_db
from domain.documents.entities import ActorRole, CreateDocumentInput, Document
from domain.documents.results import Ok
from domain.documents.storage_gateway import StorageGateway
from domain.documents.storage_keys import build_storage_key, new_file_id
from domain.documents.validation import FileRules
from infrastructure.repositories.document_repository import SqlAlchemyDocumentRepository
from infrastructure.storage.mock_storage_adapter import MockStorageAdapter
from models import Base
from services.document_vault import DocumentVaultService


TEST_SIGNING_SECRET = "test-mock-storage-secret"
TEST_BASE_URL = "http://testserver"

# Single shared connection so every session sees the same in-memory database
test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create a fresh database session for each test.

    Creates all tables before the test and drops them after.
    """
    Base.metadata.create_all(bind=test_engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def file_rules() -> FileRules:
    return FileRules()


@pytest.fixture
def repository(db_session: Session, file_rules: FileRules) -> SqlAlchemyDocumentRepository:
    return SqlAlchemyDocumentRepository(db_session, file_rules)


@pytest.fixture
def mock_storage(tmp_path) -> MockStorageAdapter:
    return MockStorageAdapter(
        root_dir=str(tmp_path / "objects"),
        base_url=TEST_BASE_URL,
        signing_secret=TEST_SIGNING_SECRET,
    )


@pytest.fixture
def gateway(mock_storage: MockStorageAdapter, file_rules: FileRules) -> StorageGateway:
    return StorageGateway(mock_storage, rules=file_rules)


@pytest.fixture
def vault_service(repository, gateway) -> DocumentVaultService:
    return DocumentVaultService(repository, gateway)


@pytest.fixture
def make_document(repository) -> Callable[..., Document]:
    """Factory creating PENDING documents directly through the repository."""

    def _make(
        patient_id: str = "pat_alice",
        uploader_id: str = "doc_smith",
        uploader_role: ActorRole = ActorRole.DOCTOR,
        category: str = "LAB_RESULTS",
        file_name: str = "results.pdf",
        mime_type: str = "application/pdf",
        file_size: int = 2048,
        is_shared_with_patient: bool = False,
        appointment_id: str = None,
        created_at: datetime = None,
    ) -> Document:
        storage_key = build_storage_key(patient_id, file_name, new_file_id(), created_at)
        result = repository.create(CreateDocumentInput(
            patient_id=patient_id,
            uploader_id=uploader_id,
            uploader_role=uploader_role,
            category=category,
            file_name=file_name,
            mime_type=mime_type,
            file_size=file_size,
            storage_key=storage_key,
            appointment_id=appointment_id,
            is_shared_with_patient=is_shared_with_patient,
        ))
        assert isinstance(result, Ok), result
        return result.value

    return _make


@pytest.fixture
def test_settings() -> Settings:
    return get_settings()


@pytest.fixture
def app(db_session: Session, mock_storage: MockStorageAdapter, test_settings: Settings):
    """FastAPI app bound to the test session and mock storage."""
    from main import create_app

    application = create_app(settings=test_settings, storage_adapter=mock_storage)

    def override_get_db():
        yield db_session

    application.dependency_overrides[get_db] = override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app, raise_server_exceptions=False)


def create_test_token(actor_id: str, role: str) -> str:
    now = int(datetime.now(timezone.utc).timestamp())
    payload = {"sub": actor_id, "role": role, "iat": now, "exp": now + 3600}
    return jwt.encode(payload, os.environ["JWT_SECRET"], algorithm="HS256")


@pytest.fixture
def auth_headers() -> Callable[[str, str], Dict[str, str]]:
    def _headers(actor_id: str, role: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_test_token(actor_id, role)}"}

    return _headers
