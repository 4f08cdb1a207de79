"""Unit tests for DocumentVaultService

Exercises the full upload lifecycle against the local mock storage backend:
the client PUT is simulated with MockStorageAdapter.write_object.
"""

import pytest

from domain.documents.document_status import DocumentStatus
from domain.documents.entities import (
    Actor,
    ActorRole,
    DocumentFilter,
    UpdateDocumentInput,
)
from domain.documents.results import Err, ErrorKind, Ok
from domain.documents.storage_gateway import UploadRequest
from domain.documents.validation import ContentVerdict


PDF_BYTES = b"%PDF-1.7\n%\xe2\xe3\xcf\xd3\n1 0 obj\n<< /Type /Catalog >>\nendobj\n"
PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00" + b"\x00" * 32

ALICE = Actor("pat_alice", ActorRole.PATIENT)
BOB = Actor("pat_bob", ActorRole.PATIENT)
DR_SMITH = Actor("doc_smith", ActorRole.DOCTOR)
DR_JONES = Actor("doc_jones", ActorRole.DOCTOR)
NURSE = Actor("staff_nurse", ActorRole.STAFF)


def _request(**overrides) -> UploadRequest:
    values = dict(
        file_name="results.pdf",
        file_type="application/pdf",
        file_size=len(PDF_BYTES),
        patient_id="pat_alice",
        category="LAB_RESULTS",
    )
    values.update(overrides)
    return UploadRequest(**values)


async def _upload(vault_service, mock_storage, actor, content=PDF_BYTES, **overrides):
    """Request an upload URL and store the bytes the way the client would."""
    result = await vault_service.request_upload(actor, _request(**overrides))
    assert isinstance(result, Ok), result
    uploaded = result.value
    mock_storage.write_object(uploaded.upload.storage_key, content, uploaded.document.mime_type)
    return uploaded.document


async def _active_document(vault_service, mock_storage, actor=DR_SMITH, **overrides):
    document = await _upload(vault_service, mock_storage, actor, **overrides)
    confirmed = await vault_service.confirm_upload(actor, document.id)
    assert isinstance(confirmed, Ok), confirmed
    return confirmed.value.document


class TestRequestUpload:

    @pytest.mark.asyncio
    async def test_creates_pending_document(self, vault_service):
        result = await vault_service.request_upload(DR_SMITH, _request(), description="CBC")

        assert isinstance(result, Ok)
        document = result.value.document
        assert document.status == DocumentStatus.PENDING
        assert document.uploader_id == "doc_smith"
        assert document.uploader_role == ActorRole.DOCTOR
        assert document.description == "CBC"
        assert document.is_shared_with_patient is False
        assert document.storage_key == result.value.upload.storage_key
        assert result.value.upload.upload_url.startswith("http://testserver/mock-storage/documents/pat_alice/")

    @pytest.mark.asyncio
    async def test_patient_upload_always_shared(self, vault_service):
        result = await vault_service.request_upload(ALICE, _request(), is_shared_with_patient=False)
        assert result.value.document.is_shared_with_patient is True

    @pytest.mark.asyncio
    async def test_patient_cannot_upload_for_other_patient(self, vault_service, repository):
        result = await vault_service.request_upload(BOB, _request(patient_id="pat_alice"))

        assert isinstance(result, Err)
        assert result.kind == ErrorKind.ACCESS_DENIED
        assert repository.count().value == 0

    @pytest.mark.asyncio
    async def test_disallowed_type_creates_nothing(self, vault_service, repository):
        result = await vault_service.request_upload(
            DR_SMITH, _request(file_name="setup.exe", file_type="application/x-msdownload")
        )

        assert result.kind == ErrorKind.VALIDATION_ERROR
        assert repository.count().value == 0

    @pytest.mark.asyncio
    async def test_empty_category_rejected(self, vault_service):
        result = await vault_service.request_upload(DR_SMITH, _request(category=" "))
        assert result.kind == ErrorKind.VALIDATION_ERROR


class TestConfirmUpload:

    @pytest.mark.asyncio
    async def test_matching_content_activates(self, vault_service, mock_storage):
        document = await _upload(vault_service, mock_storage, DR_SMITH)

        result = await vault_service.confirm_upload(DR_SMITH, document.id)

        assert isinstance(result, Ok)
        assert result.value.document.status == DocumentStatus.ACTIVE
        assert result.value.content_check.verdict == ContentVerdict.MATCH

    @pytest.mark.asyncio
    async def test_disguised_image_quarantined(self, vault_service, mock_storage, repository):
        """Test a PNG uploaded as text/plain is quarantined with both types reported"""
        document = await _upload(
            vault_service,
            mock_storage,
            DR_SMITH,
            content=PNG_BYTES,
            file_name="notes.txt",
            file_type="text/plain",
            file_size=len(PNG_BYTES),
        )

        result = await vault_service.confirm_upload(DR_SMITH, document.id)

        assert isinstance(result, Err)
        assert result.kind == ErrorKind.VALIDATION_ERROR
        assert result.error.details["detected_mime_type"] == "image/png"
        assert result.error.details["declared_mime_type"] == "text/plain"
        assert result.error.details["verdict"] == "MISMATCH"
        assert repository.find_by_id(document.id).value.status == DocumentStatus.QUARANTINED

    @pytest.mark.asyncio
    async def test_plain_text_accepted_for_review(self, vault_service, mock_storage):
        text = b"Patient reports mild headache since Monday.\n"
        document = await _upload(
            vault_service,
            mock_storage,
            ALICE,
            content=text,
            file_name="symptoms.txt",
            file_type="text/plain",
            file_size=len(text),
        )

        result = await vault_service.confirm_upload(ALICE, document.id)

        assert result.value.content_check.verdict == ContentVerdict.TEXT_FALLBACK
        assert result.value.content_check.needs_review is True
        assert result.value.document.status == DocumentStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_missing_object_keeps_pending(self, vault_service, repository):
        requested = await vault_service.request_upload(DR_SMITH, _request())
        document_id = requested.value.document.id

        result = await vault_service.confirm_upload(DR_SMITH, document_id)

        assert result.kind == ErrorKind.NOT_FOUND
        assert repository.find_by_id(document_id).value.status == DocumentStatus.PENDING

    @pytest.mark.asyncio
    async def test_second_confirm_conflicts(self, vault_service, mock_storage):
        document = await _active_document(vault_service, mock_storage)

        result = await vault_service.confirm_upload(DR_SMITH, document.id)
        assert result.kind == ErrorKind.CONFLICT

    @pytest.mark.asyncio
    async def test_other_doctor_cannot_confirm(self, vault_service, mock_storage):
        document = await _upload(vault_service, mock_storage, DR_SMITH)

        result = await vault_service.confirm_upload(DR_JONES, document.id)
        assert result.kind == ErrorKind.ACCESS_DENIED

        staff = await vault_service.confirm_upload(NURSE, document.id)
        assert isinstance(staff, Ok)


class TestReads:

    @pytest.mark.asyncio
    async def test_download_url_for_active_document(self, vault_service, mock_storage):
        document = await _active_document(vault_service, mock_storage)

        result = await vault_service.get_download_url(DR_JONES, document.id)

        assert isinstance(result, Ok)
        assert "filename=results.pdf" in result.value.download_url
        assert result.value.expires_in == 3600

    @pytest.mark.asyncio
    async def test_no_download_while_pending(self, vault_service, mock_storage):
        document = await _upload(vault_service, mock_storage, DR_SMITH)

        result = await vault_service.get_download_url(DR_SMITH, document.id)
        assert result.kind == ErrorKind.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_patient_cannot_download_private_note(self, vault_service, mock_storage):
        document = await _active_document(vault_service, mock_storage)

        result = await vault_service.get_download_url(ALICE, document.id)
        assert result.kind == ErrorKind.ACCESS_DENIED

    def test_get_document_not_found(self, vault_service):
        result = vault_service.get_document(DR_SMITH, "doc_missing")
        assert result.kind == ErrorKind.NOT_FOUND

    def test_get_document_access(self, vault_service, make_document):
        document = make_document(is_shared_with_patient=False)

        assert isinstance(vault_service.get_document(DR_JONES, document.id), Ok)
        assert vault_service.get_document(ALICE, document.id).kind == ErrorKind.ACCESS_DENIED
        assert vault_service.get_document(BOB, document.id).kind == ErrorKind.ACCESS_DENIED

    def test_patient_listing_forced_to_own_visible(self, vault_service, make_document):
        shared = make_document(is_shared_with_patient=True)
        make_document(is_shared_with_patient=False)
        make_document(patient_id="pat_bob", is_shared_with_patient=True)

        result = vault_service.list_documents(ALICE)

        assert [d.id for d in result.value.items] == [shared.id]
        assert result.value.total == 1

    def test_patient_listing_other_patient_denied(self, vault_service):
        result = vault_service.list_documents(ALICE, DocumentFilter(patient_id="pat_bob"))
        assert result.kind == ErrorKind.ACCESS_DENIED

    def test_doctor_listing(self, vault_service, make_document):
        make_document()
        make_document(patient_id="pat_bob")

        result = vault_service.list_documents(DR_JONES, DocumentFilter(patient_id="pat_bob"), limit=500)

        assert result.value.total == 1
        assert result.value.limit == 100
        assert result.value.offset == 0

    def test_include_deleted_staff_only(self, vault_service, make_document):
        document = make_document()
        vault_service.delete_document(DR_SMITH, document.id)

        by_doctor = vault_service.list_documents(DR_SMITH, DocumentFilter(include_deleted=True))
        by_staff = vault_service.list_documents(NURSE, DocumentFilter(include_deleted=True))

        assert by_doctor.value.total == 0
        assert [d.id for d in by_staff.value.items] == [document.id]

    def test_patient_stats(self, vault_service, make_document):
        make_document(is_shared_with_patient=True, file_size=100)
        make_document(is_shared_with_patient=False, file_size=200)

        assert vault_service.get_patient_stats(DR_SMITH, "pat_alice").value.total_documents == 2
        assert vault_service.get_patient_stats(ALICE, "pat_alice").value.total_documents == 1
        assert vault_service.get_patient_stats(BOB, "pat_alice").kind == ErrorKind.ACCESS_DENIED


class TestMutations:

    def test_update_by_doctor(self, vault_service, make_document):
        document = make_document()

        result = vault_service.update_document(DR_JONES, document.id, UpdateDocumentInput(description="Reviewed"))
        assert result.value.description == "Reviewed"

    def test_empty_update_rejected(self, vault_service, make_document):
        document = make_document()
        result = vault_service.update_document(DR_SMITH, document.id, UpdateDocumentInput())
        assert result.kind == ErrorKind.VALIDATION_ERROR

    def test_patient_cannot_share_via_update(self, vault_service, make_document):
        document = make_document(
            uploader_id="pat_alice", uploader_role=ActorRole.PATIENT, is_shared_with_patient=True
        )

        result = vault_service.update_document(
            ALICE, document.id, UpdateDocumentInput(is_shared_with_patient=False)
        )
        assert result.kind == ErrorKind.ACCESS_DENIED

        allowed = vault_service.update_document(ALICE, document.id, UpdateDocumentInput(description="Mine"))
        assert allowed.value.description == "Mine"

    def test_sharing(self, vault_service, make_document):
        document = make_document(is_shared_with_patient=False)
        assert vault_service.get_document(ALICE, document.id).kind == ErrorKind.ACCESS_DENIED

        shared = vault_service.set_patient_sharing(DR_SMITH, document.id, True)
        assert shared.value.is_shared_with_patient is True
        assert isinstance(vault_service.get_document(ALICE, document.id), Ok)

        assert vault_service.set_patient_sharing(ALICE, document.id, False).kind == ErrorKind.ACCESS_DENIED

    def test_delete_is_idempotent(self, vault_service, make_document):
        document = make_document()

        assert vault_service.delete_document(DR_SMITH, document.id).value is True
        assert vault_service.delete_document(DR_SMITH, document.id).value is True
        assert vault_service.get_document(DR_SMITH, document.id).kind == ErrorKind.NOT_FOUND

    def test_patient_cannot_delete_clinician_document(self, vault_service, make_document):
        document = make_document(is_shared_with_patient=True)
        result = vault_service.delete_document(ALICE, document.id)
        assert result.kind == ErrorKind.ACCESS_DENIED
