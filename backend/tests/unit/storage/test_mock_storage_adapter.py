"""Unit tests for the local-disk mock storage adapter"""

from urllib.parse import parse_qs, urlparse

import pytest

from domain.documents.ports.object_storage_port import StorageError, canonical_metadata
from infrastructure.storage.mock_storage_adapter import MockStorageAdapter


TEST_KEY = "documents/pat_alice/2024-03-15/0123456789abcdef0123456789abcdef.pdf"


class FakeClock:
    def __init__(self, now: float = 1_700_000_000):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage(tmp_path, clock):
    return MockStorageAdapter(
        root_dir=str(tmp_path),
        base_url="http://localhost:8000/",
        signing_secret="unit-test-secret",
        clock=clock,
    )


def _query(url):
    return {name: values[0] for name, values in parse_qs(urlparse(url).query).items()}


class TestSignedUrls:

    @pytest.mark.asyncio
    async def test_upload_url_shape(self, storage, clock):
        url = await storage.generate_presigned_upload_url(TEST_KEY, "application/pdf", 1024, {}, 1800)

        parsed = urlparse(url)
        assert f"{parsed.scheme}://{parsed.netloc}" == "http://localhost:8000"
        assert parsed.path == f"/mock-storage/{TEST_KEY}"
        assert _query(url)["expires"] == str(int(clock.now) + 1800)

    @pytest.mark.asyncio
    async def test_upload_signature_verifies(self, storage):
        url = await storage.generate_presigned_upload_url(TEST_KEY, "application/pdf", 1024, {}, 1800)
        query = _query(url)

        assert storage.verify("PUT", TEST_KEY, query["expires"], query["signature"], "application/pdf", "1024", "") == (True, None)

    @pytest.mark.asyncio
    async def test_upload_signature_bound_to_type_and_length(self, storage):
        url = await storage.generate_presigned_upload_url(TEST_KEY, "application/pdf", 1024, {}, 1800)
        query = _query(url)

        ok, _ = storage.verify("PUT", TEST_KEY, query["expires"], query["signature"], "text/plain", "1024", "")
        assert ok is False
        ok, _ = storage.verify("PUT", TEST_KEY, query["expires"], query["signature"], "application/pdf", "2048", "")
        assert ok is False

    @pytest.mark.asyncio
    async def test_upload_signature_bound_to_metadata(self, storage):
        metadata = {"patient-id": "pat_alice", "category": "LAB_RESULTS"}
        url = await storage.generate_presigned_upload_url(TEST_KEY, "application/pdf", 1024, metadata, 1800)
        query = _query(url)

        def verify(presented):
            return storage.verify(
                "PUT", TEST_KEY, query["expires"], query["signature"],
                "application/pdf", "1024", canonical_metadata(presented),
            )

        assert verify({"category": "LAB_RESULTS", "patient-id": "pat_alice"}) == (True, None)
        assert verify({})[0] is False
        assert verify({"patient-id": "pat_bob", "category": "LAB_RESULTS"})[0] is False
        assert verify({**metadata, "extra": "1"})[0] is False

    @pytest.mark.asyncio
    async def test_signature_bound_to_key_and_method(self, storage):
        url = await storage.generate_presigned_upload_url(TEST_KEY, "application/pdf", 1024, {}, 1800)
        query = _query(url)
        other_key = TEST_KEY.replace("pat_alice", "pat_bob")

        ok, reason = storage.verify("PUT", other_key, query["expires"], query["signature"], "application/pdf", "1024", "")
        assert ok is False
        assert reason == "Signature does not match"
        ok, _ = storage.verify("GET", TEST_KEY, query["expires"], query["signature"], "application/pdf", "1024", "")
        assert ok is False

    @pytest.mark.asyncio
    async def test_expired_url_rejected(self, storage, clock):
        url = await storage.generate_presigned_download_url(TEST_KEY, 60, "results.pdf")
        query = _query(url)

        clock.now += 61
        ok, reason = storage.verify("GET", TEST_KEY, query["expires"], query["signature"], "results.pdf")

        assert ok is False
        assert reason == "Request has expired"

    @pytest.mark.asyncio
    async def test_extended_expiry_rejected(self, storage):
        """Test the expiry cannot be pushed out without re-signing"""
        url = await storage.generate_presigned_download_url(TEST_KEY, 60)
        query = _query(url)

        ok, _ = storage.verify("GET", TEST_KEY, str(int(query["expires"]) + 3600), query["signature"], "")
        assert ok is False

    @pytest.mark.parametrize("expires", [None, "", "soon"])
    def test_malformed_expiry(self, storage, expires):
        ok, reason = storage.verify("GET", TEST_KEY, expires, "abc", "")
        assert ok is False
        assert reason == "Malformed expiry"

    @pytest.mark.asyncio
    async def test_download_url_carries_filename(self, storage):
        url = await storage.generate_presigned_download_url(TEST_KEY, 3600, "results.pdf")
        query = _query(url)

        assert query["filename"] == "results.pdf"
        assert storage.verify("GET", TEST_KEY, query["expires"], query["signature"], "results.pdf") == (True, None)
        ok, _ = storage.verify("GET", TEST_KEY, query["expires"], query["signature"], "other.pdf")
        assert ok is False

    def test_secret_required(self, tmp_path):
        with pytest.raises(StorageError):
            MockStorageAdapter(root_dir=str(tmp_path), base_url="http://x", signing_secret="")


class TestObjects:

    @pytest.mark.asyncio
    async def test_write_and_read_head(self, storage):
        storage.write_object(TEST_KEY, b"%PDF-1.4 body", "application/pdf", {"category": "LAB_RESULTS"})

        assert await storage.read_object_head(TEST_KEY, 4) == b"%PDF"
        assert await storage.file_exists(TEST_KEY) is True
        info = storage.object_info(TEST_KEY)
        assert info["content_type"] == "application/pdf"
        assert info["metadata"] == {"category": "LAB_RESULTS"}

    @pytest.mark.asyncio
    async def test_missing_object(self, storage):
        assert await storage.file_exists(TEST_KEY) is False
        with pytest.raises(FileNotFoundError):
            await storage.read_object_head(TEST_KEY, 8192)
        with pytest.raises(FileNotFoundError):
            storage.object_info(TEST_KEY)

    @pytest.mark.parametrize("key", ["../outside.txt", "documents/../../etc/passwd"])
    def test_path_escape_rejected(self, storage, key):
        with pytest.raises(StorageError):
            storage.object_path(key)

    @pytest.mark.asyncio
    async def test_presign_rejects_escaping_key(self, storage):
        with pytest.raises(StorageError):
            await storage.generate_presigned_upload_url("../evil", "text/plain", 1, {}, 60)

    @pytest.mark.asyncio
    async def test_verify_ready_creates_root(self, tmp_path):
        root = tmp_path / "not-yet"
        storage = MockStorageAdapter(root_dir=str(root), base_url="http://x", signing_secret="s")

        assert await storage.verify_ready() is True
        assert root.is_dir()
