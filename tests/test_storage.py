"""
Tests for object storage backends and remote image fetching
"""
import httpx
import pytest
import requests
from storage3.utils import StorageException

from app import config
from app.errors import ObjectNotFound, UpstreamTimeout, UpstreamUnavailable
from app.services import images
from app.services.storage import LocalStorage, SupabaseStorage


class TestLocalStorage:

    def test_put_read_delete(self, storage):
        locator = storage.put(b"data", "images/teeth-1.png", "image/png")
        assert locator == "images/teeth-1.png"
        assert storage.read(locator) == b"data"
        assert storage.public_url(locator) == "/uploads/images/teeth-1.png"

        storage.delete(locator)
        with pytest.raises(ObjectNotFound):
            storage.read(locator)

    def test_delete_missing_is_quiet(self, storage):
        storage.delete("images/never-stored.png")

    def test_read_missing(self, storage):
        with pytest.raises(ObjectNotFound) as exc_info:
            storage.read("images/absent.png")
        assert exc_info.value.locator == "images/absent.png"

    def test_path_traversal_rejected(self, storage):
        with pytest.raises(ObjectNotFound):
            storage.read("../../etc/passwd")


class _FakeBucket:
    def __init__(self, error=None, content=b""):
        self.error = error
        self.content = content
        self.removed = []

    def _call(self):
        if self.error is not None:
            raise self.error

    def upload(self, path, file, file_options):
        self._call()

    def download(self, path):
        self._call()
        return self.content

    def remove(self, paths):
        self._call()
        self.removed.extend(paths)

    def get_public_url(self, path):
        return f"https://project.supabase.co/storage/v1/object/public/screenings/{path}"


class _FakeStorageApi:
    def __init__(self, bucket):
        self.bucket = bucket

    def from_(self, name):
        return self.bucket


class _FakeClient:
    def __init__(self, bucket):
        self.storage = _FakeStorageApi(bucket)


def _supabase(**bucket_kwargs):
    bucket = _FakeBucket(**bucket_kwargs)
    return SupabaseStorage(_FakeClient(bucket), bucket="screenings"), bucket


class TestSupabaseStorage:

    def test_round_trip(self):
        store, bucket = _supabase(content=b"pdf")
        assert store.put(b"pdf", "reports/r.pdf", "application/pdf") == "reports/r.pdf"
        assert store.read("reports/r.pdf") == b"pdf"
        store.delete("reports/r.pdf")
        assert bucket.removed == ["reports/r.pdf"]
        assert store.public_url("reports/r.pdf").endswith("/screenings/reports/r.pdf")

    def test_timeout(self):
        store, _ = _supabase(error=httpx.ReadTimeout("timed out"))
        with pytest.raises(UpstreamTimeout):
            store.read("images/a.png")

    def test_not_found(self):
        store, _ = _supabase(error=StorageException({"statusCode": 404, "message": "Object not found"}))
        with pytest.raises(ObjectNotFound):
            store.read("images/a.png")

    def test_other_failure(self):
        store, _ = _supabase(error=StorageException({"statusCode": 500, "message": "internal"}))
        with pytest.raises(UpstreamUnavailable) as exc_info:
            store.put(b"x", "images/a.png", "image/png")
        assert exc_info.value.retryable


class _FakeResponse:
    def __init__(self, status_code, content=b""):
        self.status_code = status_code
        self.content = content


class TestFetchBytes:

    def test_locator_reads_storage(self, storage):
        storage.put(b"abc", "images/a.png", "image/png")
        assert images.fetch_bytes("images/a.png", storage) == b"abc"

    def test_remote_success_uses_timeout(self, storage, monkeypatch):
        calls = []

        def fake_get(url, timeout):
            calls.append((url, timeout))
            return _FakeResponse(200, b"remote")

        monkeypatch.setattr(images.requests, "get", fake_get)
        assert images.fetch_bytes("https://cdn.example.com/a.png", storage) == b"remote"
        assert calls == [("https://cdn.example.com/a.png", config.FETCH_TIMEOUT_SECONDS)]

    def test_remote_404(self, storage, monkeypatch):
        monkeypatch.setattr(images.requests, "get", lambda url, timeout: _FakeResponse(404))
        with pytest.raises(ObjectNotFound):
            images.fetch_bytes("https://cdn.example.com/gone.png", storage)

    def test_remote_server_error(self, storage, monkeypatch):
        monkeypatch.setattr(images.requests, "get", lambda url, timeout: _FakeResponse(502))
        with pytest.raises(UpstreamUnavailable):
            images.fetch_bytes("https://cdn.example.com/a.png", storage)

    def test_remote_timeout(self, storage, monkeypatch):
        def slow_get(url, timeout):
            raise requests.Timeout("read timed out")

        monkeypatch.setattr(images.requests, "get", slow_get)
        with pytest.raises(UpstreamTimeout) as exc_info:
            images.fetch_bytes("https://cdn.example.com/a.png", storage, timeout=0.5)
        assert exc_info.value.status_code == 504

    def test_remote_connection_error(self, storage, monkeypatch):
        def refused(url, timeout):
            raise requests.ConnectionError("refused")

        monkeypatch.setattr(images.requests, "get", refused)
        with pytest.raises(UpstreamUnavailable):
            images.fetch_bytes("http://cdn.example.com/a.png", storage)
