import pytest
import requests

from conftest import upload
import api
from exceptions import UploadFailure
from services import storage as storage_mod
from services.storage import CloudinaryStorage, MemoryStorage, build_storage
from services.ticket_matching import assign_ticket_files


_NOT_JSON = object()


class FakeResponse:
    def __init__(self, status_code, body=_NOT_JSON, text=""):
        self.status_code = status_code
        self._body = body
        self.text = text or str(body)

    def json(self):
        if self._body is _NOT_JSON:
            raise ValueError("No JSON object could be decoded")
        return self._body


def test_memory_storage_keeps_bytes():
    mem = MemoryStorage()
    url = mem.store(b"ticket-bytes", "NB-1.pdf")

    assert url.startswith("memory://tickets/")
    assert url.endswith("/NB-1.pdf")
    assert mem.fetch(url) == b"ticket-bytes"
    assert mem.store(b"other", "NB-1.pdf") != url


def test_build_storage_memory():
    assert isinstance(build_storage("memory"), MemoryStorage)


def test_build_storage_unknown_backend():
    with pytest.raises(RuntimeError):
        build_storage("ftp")


def test_build_storage_cloudinary_needs_credentials(monkeypatch):
    monkeypatch.setattr(storage_mod, "CLOUDINARY_CLOUD_NAME", "")
    with pytest.raises(RuntimeError):
        build_storage("cloudinary")


class TestCloudinary:
    def test_returns_secure_url(self, monkeypatch):
        sent = {}

        def fake_post(url, data=None, files=None, timeout=None):
            sent.update(url=url, data=data, files=files, timeout=timeout)
            return FakeResponse(200, {"secure_url": "https://res.cloudinary.com/x/NB-1.pdf"})

        monkeypatch.setattr(api.SESSION, "post", fake_post)

        url = CloudinaryStorage().store(b"pdf", "NB-1.pdf")

        assert url == "https://res.cloudinary.com/x/NB-1.pdf"
        assert sent["files"]["file"] == ("NB-1.pdf", b"pdf")
        assert sent["timeout"] == api.UPLOAD_TIMEOUT_SECONDS

    def test_error_body_becomes_upload_failure(self, monkeypatch):
        monkeypatch.setattr(
            api.SESSION, "post",
            lambda *a, **kw: FakeResponse(400, {"error": {"message": "Upload preset not found"}}),
        )

        with pytest.raises(UploadFailure) as exc:
            CloudinaryStorage().store(b"pdf", "NB-1.pdf")

        assert exc.value.filename == "NB-1.pdf"
        assert exc.value.http_status == 400
        assert "Upload preset not found" in exc.value.reason

    def test_non_json_response(self, monkeypatch):
        monkeypatch.setattr(api.SESSION, "post", lambda *a, **kw: FakeResponse(502, text="Bad Gateway"))

        with pytest.raises(UploadFailure) as exc:
            CloudinaryStorage().store(b"pdf", "NB-1.pdf")
        assert exc.value.http_status == 502

    def test_timeout_is_reported(self, monkeypatch):
        def boom(*a, **kw):
            raise requests.Timeout("read timed out")

        monkeypatch.setattr(api.SESSION, "post", boom)

        with pytest.raises(UploadFailure) as exc:
            CloudinaryStorage().store(b"pdf", "NB-1.pdf")
        assert "timed out" in exc.value.reason

    @pytest.mark.parametrize("body", [None, ["secure_url"], "ok"])
    def test_json_that_is_not_an_object(self, monkeypatch, body):
        monkeypatch.setattr(api.SESSION, "post", lambda *a, **kw: FakeResponse(200, body))

        with pytest.raises(UploadFailure) as exc:
            CloudinaryStorage().store(b"pdf", "NB-1.pdf")
        assert exc.value.http_status == 200
        assert "JSON object" in exc.value.reason


def test_bad_upload_response_costs_only_that_file(monkeypatch, store, approved_order):
    o1 = approved_order("NB-AAAA0001")
    o2 = approved_order("NB-BBBB0002")
    responses = iter([
        FakeResponse(200, None),
        FakeResponse(200, {"secure_url": "https://res.cloudinary.com/x/NB-BBBB0002.pdf"}),
    ])
    monkeypatch.setattr(api.SESSION, "post", lambda *a, **kw: next(responses))

    summary = assign_ticket_files(
        store,
        CloudinaryStorage(),
        [upload("NB-AAAA0001.pdf"), upload("NB-BBBB0002.pdf")],
    )

    assert [f["filename"] for f in summary.failures] == ["NB-AAAA0001.pdf"]
    assert summary.matched_by_ref == 1
    assert store.get(o1.id).ticket_url is None
    assert store.get(o2.id).ticket_url == "https://res.cloudinary.com/x/NB-BBBB0002.pdf"
