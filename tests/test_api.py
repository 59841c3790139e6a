import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest
from fastapi.testclient import TestClient

from storypic import main
from storypic.api.deps import get_orchestrator
from storypic.api.session import read_limited
from storypic.main import create_app
from storypic.pipeline.orchestrator import (
    EMPTY_GENERATION_MESSAGE,
    NO_INPUT_MESSAGE,
    UNEXPECTED_ERROR_MESSAGE,
    PipelineOrchestrator,
)
from storypic.services import backends
from storypic.session.controller import InteractionController
from conftest import FakeGenerator, FakeImprover


def make_client(generator=None, improver=None):
    orchestrator = PipelineOrchestrator(generator or FakeGenerator(), improver or FakeImprover())
    app = create_app(orchestrator)
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    return TestClient(app)


@pytest.fixture
def client():
    with make_client() as c:
        yield c


def upload(client, data, name="cat.png", content_type="image/png", wait=True):
    return client.post(
        "/api/v1/session/upload",
        params={"wait": wait},
        files={"image": (name, data, content_type)},
    )


# --- /api/v1/story/generate ---------------------------------------------------

def test_generate_success(client, png_payload):
    r = client.post("/api/v1/story/generate", json={"photoDataUri": png_payload.to_data_uri()})

    assert r.status_code == 200
    assert r.json() == {"success": True, "story": "A cat sat by the window."}


def test_generate_missing_data(client):
    r = client.post("/api/v1/story/generate", json={"photoDataUri": ""})

    assert r.status_code == 200
    assert r.json() == {"success": False, "error": NO_INPUT_MESSAGE}


def test_generate_empty_draft(png_payload):
    with make_client(generator=FakeGenerator(story=" ")) as c:
        r = c.post("/api/v1/story/generate", json={"photoDataUri": png_payload.to_data_uri()})

    assert r.json() == {"success": False, "error": EMPTY_GENERATION_MESSAGE}


def test_generate_backend_failure_is_generic(png_payload):
    with make_client(improver=FakeImprover(error=RuntimeError("upstream 503"))) as c:
        r = c.post("/api/v1/story/generate", json={"photoDataUri": png_payload.to_data_uri()})

    assert r.status_code == 200
    assert r.json() == {"success": False, "error": UNEXPECTED_ERROR_MESSAGE}


# --- /api/v1/session ----------------------------------------------------------

def test_session_starts_idle(client):
    body = client.get("/api/v1/session").json()

    assert body["phase"] == "idle"
    assert body["story"] is None
    assert body["canSelect"] is True
    assert body["canDownload"] is False


def test_upload_then_download_then_reset(client, png_bytes):
    body = upload(client, png_bytes).json()
    assert body["phase"] == "resolved"
    assert body["story"] == "A cat sat by the window."
    assert body["imageDataUri"].startswith("data:image/png;base64,")
    assert body["canDownload"] is True

    r = client.get("/api/v1/session/download")
    assert r.status_code == 200
    assert r.text == "A cat sat by the window."
    assert r.headers["content-type"].startswith("text/plain")
    assert 'filename="story.txt"' in r.headers["content-disposition"]

    body = client.post("/api/v1/session/reset").json()
    assert body["phase"] == "idle"
    assert body["imageDataUri"] is None
    assert client.get("/api/v1/session/download").status_code == 404


def test_upload_oversized_file(png_bytes):
    gen = FakeGenerator()
    with make_client(generator=gen) as c:
        body = upload(c, b"\0" * (5 * 1024 * 1024)).json()

    assert body["phase"] == "idle"
    assert body["error"] == "Image size should be less than 4MB."
    assert gen.calls == []


def test_upload_wrong_type(client):
    body = upload(client, b"GIF89a...", name="a.gif", content_type="image/gif").json()

    assert body["phase"] == "idle"
    assert body["error"] == "Please choose a PNG, JPEG or WEBP image."


def test_busy_session_refuses_upload_and_reset(png_bytes):
    # the generator never finishes, so the session stays in GENERATING
    with make_client(generator=FakeGenerator(gate=asyncio.Event())) as c:
        body = upload(c, png_bytes, wait=False).json()
        assert body["phase"] == "generating"
        assert body["canReset"] is False

        assert upload(c, png_bytes, wait=False).status_code == 409
        assert c.post("/api/v1/session/reset").status_code == 409


# --- /healthz -----------------------------------------------------------------

def test_healthz_reports_stub_fallback(monkeypatch):
    monkeypatch.setattr(backends.settings, "story_backend", "does-not-exist")
    backends.reset_backend()
    try:
        with make_client() as c:
            body = c.get("/healthz").json()
    finally:
        backends.reset_backend()

    assert body["status"] == "ok"
    assert body["backend"]["active"] == "stub"
    assert body["backend"]["using_stub"] is True
    assert "does-not-exist" in body["backend"]["load_warning"]


# --- session lives on the event loop ------------------------------------------

class RecordingController(InteractionController):
    instances = []

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.reset_threads_had_loop = []
        RecordingController.instances.append(self)

    def reset(self):
        try:
            asyncio.get_running_loop()
            self.reset_threads_had_loop.append(True)
        except RuntimeError:
            self.reset_threads_had_loop.append(False)
        return super().reset()


def test_concurrent_requests_share_one_session(monkeypatch, png_bytes):
    RecordingController.instances = []
    monkeypatch.setattr(main, "InteractionController", RecordingController)

    with make_client() as c:
        with ThreadPoolExecutor(max_workers=8) as pool:
            responses = list(pool.map(lambda _: c.get("/api/v1/session"), range(16)))
        assert all(r.status_code == 200 for r in responses)

        upload(c, png_bytes)
        with ThreadPoolExecutor(max_workers=4) as pool:
            phases = list(pool.map(lambda _: c.get("/api/v1/session").json()["phase"], range(8)))
        assert phases == ["resolved"] * 8

        c.post("/api/v1/session/reset")

    assert len(RecordingController.instances) == 1
    assert RecordingController.instances[0].reset_threads_had_loop == [True]


class ChunkedUpload:
    def __init__(self, data):
        self.data = data
        self.requested = []

    async def read(self, size=-1):
        self.requested.append(size)
        return self.data if size < 0 else self.data[:size]


@pytest.mark.asyncio
async def test_upload_read_is_bounded_by_limit():
    upload_file = ChunkedUpload(b"\0" * 10_000)

    raw = await read_limited(upload_file, 4096)

    assert upload_file.requested == [4097]
    assert len(raw) == 4097
