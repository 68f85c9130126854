import pytest
import requests

from agentic_refine import media_client as media_module
from agentic_refine.core.models import Artifact, ArtifactKind, Dimensions
from agentic_refine.errors import TransportError
from agentic_refine.media_client import MediaClient


class FakeResponse:
    def __init__(self, status_code=200, payload=None, content=b"", content_type="application/json"):
        self.status_code = status_code
        self._payload = payload
        self.content = content
        self.headers = {"Content-Type": content_type}
        self.text = str(payload)

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error", response=self)


@pytest.fixture
def post(monkeypatch):
    calls = []
    responses = []

    def fake_post(url, json=None, headers=None, timeout=None):
        calls.append({"url": url, "json": json})
        return responses.pop(0)

    monkeypatch.setattr(media_module.requests, "post", fake_post)
    return responses, calls


def make_client(kind=ArtifactKind.IMAGE):
    return MediaClient(base_url="https://media.example/v1", api_key="key", kind=kind, model="flux")


def test_create_uses_generations_endpoint(post):
    responses, calls = post
    responses.append(FakeResponse(payload={"data": [{"b64_json": "AAAA"}]}))

    artifact = make_client().generate("a fox")

    assert calls[0]["url"] == "https://media.example/v1/images/generations"
    assert calls[0]["json"]["prompt"] == "a fox"
    assert "image" not in calls[0]["json"]
    assert artifact.uri == "data:image/png;base64,AAAA"


def test_edit_sends_references_and_size(post):
    responses, calls = post
    responses.append(FakeResponse(payload={"data": [{"url": "https://cdn.example/out.png"}]}))

    refs = [Artifact("https://cdn.example/ref.png")]
    artifact = make_client().generate("add a hat", reference_artifacts=refs, dimensions=Dimensions(640, 480), model="editor")

    body = calls[0]["json"]
    assert calls[0]["url"].endswith("/images/edits")
    assert body["image"] == ["https://cdn.example/ref.png"]
    assert body["size"] == "640x480"
    assert body["model"] == "editor"
    assert artifact == Artifact("https://cdn.example/out.png", kind=ArtifactKind.IMAGE)


def test_raw_image_body(post):
    responses, _ = post
    responses.append(FakeResponse(content=b"\x89PNG", content_type="image/png"))
    artifact = make_client().generate("a fox")
    assert artifact.uri.startswith("data:image/png;base64,")
    assert artifact.mime_type == "image/png"


def test_video_requires_reference(post):
    with pytest.raises(ValueError):
        make_client(ArtifactKind.VIDEO).generate("waves")


def test_video_request(post):
    responses, calls = post
    responses.append(FakeResponse(payload={"video_url": "https://cdn.example/clip.mp4"}))

    artifact = make_client(ArtifactKind.VIDEO).generate(
        "wave", reference_artifacts=[Artifact("https://cdn.example/ref.png")], dimensions=Dimensions(1, 1)
    )

    body = calls[0]["json"]
    assert calls[0]["url"].endswith("/videos/generations")
    assert body["image"] == "https://cdn.example/ref.png"
    assert "size" not in body
    assert artifact.kind == ArtifactKind.VIDEO


def test_http_error_becomes_transport_error(post):
    responses, _ = post
    responses.append(FakeResponse(status_code=500, payload={"error": "boom"}))
    with pytest.raises(TransportError):
        make_client().generate("a fox")


def test_response_without_media(post):
    responses, _ = post
    responses.append(FakeResponse(payload={"data": []}))
    with pytest.raises(TransportError):
        make_client().generate("a fox")
