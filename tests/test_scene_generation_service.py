import importlib.util
from pathlib import Path

import pytest
pytest.importorskip("flask")

from scene_studio.errors import ErrorKind, SceneGenerationError
from scene_studio.models import GenerationOutcome, GenerationResult


def _load_module(module_name: str, relative_path: str):
    module_path = Path(__file__).resolve().parents[1] / relative_path
    spec = importlib.util.spec_from_file_location(module_name, module_path)
    if spec is None or spec.loader is None:
        raise RuntimeError(f"Unable to load module: {relative_path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class StubOrchestrator:
    def __init__(self, outcome=None, error=None):
        self.outcome = outcome
        self.error = error
        self.calls = []

    def generate(self, data, identity):
        self.calls.append((data, identity))
        if self.error is not None:
            raise self.error
        return self.outcome


@pytest.fixture
def service(monkeypatch):
    monkeypatch.setenv("LOG_JSON", "false")
    module = _load_module("scene_generation_service_main", "scene-generation-service/main.py")
    monkeypatch.setattr(
        module,
        "identity_from_authorization",
        lambda header: "u1" if header == "Bearer good-token" else None,
    )
    return module


def _post(module, body, token="good-token", **kwargs):
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    headers.update(kwargs.pop("headers", {}))
    return module.app.test_client().post("/generateAIScenes", json=body, headers=headers, **kwargs)


def test_healthz(service):
    response = service.app.test_client().get("/healthz")

    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}


def test_success_wraps_result(service, monkeypatch):
    outcome = GenerationOutcome(
        generation_id="gen_1",
        images=[GenerationResult(scene="beach", location="users/u1/generated/gen_1/beach.png")],
    )
    orchestrator = StubOrchestrator(outcome=outcome)
    monkeypatch.setattr(service, "get_orchestrator", lambda: orchestrator)
    data = {"imageUrl": "https://x/a.jpg", "imagePath": "users/u1/a.jpg", "sceneIds": ["beach"]}

    response = _post(service, {"data": data})

    assert response.status_code == 200
    assert response.get_json() == {
        "result": {
            "success": True,
            "generationId": "gen_1",
            "images": [{"path": "users/u1/generated/gen_1/beach.png", "scene": "beach"}],
        }
    }
    assert orchestrator.calls == [(data, "u1")]


def test_missing_token_passes_anonymous_identity(service, monkeypatch):
    orchestrator = StubOrchestrator(
        error=SceneGenerationError(ErrorKind.UNAUTHENTICATED, "Must be authenticated to use this function")
    )
    monkeypatch.setattr(service, "get_orchestrator", lambda: orchestrator)

    response = _post(service, {"data": {}}, token=None)

    assert response.status_code == 401
    assert response.get_json() == {
        "error": {"status": "UNAUTHENTICATED", "message": "Must be authenticated to use this function"}
    }
    assert orchestrator.calls == [({}, None)]


@pytest.mark.parametrize(
    ("kind", "status_code"),
    [
        (ErrorKind.INVALID_ARGUMENT, 400),
        (ErrorKind.PERMISSION_DENIED, 403),
        (ErrorKind.NOT_FOUND, 404),
        (ErrorKind.INTERNAL, 500),
    ],
)
def test_typed_errors_map_to_status(service, monkeypatch, kind, status_code):
    orchestrator = StubOrchestrator(error=SceneGenerationError(kind, "nope", {"secret": "detail"}))
    monkeypatch.setattr(service, "get_orchestrator", lambda: orchestrator)

    response = _post(service, {"data": {"imageUrl": "u", "imagePath": "p"}})

    assert response.status_code == status_code
    assert response.get_json() == {"error": {"status": kind.canonical_status, "message": "nope"}}


def test_unexpected_errors_are_generic(service, monkeypatch):
    orchestrator = StubOrchestrator(error=KeyError("boom"))
    monkeypatch.setattr(service, "get_orchestrator", lambda: orchestrator)

    response = _post(service, {"data": {}})

    assert response.status_code == 500
    assert response.get_json()["error"] == {
        "status": "INTERNAL",
        "message": "Failed to generate images. Please try again.",
    }
    assert "boom" not in response.get_data(as_text=True)


@pytest.mark.parametrize("body", [None, ["data"], {"payload": {}}, {"data": "beach"}])
def test_body_without_data_object_is_rejected(service, monkeypatch, body):
    orchestrator = StubOrchestrator()
    monkeypatch.setattr(service, "get_orchestrator", lambda: orchestrator)

    if body is None:
        response = service.app.test_client().post(
            "/generateAIScenes", data="not-json", content_type="text/plain"
        )
    else:
        response = _post(service, body)

    assert response.status_code == 400
    assert response.get_json()["error"]["status"] == "INVALID_ARGUMENT"
    assert orchestrator.calls == []


def test_security_and_cors_headers(service, monkeypatch):
    monkeypatch.setenv("CORS_ALLOWED_ORIGINS", "https://app.example.com")

    response = service.app.test_client().get("/healthz", headers={"Origin": "https://app.example.com"})

    assert response.headers.get("X-Content-Type-Options") == "nosniff"
    assert response.headers.get("Referrer-Policy") == "no-referrer"
    assert response.headers.get("Access-Control-Allow-Origin") == "https://app.example.com"
    assert response.headers.get("Vary") == "Origin"


def test_unlisted_origin_gets_no_cors_header(service, monkeypatch):
    monkeypatch.setenv("CORS_ALLOWED_ORIGINS", "https://app.example.com")

    response = service.app.test_client().get("/healthz", headers={"Origin": "https://evil.example.com"})

    assert "Access-Control-Allow-Origin" not in response.headers
