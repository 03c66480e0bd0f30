"""
Shared pytest fixtures for scene-studio tests.

Firebase, Cloud Storage and Gemini are replaced with in-memory fakes so
the orchestrator can be exercised end to end without credentials.
"""

from __future__ import annotations

import io
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest
from PIL import Image
from requests.structures import CaseInsensitiveDict

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from scene_studio.catalog import load_scene_catalog
from scene_studio.config import AssetVisibility, ServiceConfig
from scene_studio.gemini import GeneratedImage
from scene_studio.orchestrator import SceneGenerationOrchestrator
from scene_studio.records import GenerationRecordStore
from scene_studio.source_image import SourceImageFetcher
from scene_studio.storage import GeneratedImageStore


def make_image_bytes(fmt: str = "PNG", size=(4, 4), color=(200, 120, 40), noise: bool = False) -> bytes:
    buffer = io.BytesIO()
    image = Image.effect_noise(size, 64) if noise else Image.new("RGB", size, color)
    image.save(buffer, format=fmt)
    return buffer.getvalue()


# =============================================================================
# Cloud Storage
# =============================================================================


class FakeBlob:
    def __init__(self, bucket: "FakeBucket", name: str) -> None:
        self.bucket = bucket
        self.name = name

    def upload_from_string(self, data: bytes, content_type: Optional[str] = None) -> None:
        if self.name in self.bucket.fail_paths:
            raise RuntimeError(f"upload rejected: {self.name}")
        self.bucket.objects[self.name] = (data, content_type)

    def make_public(self) -> None:
        self.bucket.public.add(self.name)

    @property
    def public_url(self) -> str:
        return f"https://storage.googleapis.com/{self.bucket.name}/{self.name}"


class FakeBucket:
    def __init__(self, name: str = "test-bucket") -> None:
        self.name = name
        self.objects: Dict[str, tuple] = {}
        self.public: set = set()
        self.fail_paths: set = set()

    def blob(self, name: str) -> FakeBlob:
        return FakeBlob(self, name)


# =============================================================================
# Firestore
# =============================================================================


class FakeDocRef:
    def __init__(self, db: "FakeFirestore", path: str) -> None:
        self._db = db
        self.path = path

    def collection(self, name: str) -> "FakeCollection":
        return FakeCollection(self._db, f"{self.path}/{name}")

    def create(self, data: Dict[str, Any]) -> None:
        if self._db.fail_writes:
            raise RuntimeError("firestore unavailable")
        if self.path in self._db.documents:
            raise RuntimeError(f"document already exists: {self.path}")
        self._db.documents[self.path] = data


class FakeCollection:
    def __init__(self, db: "FakeFirestore", path: str) -> None:
        self._db = db
        self.path = path

    def document(self, doc_id: str) -> FakeDocRef:
        return FakeDocRef(self._db, f"{self.path}/{doc_id}")


class FakeFirestore:
    def __init__(self) -> None:
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.fail_writes = False

    def collection(self, name: str) -> FakeCollection:
        return FakeCollection(self, name)


# =============================================================================
# Source fetch
# =============================================================================


class FakeResponse:
    def __init__(self, status_code: int = 200, content: bytes = b"", content_type: Optional[str] = "image/jpeg") -> None:
        self.status_code = status_code
        self.content = content
        self.headers = CaseInsensitiveDict()
        if content_type is not None:
            self.headers["Content-Type"] = content_type

    @property
    def ok(self) -> bool:
        return self.status_code < 400


class FakeSession:
    def __init__(self, response: Optional[FakeResponse] = None, error: Optional[Exception] = None) -> None:
        self.response = response or FakeResponse(content=make_image_bytes("JPEG"))
        self.error = error
        self.calls: List[tuple] = []

    def get(self, url: str, timeout: Optional[float] = None) -> FakeResponse:
        self.calls.append((url, timeout))
        if self.error is not None:
            raise self.error
        return self.response


# =============================================================================
# Gemini
# =============================================================================


class FakeRenderer:
    """Renders per scene according to ``outcomes``.

    ``outcomes`` maps scene id to ``"ok"`` (a PNG), ``"none"`` (no image in
    the response), ``"garbage"`` (undecodable bytes), ``"truncated"`` (a PNG
    cut off inside its pixel data) or ``"error"`` (raises).
    Scenes not listed render successfully.
    """

    def __init__(self, catalog, outcomes: Optional[Dict[str, str]] = None) -> None:
        self.catalog = catalog
        self.outcomes = outcomes or {}
        self.calls: List[tuple] = []

    def _scene_for(self, prompt: str) -> str:
        for scene_id, scene in self.catalog.items():
            if scene.prompt in prompt:
                return scene_id
        raise AssertionError(f"unrecognised prompt: {prompt}")

    def render(self, source, prompt: str):
        scene_id = self._scene_for(prompt)
        self.calls.append((scene_id, source.mime_type))
        outcome = self.outcomes.get(scene_id, "ok")
        if outcome == "error":
            raise RuntimeError(f"model refused {scene_id}")
        if outcome == "none":
            return None
        if outcome == "garbage":
            return GeneratedImage(data=b"not an image")
        if outcome == "truncated":
            data = make_image_bytes("PNG", size=(64, 64), noise=True)
            return GeneratedImage(data=data[: len(data) // 2])
        return GeneratedImage(data=make_image_bytes("PNG"))


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes("PNG")


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image_bytes("JPEG")


@pytest.fixture
def scene_catalog():
    return load_scene_catalog()


@pytest.fixture
def fake_bucket() -> FakeBucket:
    return FakeBucket()


@pytest.fixture
def fake_firestore() -> FakeFirestore:
    return FakeFirestore()


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def fake_renderer(scene_catalog) -> FakeRenderer:
    return FakeRenderer(scene_catalog)


@pytest.fixture
def make_orchestrator(
    scene_catalog,
    fake_bucket,
    fake_firestore,
    fake_session,
    fake_renderer,
) -> Callable[..., SceneGenerationOrchestrator]:
    """Factory building an orchestrator wired to the fakes.

    Keyword overrides: ``config``, ``visibility``, ``api_key``, ``id_factory``,
    ``renderer``, ``session``.
    """

    def _factory(
        *,
        config: Optional[ServiceConfig] = None,
        visibility: AssetVisibility = AssetVisibility.PRIVATE,
        api_key: Optional[str] = "test-key",
        id_factory: Optional[Callable[[], str]] = None,
        renderer: Optional[FakeRenderer] = None,
        session: Optional[FakeSession] = None,
    ) -> SceneGenerationOrchestrator:
        config = config or ServiceConfig(asset_visibility=visibility)
        kwargs: Dict[str, Any] = {}
        if id_factory is not None:
            kwargs["id_factory"] = id_factory
        return SceneGenerationOrchestrator(
            config,
            image_store=GeneratedImageStore(fake_bucket, visibility=config.asset_visibility),
            record_store=GenerationRecordStore(fake_firestore),
            catalog=scene_catalog,
            fetcher=SourceImageFetcher(
                timeout_s=config.fetch_timeout_s,
                strict_mime=config.strict_source_mime,
                session=session or fake_session,
            ),
            renderer_factory=lambda key: renderer or fake_renderer,
            api_key_provider=lambda: api_key,
            **kwargs,
        )

    return _factory


@pytest.fixture
def clean_env(monkeypatch):
    """Remove service environment variables for a clean test environment."""
    for var in (
        "GEMINI_API_KEY",
        "GEMINI_API_KEY_SECRET_ID",
        "GEMINI_IMAGE_MODEL",
        "SCENE_SELECTION_MODE",
        "GENERATED_ASSET_VISIBILITY",
        "STRICT_SOURCE_MIME",
        "SOURCE_FETCH_TIMEOUT_S",
        "SCENE_MAX_WORKERS",
        "SCENE_CATALOG_PATH",
        "FIREBASE_STORAGE_BUCKET",
        "LOG_JSON",
        "LOG_FORMAT",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)
    return monkeypatch
