"""
Scene generation orchestrator.

Takes one caller's uploaded photo and renders it into each requested
background scene:

1. Check the caller owns the photo path (``users/{uid}/...``)
2. Resolve scene ids against the static catalog
3. Fetch and validate the source photo
4. Render every scene with Gemini; a failing scene is logged and skipped
5. Upload each rendered image under ``users/{uid}/generated/{generation_id}/``
6. Create one Firestore record once every scene attempt has finished

Nothing is retried. Typed failures reach the caller unchanged; anything
else is reported as a generic internal error.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, List, Optional, Protocol

from pydantic import ValidationError

from scene_studio.catalog import Scene, SceneCatalog, get_scene_catalog, load_scene_catalog, resolve_scenes
from scene_studio.config import SceneSelectionMode, ServiceConfig
from scene_studio.errors import (
    ErrorKind,
    SceneGenerationError,
    SceneGenerationErrorCode,
    SceneGenerationIssue,
    log_issue,
    raise_issue,
)
from scene_studio.gemini import GeminiSceneRenderer, GeneratedImage, ensure_png
from scene_studio.models import (
    GenerateScenesPayload,
    GenerationOutcome,
    GenerationRecord,
    GenerationRequest,
    GenerationResult,
    SceneAttempt,
    format_payload_errors,
    new_generation_id,
)
from scene_studio.prompts import build_scene_prompt
from scene_studio.records import GenerationRecordStore
from scene_studio.secrets import get_gemini_api_key
from scene_studio.source_image import SourceImage, SourceImageFetcher
from scene_studio.storage import GeneratedImageStore, generated_image_path

LOGGER = logging.getLogger(__name__)

_SOURCE_FIELDS = {"imageUrl", "imagePath", "image_url", "image_path"}


class SceneRenderer(Protocol):
    def render(self, source: SourceImage, prompt: str) -> Optional[GeneratedImage]:
        ...


class SceneGenerationOrchestrator:
    """Runs one generation request end to end."""

    def __init__(
        self,
        config: ServiceConfig,
        *,
        image_store: GeneratedImageStore,
        record_store: GenerationRecordStore,
        catalog: Optional[SceneCatalog] = None,
        fetcher: Optional[SourceImageFetcher] = None,
        renderer_factory: Optional[Callable[[str], SceneRenderer]] = None,
        api_key_provider: Optional[Callable[[], Optional[str]]] = None,
        id_factory: Callable[[], str] = new_generation_id,
    ) -> None:
        self.config = config
        self.image_store = image_store
        self.record_store = record_store
        if catalog is None:
            catalog = (
                load_scene_catalog(config.catalog_path)
                if config.catalog_path
                else get_scene_catalog()
            )
        self.catalog = catalog
        self.fetcher = fetcher or SourceImageFetcher(
            timeout_s=config.fetch_timeout_s,
            strict_mime=config.strict_source_mime,
        )
        self._renderer_factory = renderer_factory or (
            lambda api_key: GeminiSceneRenderer.from_api_key(api_key, model=config.image_model)
        )
        self._api_key_provider = api_key_provider or (
            lambda: get_gemini_api_key(config.api_key_secret_id)
        )
        self._id_factory = id_factory

    @classmethod
    def from_firebase(cls, config: ServiceConfig, **kwargs: Any) -> "SceneGenerationOrchestrator":
        """Wire the orchestrator to the process-wide Firebase handles."""
        from scene_studio.firebase_app import get_firestore_client, get_storage_bucket

        return cls(
            config,
            image_store=GeneratedImageStore(
                get_storage_bucket(config.storage_bucket),
                visibility=config.asset_visibility,
            ),
            record_store=GenerationRecordStore(get_firestore_client()),
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def generate(self, request: Any, identity: Optional[str]) -> GenerationOutcome:
        """Generate every requested scene for ``identity``.

        Args:
            request: Raw ``data`` mapping (``imageUrl``, ``imagePath``, ``sceneIds``)
                or an already parsed ``GenerateScenesPayload``.
            identity: Verified caller uid, ``None`` when unauthenticated.

        Raises:
            SceneGenerationError: With the kind the caller should see.
        """
        if not identity:
            raise_issue(
                ErrorKind.UNAUTHENTICATED,
                SceneGenerationErrorCode.UNAUTHENTICATED,
                "Must be authenticated to use this function",
            )

        gen_request = self._parse_request(request, identity)

        if not gen_request.image_path.startswith(gen_request.user_prefix):
            raise_issue(
                ErrorKind.PERMISSION_DENIED,
                SceneGenerationErrorCode.PERMISSION_DENIED,
                "You can only process your own images",
                {"uid": identity},
            )

        api_key = self._api_key_provider()
        if not api_key:
            raise_issue(
                ErrorKind.INTERNAL,
                SceneGenerationErrorCode.CONFIG_MISSING_API_KEY,
                "AI service not configured",
                level=logging.ERROR,
            )

        try:
            return self._run(gen_request, api_key)
        except SceneGenerationError:
            raise
        except Exception as exc:
            log_issue(
                logging.ERROR,
                SceneGenerationIssue(
                    code=SceneGenerationErrorCode.UNEXPECTED,
                    message="Generation failed unexpectedly.",
                    context={"uid": identity},
                    fatal=True,
                ),
                exc=exc,
            )
            raise SceneGenerationError(
                ErrorKind.INTERNAL,
                "Failed to generate images. Please try again.",
                code=SceneGenerationErrorCode.UNEXPECTED,
            ) from exc

    def _parse_request(self, request: Any, uid: str) -> GenerationRequest:
        if isinstance(request, GenerateScenesPayload):
            payload = request
        else:
            try:
                payload = GenerateScenesPayload.model_validate(request)
            except ValidationError as exc:
                errors = exc.errors()
                source_missing = any(
                    not err.get("loc") or str(err["loc"][0]) in _SOURCE_FIELDS
                    for err in errors
                )
                message = (
                    "imageUrl and imagePath are required"
                    if source_missing
                    else "sceneIds must be a list of scene ids"
                )
                raise_issue(
                    ErrorKind.INVALID_ARGUMENT,
                    SceneGenerationErrorCode.INVALID_REQUEST,
                    message,
                    {"errors": format_payload_errors(errors)},
                )

        if self.config.selection_mode is SceneSelectionMode.CLIENT and not payload.scene_ids:
            raise_issue(
                ErrorKind.INVALID_ARGUMENT,
                SceneGenerationErrorCode.INVALID_REQUEST,
                "sceneIds must be a non-empty list of scene ids",
            )
        return GenerationRequest.from_payload(uid, payload)

    # ------------------------------------------------------------------
    # Workflow
    # ------------------------------------------------------------------

    def _run(self, request: GenerationRequest, api_key: str) -> GenerationOutcome:
        scenes = resolve_scenes(self.catalog, request.scene_ids, self.config.selection_mode)
        if not scenes:
            raise_issue(
                ErrorKind.INVALID_ARGUMENT,
                SceneGenerationErrorCode.UNKNOWN_SCENES,
                "No valid scenes selected",
                {"requested": list(request.scene_ids or ())},
            )

        source = self.fetcher.fetch(request.image_url)
        renderer = self._renderer_factory(api_key)
        generation_id = self._id_factory()

        LOGGER.info(
            "Starting generation %s with %d scenes",
            generation_id,
            len(scenes),
            extra={"uid": request.uid, "generation_id": generation_id},
        )
        attempts = self._attempt_all(request, generation_id, scenes, source, renderer)
        images = [attempt.result for attempt in attempts if attempt.success and attempt.result]

        if not images:
            raise_issue(
                ErrorKind.INTERNAL,
                SceneGenerationErrorCode.NO_IMAGES_GENERATED,
                "Failed to generate images. The AI model may be unavailable.",
                {"generation_id": generation_id, "scenes": [scene.id for scene in scenes]},
                level=logging.ERROR,
            )

        record = GenerationRecord(
            generation_id=generation_id,
            original_image_url=request.image_url,
            original_image_path=request.image_path,
            images=images,
            image_model=self.config.image_model,
            visibility=self.image_store.visibility,
        )
        try:
            self.record_store.create(request.uid, record)
        except Exception as exc:
            log_issue(
                logging.ERROR,
                SceneGenerationIssue(
                    code=SceneGenerationErrorCode.RECORD_WRITE_FAILED,
                    message="Failed to save generation record.",
                    context={"uid": request.uid, "generation_id": generation_id},
                    fatal=True,
                ),
                exc=exc,
            )
            raise SceneGenerationError(
                ErrorKind.INTERNAL,
                "Failed to generate images. Please try again.",
                code=SceneGenerationErrorCode.RECORD_WRITE_FAILED,
            ) from exc

        return GenerationOutcome(generation_id=generation_id, images=images, attempts=attempts)

    def _attempt_all(
        self,
        request: GenerationRequest,
        generation_id: str,
        scenes: List[Scene],
        source: SourceImage,
        renderer: SceneRenderer,
    ) -> List[SceneAttempt]:
        """Attempt every scene; results keep scene order regardless of completion order."""

        def attempt(scene: Scene) -> SceneAttempt:
            return self._attempt_scene(request, generation_id, scene, source, renderer)

        workers = min(self.config.max_scene_workers, len(scenes))
        if workers <= 1:
            return [attempt(scene) for scene in scenes]
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="scene") as pool:
            return list(pool.map(attempt, scenes))

    def _attempt_scene(
        self,
        request: GenerationRequest,
        generation_id: str,
        scene: Scene,
        source: SourceImage,
        renderer: SceneRenderer,
    ) -> SceneAttempt:
        start_time = time.time()
        prompt = build_scene_prompt(scene)
        context = {"uid": request.uid, "generation_id": generation_id, "scene_id": scene.id}
        LOGGER.info("Generating %s scene...", scene.id, extra=context)

        def failed(code: SceneGenerationErrorCode, message: str, exc: Optional[Exception] = None) -> SceneAttempt:
            log_issue(
                logging.WARNING,
                SceneGenerationIssue(code=code, message=message, context=context),
                exc=exc,
            )
            return SceneAttempt(
                scene_id=scene.id,
                success=False,
                prompt_used=prompt,
                generation_time_seconds=time.time() - start_time,
                error=str(exc) if exc is not None else message,
                error_code=code.value,
            )

        try:
            image = renderer.render(source, prompt)
        except Exception as exc:
            return failed(SceneGenerationErrorCode.IMAGE_GENERATION_FAILED, "Scene generation failed.", exc)
        if image is None:
            return failed(SceneGenerationErrorCode.NO_IMAGE_IN_RESPONSE, "No image data in model response.")
        try:
            image = ensure_png(image)
        except Exception as exc:
            return failed(SceneGenerationErrorCode.IMAGE_DECODE_FAILED, "Generated image could not be decoded.", exc)

        path = generated_image_path(request.uid, generation_id, scene.id)
        try:
            location = self.image_store.save(path, image.data, image.mime_type)
        except Exception as exc:
            return failed(SceneGenerationErrorCode.UPLOAD_FAILED, "Generated image upload failed.", exc)

        elapsed = time.time() - start_time
        LOGGER.info("Uploaded %s to %s (%.1fs)", scene.id, path, elapsed, extra=context)
        return SceneAttempt(
            scene_id=scene.id,
            success=True,
            result=GenerationResult(
                scene=scene.id,
                location=location,
                visibility=self.image_store.visibility,
            ),
            prompt_used=prompt,
            generation_time_seconds=elapsed,
        )
