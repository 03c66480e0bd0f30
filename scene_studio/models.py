"""Request payloads and domain records for scene generation."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from scene_studio.config import AssetVisibility

GENERATION_STATUS_COMPLETED = "completed"


class GenerateScenesPayload(BaseModel):
    """Inbound ``data`` object of a generateAIScenes call."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    image_url: str = Field(..., alias="imageUrl", min_length=1)
    image_path: str = Field(..., alias="imagePath", min_length=1)
    scene_ids: Optional[List[str]] = Field(default=None, alias="sceneIds")

    @field_validator("image_url", "image_path")
    @classmethod
    def _reject_blank(cls, value: str) -> str:
        # Not stripped; imagePath is prefix-matched exactly as sent.
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("scene_ids")
    @classmethod
    def _strip_scene_ids(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return None
        return [scene_id.strip() for scene_id in value]


def format_payload_errors(errors: List[Dict[str, Any]]) -> List[str]:
    formatted = []
    for err in errors:
        loc = ".".join(str(part) for part in err.get("loc", []))
        msg = err.get("msg", "Invalid value")
        formatted.append(f"{loc}: {msg}" if loc else msg)
    return formatted


def parse_generate_payload(payload: object) -> Tuple[Optional[GenerateScenesPayload], List[str]]:
    """Validate a raw payload, returning ``(parsed, [])`` or ``(None, errors)``."""
    try:
        parsed = GenerateScenesPayload.model_validate(payload)
    except ValidationError as exc:
        return None, format_payload_errors(exc.errors())
    return parsed, []


@dataclass(frozen=True)
class GenerationRequest:
    """A validated request, bound to the caller that made it."""
    uid: str
    image_url: str
    image_path: str
    scene_ids: Optional[Tuple[str, ...]] = None

    @property
    def user_prefix(self) -> str:
        return f"users/{self.uid}/"

    @classmethod
    def from_payload(cls, uid: str, payload: GenerateScenesPayload) -> "GenerationRequest":
        scene_ids = tuple(payload.scene_ids) if payload.scene_ids is not None else None
        return cls(
            uid=uid,
            image_url=payload.image_url,
            image_path=payload.image_path,
            scene_ids=scene_ids,
        )


@dataclass(frozen=True)
class GenerationResult:
    """A generated image that made it into storage."""
    scene: str
    location: str
    visibility: AssetVisibility = AssetVisibility.PRIVATE

    def to_dict(self) -> Dict[str, str]:
        key = "url" if self.visibility is AssetVisibility.PUBLIC else "path"
        return {key: self.location, "scene": self.scene}


@dataclass
class SceneAttempt:
    """Outcome of one scene's generate-and-upload attempt."""
    scene_id: str
    success: bool
    result: Optional[GenerationResult] = None
    prompt_used: str = ""
    generation_time_seconds: float = 0.0
    error: Optional[str] = None
    error_code: Optional[str] = None


@dataclass
class GenerationRecord:
    """Summary document persisted once per successful request."""
    generation_id: str
    original_image_url: str
    original_image_path: str
    images: List[GenerationResult]
    image_model: str
    visibility: AssetVisibility
    status: str = GENERATION_STATUS_COMPLETED

    def to_document(self, created_at: Any) -> Dict[str, Any]:
        """Firestore fields; ``created_at`` is usually the server timestamp sentinel."""
        return {
            "id": self.generation_id,
            "originalImageUrl": self.original_image_url,
            "originalImagePath": self.original_image_path,
            "generatedImages": [image.to_dict() for image in self.images],
            "imageModel": self.image_model,
            "visibility": self.visibility.value,
            "status": self.status,
            "createdAt": created_at,
        }


@dataclass
class GenerationOutcome:
    """What a successful invocation returns."""
    generation_id: str
    images: List[GenerationResult]
    attempts: List[SceneAttempt] = field(default_factory=list)

    @property
    def failed_scenes(self) -> List[str]:
        return [attempt.scene_id for attempt in self.attempts if not attempt.success]

    def to_response(self) -> Dict[str, Any]:
        return {
            "success": True,
            "generationId": self.generation_id,
            "images": [image.to_dict() for image in self.images],
        }


def new_generation_id() -> str:
    """Time-ordered id with a random suffix, unique per request."""
    return f"gen_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"
