"""Service configuration.

All runtime behaviour that differs between deployments (which scenes a
caller may pick, whether generated files are public, how strictly the
uploaded photo is validated) is resolved here from environment variables
once per process.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional

from .env import parse_choice_env, parse_flag_env, parse_float_env, parse_int_env

DEFAULT_IMAGE_MODEL = "gemini-2.0-flash-exp-image-generation"
DEFAULT_API_KEY_SECRET_ID = "gemini-api-key"
DEFAULT_FETCH_TIMEOUT_S = 30.0
MAX_SCENE_WORKERS = 8


class SceneSelectionMode(str, Enum):
    """How the scenes for one request are chosen."""
    CLIENT = "client"  # caller sends sceneIds
    FIXED = "fixed"    # every catalog scene, sceneIds ignored


class AssetVisibility(str, Enum):
    """Where a generated image ends up from the caller's point of view."""
    PRIVATE = "private"  # storage path behind security rules
    PUBLIC = "public"    # public download URL


@dataclass(frozen=True)
class ServiceConfig:
    """Resolved configuration for the scene generation service."""
    image_model: str = DEFAULT_IMAGE_MODEL
    api_key_secret_id: str = DEFAULT_API_KEY_SECRET_ID
    selection_mode: SceneSelectionMode = SceneSelectionMode.CLIENT
    asset_visibility: AssetVisibility = AssetVisibility.PRIVATE
    strict_source_mime: bool = True
    fetch_timeout_s: float = DEFAULT_FETCH_TIMEOUT_S
    max_scene_workers: int = 1
    catalog_path: Optional[Path] = None
    storage_bucket: Optional[str] = None

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ServiceConfig":
        """Build a config from ``env`` (defaults to ``os.environ``).

        Raises:
            ValueError: If any variable holds an invalid value.
        """
        env = os.environ if env is None else env

        selection = parse_choice_env(
            env.get("SCENE_SELECTION_MODE"),
            choices=[mode.value for mode in SceneSelectionMode],
            default=SceneSelectionMode.CLIENT.value,
            name="SCENE_SELECTION_MODE",
        )
        visibility = parse_choice_env(
            env.get("GENERATED_ASSET_VISIBILITY"),
            choices=[item.value for item in AssetVisibility],
            default=AssetVisibility.PRIVATE.value,
            name="GENERATED_ASSET_VISIBILITY",
        )
        catalog_path = (env.get("SCENE_CATALOG_PATH") or "").strip()

        return cls(
            image_model=(env.get("GEMINI_IMAGE_MODEL") or "").strip() or DEFAULT_IMAGE_MODEL,
            api_key_secret_id=(
                (env.get("GEMINI_API_KEY_SECRET_ID") or "").strip() or DEFAULT_API_KEY_SECRET_ID
            ),
            selection_mode=SceneSelectionMode(selection),
            asset_visibility=AssetVisibility(visibility),
            strict_source_mime=parse_flag_env(
                env.get("STRICT_SOURCE_MIME"),
                default=True,
                name="STRICT_SOURCE_MIME",
            ),
            fetch_timeout_s=parse_float_env(
                env.get("SOURCE_FETCH_TIMEOUT_S"),
                default=DEFAULT_FETCH_TIMEOUT_S,
                min_value=1.0,
                name="SOURCE_FETCH_TIMEOUT_S",
            ),
            max_scene_workers=parse_int_env(
                env.get("SCENE_MAX_WORKERS"),
                default=1,
                min_value=1,
                max_value=MAX_SCENE_WORKERS,
                name="SCENE_MAX_WORKERS",
            ),
            catalog_path=Path(catalog_path).expanduser() if catalog_path else None,
            storage_bucket=(env.get("FIREBASE_STORAGE_BUCKET") or "").strip() or None,
        )


__all__ = [
    "AssetVisibility",
    "DEFAULT_IMAGE_MODEL",
    "SceneSelectionMode",
    "ServiceConfig",
]
