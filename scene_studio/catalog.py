"""Static scene catalog.

The catalog is data, not code: a YAML file with one entry per scene,
loaded once per process into a read-only mapping keyed by scene id.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional, Union

import yaml

from scene_studio.config import SceneSelectionMode

LOGGER = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).parent / "scenes.yaml"

SceneCatalog = Mapping[str, "Scene"]


@dataclass(frozen=True)
class Scene:
    """One background scene a photo can be placed into."""
    id: str
    label: str
    prompt: str


def _parse_scene(entry: object, index: int) -> Scene:
    if not isinstance(entry, dict):
        raise ValueError(f"Scene entry #{index} must be a mapping (got {type(entry).__name__}).")
    values = {}
    for key in ("id", "label", "prompt"):
        value = entry.get(key)
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"Scene entry #{index} is missing a non-empty '{key}'.")
        values[key] = " ".join(value.split()) if key == "prompt" else value.strip()
    return Scene(**values)


def load_scene_catalog(path: Optional[Union[str, Path]] = None) -> SceneCatalog:
    """Load a scene catalog from YAML.

    Args:
        path: Catalog file; defaults to the packaged ``scenes.yaml``.

    Returns:
        Read-only mapping of scene id to ``Scene``, in file order.

    Raises:
        ValueError: If the file is malformed or repeats a scene id.
    """
    catalog_path = Path(path) if path is not None else DEFAULT_CATALOG_PATH
    with catalog_path.open("r", encoding="utf-8") as handle:
        payload = yaml.safe_load(handle) or {}

    entries = payload.get("scenes") if isinstance(payload, dict) else None
    if not isinstance(entries, list):
        raise ValueError(f"{catalog_path} must define a 'scenes' list.")

    scenes = {}
    for index, entry in enumerate(entries):
        scene = _parse_scene(entry, index)
        if scene.id in scenes:
            raise ValueError(f"Duplicate scene id '{scene.id}' in {catalog_path}.")
        scenes[scene.id] = scene

    LOGGER.info("Loaded %d scenes from %s", len(scenes), catalog_path)
    return MappingProxyType(scenes)


@lru_cache(maxsize=1)
def get_scene_catalog() -> SceneCatalog:
    """Process-wide catalog, honouring ``SCENE_CATALOG_PATH``."""
    override = (os.getenv("SCENE_CATALOG_PATH") or "").strip()
    return load_scene_catalog(override or None)


def resolve_scenes(
    catalog: SceneCatalog,
    scene_ids: Optional[Iterable[str]],
    mode: SceneSelectionMode = SceneSelectionMode.CLIENT,
) -> List[Scene]:
    """Resolve requested scene ids against the catalog.

    In ``FIXED`` mode every catalog scene is returned and ``scene_ids`` is
    ignored. In ``CLIENT`` mode unknown ids are dropped and repeats collapse
    to their first occurrence; request order is kept. An empty result is
    left to the caller to reject.
    """
    if mode is SceneSelectionMode.FIXED:
        return list(catalog.values())

    resolved: List[Scene] = []
    seen = set()
    for scene_id in scene_ids or []:
        if scene_id in seen:
            continue
        seen.add(scene_id)
        scene = catalog.get(scene_id)
        if scene is None:
            LOGGER.info("Dropping unknown scene id %r", scene_id)
            continue
        resolved.append(scene)
    return resolved
