"""Prompt construction for scene generation."""

from __future__ import annotations

from scene_studio.catalog import Scene

PROMPT_FRAMING = "Create a natural, candid photo of this person"

IDENTITY_REQUIREMENTS = "Keep the person's face, features, and outfit exactly the same."

REALISM_REQUIREMENTS = (
    "Make it look like a real photo taken by a friend, not a studio shot. "
    "Natural lighting, relaxed pose. "
    "High quality, Instagram-ready."
)


def build_scene_prompt(scene: Scene) -> str:
    """Combine the shared framing with the scene's own description."""
    fragment = scene.prompt.strip().rstrip(".")
    return f"{PROMPT_FRAMING} {fragment}. {IDENTITY_REQUIREMENTS} {REALISM_REQUIREMENTS}"
