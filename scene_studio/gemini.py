"""Scene rendering through Gemini image generation."""

from __future__ import annotations

import base64
import io
import logging
from dataclasses import dataclass
from typing import Any, Optional

from google import genai
from google.genai import types
from PIL import Image

from scene_studio.config import DEFAULT_IMAGE_MODEL
from scene_studio.source_image import SourceImage

LOGGER = logging.getLogger(__name__)

DEFAULT_OUTPUT_MIME_TYPE = "image/png"
RESPONSE_MODALITIES = ["TEXT", "IMAGE"]


@dataclass(frozen=True)
class GeneratedImage:
    """Image bytes returned by the model."""
    data: bytes
    mime_type: str = DEFAULT_OUTPUT_MIME_TYPE


def _response_parts(response: Any) -> list:
    candidates = getattr(response, "candidates", None)
    if not candidates:
        return []
    content = getattr(candidates[0], "content", None)
    if content is None:
        return []
    return list(getattr(content, "parts", None) or [])


def extract_inline_image(response: Any) -> Optional[GeneratedImage]:
    """Return the first inline image in the response, or ``None``.

    Parts without image bytes (text commentary) are skipped; anything after
    the first image is ignored.
    """
    for part in _response_parts(response):
        inline = getattr(part, "inline_data", None)
        if inline is None or not getattr(inline, "data", None):
            continue
        data = inline.data
        if isinstance(data, str):
            data = base64.b64decode(data)
        return GeneratedImage(
            data=data,
            mime_type=getattr(inline, "mime_type", None) or DEFAULT_OUTPUT_MIME_TYPE,
        )
    return None


def ensure_png(image: GeneratedImage) -> GeneratedImage:
    """Decode the model output and re-encode it as PNG when needed.

    Generated images are stored under ``.png`` paths. The pixel data is
    fully decoded first, so unrecognised bytes raise
    ``PIL.UnidentifiedImageError`` and truncated or corrupt data raises
    ``OSError``.
    """
    with Image.open(io.BytesIO(image.data)) as img:
        img.load()
        width, height = img.size
        LOGGER.info("Decoded %s output (%dx%d, %s)", img.format, width, height, img.mode)
        if img.format == "PNG":
            return GeneratedImage(data=image.data, mime_type="image/png")
        converted = img if img.mode in ("RGB", "RGBA", "L", "LA", "P") else img.convert("RGB")
        buffer = io.BytesIO()
        converted.save(buffer, format="PNG")
    return GeneratedImage(data=buffer.getvalue(), mime_type="image/png")


class GeminiSceneRenderer:
    """Places the person from a source photo into a described scene."""

    def __init__(self, client: Any, model: str = DEFAULT_IMAGE_MODEL) -> None:
        self.client = client
        self.model = model

    @classmethod
    def from_api_key(cls, api_key: str, model: str = DEFAULT_IMAGE_MODEL) -> "GeminiSceneRenderer":
        return cls(genai.Client(api_key=api_key), model=model)

    def render(self, source: SourceImage, prompt: str) -> Optional[GeneratedImage]:
        """Run one generation call. Errors from the SDK propagate."""
        response = self.client.models.generate_content(
            model=self.model,
            contents=[
                types.Part.from_bytes(data=source.data, mime_type=source.mime_type),
                prompt,
            ],
            config=types.GenerateContentConfig(response_modalities=RESPONSE_MODALITIES),
        )
        LOGGER.debug("Model returned %d parts", len(_response_parts(response)))
        return extract_inline_image(response)
