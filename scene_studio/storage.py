"""Storage of generated scene images."""

from __future__ import annotations

import logging
from typing import Any

from scene_studio.config import AssetVisibility

logger = logging.getLogger(__name__)


def generated_image_path(uid: str, generation_id: str, scene_id: str) -> str:
    return f"users/{uid}/generated/{generation_id}/{scene_id}.png"


class GeneratedImageStore:
    """Writes generated images into a storage bucket.

    With ``PRIVATE`` visibility the object stays behind storage security
    rules and its path is returned; ``PUBLIC`` makes it world-readable and
    returns its public URL.
    """

    def __init__(self, bucket: Any, visibility: AssetVisibility = AssetVisibility.PRIVATE) -> None:
        self.bucket = bucket
        self.visibility = visibility

    def save(self, path: str, data: bytes, content_type: str) -> str:
        """Upload ``data`` to ``path`` and return the location to hand back."""
        blob = self.bucket.blob(path)
        blob.upload_from_string(data, content_type=content_type)
        if self.visibility is AssetVisibility.PUBLIC:
            blob.make_public()
            logger.info("Uploaded %s (public)", path)
            return blob.public_url
        logger.info("Uploaded %s", path)
        return path
