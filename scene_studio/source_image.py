"""Fetching and validating the caller's uploaded photo."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import requests

from scene_studio.errors import ErrorKind, SceneGenerationErrorCode, raise_issue

LOGGER = logging.getLogger(__name__)

SUPPORTED_SOURCE_MIME_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png"})
LEGACY_DEFAULT_MIME_TYPE = "image/jpeg"


@dataclass(frozen=True)
class SourceImage:
    """Raw photo bytes plus the MIME type forwarded to the model."""
    data: bytes
    mime_type: str


def base_mime_type(content_type: Optional[str]) -> str:
    """Strip parameters (``; charset=...``) and lower-case a Content-Type."""
    return (content_type or "").split(";", 1)[0].strip().lower()


def normalize_mime_type(mime_type: str) -> str:
    return "image/jpeg" if mime_type == "image/jpg" else mime_type


class SourceImageFetcher:
    """Downloads a source photo over HTTP(S).

    In strict mode the response must declare a JPEG or PNG content type.
    Legacy mode forwards whatever was declared and assumes JPEG when the
    header is missing.
    """

    def __init__(
        self,
        *,
        timeout_s: float = 30.0,
        strict_mime: bool = True,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.timeout_s = timeout_s
        self.strict_mime = strict_mime
        self._session = session or requests.Session()

    def fetch(self, url: str) -> SourceImage:
        try:
            response = self._session.get(url, timeout=self.timeout_s)
        except requests.RequestException as exc:
            LOGGER.warning("Source image request failed: %s", exc)
            raise_issue(
                ErrorKind.NOT_FOUND,
                SceneGenerationErrorCode.SOURCE_FETCH_FAILED,
                "Could not fetch the original image",
                {"reason": type(exc).__name__},
            )

        if not response.ok:
            raise_issue(
                ErrorKind.NOT_FOUND,
                SceneGenerationErrorCode.SOURCE_FETCH_FAILED,
                "Could not fetch the original image",
                {"status_code": response.status_code},
            )

        mime_type = base_mime_type(response.headers.get("Content-Type"))
        if self.strict_mime:
            if mime_type not in SUPPORTED_SOURCE_MIME_TYPES:
                raise_issue(
                    ErrorKind.INVALID_ARGUMENT,
                    SceneGenerationErrorCode.SOURCE_UNSUPPORTED_TYPE,
                    "Uploaded file must be a JPEG or PNG image.",
                    {"content_type": mime_type or None},
                )
        elif not mime_type:
            mime_type = LEGACY_DEFAULT_MIME_TYPE

        mime_type = normalize_mime_type(mime_type)
        LOGGER.info("Fetched source image (%d bytes, %s)", len(response.content), mime_type)
        return SourceImage(data=response.content, mime_type=mime_type)
