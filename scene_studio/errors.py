"""Error taxonomy for scene generation.

Two layers:

* ``ErrorKind`` is what a caller sees. It mirrors the callable-function
  error codes (``invalid-argument``, ``not-found``...) and carries the HTTP
  status the service answers with.
* ``SceneGenerationErrorCode`` tags log lines, including failures that are
  suppressed from the caller (a single scene that did not render).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, NoReturn, Optional

LOGGER = logging.getLogger("scene_studio")


class ErrorKind(str, Enum):
    """Caller-facing failure kinds."""
    UNAUTHENTICATED = "unauthenticated"
    INVALID_ARGUMENT = "invalid-argument"
    PERMISSION_DENIED = "permission-denied"
    NOT_FOUND = "not-found"
    INTERNAL = "internal"

    @property
    def canonical_status(self) -> str:
        return self.value.replace("-", "_").upper()

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self]


_HTTP_STATUS = {
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.INVALID_ARGUMENT: 400,
    ErrorKind.PERMISSION_DENIED: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INTERNAL: 500,
}


class SceneGenerationErrorCode(str, Enum):
    """Unique error codes for scene generation failures."""
    CONFIG_MISSING_API_KEY = "SCENEGEN-0001"
    UNAUTHENTICATED = "SCENEGEN-1001"
    INVALID_REQUEST = "SCENEGEN-1002"
    PERMISSION_DENIED = "SCENEGEN-1003"
    UNKNOWN_SCENES = "SCENEGEN-1004"
    SOURCE_FETCH_FAILED = "SCENEGEN-2001"
    SOURCE_UNSUPPORTED_TYPE = "SCENEGEN-2002"
    IMAGE_GENERATION_FAILED = "SCENEGEN-3001"
    NO_IMAGE_IN_RESPONSE = "SCENEGEN-3002"
    IMAGE_DECODE_FAILED = "SCENEGEN-3003"
    UPLOAD_FAILED = "SCENEGEN-4001"
    RECORD_WRITE_FAILED = "SCENEGEN-4002"
    NO_IMAGES_GENERATED = "SCENEGEN-5001"
    UNEXPECTED = "SCENEGEN-9001"


@dataclass
class SceneGenerationIssue:
    """Structured error/warning payload for scene generation."""
    code: SceneGenerationErrorCode
    message: str
    context: Dict[str, Any] = field(default_factory=dict)
    fatal: bool = False


class SceneGenerationError(RuntimeError):
    """Typed failure surfaced to the caller.

    ``message`` is caller-safe; ``context`` is for logs only.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        code: Optional[SceneGenerationErrorCode] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.context = context or {}
        self.code = code

    def to_payload(self) -> Dict[str, Any]:
        """Serialize in the callable-function error shape."""
        return {"status": self.kind.canonical_status, "message": self.message}

    @classmethod
    def from_issue(cls, kind: ErrorKind, issue: SceneGenerationIssue) -> "SceneGenerationError":
        return cls(kind, issue.message, context=issue.context, code=issue.code)


def log_issue(level: int, issue: SceneGenerationIssue, exc: Optional[BaseException] = None) -> None:
    """Log issue with error code and context."""
    LOGGER.log(
        level,
        "%s | code=%s | context=%s",
        issue.message,
        issue.code.value,
        issue.context,
        exc_info=exc,
        extra={"error_code": issue.code.value, "error_context": issue.context},
    )


def raise_issue(
    kind: ErrorKind,
    code: SceneGenerationErrorCode,
    message: str,
    context: Optional[Dict[str, Any]] = None,
    *,
    level: int = logging.WARNING,
) -> NoReturn:
    """Log a fatal issue and raise it as a caller-facing error."""
    issue = SceneGenerationIssue(code=code, message=message, context=context or {}, fatal=True)
    log_issue(level, issue)
    raise SceneGenerationError.from_issue(kind, issue)
