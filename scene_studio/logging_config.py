"""Shared logging configuration utilities."""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from scene_studio.config.env import parse_bool_env


DEFAULT_JSON_ENV_KEYS = ("LOG_JSON", "LOG_FORMAT")

# (record attribute, env fallback)
_CONTEXT_FIELDS = (
    ("uid", "UID"),
    ("generation_id", "GENERATION_ID"),
    ("scene_id", "SCENE_ID"),
    ("request_id", "REQUEST_ID"),
)


def _should_use_json(env: dict[str, str]) -> bool:
    for key in DEFAULT_JSON_ENV_KEYS:
        if key in env:
            parsed = parse_bool_env(env.get(key))
            if parsed is not None:
                return parsed
    return True


def _resolve_context_value(record: logging.LogRecord, key: str, env_key: str) -> str:
    if hasattr(record, key):
        value = getattr(record, key)
        if value is not None:
            return str(value)
    env_value = os.getenv(env_key)
    return env_value if env_value is not None else ""


class JsonLogFormatter(logging.Formatter):
    """Formats logs as structured JSON with standard fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.module,
        }
        for key, env_key in _CONTEXT_FIELDS:
            payload[key] = _resolve_context_value(record, key, env_key)
        payload["message"] = record.getMessage()

        error_code = getattr(record, "error_code", None)
        if error_code is not None:
            payload["error_code"] = self._serialize_enum(error_code)
        error_context = getattr(record, "error_context", None)
        if error_context is not None:
            payload["error_context"] = error_context
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)

    @staticmethod
    def _serialize_enum(value: Any) -> Any:
        if isinstance(value, Enum):
            return value.value
        return value


class PlainTextFormatter(logging.Formatter):
    """Human-friendly formatter for local development."""

    def format(self, record: logging.LogRecord) -> str:
        for key, env_key in _CONTEXT_FIELDS:
            setattr(record, key, _resolve_context_value(record, key, env_key))
        return super().format(record)


def init_logging(
    *,
    level: Optional[int] = None,
    json_enabled: Optional[bool] = None,
    stream: Optional[Any] = None,
) -> None:
    """Initialize shared logging configuration."""

    if level is None:
        level_name = os.getenv("LOG_LEVEL", "INFO").upper()
        level = logging.getLevelName(level_name)
        if isinstance(level, str):
            level = logging.INFO

    if json_enabled is None:
        json_enabled = _should_use_json(dict(os.environ))

    handler_stream = stream if stream is not None else sys.stdout
    handler = logging.StreamHandler(handler_stream)
    if json_enabled:
        handler.setFormatter(JsonLogFormatter())
    else:
        handler.setFormatter(
            PlainTextFormatter(
                "%(asctime)s %(levelname)s %(module)s "
                "[uid=%(uid)s generation_id=%(generation_id)s scene_id=%(scene_id)s "
                "request_id=%(request_id)s] %(message)s"
            )
        )

    logging.basicConfig(level=level, handlers=[handler], force=True)
