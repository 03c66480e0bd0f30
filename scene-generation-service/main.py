import os
import sys
import threading
from pathlib import Path

from flask import Flask, jsonify, request

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from scene_studio.auth import identity_from_authorization
from scene_studio.config import ServiceConfig
from scene_studio.errors import ErrorKind, SceneGenerationError
from scene_studio.logging_config import init_logging
from scene_studio.orchestrator import SceneGenerationOrchestrator

init_logging()
app = Flask(__name__)

_SECURITY_HEADERS = {
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'; base-uri 'none'",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "no-referrer",
}

_ORCHESTRATOR = None
_ORCHESTRATOR_LOCK = threading.Lock()


def _parse_allowed_origins() -> set[str]:
    raw_origins = os.getenv("CORS_ALLOWED_ORIGINS", "")
    if not raw_origins:
        return set()
    return {origin.strip() for origin in raw_origins.split(",") if origin.strip()}


def _allowed_origin(origin: str, allowed: set[str]) -> str | None:
    if not origin or not allowed:
        return None
    if "*" in allowed:
        return "*"
    if origin in allowed:
        return origin
    return None


@app.after_request
def _apply_security_headers(response):  # type: ignore[override]
    for header, value in _SECURITY_HEADERS.items():
        response.headers.setdefault(header, value)

    allow_origin = _allowed_origin(request.headers.get("Origin", ""), _parse_allowed_origins())
    if allow_origin:
        response.headers["Access-Control-Allow-Origin"] = allow_origin
        response.headers.setdefault("Access-Control-Allow-Methods", "POST, OPTIONS")
        request_headers = request.headers.get("Access-Control-Request-Headers")
        if request_headers:
            response.headers.setdefault("Access-Control-Allow-Headers", request_headers)
        if allow_origin != "*":
            response.headers.setdefault("Vary", "Origin")
    return response


def get_orchestrator() -> SceneGenerationOrchestrator:
    """Build the orchestrator on first use and reuse it for the process lifetime."""
    global _ORCHESTRATOR
    with _ORCHESTRATOR_LOCK:
        if _ORCHESTRATOR is None:
            _ORCHESTRATOR = SceneGenerationOrchestrator.from_firebase(ServiceConfig.from_env())
        return _ORCHESTRATOR


def _error_response(error: SceneGenerationError):
    return jsonify({"error": error.to_payload()}), error.kind.http_status


@app.get("/healthz")
def health_check():
    return jsonify({"status": "ok"})


@app.post("/generateAIScenes")
def generate_ai_scenes():
    body = request.get_json(silent=True)
    if not isinstance(body, dict) or not isinstance(body.get("data"), dict):
        app.logger.warning("Rejected request without a JSON 'data' object")
        return _error_response(
            SceneGenerationError(
                ErrorKind.INVALID_ARGUMENT,
                "Request body must be a JSON object with a 'data' field",
            )
        )

    try:
        identity = identity_from_authorization(request.headers.get("Authorization"))
        outcome = get_orchestrator().generate(body["data"], identity)
    except SceneGenerationError as exc:
        return _error_response(exc)
    except Exception:
        app.logger.exception("Unhandled error while generating scenes")
        return _error_response(
            SceneGenerationError(ErrorKind.INTERNAL, "Failed to generate images. Please try again.")
        )

    return jsonify({"result": outcome.to_response()})


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "8080")))
