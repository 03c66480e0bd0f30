"""Caller identity from Firebase ID tokens."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from firebase_admin import auth

from scene_studio.firebase_app import init_firebase

logger = logging.getLogger(__name__)


def verify_firebase_token(token: str) -> Dict[str, Any]:
    return auth.verify_id_token(token, app=init_firebase())


def identity_from_authorization(
    header: Optional[str],
    verify: Callable[[str], Dict[str, Any]] = verify_firebase_token,
) -> Optional[str]:
    """Return the uid behind an ``Authorization: Bearer`` header.

    Missing, malformed, expired or revoked tokens yield ``None``; the
    orchestrator turns that into an unauthenticated failure.
    """
    if not header or not header.startswith("Bearer "):
        return None
    token = header.split(" ", 1)[1].strip()
    if not token:
        return None
    try:
        decoded = verify(token)
    except (auth.InvalidIdTokenError, ValueError) as exc:
        logger.info("Rejected ID token: %s", type(exc).__name__)
        return None
    uid = decoded.get("uid")
    return uid or None
