"""Process-wide Firebase Admin handles.

The Firebase app is initialized once, before the first request is served,
and its storage bucket and Firestore client are reused read-only by every
invocation afterwards.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Optional

import firebase_admin
from firebase_admin import credentials, firestore, storage

logger = logging.getLogger(__name__)

_FIREBASE_APP: Optional[firebase_admin.App] = None
_INIT_LOCK = threading.Lock()


def _resolve_credentials() -> Any:
    service_account_json = os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON")
    service_account_path = os.getenv("FIREBASE_SERVICE_ACCOUNT_PATH")

    if service_account_json:
        try:
            service_account_payload = json.loads(service_account_json)
        except json.JSONDecodeError as exc:
            raise ValueError("FIREBASE_SERVICE_ACCOUNT_JSON is not valid JSON") from exc
        return credentials.Certificate(service_account_payload)
    if service_account_path:
        path = Path(service_account_path).expanduser()
        if not path.exists():
            raise FileNotFoundError(f"FIREBASE_SERVICE_ACCOUNT_PATH not found: {path}")
        return credentials.Certificate(str(path))
    return credentials.ApplicationDefault()


def init_firebase(bucket_name: Optional[str] = None) -> firebase_admin.App:
    """Initialize the Firebase app singleton."""
    global _FIREBASE_APP
    with _INIT_LOCK:
        if _FIREBASE_APP is not None:
            return _FIREBASE_APP

        bucket_name = bucket_name or os.getenv("FIREBASE_STORAGE_BUCKET")
        options = {"storageBucket": bucket_name} if bucket_name else None
        _FIREBASE_APP = firebase_admin.initialize_app(_resolve_credentials(), options)
        logger.info("Initialized Firebase app (storage bucket: %s)", bucket_name or "default")
        return _FIREBASE_APP


def get_storage_bucket(bucket_name: Optional[str] = None):
    """Storage bucket of the shared app."""
    app = init_firebase(bucket_name)
    return storage.bucket(bucket_name, app=app)


def get_firestore_client():
    """Firestore client of the shared app."""
    return firestore.client(app=init_firebase())
