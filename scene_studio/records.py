"""Firestore persistence of generation records."""

from __future__ import annotations

import logging
from typing import Any

from google.cloud import firestore

from scene_studio.models import GenerationRecord

logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"
GENERATIONS_COLLECTION = "generations"


class GenerationRecordStore:
    """Creates one document per generation under ``users/{uid}/generations``."""

    def __init__(self, db: Any) -> None:
        self.db = db

    def document(self, uid: str, generation_id: str):
        return (
            self.db.collection(USERS_COLLECTION)
            .document(uid)
            .collection(GENERATIONS_COLLECTION)
            .document(generation_id)
        )

    def create(self, uid: str, record: GenerationRecord) -> None:
        """Create the record; fails if the document already exists."""
        doc_ref = self.document(uid, record.generation_id)
        doc_ref.create(record.to_document(created_at=firestore.SERVER_TIMESTAMP))
        logger.info(
            "Generation %s completed with %d images",
            record.generation_id,
            len(record.images),
        )
