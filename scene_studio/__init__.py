"""
Scene Studio.

Renders a caller's uploaded photo into background scenes with Gemini,
stores the results in Firebase Storage and records each generation in
Firestore.
"""

from .config import AssetVisibility, SceneSelectionMode, ServiceConfig
from .errors import ErrorKind, SceneGenerationError
from .models import GenerationOutcome, GenerationRecord, GenerationResult
from .orchestrator import SceneGenerationOrchestrator

__all__ = [
    "AssetVisibility",
    "ErrorKind",
    "GenerationOutcome",
    "GenerationRecord",
    "GenerationResult",
    "SceneGenerationError",
    "SceneGenerationOrchestrator",
    "SceneSelectionMode",
    "ServiceConfig",
]
