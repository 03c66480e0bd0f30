"""
Google Secret Manager access for the Gemini credential.

The ``GEMINI_API_KEY`` environment variable wins when set (secret bindings
and local runs expose the key that way); otherwise the key is read from
Secret Manager in the current project.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Optional

from google.cloud import secretmanager

logger = logging.getLogger(__name__)

GEMINI_API_KEY_ENV = "GEMINI_API_KEY"


class SecretManagerError(Exception):
    """Raised when secret access fails."""
    pass


@lru_cache(maxsize=32)
def get_secret(
    secret_id: str,
    project_id: Optional[str] = None,
    version: str = "latest",
) -> str:
    """
    Fetch secret from Google Secret Manager.

    Secrets are cached in memory for the lifetime of the process to avoid
    repeated API calls.

    Raises:
        SecretManagerError: If the project is unknown or the secret cannot be read
    """
    if project_id is None:
        project_id = os.getenv("GCP_PROJECT") or os.getenv("GOOGLE_CLOUD_PROJECT")
        if not project_id:
            raise SecretManagerError(
                "Project ID not provided and GCP_PROJECT/GOOGLE_CLOUD_PROJECT "
                "environment variable not set"
            )

    try:
        client = secretmanager.SecretManagerServiceClient()
        name = f"projects/{project_id}/secrets/{secret_id}/versions/{version}"
        response = client.access_secret_version(request={"name": name})
        secret_value = response.payload.data.decode("UTF-8")
    except Exception as e:
        raise SecretManagerError(f"Failed to access secret '{secret_id}': {e}") from e

    logger.info("Fetched secret: %s", secret_id)
    return secret_value


def get_secret_or_env(secret_id: str, env_var: str) -> Optional[str]:
    """Get a secret from an environment variable, falling back to Secret Manager."""
    env_value = (os.getenv(env_var) or "").strip()
    if env_value:
        return env_value
    try:
        return get_secret(secret_id).strip() or None
    except SecretManagerError as e:
        logger.warning("Secret '%s' unavailable and %s unset: %s", secret_id, env_var, e)
        return None


def get_gemini_api_key(secret_id: str = "gemini-api-key") -> Optional[str]:
    return get_secret_or_env(secret_id, GEMINI_API_KEY_ENV)
