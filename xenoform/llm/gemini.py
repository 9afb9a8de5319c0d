"""
Gemini Model Manager - Singleton for shared model instance.

Every text generation call (single species, mutation, ecosystem) goes through
one cached GenerativeModel so the SDK is initialized once per process.

Supports two backends:
  1. Vertex AI SDK (production): uses GOOGLE_CLOUD_PROJECT + service account
  2. google-generativeai (local dev): uses GOOGLE_API_KEY
"""

from __future__ import annotations

import os
from functools import lru_cache

from xenoform.infrastructure.settings import GEMINI_LOCATION, GEMINI_MODEL, GOOGLE_CLOUD_PROJECT
from xenoform.observability.logging import get_logger

logger = get_logger(__name__)

# Backend chosen by the last initialization, reported by /health
_backend: str | None = None  # "vertexai" or "genai"


class GeminiInitializationError(RuntimeError):
    """Raised when Gemini model cannot be initialized."""


def get_backend() -> str | None:
    """Return the backend chosen by the last successful initialization."""
    return _backend


def init_vertexai() -> bool:
    """
    Initialize the Vertex AI SDK if it is installed and a project is configured.

    Returns:
        True when Vertex AI is ready to use, False when it is unavailable.

    Raises:
        GeminiInitializationError: If vertexai.init() itself fails
    """
    # Read env vars fresh (settings may be stale if imported before dotenv)
    project = os.getenv("GOOGLE_CLOUD_PROJECT") or GOOGLE_CLOUD_PROJECT
    location = os.getenv("GEMINI_LOCATION", "") or GEMINI_LOCATION or "us-central1"

    if not project:
        return False

    try:
        import vertexai
    except ImportError:
        logger.info("Vertex AI SDK not installed")
        return False

    try:
        vertexai.init(project=project, location=location)
    except Exception as e:
        logger.error("Failed to initialize Vertex AI: %s", e)
        raise GeminiInitializationError(f"Failed to initialize Vertex AI: {e}") from e

    logger.info("Initialized Vertex AI: project=%s, location=%s", project, location)
    return True


@lru_cache(maxsize=1)
def get_gemini_model():
    """
    Get or create the shared Gemini model instance.

    Uses @lru_cache for a thread-safe singleton. Tries Vertex AI first when a
    project is configured, then google-generativeai with GOOGLE_API_KEY.

    Returns:
        GenerativeModel: Shared Gemini model

    Raises:
        GeminiInitializationError: If model cannot be initialized
    """
    global _backend

    if init_vertexai():
        from vertexai.generative_models import GenerativeModel

        model = GenerativeModel(GEMINI_MODEL)
        _backend = "vertexai"
        logger.info("Initialized Gemini model (Vertex AI): model=%s", GEMINI_MODEL)
        return model

    api_key = os.getenv("GOOGLE_API_KEY")
    if not api_key:
        raise GeminiInitializationError(
            "Neither GOOGLE_CLOUD_PROJECT nor GOOGLE_API_KEY is set. "
            "Configure Vertex AI or provide an API key."
        )

    try:
        import google.generativeai as genai
    except ImportError as e:
        raise GeminiInitializationError(
            "No Gemini SDK available. Install google-cloud-aiplatform or google-generativeai."
        ) from e

    try:
        genai.configure(api_key=api_key)
        model = genai.GenerativeModel(GEMINI_MODEL)
    except Exception as e:
        logger.error("Failed to initialize Gemini model: %s", e)
        raise GeminiInitializationError(f"Failed to initialize Gemini: {e}") from e

    _backend = "genai"
    logger.info("Initialized Gemini model (google-generativeai): model=%s", GEMINI_MODEL)
    return model


def clear_model_cache() -> None:
    """
    Clear the cached model instance.

    Useful for testing or when reconfiguration is needed.
    """
    global _backend

    get_gemini_model.cache_clear()
    _backend = None
    logger.info("Cleared Gemini model cache")
