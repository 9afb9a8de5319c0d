"""Health check endpoints for Xenoform API.

/health is the liveness probe; /health/db reports connection pool stats.
"""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, HTTPException, status

from xenoform.config import APP_VERSION, GEMINI_MODEL, IMAGEN_MODEL, get_env
from xenoform.infrastructure.database import get_pool_stats, validate_schema
from xenoform.infrastructure.llm_budget import get_daily_usage_report
from xenoform.llm.gemini import get_backend
from xenoform.observability.logging import get_logger
from xenoform.observability.telemetry import get_latency_stats

router = APIRouter(tags=["health"])
logger = get_logger(__name__)

GENERATION_STAGES = ("species", "mutation", "ecosystem", "image")


@router.get("/health")
def health_check() -> dict[str, Any]:
    """Health check endpoint.

    Reports credential readiness for Gemini (API key or Vertex project) and
    Imagen (Vertex project only), plus recent generation latencies in
    milliseconds. Makes no model call.
    """
    has_api_key = bool(get_env("GOOGLE_API_KEY"))
    has_project = bool(get_env("GOOGLE_CLOUD_PROJECT"))

    return {
        "status": "healthy",
        "service": "Xenoform API",
        "version": APP_VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
        "llm": {
            "text_ready": has_api_key or has_project,
            "image_ready": has_project,
            "text_model": GEMINI_MODEL,
            "text_backend": get_backend(),
            "image_model": IMAGEN_MODEL,
        },
        "usage": get_daily_usage_report(),
        "latency_ms": {
            stage: get_latency_stats(f"generation.{stage}.latency")
            for stage in GENERATION_STAGES
        },
    }


@router.get("/health/db")
def database_health() -> dict[str, Any]:
    """Connection pool metrics plus a schema check."""
    try:
        validate_schema()
        stats = get_pool_stats()
    except (FileNotFoundError, ValueError, sqlite3.Error) as e:
        logger.error("Database health check failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        ) from None

    return {"status": "healthy", "pool": stats}
