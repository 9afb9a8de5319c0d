"""Centralized configuration for the Xenoform backend.

Re-exports everything from xenoform.infrastructure.settings so callers can
import from one place, then adds typed constants for database, LLM,
rate-limiting, favorites, and API settings.  Environment variable overrides
use safe defaults so the app starts without extra env configuration.
"""

from __future__ import annotations

import os

from xenoform.infrastructure.settings import *  # noqa: F401, F403  re-export existing

# --- App ---
APP_VERSION: str = "1.0.0"

# --- Database ---
DB_POOL_SIZE: int = int(os.getenv("XENOFORM_DB_POOL_SIZE", "5"))
DB_POOL_TIMEOUT: float = float(os.getenv("XENOFORM_DB_POOL_TIMEOUT", "5.0"))
DB_CONNECT_TIMEOUT: float = float(os.getenv("XENOFORM_DB_CONNECT_TIMEOUT", "30.0"))
DB_TEMP_CONN_MAX: int = int(os.getenv("XENOFORM_DB_TEMP_CONN_MAX", "10"))
DB_RETRY_MAX: int = int(os.getenv("XENOFORM_DB_RETRY_MAX", "5"))
DB_RETRY_BASE_DELAY: float = float(os.getenv("XENOFORM_DB_RETRY_BASE_DELAY", "0.1"))
DB_RETRY_MAX_DELAY: float = float(os.getenv("XENOFORM_DB_RETRY_MAX_DELAY", "2.0"))
DB_RETRY_JITTER: float = float(os.getenv("XENOFORM_DB_RETRY_JITTER", "0.1"))

# --- Generation ---
ECOSYSTEM_SIZE: int = 5
ECOSYSTEM_SIZE_MAX: int = 8
PROMPT_FIELD_MAX_CHARS: int = 2000

# --- LLM ---
LLM_TIMEOUT_SECONDS: int = int(os.getenv("XENOFORM_LLM_TIMEOUT", "60"))
LLM_MAX_RETRIES: int = int(os.getenv("XENOFORM_LLM_MAX_RETRIES", "3"))
LLM_MAX_WORKERS: int = int(os.getenv("XENOFORM_LLM_MAX_WORKERS", "5"))

# --- Sessions ---
SESSION_COOKIE_NAME: str = "xenoform_client"
SESSION_TTL_SECONDS: int = int(os.getenv("XENOFORM_SESSION_TTL", "3600"))
SESSION_MAX_ENTRIES: int = 10000

# --- Favorites ---
FAVORITES_MAX_PER_CLIENT: int = 500
FAVORITE_PLACEHOLDER_IMAGE: str = os.getenv(
    "XENOFORM_PLACEHOLDER_IMAGE", "https://picsum.photos/1280/720"
)

# --- Rate Limiting ---
RATE_LIMIT_RPM: int = 60
RATE_LIMIT_RPH: int = 1000
RATE_LIMIT_MAX_IPS: int = 10000

# --- LLM Budget ---
LLM_CLIENT_DAILY_LIMIT: int = int(os.getenv("XENOFORM_CLIENT_DAILY_LIMIT", "200"))
LLM_GLOBAL_DAILY_LIMIT: int = int(os.getenv("XENOFORM_GLOBAL_DAILY_LIMIT", "5000"))

# --- CORS ---
ALLOWED_ORIGINS: list[str] = [
    origin.strip()
    for origin in os.getenv("XENOFORM_ALLOWED_ORIGINS", "").split(",")
    if origin.strip()
]
