"""FastAPI server for Xenoform"""

from __future__ import annotations

import sqlite3

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from xenoform.api.middleware.client_identity import ClientIdentityMiddleware
from xenoform.api.middleware.rate_limit import RateLimitMiddleware
from xenoform.api.middleware.security_headers import SecurityHeadersMiddleware
from xenoform.api.routes.favorites import router as favorites_router
from xenoform.api.routes.generate import router as generate_router
from xenoform.api.routes.health import router as health_router
from xenoform.api.routes.session import router as session_router
from xenoform.api.routes.ui import router as ui_router
from xenoform.config import (
    ALLOWED_ORIGINS,
    APP_VERSION,
    RATE_LIMIT_RPH,
    RATE_LIMIT_RPM,
    is_development,
)
from xenoform.infrastructure.database import init_database
from xenoform.observability.logging import get_logger
from xenoform.observability.telemetry import counter, log_event

# Load environment variables from .env file
load_dotenv()

app = FastAPI(title="Xenoform API", version=APP_VERSION)

logger = get_logger(__name__)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Custom validation error handler that prevents leaking internal validation logic.
    """
    logger.warning("Validation error on %s: %s", request.url.path, exc.errors())
    counter("api.validation_errors")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Invalid request format. Please check your request and try again.",
            "error_count": len(exc.errors()),
            "invalid_fields": [str(err["loc"][-1]) for err in exc.errors()],
        },
    )


origins = list(ALLOWED_ORIGINS)
if is_development():
    origins.extend(["http://localhost:8000", "http://127.0.0.1:8000"])

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Request-ID"],
)

app.add_middleware(
    RateLimitMiddleware,
    requests_per_minute=RATE_LIMIT_RPM,
    requests_per_hour=RATE_LIMIT_RPH,
)

app.add_middleware(SecurityHeadersMiddleware)

# Outermost, so every layer (and the 429 path) sees a client id
app.add_middleware(ClientIdentityMiddleware)

try:
    logger.info("Initializing database schema...")
    init_database()
    logger.info("Database initialization complete")
except sqlite3.OperationalError as e:
    logger.critical("Database schema error: %s", e)
    raise RuntimeError(f"Database initialization failed: {e}") from e
except OSError as e:
    logger.critical("Database file could not be created: %s", e)
    raise RuntimeError(f"Database initialization failed: {e}") from e

app.include_router(health_router)
app.include_router(ui_router)
app.include_router(session_router)
app.include_router(generate_router)
app.include_router(favorites_router)

log_event("api.startup", service="xenoform", version=APP_VERSION)
