"""
Error message sanitization utility.

Generation failures carry provider messages (project ids, model paths,
quota details) that must not reach the browser. Routes pass exceptions
through here before building an HTTPException.
"""

from __future__ import annotations

import re

from xenoform.observability.logging import get_logger

logger = get_logger(__name__)

# Patterns that might leak sensitive information
SENSITIVE_PATTERNS = [
    # File paths
    r"/[^\s]+\.py",
    r"[A-Za-z]:\\[^\s]+",
    # Stack trace indicators
    r"Traceback \(most recent call last\)",
    r"File \".*\"",
    r"line \d+",
    # Database errors
    r"sqlite3?\.",
    r"UNIQUE constraint",
    r"no such table",
    # Provider resource paths
    r"projects/[^\s]+",
    r"publishers/google/models",
    # API keys / secrets
    r"[A-Za-z0-9_-]{20,}",
    r"Bearer [A-Za-z0-9._-]+",
    r"AIza[0-9A-Za-z_-]+",
    # Internal module names
    r"xenoform\.[a-z_.]+",
]

GENERIC_MESSAGES = {
    400: "Invalid request. Please check your input and try again.",
    404: "Resource not found.",
    409: "Request conflicts with the current state.",
    422: "Invalid data format.",
    429: "Too many requests. Please try again later.",
    500: "An internal error occurred. Please try again later.",
    502: "The generation service failed. Please try again.",
    503: "Service temporarily unavailable.",
}


def sanitize_error_message(
    message: str,
    status_code: int = 500,
    allow_short_messages: bool = True,
) -> str:
    """
    Sanitize an error message to prevent information leakage.

    Args:
        message: The original error message
        status_code: HTTP status code (used to select generic fallback)
        allow_short_messages: Pass short, plain 4xx messages through unchanged

    Returns:
        Sanitized error message safe for client consumption
    """
    fallback = GENERIC_MESSAGES.get(status_code, "An error occurred.")
    if not message:
        return fallback

    for pattern in SENSITIVE_PATTERNS:
        if re.search(pattern, message, re.IGNORECASE):
            logger.warning("Sanitized sensitive error pattern: %s", pattern)
            return fallback

    if (
        400 <= status_code < 500
        and allow_short_messages
        and len(message) < 100
        and not any(c in message for c in ["{", "}", "[", "]", "\n"])
    ):
        return message

    return fallback


def get_safe_error_detail(
    error: Exception,
    status_code: int = 500,
    context: str | None = None,
) -> str:
    """
    Get a safe error detail string for HTTP responses.

    Args:
        error: The exception that occurred
        status_code: HTTP status code
        context: Message used verbatim for 5xx responses

    Returns:
        Safe error message for client
    """
    logger.error("Error (status=%d): %s - %s", status_code, type(error).__name__, str(error))

    if context and status_code >= 500:
        return context

    return sanitize_error_message(str(error), status_code)
