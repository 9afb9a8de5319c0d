"""
Translation of domain errors into HTTP responses.

Routes call raise_http_error() from an except block; the client sees a
sanitized message and the exception chain is dropped.
"""

from __future__ import annotations

from typing import NoReturn

from fastapi import HTTPException, status

from xenoform.infrastructure.llm_budget import BudgetExceededError
from xenoform.observability.telemetry import counter
from xenoform.species.generator import GenerationError
from xenoform.species.session import SessionBusyError
from xenoform.storage.favorites import FavoritesLimitError
from xenoform.utils.error_sanitizer import get_safe_error_detail

BUDGET_EXCEEDED_MESSAGE = "Daily generation limit reached. Please try again tomorrow."
SESSION_BUSY_MESSAGE = "A generation is already in progress."

_STATUS_FOR: tuple[tuple[type[Exception], int], ...] = (
    (SessionBusyError, status.HTTP_409_CONFLICT),
    (FavoritesLimitError, status.HTTP_409_CONFLICT),
    (BudgetExceededError, status.HTTP_429_TOO_MANY_REQUESTS),
    (GenerationError, status.HTTP_502_BAD_GATEWAY),
    (ValueError, status.HTTP_400_BAD_REQUEST),
)


def status_for(error: Exception) -> int:
    for error_type, code in _STATUS_FOR:
        if isinstance(error, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def raise_http_error(error: Exception, context: str | None = None) -> NoReturn:
    """
    Raise the HTTPException matching a domain error.

    Args:
        error: The caught exception
        context: Message shown for 5xx errors instead of the sanitized fallback
    """
    code = status_for(error)
    counter(f"api.error.{code}")

    if isinstance(error, SessionBusyError):
        detail = SESSION_BUSY_MESSAGE
    elif isinstance(error, BudgetExceededError):
        detail = BUDGET_EXCEEDED_MESSAGE
    else:
        detail = get_safe_error_detail(error, code, context)

    raise HTTPException(status_code=code, detail=detail) from None
