"""
Anonymous client identity for Xenoform API.

Each browser gets an opaque UUID in the xenoform_client cookie on its first
request. The id keys both the in-memory view session and the saved
favorites; there are no accounts.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from xenoform.config import SESSION_COOKIE_NAME, is_production
from xenoform.observability.telemetry import counter

COOKIE_MAX_AGE = 60 * 60 * 24 * 365


def _parse_client_id(value: str | None) -> str | None:
    """Accept only canonical UUIDs so the cookie cannot carry arbitrary keys."""
    if not value:
        return None
    try:
        return str(uuid.UUID(value))
    except ValueError:
        return None


class ClientIdentityMiddleware(BaseHTTPMiddleware):
    """Attach request.state.client_id, issuing the cookie when absent or invalid."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        client_id = _parse_client_id(request.cookies.get(SESSION_COOKIE_NAME))
        issued = client_id is None
        if issued:
            client_id = str(uuid.uuid4())
            counter("api.client.issued")

        request.state.client_id = client_id
        response = await call_next(request)

        if issued:
            response.set_cookie(
                SESSION_COOKIE_NAME,
                client_id,
                max_age=COOKIE_MAX_AGE,
                httponly=True,
                samesite="lax",
                secure=is_production(),
            )
        return response


def get_client_id(request: Request) -> str:
    """
    FastAPI dependency returning the caller's client id.

    Usage:
        @router.get("/endpoint")
        def endpoint(client_id: str = Depends(get_client_id)):
            ...
    """
    return request.state.client_id
