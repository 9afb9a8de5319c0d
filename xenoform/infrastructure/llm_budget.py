"""
Generation budget tracking (in-memory).

Tracks model calls per client and globally so a single browser cannot run up
the Gemini/Imagen bill. Uses TTLCache, so counts reset on restart and after
24 hours, which is enough for abuse prevention.

Call weights: a species costs two calls (text + image), an ecosystem costs
one text call plus one image per member.
"""

from __future__ import annotations

from typing import NamedTuple

from cachetools import TTLCache

from xenoform.config import LLM_CLIENT_DAILY_LIMIT, LLM_GLOBAL_DAILY_LIMIT
from xenoform.observability.logging import get_logger
from xenoform.observability.telemetry import counter, log_event

logger = get_logger(__name__)

# Rough per-call cost (USD) for monitoring only
COST_ESTIMATES = {
    "species": 0.01,
    "mutation": 0.01,
    "ecosystem": 0.03,
    "image": 0.04,
}

_DAY_SECONDS = 86400
_client_calls: TTLCache[str, int] = TTLCache(maxsize=10000, ttl=_DAY_SECONDS)
_global_counter: TTLCache[str, int] = TTLCache(maxsize=1, ttl=_DAY_SECONDS)
_global_cost: TTLCache[str, float] = TTLCache(maxsize=1, ttl=_DAY_SECONDS)
_GLOBAL_KEY = "__global__"


class BudgetExceededError(RuntimeError):
    """Raised when a client or the whole service is out of generation budget."""


class BudgetStatus(NamedTuple):
    """Current budget status for a client."""

    client_calls_today: int
    client_limit: int
    global_calls_today: int
    global_limit: int
    is_allowed: bool
    reason: str | None


def check_budget(
    client_id: str,
    calls: int = 1,
    client_limit: int | None = None,
    global_limit: int | None = None,
) -> BudgetStatus:
    """
    Check whether client can make `calls` more model calls today.

    Limits default to the module config so tests can override them.
    """
    client_limit = LLM_CLIENT_DAILY_LIMIT if client_limit is None else client_limit
    global_limit = LLM_GLOBAL_DAILY_LIMIT if global_limit is None else global_limit

    client_calls = _client_calls.get(client_id, 0)
    global_calls = _global_counter.get(_GLOBAL_KEY, 0)

    reason = None
    if client_calls + calls > client_limit:
        reason = f"Client daily limit exceeded ({client_calls}/{client_limit})"
    elif global_calls + calls > global_limit:
        reason = f"Global daily limit exceeded ({global_calls}/{global_limit})"

    return BudgetStatus(
        client_calls_today=client_calls,
        client_limit=client_limit,
        global_calls_today=global_calls,
        global_limit=global_limit,
        is_allowed=reason is None,
        reason=reason,
    )


def require_budget(client_id: str, calls: int = 1) -> None:
    """
    Raise BudgetExceededError unless `calls` more calls are allowed.

    Side Effects:
        - Increments llm.budget.rejected counter on rejection
    """
    status = check_budget(client_id, calls)
    if not status.is_allowed:
        counter("llm.budget.rejected")
        log_event("llm.budget.rejected", reason=status.reason)
        raise BudgetExceededError(status.reason or "Generation budget exceeded")


def record_llm_call(client_id: str, call_type: str = "species") -> None:
    """
    Record a model call for budget tracking.

    Args:
        client_id: Client that made the call
        call_type: species, mutation, ecosystem or image
    """
    _client_calls[client_id] = _client_calls.get(client_id, 0) + 1
    _global_counter[_GLOBAL_KEY] = _global_counter.get(_GLOBAL_KEY, 0) + 1
    _global_cost[_GLOBAL_KEY] = _global_cost.get(_GLOBAL_KEY, 0.0) + COST_ESTIMATES.get(
        call_type, 0.0
    )

    counter(f"llm.budget.call.{call_type}")
    logger.debug("Recorded LLM call: client=%s, type=%s", client_id, call_type)


def get_daily_usage_report() -> dict[str, float | int]:
    """Aggregate usage for the health endpoint. Contains no client ids."""
    return {
        "global_calls_today": _global_counter.get(_GLOBAL_KEY, 0),
        "global_limit": LLM_GLOBAL_DAILY_LIMIT,
        "active_clients": len(_client_calls),
        "estimated_cost_usd": round(_global_cost.get(_GLOBAL_KEY, 0.0), 2),
    }


def reset_budget() -> None:
    """Clear all counters (used by tests)."""
    _client_calls.clear()
    _global_counter.clear()
    _global_cost.clear()
