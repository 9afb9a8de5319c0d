"""Unit tests for error message sanitization"""

from __future__ import annotations

import pytest

from xenoform.utils.error_sanitizer import (
    GENERIC_MESSAGES,
    get_safe_error_detail,
    sanitize_error_message,
)


@pytest.mark.parametrize(
    "message",
    [
        'File "/app/xenoform/llm/retry.py", line 42',
        "sqlite3.OperationalError: database is locked",
        "403 Permission denied on projects/my-proj-123/locations/us-central1",
        "API key AIzaSyD-abcdefghijklmnop not valid",
        "xenoform.species.generator failed",
    ],
)
def test_sensitive_messages_replaced(message):
    assert sanitize_error_message(message, 502) == GENERIC_MESSAGES[502]


def test_short_client_errors_pass_through():
    assert sanitize_error_message("Favorites limit reached (500)", 409) == (
        "Favorites limit reached (500)"
    )


def test_server_errors_never_pass_through():
    assert sanitize_error_message("harmless", 500) == GENERIC_MESSAGES[500]


def test_empty_message_uses_generic():
    assert sanitize_error_message("", 404) == GENERIC_MESSAGES[404]


def test_safe_detail_prefers_context_for_server_errors():
    detail = get_safe_error_detail(RuntimeError("projects/x leaked"), 502, "Failed.")
    assert detail == "Failed."
