"""Shared LLM call with retry logic.

Provides a single retry-decorated function for calling the Gemini model.
The species generator uses it for single species, mutations and ecosystems,
and wraps it in its own try/except to turn final failures into GenerationError.

Retries up to LLM_MAX_RETRIES times with exponential backoff on transport
errors (DeadlineExceeded, ServiceUnavailable, ResourceExhausted,
InternalServerError are converted to retryable builtins first).
"""

from __future__ import annotations

from typing import Any

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from xenoform.config import LLM_MAX_RETRIES, LLM_TIMEOUT_SECONDS
from xenoform.infrastructure.settings import GEMINI_MAX_TOKENS, GEMINI_TEMPERATURE
from xenoform.llm.gemini import get_gemini_model
from xenoform.observability.logging import get_logger
from xenoform.observability.telemetry import counter

logger = get_logger(__name__)


@retry(
    stop=stop_after_attempt(LLM_MAX_RETRIES),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((TimeoutError, ConnectionError, OSError)),
    reraise=True,
)
def call_llm(
    prompt: str,
    counter_prefix: str = "llm",
    response_schema: dict[str, Any] | None = None,
) -> str:
    """Call the text model with retry and SDK exception conversion.

    Args:
        prompt: The prompt to send to the model.
        counter_prefix: Telemetry counter prefix (e.g., "species", "ecosystem").
        response_schema: Optional JSON schema for structured output. When
            provided, the model is asked for application/json constrained to it.

    Returns:
        The model's response text.

    Raises:
        TimeoutError: On deadline exceeded (retryable).
        ConnectionError: On service unavailable or internal error (retryable).
        OSError: On resource exhausted / rate limited (retryable).
        Exception: On other errors (not retried, caller handles).
    """
    from google.api_core.exceptions import (
        DeadlineExceeded,
        InternalServerError,
        ResourceExhausted,
        ServiceUnavailable,
    )

    model = get_gemini_model()

    generation_config: dict[str, Any] = {
        "temperature": GEMINI_TEMPERATURE,
        "max_output_tokens": GEMINI_MAX_TOKENS,
    }
    if response_schema is not None:
        generation_config["response_mime_type"] = "application/json"
        generation_config["response_schema"] = response_schema

    try:
        response = model.generate_content(prompt, generation_config=generation_config)
        return response.text
    except DeadlineExceeded as e:
        counter(f"generation.{counter_prefix}.timeout")
        logger.warning("LLM call timed out after %ds", LLM_TIMEOUT_SECONDS)
        raise TimeoutError(f"LLM call timed out: {e}") from e
    except ServiceUnavailable as e:
        counter(f"generation.{counter_prefix}.service_unavailable")
        logger.warning("LLM service unavailable, will retry: %s", e)
        raise ConnectionError(f"LLM service unavailable: {e}") from e
    except ResourceExhausted as e:
        counter(f"generation.{counter_prefix}.rate_limited")
        logger.warning("LLM rate limited (429), will retry: %s", e)
        raise OSError(f"LLM rate limited: {e}") from e
    except InternalServerError as e:
        counter(f"generation.{counter_prefix}.internal_error")
        logger.warning("LLM internal error (500), will retry: %s", e)
        raise ConnectionError(f"LLM internal error: {e}") from e
    except Exception as e:
        logger.error("LLM call failed: %s", e)
        raise
