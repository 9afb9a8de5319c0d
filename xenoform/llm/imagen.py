"""
Imagen adapter - renders one illustration per species.

Image generation is only exposed through the Vertex AI SDK, so this adapter
requires GOOGLE_CLOUD_PROJECT even when text generation runs on an API key.
"""

from __future__ import annotations

import base64
from functools import lru_cache

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from xenoform.config import LLM_MAX_RETRIES
from xenoform.infrastructure.settings import IMAGEN_ASPECT_RATIO, IMAGEN_MIME_TYPE, IMAGEN_MODEL
from xenoform.llm.gemini import init_vertexai
from xenoform.observability.logging import get_logger
from xenoform.observability.telemetry import counter

logger = get_logger(__name__)


class ImageGenerationError(RuntimeError):
    """Raised when the image model is unavailable or returns no image."""


@lru_cache(maxsize=1)
def get_image_model():
    """
    Get or create the shared Imagen model instance.

    Raises:
        ImageGenerationError: If Vertex AI is not configured or not installed
    """
    if not init_vertexai():
        raise ImageGenerationError(
            "Image generation requires Vertex AI. "
            "Install google-cloud-aiplatform and set GOOGLE_CLOUD_PROJECT."
        )

    from vertexai.preview.vision_models import ImageGenerationModel

    model = ImageGenerationModel.from_pretrained(IMAGEN_MODEL)
    logger.info("Initialized Imagen model: model=%s", IMAGEN_MODEL)
    return model


def to_data_url(image_bytes: bytes, mime_type: str = IMAGEN_MIME_TYPE) -> str:
    """Encode raw image bytes as an inline data URL."""
    encoded = base64.b64encode(image_bytes).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


@retry(
    stop=stop_after_attempt(LLM_MAX_RETRIES),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((TimeoutError, ConnectionError)),
    reraise=True,
)
def generate_image_bytes(prompt: str) -> bytes:
    """
    Request a single image for prompt and return its raw bytes.

    Raises:
        TimeoutError / ConnectionError: Transient failures (retried)
        ImageGenerationError: Model unavailable or no image in the response
    """
    from google.api_core.exceptions import DeadlineExceeded, ServiceUnavailable

    model = get_image_model()

    try:
        response = model.generate_images(
            prompt=prompt,
            number_of_images=1,
            aspect_ratio=IMAGEN_ASPECT_RATIO,
            output_mime_type=IMAGEN_MIME_TYPE,
        )
    except DeadlineExceeded as e:
        counter("generation.image.timeout")
        raise TimeoutError(f"Image generation timed out: {e}") from e
    except ServiceUnavailable as e:
        counter("generation.image.service_unavailable")
        raise ConnectionError(f"Image service unavailable: {e}") from e

    images = list(response.images or [])
    if not images:
        # Imagen returns an empty list when the safety filter drops the image
        counter("generation.image.empty")
        raise ImageGenerationError("Image model returned no images")

    return images[0]._image_bytes


def clear_image_model_cache() -> None:
    """Clear the cached Imagen model (tests and reconfiguration)."""
    get_image_model.cache_clear()
