"""Unit tests for the Gemini and Imagen adapters

The SDK models are replaced with fakes; only our request shaping, error
conversion and retry wiring are exercised.
"""

from __future__ import annotations

import pytest
from google.api_core.exceptions import DeadlineExceeded, ServiceUnavailable

from xenoform.llm import gemini, imagen, retry
from xenoform.observability.telemetry import get_counters


class FakeResponse:
    def __init__(self, text: str) -> None:
        self.text = text


class FakeTextModel:
    def __init__(self, outcomes) -> None:
        self.outcomes = list(outcomes)
        self.calls = []

    def generate_content(self, prompt, generation_config=None):
        self.calls.append((prompt, generation_config))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return FakeResponse(outcome)


class FakeImage:
    def __init__(self, data: bytes) -> None:
        self._image_bytes = data


class FakeImageResponse:
    def __init__(self, images) -> None:
        self.images = images


class FakeImageModel:
    def __init__(self, images) -> None:
        self.images = images
        self.kwargs = None

    def generate_images(self, **kwargs):
        self.kwargs = kwargs
        return FakeImageResponse(self.images)


@pytest.fixture
def no_retry_sleep(monkeypatch):
    monkeypatch.setattr(retry.call_llm.retry, "sleep", lambda _: None)
    monkeypatch.setattr(imagen.generate_image_bytes.retry, "sleep", lambda _: None)


class TestCallLlm:
    def test_structured_output_config(self, monkeypatch):
        model = FakeTextModel(['{"ok": true}'])
        monkeypatch.setattr(retry, "get_gemini_model", lambda: model)

        text = retry.call_llm("prompt", counter_prefix="species", response_schema={"type": "OBJECT"})

        assert text == '{"ok": true}'
        _, config = model.calls[0]
        assert config["response_mime_type"] == "application/json"
        assert config["response_schema"] == {"type": "OBJECT"}
        assert "temperature" in config and "max_output_tokens" in config

    def test_plain_call_has_no_schema(self, monkeypatch):
        model = FakeTextModel(["hello"])
        monkeypatch.setattr(retry, "get_gemini_model", lambda: model)

        retry.call_llm("prompt")
        assert "response_schema" not in model.calls[0][1]

    def test_transient_errors_are_retried(self, monkeypatch, no_retry_sleep):
        model = FakeTextModel([ServiceUnavailable("busy"), "recovered"])
        monkeypatch.setattr(retry, "get_gemini_model", lambda: model)

        assert retry.call_llm("prompt", counter_prefix="ecosystem") == "recovered"
        assert len(model.calls) == 2
        assert get_counters("generation.ecosystem.service_unavailable")

    def test_timeouts_surface_after_retries(self, monkeypatch, no_retry_sleep):
        model = FakeTextModel([DeadlineExceeded("slow")] * 3)
        monkeypatch.setattr(retry, "get_gemini_model", lambda: model)

        with pytest.raises(TimeoutError):
            retry.call_llm("prompt")
        assert len(model.calls) == 3

    def test_other_errors_are_not_retried(self, monkeypatch):
        model = FakeTextModel([ValueError("bad request"), "never"])
        monkeypatch.setattr(retry, "get_gemini_model", lambda: model)

        with pytest.raises(ValueError):
            retry.call_llm("prompt")
        assert len(model.calls) == 1


class TestGeminiModel:
    def test_missing_credentials_raise(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_CLOUD_PROJECT", raising=False)
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        monkeypatch.setattr(gemini, "GOOGLE_CLOUD_PROJECT", None)
        gemini.clear_model_cache()

        with pytest.raises(gemini.GeminiInitializationError):
            gemini.get_gemini_model()
        assert gemini.get_backend() is None

    def test_vertex_unavailable_without_project(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_CLOUD_PROJECT", raising=False)
        monkeypatch.setattr(gemini, "GOOGLE_CLOUD_PROJECT", None)
        assert gemini.init_vertexai() is False


class TestImagen:
    def test_to_data_url(self):
        assert imagen.to_data_url(b"\x00\x01") == "data:image/jpeg;base64,AAE="

    def test_generate_image_bytes_requests_one_landscape_jpeg(self, monkeypatch):
        model = FakeImageModel([FakeImage(b"jpeg-bytes")])
        monkeypatch.setattr(imagen, "get_image_model", lambda: model)

        assert imagen.generate_image_bytes("a creature") == b"jpeg-bytes"
        assert model.kwargs == {
            "prompt": "a creature",
            "number_of_images": 1,
            "aspect_ratio": "16:9",
            "output_mime_type": "image/jpeg",
        }

    def test_no_images_raises(self, monkeypatch):
        monkeypatch.setattr(imagen, "get_image_model", lambda: FakeImageModel([]))

        with pytest.raises(imagen.ImageGenerationError):
            imagen.generate_image_bytes("filtered creature")

    def test_requires_vertex(self, monkeypatch):
        monkeypatch.setattr(imagen, "init_vertexai", lambda: False)
        imagen.clear_image_model_cache()

        with pytest.raises(imagen.ImageGenerationError, match="Vertex AI"):
            imagen.get_image_model()
        imagen.clear_image_model_cache()


class TestSdkSurface:
    def test_vertex_modules_available(self):
        from vertexai.generative_models import GenerativeModel
        from vertexai.preview.vision_models import ImageGenerationModel

        assert callable(GenerativeModel)
        assert hasattr(ImageGenerationModel, "from_pretrained")
