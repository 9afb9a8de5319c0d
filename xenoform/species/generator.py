"""
Species Generator - the three calls to the generative model.

1. generate_species: one species, optionally a mutation of a previous one
2. generate_ecosystem: an interconnected set of species
3. generate_species_image: an illustration, returned as a data URL

Text calls use the structured-output schemas in xenoform.species.schema and
validate the JSON with Pydantic. Every final failure surfaces as
GenerationError so callers have one exception to handle.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ValidationError

from xenoform.config import ECOSYSTEM_SIZE, ECOSYSTEM_SIZE_MAX
from xenoform.infrastructure.settings import GEMINI_MODEL, IMAGEN_MODEL
from xenoform.llm.imagen import generate_image_bytes, to_data_url
from xenoform.llm.retry import call_llm
from xenoform.observability.logging import get_logger
from xenoform.observability.telemetry import counter, log_event, time_block
from xenoform.species.models import Species
from xenoform.species.prompts import (
    build_ecosystem_prompt,
    build_image_prompt,
    build_species_prompt,
)
from xenoform.species.schema import ECOSYSTEM_SCHEMA, SPECIES_SCHEMA

logger = get_logger(__name__)

TextFn = Callable[..., str]
ImageFn = Callable[[str], bytes]


class GenerationError(RuntimeError):
    """Raised when the model call fails or its output cannot be used."""

    def __init__(self, message: str, stage: str = "species"):
        super().__init__(message)
        self.stage = stage


class EcosystemSchema(BaseModel):
    """Schema for ecosystem response validation."""

    ecosystem: list[Species]


def _strip_code_fence(text: str) -> str:
    json_text = text.strip()
    if json_text.startswith("```"):
        json_text = re.sub(r"^```(?:json)?\s*", "", json_text)
        json_text = re.sub(r"\s*```$", "", json_text)
    return json_text


def parse_json_response(response_text: str, stage: str = "species") -> Any:
    """
    Parse model output into a JSON value.

    Structured output should already be bare JSON; code fences are stripped
    for models that wrap it anyway.

    Raises:
        GenerationError: If the text is empty or not valid JSON
    """
    if not response_text or not response_text.strip():
        raise GenerationError("Model returned an empty response", stage=stage)

    try:
        return json.loads(_strip_code_fence(response_text))
    except json.JSONDecodeError as e:
        counter("generation.parse_error")
        raise GenerationError(f"Model returned invalid JSON: {e}", stage=stage) from e


class SpeciesGenerator:
    """
    Thin wrapper over the text and image models.

    The model callables are injectable so tests and the CLI can swap them;
    production uses call_llm (Gemini) and generate_image_bytes (Imagen).
    """

    def __init__(
        self,
        text_fn: TextFn | None = None,
        image_fn: ImageFn | None = None,
    ) -> None:
        self._text_fn = text_fn or call_llm
        self._image_fn = image_fn or generate_image_bytes

    def generate_species(self, previous: Species | None = None) -> Species:
        """
        Generate one species.

        Args:
            previous: When given, the new species is a mutation/descendant of it

        Returns:
            Validated Species

        Raises:
            GenerationError: On model failure or unusable output
        """
        stage = "mutation" if previous is not None else "species"
        prompt = build_species_prompt(previous)

        with time_block(f"generation.{stage}.latency"):
            text = self._call_text(prompt, stage, SPECIES_SCHEMA)

        data = parse_json_response(text, stage)
        try:
            species = Species.model_validate(data)
        except ValidationError as e:
            counter(f"generation.{stage}.schema_error")
            raise GenerationError(f"Species did not match schema: {e}", stage=stage) from e

        counter(f"generation.{stage}.success")
        log_event(
            "generation.species",
            name=species.name,
            mutated_from=previous.name if previous else None,
            model=GEMINI_MODEL,
        )
        return species

    def generate_ecosystem(self, size: int = ECOSYSTEM_SIZE) -> list[Species]:
        """
        Generate an interconnected ecosystem.

        Args:
            size: Number of species requested (1..ECOSYSTEM_SIZE_MAX)

        Returns:
            Species in the order the model returned them

        Raises:
            ValueError: If size is out of range
            GenerationError: On model failure, unusable output, or an empty ecosystem
        """
        if not 1 <= size <= ECOSYSTEM_SIZE_MAX:
            raise ValueError(f"Ecosystem size must be between 1 and {ECOSYSTEM_SIZE_MAX}")

        prompt = build_ecosystem_prompt(size)

        with time_block("generation.ecosystem.latency"):
            text = self._call_text(prompt, "ecosystem", ECOSYSTEM_SCHEMA)

        data = parse_json_response(text, "ecosystem")
        try:
            result = EcosystemSchema.model_validate(data)
        except ValidationError as e:
            counter("generation.ecosystem.schema_error")
            raise GenerationError(
                f"Ecosystem did not match schema: {e}", stage="ecosystem"
            ) from e

        if not result.ecosystem:
            counter("generation.ecosystem.empty")
            raise GenerationError("Model returned an empty ecosystem", stage="ecosystem")

        if len(result.ecosystem) != size:
            logger.warning(
                "Ecosystem size mismatch: requested=%d, returned=%d",
                size,
                len(result.ecosystem),
            )

        counter("generation.ecosystem.success")
        log_event(
            "generation.ecosystem",
            size=len(result.ecosystem),
            names=[s.name for s in result.ecosystem],
            model=GEMINI_MODEL,
        )
        return result.ecosystem

    def generate_species_image(self, species: Species) -> str:
        """
        Render an illustration of species in its habitat.

        Returns:
            data:image/jpeg;base64,... URL

        Raises:
            GenerationError: On model failure or an empty response
        """
        prompt = build_image_prompt(species)

        try:
            with time_block("generation.image.latency"):
                image_bytes = self._image_fn(prompt)
        except Exception as e:
            counter("generation.image.error")
            logger.error("Image generation failed for %s: %s", species.name, e)
            raise GenerationError(f"Image generation failed: {e}", stage="image") from e

        if not image_bytes:
            counter("generation.image.empty")
            raise GenerationError("Image model returned no data", stage="image")

        counter("generation.image.success")
        log_event("generation.image", name=species.name, size=len(image_bytes), model=IMAGEN_MODEL)
        return to_data_url(image_bytes)

    def _call_text(self, prompt: str, stage: str, schema: dict[str, Any]) -> str:
        logger.info("Calling %s for stage=%s", GEMINI_MODEL, stage)
        try:
            return self._text_fn(prompt, counter_prefix=stage, response_schema=schema)
        except GenerationError:
            raise
        except Exception as e:
            counter(f"generation.{stage}.error")
            logger.error("Text generation failed (stage=%s): %s", stage, e)
            log_event("generation.error", stage=stage, error=str(e)[:200], model=GEMINI_MODEL)
            raise GenerationError(f"Text generation failed: {e}", stage=stage) from e
