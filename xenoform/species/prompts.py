"""
Prompt templates for the Xenoform generator.

Templates use str.format. User-controlled text (the previous species in
mutation mode, a species posted to the image endpoint) passes through
sanitize() before it is substituted.
"""

from __future__ import annotations

import json
import re

from xenoform.config import PROMPT_FIELD_MAX_CHARS
from xenoform.species.models import Species

SPECIES_PROMPT_TEMPLATE = """
You are the Xenoform Algorithm, a procedural generator for fictional alien life. Your purpose is to create scientifically plausible yet wildly imaginative species.
Generate a single, unique alien species based on these rules.
{mutation_clause}
Respond ONLY with a single, valid JSON object that conforms to the provided schema. Do not include any other text, markdown, or explanations before or after the JSON.
The binomial name should sound plausible.
The evolution story must be a single, concise paragraph.
"""

MUTATION_CLAUSE = (
    "This new species is a mutation or evolutionary descendant of the following species. "
    "It should share some traits but also possess distinct new adaptations. "
    "Previous Species: {previous_json}"
)

NOVEL_CLAUSE = "The species should be completely new and unique."

ECOSYSTEM_PROMPT_TEMPLATE = """
You are the Xenoform Algorithm, a procedural generator for fictional alien life. Your purpose is to create scientifically plausible yet wildly imaginative ecosystems.
Generate a small, interconnected ecosystem of {size} alien species.
The ecosystem must be coherent, with clear predator-prey relationships, symbiotic interactions, or competition for resources.
For each species, provide a JSON object according to the specified schema.
Respond ONLY with a single, valid JSON object containing a key "ecosystem" which is an array of these {size} species objects. Do not include any other text, markdown, or explanations before or after the JSON.
"""

IMAGE_PROMPT_TEMPLATE = """
Create a photorealistic, high-detail digital illustration of a newly discovered alien species for a biology codex.
Style: David Attenborough's "Planet Earth" documentary style, scientific illustration, high detail, dramatic lighting, photorealistic.
Subject Description: {appearance}.
Environment: The creature is depicted in its natural habitat: {habitat}.
Do not include any text, labels, watermarks, or borders in the image. The image should be focused solely on the creature in its environment.
"""


def sanitize(text: str, max_length: int = PROMPT_FIELD_MAX_CHARS) -> str:
    """Strip common injection phrasing and truncate."""
    if not text:
        return ""

    text = re.sub(r"(?i)(ignore|disregard).*(instruction|prompt)", "[REDACTED]", text)
    text = re.sub(r"(?i)system\s*:", "", text)
    text = re.sub(r"(?i)assistant\s*:", "", text)

    return text[:max_length]


def _sanitized_species(species: Species) -> dict[str, str]:
    return {field: sanitize(value) for field, value in species.model_dump().items()}


def build_species_prompt(previous: Species | None = None) -> str:
    """Prompt for one species; with previous, ask for a descendant of it."""
    if previous is None:
        return SPECIES_PROMPT_TEMPLATE.format(mutation_clause=NOVEL_CLAUSE)

    previous_json = json.dumps(_sanitized_species(previous), ensure_ascii=False)
    mutation_clause = MUTATION_CLAUSE.format(previous_json=previous_json)
    return SPECIES_PROMPT_TEMPLATE.format(mutation_clause=mutation_clause)


def build_ecosystem_prompt(size: int) -> str:
    """Prompt for an interconnected ecosystem of size species."""
    return ECOSYSTEM_PROMPT_TEMPLATE.format(size=size)


def build_image_prompt(species: Species) -> str:
    """Documentary-style illustration prompt from appearance and habitat."""
    fields = _sanitized_species(species)
    return IMAGE_PROMPT_TEMPLATE.format(
        appearance=fields["appearance"],
        habitat=fields["habitat"],
    )
