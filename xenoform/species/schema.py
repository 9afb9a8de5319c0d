"""
Structured-output schemas sent to the text model.

Types use the upper-case OpenAPI names both Gemini SDKs accept in a
generation_config dict.
"""

from __future__ import annotations

from typing import Any

SPECIES_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "name": {
            "type": "STRING",
            "description": (
                "The binomial Latin-esque name of the species (e.g., Thalassoraptor viridis)."
            ),
        },
        "appearance": {
            "type": "STRING",
            "description": (
                "A detailed physical description covering morphology, color, size, "
                "and any special organs or features."
            ),
        },
        "habitat": {
            "type": "STRING",
            "description": (
                "A description of the species' natural environment, including planet "
                "type, biome, and atmospheric conditions."
            ),
        },
        "behaviour": {
            "type": "STRING",
            "description": (
                "An overview of the species' typical behaviors, such as diet "
                "(predator/prey), social structure, and reproductive cycle."
            ),
        },
        "evolution_story": {
            "type": "STRING",
            "description": (
                "A single concise paragraph explaining the plausible evolutionary path "
                "this species took to develop its current traits."
            ),
        },
        "biome_soundtrack_prompt": {
            "type": "STRING",
            "description": (
                "A descriptive prompt for an AI music generator to create an ambient "
                "soundtrack for the species' biome (e.g., 'Eerie ambient synth pads, "
                "with the sound of dripping water in a vast cavern, and the distant "
                "clicks of chitinous creatures')."
            ),
        },
    },
    "required": [
        "name",
        "appearance",
        "habitat",
        "behaviour",
        "evolution_story",
        "biome_soundtrack_prompt",
    ],
}

ECOSYSTEM_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "ecosystem": {
            "type": "ARRAY",
            "items": SPECIES_SCHEMA,
        },
    },
    "required": ["ecosystem"],
}
