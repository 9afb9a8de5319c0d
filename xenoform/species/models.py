"""
Species domain models for Xenoform.

A Species is the six-field record the text model produces. SpeciesView adds
the (possibly still pending) illustration, and FavoriteRecord is what the
favorites store hands back.
"""

from __future__ import annotations

import json
import re
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

SPECIES_FIELDS: tuple[str, ...] = (
    "name",
    "appearance",
    "habitat",
    "behaviour",
    "evolution_story",
    "biome_soundtrack_prompt",
)

_WHITESPACE_RUN = re.compile(r"\s+")


def utc_now() -> datetime:
    """Return current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


class Species(BaseModel):
    """A procedurally generated alien species."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(..., description="Binomial Latin-esque name, also the favorites key")
    appearance: str = Field(..., description="Morphology, color, size, special organs")
    habitat: str = Field(..., description="Planet type, biome, atmospheric conditions")
    behaviour: str = Field(..., description="Diet, social structure, reproduction")
    evolution_story: str = Field(..., description="One paragraph on the evolutionary path")
    biome_soundtrack_prompt: str = Field(..., description="Prompt for an ambient music generator")

    @field_validator(*SPECIES_FIELDS)
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("field cannot be empty")
        return v.strip()

    def export_filename(self) -> str:
        """Download name used by the Export action (whitespace runs become '_')."""
        return f"{_WHITESPACE_RUN.sub('_', self.name)}.json"

    def to_json(self, indent: int | None = 2) -> str:
        """Serialize in field order, the format used for copy/export."""
        return json.dumps(self.model_dump(), indent=indent, ensure_ascii=False)


class SpeciesView(BaseModel):
    """A species as displayed: image_url is None while the image is rendering."""

    species: Species
    image_url: str | None = None

    @property
    def name(self) -> str:
        return self.species.name

    @property
    def image_pending(self) -> bool:
        return self.image_url is None


class FavoriteRecord(BaseModel):
    """A saved species, keyed by name per client."""

    client_id: str
    species: Species
    image_url: str | None = None
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def name(self) -> str:
        return self.species.name

    def to_db_dict(self) -> dict[str, Any]:
        """Convert to dict for database storage."""
        return {
            "client_id": self.client_id,
            "name": self.species.name,
            "payload": self.species.to_json(indent=None),
            "image_url": self.image_url,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> FavoriteRecord:
        """Create FavoriteRecord from database row."""
        return cls(
            client_id=row["client_id"],
            species=Species.model_validate_json(row["payload"]),
            image_url=row.get("image_url"),
            created_at=datetime.fromisoformat(row["created_at"]),
        )
