"""Stateless generation endpoints for Xenoform API.

Each call goes straight to the model and returns the result. Nothing is
stored and the caller's view session is left untouched.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from xenoform.api.dependencies import get_client_id, get_generator
from xenoform.api.errors import raise_http_error
from xenoform.config import ECOSYSTEM_SIZE, ECOSYSTEM_SIZE_MAX
from xenoform.infrastructure.llm_budget import (
    BudgetExceededError,
    record_llm_call,
    require_budget,
)
from xenoform.observability.logging import get_logger
from xenoform.species.generator import GenerationError, SpeciesGenerator
from xenoform.species.models import Species

router = APIRouter(prefix="/api/generate", tags=["generate"])
logger = get_logger(__name__)


class SpeciesRequest(BaseModel):
    """Optional parent species; when given the result is its descendant."""

    previous: Species | None = None


class EcosystemRequest(BaseModel):
    size: int = Field(default=ECOSYSTEM_SIZE, ge=1, le=ECOSYSTEM_SIZE_MAX)


class EcosystemResponse(BaseModel):
    ecosystem: list[Species]


class ImageRequest(BaseModel):
    species: Species


class ImageResponse(BaseModel):
    name: str
    image_url: str


@router.post("/species", response_model=Species)
def generate_species(
    request: SpeciesRequest | None = None,
    client_id: str = Depends(get_client_id),
    generator: SpeciesGenerator = Depends(get_generator),
) -> Species:
    previous = request.previous if request else None
    try:
        require_budget(client_id)
        species = generator.generate_species(previous)
    except (BudgetExceededError, GenerationError) as e:
        raise_http_error(e, context="Failed to generate species.")

    record_llm_call(client_id, "mutation" if previous else "species")
    return species


@router.post("/ecosystem", response_model=EcosystemResponse)
def generate_ecosystem(
    request: EcosystemRequest | None = None,
    client_id: str = Depends(get_client_id),
    generator: SpeciesGenerator = Depends(get_generator),
) -> EcosystemResponse:
    size = request.size if request else ECOSYSTEM_SIZE
    try:
        require_budget(client_id)
        members = generator.generate_ecosystem(size)
    except (BudgetExceededError, GenerationError, ValueError) as e:
        raise_http_error(e, context="Failed to generate ecosystem.")

    record_llm_call(client_id, "ecosystem")
    return EcosystemResponse(ecosystem=members)


@router.post("/image", response_model=ImageResponse)
def generate_image(
    request: ImageRequest,
    client_id: str = Depends(get_client_id),
    generator: SpeciesGenerator = Depends(get_generator),
) -> ImageResponse:
    """Illustration of the given species as a data: URL."""
    try:
        require_budget(client_id)
        image_url = generator.generate_species_image(request.species)
    except (BudgetExceededError, GenerationError) as e:
        raise_http_error(e, context="Failed to generate image.")

    record_llm_call(client_id, "image")
    return ImageResponse(name=request.species.name, image_url=image_url)
