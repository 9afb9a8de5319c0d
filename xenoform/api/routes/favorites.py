"""Favorites endpoints for Xenoform API.

Favorites are saved per client (cookie) and keyed by species name.
"""

from __future__ import annotations

from datetime import datetime
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response
from pydantic import BaseModel, model_validator

from xenoform.api.dependencies import get_client_id, get_session
from xenoform.api.errors import raise_http_error
from xenoform.observability.logging import get_logger
from xenoform.species.models import FavoriteRecord, Species
from xenoform.species.session import GeneratorSession, SessionBusyError, ViewState
from xenoform.storage.favorites import FavoritesLimitError, FavoritesRepository

router = APIRouter(prefix="/api/favorites", tags=["favorites"])
logger = get_logger(__name__)

FAVORITE_NOT_FOUND = "Favorite not found"


class FavoriteResponse(BaseModel):
    name: str
    species: Species
    image_url: str | None = None
    created_at: datetime

    @classmethod
    def from_record(cls, record: FavoriteRecord) -> FavoriteResponse:
        return cls(
            name=record.name,
            species=record.species,
            image_url=record.image_url,
            created_at=record.created_at,
        )


class ToggleFavoriteRequest(BaseModel):
    """Either a full species, or the name of one currently on screen."""

    species: Species | None = None
    name: str | None = None
    image_url: str | None = None

    @model_validator(mode="after")
    def species_or_name(self) -> ToggleFavoriteRequest:
        if self.species is None and not self.name:
            raise ValueError("species or name is required")
        return self


class ToggleFavoriteResponse(BaseModel):
    name: str
    is_favorite: bool
    count: int


def export_response(species: Species) -> Response:
    """Pretty JSON download named after the species."""
    filename = species.export_filename()
    # Headers are latin-1; non-ASCII names go in filename* only
    fallback = filename.encode("ascii", "ignore").decode().replace('"', "") or "species.json"
    disposition = f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"
    return Response(
        content=species.to_json(),
        media_type="application/json",
        headers={"Content-Disposition": disposition},
    )


def toggle_displayed(client_id: str, session: GeneratorSession, name: str) -> bool:
    """
    Toggle a species that is currently on screen, keeping its image reference.

    Raises:
        HTTPException: 404 if no displayed species has that name
    """
    view = session.find_displayed(name)
    if view is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Species not displayed")
    return FavoritesRepository.toggle(client_id, view.species, view.image_url)


def get_favorite_or_404(client_id: str, name: str) -> FavoriteRecord:
    record = FavoritesRepository.get(client_id, name)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=FAVORITE_NOT_FOUND)
    return record


@router.get("", response_model=list[FavoriteResponse])
def list_favorites(client_id: str = Depends(get_client_id)) -> list[FavoriteResponse]:
    """Saved species, oldest first."""
    return [FavoriteResponse.from_record(r) for r in FavoritesRepository.list(client_id)]


@router.post("/toggle", response_model=ToggleFavoriteResponse)
def toggle_favorite(
    request: ToggleFavoriteRequest,
    client_id: str = Depends(get_client_id),
    session: GeneratorSession = Depends(get_session),
) -> ToggleFavoriteResponse:
    """Save the species, or remove it if a favorite with that name exists."""
    try:
        if request.species is not None:
            name = request.species.name
            is_favorite = FavoritesRepository.toggle(client_id, request.species, request.image_url)
        else:
            name = request.name or ""
            is_favorite = toggle_displayed(client_id, session, name)
    except FavoritesLimitError as e:
        raise_http_error(e)

    return ToggleFavoriteResponse(
        name=name,
        is_favorite=is_favorite,
        count=FavoritesRepository.count(client_id),
    )


@router.delete("/{name:path}")
def delete_favorite(name: str, client_id: str = Depends(get_client_id)) -> dict[str, bool]:
    if not FavoritesRepository.delete(client_id, name):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=FAVORITE_NOT_FOUND)
    return {"deleted": True}


@router.post("/{name:path}/view", response_model=ViewState)
def view_favorite(
    name: str,
    client_id: str = Depends(get_client_id),
    session: GeneratorSession = Depends(get_session),
) -> ViewState:
    """
    Load a favorite into the caller's view session.

    Raises:
        409 if a generation is running
    """
    record = get_favorite_or_404(client_id, name)
    try:
        return session.view_favorite(record)
    except SessionBusyError as e:
        raise_http_error(e)


@router.get("/{name:path}/export")
def export_favorite(name: str, client_id: str = Depends(get_client_id)) -> Response:
    return export_response(get_favorite_or_404(client_id, name).species)
