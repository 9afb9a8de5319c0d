"""HTML page and form actions for Xenoform.

Generation actions flip the session to loading, hand the model calls to a
background task and redirect (303) back to the page, which refreshes
itself until the session settles.
"""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from xenoform.api.dependencies import get_client_id, get_session
from xenoform.api.errors import BUDGET_EXCEEDED_MESSAGE
from xenoform.api.rendering import render_page
from xenoform.api.routes.favorites import (
    export_response,
    get_favorite_or_404,
    toggle_displayed,
)
from xenoform.config import ECOSYSTEM_SIZE
from xenoform.infrastructure.llm_budget import BudgetExceededError
from xenoform.observability.logging import get_logger
from xenoform.species.session import GeneratorSession, SessionBusyError
from xenoform.storage.favorites import FavoritesLimitError, FavoritesRepository

router = APIRouter(tags=["ui"])
logger = get_logger(__name__)

FAVORITES_FULL_MESSAGE = "Favorites are full. Delete a saved specimen first."


def _back_to_page() -> RedirectResponse:
    return RedirectResponse("/", status_code=status.HTTP_303_SEE_OTHER)


@router.get("/", response_class=HTMLResponse)
def page(
    client_id: str = Depends(get_client_id),
    session: GeneratorSession = Depends(get_session),
) -> HTMLResponse:
    return HTMLResponse(render_page(session.snapshot(), FavoritesRepository.list(client_id)))


@router.post("/ui/species")
def generate_species(
    background_tasks: BackgroundTasks,
    session: GeneratorSession = Depends(get_session),
) -> RedirectResponse:
    try:
        previous = session.begin_species()
    except SessionBusyError:
        # Button double-submit; the running generation keeps going
        return _back_to_page()
    except BudgetExceededError:
        session.show_error(BUDGET_EXCEEDED_MESSAGE)
        return _back_to_page()

    background_tasks.add_task(session.run_species, previous)
    return _back_to_page()


@router.post("/ui/ecosystem")
def spawn_ecosystem(
    background_tasks: BackgroundTasks,
    session: GeneratorSession = Depends(get_session),
) -> RedirectResponse:
    try:
        session.begin_ecosystem(ECOSYSTEM_SIZE)
    except SessionBusyError:
        return _back_to_page()
    except BudgetExceededError:
        session.show_error(BUDGET_EXCEEDED_MESSAGE)
        return _back_to_page()

    background_tasks.add_task(session.run_ecosystem, ECOSYSTEM_SIZE)
    return _back_to_page()


@router.post("/ui/mutation")
def toggle_mutation(session: GeneratorSession = Depends(get_session)) -> RedirectResponse:
    session.toggle_mutation_mode()
    return _back_to_page()


@router.post("/ui/favorites-view")
def toggle_favorites_view(session: GeneratorSession = Depends(get_session)) -> RedirectResponse:
    session.toggle_favorites_view()
    return _back_to_page()


@router.post("/ui/favorites/toggle")
def toggle_favorite(
    name: str = Query(..., min_length=1),
    client_id: str = Depends(get_client_id),
    session: GeneratorSession = Depends(get_session),
) -> RedirectResponse:
    try:
        toggle_displayed(client_id, session, name)
    except FavoritesLimitError:
        session.show_error(FAVORITES_FULL_MESSAGE)
    return _back_to_page()


@router.post("/ui/favorites/{name:path}/view")
def view_favorite(
    name: str,
    client_id: str = Depends(get_client_id),
    session: GeneratorSession = Depends(get_session),
) -> RedirectResponse:
    record = get_favorite_or_404(client_id, name)
    try:
        session.view_favorite(record)
    except SessionBusyError:
        # The running generation would overwrite it; keep showing progress
        logger.info("Favorite view ignored while a generation is running")
    return _back_to_page()


@router.post("/ui/favorites/{name:path}/delete")
def delete_favorite(name: str, client_id: str = Depends(get_client_id)) -> RedirectResponse:
    FavoritesRepository.delete(client_id, name)
    return _back_to_page()


@router.get("/ui/export")
def export_species(
    name: str = Query(..., min_length=1),
    client_id: str = Depends(get_client_id),
    session: GeneratorSession = Depends(get_session),
) -> Response:
    """Download a species on screen, or a saved one, as JSON."""
    view = session.find_displayed(name)
    if view is not None:
        return export_response(view.species)

    record = FavoritesRepository.get(client_id, name)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Species not found")
    return export_response(record.species)
