"""View session endpoints for Xenoform API.

JSON access to the same state machine the HTML page drives. Generation
endpoints block until the session settles and return the final state;
a model failure is reported in the state (app_state=error), not as an
HTTP error.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from xenoform.api.dependencies import get_session
from xenoform.api.errors import raise_http_error
from xenoform.config import ECOSYSTEM_SIZE, ECOSYSTEM_SIZE_MAX
from xenoform.infrastructure.llm_budget import BudgetExceededError
from xenoform.observability.logging import get_logger
from xenoform.species.session import (
    DisplayMode,
    GeneratorSession,
    SessionBusyError,
    ViewState,
)

router = APIRouter(prefix="/api/session", tags=["session"])
logger = get_logger(__name__)


class EcosystemRequest(BaseModel):
    size: int = Field(default=ECOSYSTEM_SIZE, ge=1, le=ECOSYSTEM_SIZE_MAX)


class MutationModeRequest(BaseModel):
    enabled: bool


class MutationModeResponse(BaseModel):
    mutation_mode: bool


class DisplayModeRequest(BaseModel):
    mode: DisplayMode


class DisplayModeResponse(BaseModel):
    display_mode: DisplayMode


@router.get("", response_model=ViewState)
def get_view_state(session: GeneratorSession = Depends(get_session)) -> ViewState:
    """Current view state for the calling client."""
    return session.snapshot()


@router.post("/species", response_model=ViewState)
def generate_species(session: GeneratorSession = Depends(get_session)) -> ViewState:
    """
    Generate a species, or a descendant of the current one in mutation mode.

    Raises:
        409 if a generation is already running, 429 if out of budget
    """
    try:
        return session.generate_species()
    except (SessionBusyError, BudgetExceededError) as e:
        raise_http_error(e)


@router.post("/ecosystem", response_model=ViewState)
def spawn_ecosystem(
    request: EcosystemRequest | None = None,
    session: GeneratorSession = Depends(get_session),
) -> ViewState:
    """Generate an ecosystem and one illustration per member."""
    size = request.size if request else ECOSYSTEM_SIZE
    try:
        return session.spawn_ecosystem(size)
    except (SessionBusyError, BudgetExceededError) as e:
        raise_http_error(e)


@router.put("/mutation", response_model=MutationModeResponse)
def set_mutation_mode(
    request: MutationModeRequest,
    session: GeneratorSession = Depends(get_session),
) -> MutationModeResponse:
    return MutationModeResponse(mutation_mode=session.set_mutation_mode(request.enabled))


@router.put("/mode", response_model=DisplayModeResponse)
def set_display_mode(
    request: DisplayModeRequest,
    session: GeneratorSession = Depends(get_session),
) -> DisplayModeResponse:
    return DisplayModeResponse(display_mode=session.set_display_mode(request.mode))
