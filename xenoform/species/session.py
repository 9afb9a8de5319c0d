"""
View session - the state machine behind the page.

States: idle -> loading -> displaying | error. A session belongs to one client
(cookie) and is kept in memory by SessionStore. The model calls run outside
the session lock so readers can observe the partial state where the species
text is shown but its image is still rendering.
"""

from __future__ import annotations

import concurrent.futures
import threading
from enum import Enum
from functools import lru_cache

from cachetools import TTLCache
from pydantic import BaseModel, Field

from xenoform.config import (
    ECOSYSTEM_SIZE,
    FAVORITE_PLACEHOLDER_IMAGE,
    LLM_MAX_WORKERS,
    SESSION_MAX_ENTRIES,
    SESSION_TTL_SECONDS,
)
from xenoform.infrastructure.llm_budget import record_llm_call, require_budget
from xenoform.observability.logging import get_logger
from xenoform.observability.telemetry import counter, log_event
from xenoform.species.generator import SpeciesGenerator
from xenoform.species.models import FavoriteRecord, Species, SpeciesView

logger = get_logger(__name__)

SPECIES_ERROR_MESSAGE = (
    "Failed to generate species. The cosmic rays might be interfering. Please try again."
)
ECOSYSTEM_ERROR_MESSAGE = (
    "Failed to generate ecosystem. A simulated extinction event may have occurred. "
    "Please try again."
)


class AppState(str, Enum):
    """Lifecycle of the current view."""

    IDLE = "idle"
    LOADING = "loading"
    DISPLAYING = "displaying"
    ERROR = "error"


class DisplayMode(str, Enum):
    """Which panel the page shows."""

    SPECIES = "species"
    ECOSYSTEM = "ecosystem"
    FAVORITES = "favorites"


class SessionBusyError(RuntimeError):
    """Raised when a generation is requested while one is already running."""


class ViewState(BaseModel):
    """Everything the page needs to render."""

    app_state: AppState = AppState.IDLE
    display_mode: DisplayMode = DisplayMode.SPECIES
    current_species: SpeciesView | None = None
    current_ecosystem: list[SpeciesView] = Field(default_factory=list)
    error: str | None = None
    mutation_mode: bool = False

    @property
    def is_loading(self) -> bool:
        return self.app_state == AppState.LOADING


class GeneratorSession:
    """
    One client's view state plus the transitions that change it.

    All mutation happens under self._lock; model calls do not hold it.
    """

    def __init__(
        self,
        client_id: str,
        generator: SpeciesGenerator | None = None,
        max_workers: int = LLM_MAX_WORKERS,
    ) -> None:
        self.client_id = client_id
        self._generator = generator or SpeciesGenerator()
        self._max_workers = max(1, max_workers)
        self._lock = threading.RLock()
        self._state = ViewState()

    def snapshot(self) -> ViewState:
        """Deep copy of the current state, safe to serialize."""
        with self._lock:
            return self._state.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Generation transitions
    # ------------------------------------------------------------------

    def begin_species(self) -> Species | None:
        """
        Enter loading for a single species and return the mutation parent.

        Split from generate_species so the web UI can flip to loading before
        handing the slow part to a background task.

        Raises:
            SessionBusyError: If a generation is already running
            BudgetExceededError: If the client cannot afford text + image
        """
        with self._lock:
            self._ensure_idle()
            require_budget(self.client_id, calls=2)

            previous = None
            if self._state.mutation_mode and self._state.current_species is not None:
                previous = self._state.current_species.species

            self._state.app_state = AppState.LOADING
            self._state.error = None
            self._state.current_ecosystem = []
            self._state.display_mode = DisplayMode.SPECIES
            return previous

    def run_species(self, previous: Species | None) -> ViewState:
        """Run the text call, publish the species, then attach its image."""
        try:
            species = self._generator.generate_species(previous)
            record_llm_call(self.client_id, "mutation" if previous else "species")

            with self._lock:
                self._state.current_species = SpeciesView(species=species)

            try:
                image_url = self._generator.generate_species_image(species)
            finally:
                record_llm_call(self.client_id, "image")

            with self._lock:
                self._state.current_species = SpeciesView(species=species, image_url=image_url)
                self._state.app_state = AppState.DISPLAYING

            counter("session.species.displayed")
        except Exception as e:
            logger.error("Species generation failed for client session: %s", e)
            self._fail(SPECIES_ERROR_MESSAGE)

        return self.snapshot()

    def generate_species(self) -> ViewState:
        """Generate a species (a descendant of the current one in mutation mode)."""
        previous = self.begin_species()
        return self.run_species(previous)

    def begin_ecosystem(self, size: int = ECOSYSTEM_SIZE) -> None:
        """
        Enter loading for an ecosystem.

        Raises:
            SessionBusyError: If a generation is already running
            BudgetExceededError: If the client cannot afford text + one image per member
        """
        with self._lock:
            self._ensure_idle()
            require_budget(self.client_id, calls=1 + size)

            self._state.app_state = AppState.LOADING
            self._state.error = None
            self._state.current_species = None
            self._state.display_mode = DisplayMode.ECOSYSTEM

    def run_ecosystem(self, size: int = ECOSYSTEM_SIZE) -> ViewState:
        """Run the ecosystem text call, publish placeholders, render images in parallel."""
        try:
            members = self._generator.generate_ecosystem(size)
            record_llm_call(self.client_id, "ecosystem")

            with self._lock:
                self._state.current_ecosystem = [SpeciesView(species=s) for s in members]

            image_urls = self._render_images(members)

            with self._lock:
                self._state.current_ecosystem = [
                    SpeciesView(species=s, image_url=url)
                    for s, url in zip(members, image_urls, strict=True)
                ]
                self._state.app_state = AppState.DISPLAYING

            counter("session.ecosystem.displayed")
        except Exception as e:
            logger.error("Ecosystem generation failed for client session: %s", e)
            self._fail(ECOSYSTEM_ERROR_MESSAGE)

        return self.snapshot()

    def spawn_ecosystem(self, size: int = ECOSYSTEM_SIZE) -> ViewState:
        """Generate an ecosystem and an illustration for each member."""
        self.begin_ecosystem(size)
        return self.run_ecosystem(size)

    def _render_images(self, members: list[Species]) -> list[str]:
        """
        Generate one image per member concurrently, preserving member order.

        Any single failure fails the whole ecosystem; members that have not
        started yet are cancelled. Every image call that ran is charged to the
        client's budget, including failed ones.
        """
        results: list[tuple[int, str]] = []
        workers = min(self._max_workers, len(members))

        executor = concurrent.futures.ThreadPoolExecutor(max_workers=workers)
        future_to_idx = {
            executor.submit(self._generator.generate_species_image, species): idx
            for idx, species in enumerate(members)
        }
        try:
            for future in concurrent.futures.as_completed(future_to_idx):
                results.append((future_to_idx[future], future.result()))
        except Exception:
            for future in future_to_idx:
                future.cancel()
            raise
        finally:
            executor.shutdown(wait=True)
            for future in future_to_idx:
                if not future.cancelled():
                    record_llm_call(self.client_id, "image")

        # Restore original order
        results.sort(key=lambda item: item[0])
        return [url for _, url in results]

    def _ensure_idle(self) -> None:
        if self._state.app_state == AppState.LOADING:
            counter("session.busy_rejected")
            raise SessionBusyError("A generation is already in progress")

    def _fail(self, message: str) -> None:
        with self._lock:
            self._state.error = message
            self._state.app_state = AppState.ERROR
            mode = self._state.display_mode.value
        log_event("session.error", mode=mode)

    def show_error(self, message: str) -> ViewState:
        """
        Put the session in the error state without running a generation.

        Ignored while a generation is running; the running one settles the
        state when it finishes.
        """
        with self._lock:
            if self._state.app_state == AppState.LOADING:
                counter("session.error_while_loading")
                logger.info("Dropped error while a generation is running: %s", message)
                return self.snapshot()
            if self._state.display_mode == DisplayMode.FAVORITES:
                self._state.display_mode = DisplayMode.SPECIES
        self._fail(message)
        return self.snapshot()

    # ------------------------------------------------------------------
    # Simple transitions
    # ------------------------------------------------------------------

    def toggle_mutation_mode(self) -> bool:
        with self._lock:
            self._state.mutation_mode = not self._state.mutation_mode
            return self._state.mutation_mode

    def set_mutation_mode(self, enabled: bool) -> bool:
        with self._lock:
            self._state.mutation_mode = enabled
            return enabled

    def toggle_favorites_view(self) -> DisplayMode:
        """Favorites <-> species, like the Favorites button."""
        with self._lock:
            if self._state.display_mode == DisplayMode.FAVORITES:
                self._state.display_mode = DisplayMode.SPECIES
            else:
                self._state.display_mode = DisplayMode.FAVORITES
            return self._state.display_mode

    def set_display_mode(self, mode: DisplayMode) -> DisplayMode:
        with self._lock:
            self._state.display_mode = mode
            return mode

    def view_favorite(self, record: FavoriteRecord) -> ViewState:
        """
        Show a saved species; falls back to the placeholder image when none was stored.

        Raises:
            SessionBusyError: If a generation is running, whose result would replace it
        """
        with self._lock:
            self._ensure_idle()
            self._state.display_mode = DisplayMode.SPECIES
            self._state.current_species = SpeciesView(
                species=record.species,
                image_url=record.image_url or FAVORITE_PLACEHOLDER_IMAGE,
            )
            self._state.error = None
            self._state.app_state = AppState.DISPLAYING
        return self.snapshot()

    def find_displayed(self, name: str) -> SpeciesView | None:
        """Look up a species currently on screen (single or ecosystem) by name."""
        with self._lock:
            candidates = list(self._state.current_ecosystem)
            if self._state.current_species is not None:
                candidates.insert(0, self._state.current_species)
            for view in candidates:
                if view.name == name:
                    return view.model_copy(deep=True)
        return None


class SessionStore:
    """In-memory sessions keyed by client id, expiring after SESSION_TTL_SECONDS idle."""

    def __init__(
        self,
        generator: SpeciesGenerator | None = None,
        maxsize: int = SESSION_MAX_ENTRIES,
        ttl: int = SESSION_TTL_SECONDS,
    ) -> None:
        self._generator = generator
        self._sessions: TTLCache[str, GeneratorSession] = TTLCache(maxsize=maxsize, ttl=ttl)
        self._lock = threading.Lock()

    def get(self, client_id: str) -> GeneratorSession:
        """Return the client's session, creating it on first use."""
        with self._lock:
            session = self._sessions.get(client_id)
            if session is None:
                session = GeneratorSession(client_id, generator=self._generator)
                counter("session.created")
            # Re-insert to refresh the TTL
            self._sessions[client_id] = session
            return session

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)


@lru_cache(maxsize=1)
def get_session_store() -> SessionStore:
    """Process-wide session store (thread-safe singleton via lru_cache)."""
    return SessionStore()
