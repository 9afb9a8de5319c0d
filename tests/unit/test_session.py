"""Unit tests for the view session state machine

Tests cover:
- Species and ecosystem transitions (idle -> loading -> displaying | error)
- Partial state while the image is rendering
- Mutation mode parent selection
- Busy rejection and budget checks
- Favorites view and placeholder images
"""

from __future__ import annotations

import base64
import threading
import time

import pytest

from xenoform.config import FAVORITE_PLACEHOLDER_IMAGE
from xenoform.infrastructure.llm_budget import BudgetExceededError, check_budget
from xenoform.species.models import FavoriteRecord
from xenoform.species.session import (
    ECOSYSTEM_ERROR_MESSAGE,
    SPECIES_ERROR_MESSAGE,
    AppState,
    DisplayMode,
    GeneratorSession,
    SessionBusyError,
    SessionStore,
)


def _decoded(url: str) -> bytes:
    return base64.b64decode(url.split(",", 1)[1])


def test_new_session_is_idle(session):
    state = session.snapshot()
    assert state.app_state == AppState.IDLE
    assert state.display_mode == DisplayMode.SPECIES
    assert state.current_species is None
    assert state.current_ecosystem == []
    assert state.mutation_mode is False


def test_generate_species_displays_species_with_image(session):
    state = session.generate_species()

    assert state.app_state == AppState.DISPLAYING
    assert state.error is None
    assert state.current_species.name == "Specimen 1"
    assert _decoded(state.current_species.image_url) == b"image:Specimen 1"


def test_species_text_is_published_before_image(session, fake_models):
    observed = []
    original_image = session._generator._image_fn

    def watching_image(prompt):
        observed.append(session.snapshot())
        return original_image(prompt)

    session._generator._image_fn = watching_image
    session.generate_species()

    partial = observed[0]
    assert partial.app_state == AppState.LOADING
    assert partial.current_species.name == "Specimen 1"
    assert partial.current_species.image_pending


def test_generate_species_clears_ecosystem(session):
    session.spawn_ecosystem(3)
    state = session.generate_species()

    assert state.current_ecosystem == []
    assert state.display_mode == DisplayMode.SPECIES


def test_mutation_mode_uses_current_species_as_parent(session, fake_models):
    session.generate_species()
    session.toggle_mutation_mode()
    session.generate_species()

    prefix, prompt, _ = fake_models.text_calls[-1]
    assert prefix == "mutation"
    assert "Specimen 1" in prompt


def test_mutation_mode_without_current_species_generates_fresh(session, fake_models):
    session.set_mutation_mode(True)
    session.generate_species()
    assert fake_models.text_calls[0][0] == "species"


def test_mutation_mode_off_ignores_current_species(session, fake_models):
    session.generate_species()
    session.generate_species()
    assert [call[0] for call in fake_models.text_calls] == ["species", "species"]


def test_text_failure_sets_species_error(session, fake_models):
    fake_models.fail_text = True
    state = session.generate_species()

    assert state.app_state == AppState.ERROR
    assert state.error == SPECIES_ERROR_MESSAGE


def test_image_failure_sets_species_error(session, fake_models):
    fake_models.fail_image = True
    state = session.generate_species()

    assert state.app_state == AppState.ERROR
    assert state.error == SPECIES_ERROR_MESSAGE


def test_error_is_cleared_by_next_generation(session, fake_models):
    fake_models.fail_text = True
    session.generate_species()
    fake_models.fail_text = False

    state = session.generate_species()
    assert state.error is None
    assert state.app_state == AppState.DISPLAYING


def test_spawn_ecosystem_preserves_member_order(session, fake_models):
    fake_models.image_delay = 0.01
    state = session.spawn_ecosystem(5)

    assert state.app_state == AppState.DISPLAYING
    assert state.display_mode == DisplayMode.ECOSYSTEM
    assert state.current_species is None
    names = [view.name for view in state.current_ecosystem]
    assert names == [f"Member {i}" for i in range(5)]
    for view in state.current_ecosystem:
        assert _decoded(view.image_url) == f"image:{view.name}".encode()


def test_ecosystem_single_image_failure_fails_whole_ecosystem(session, fake_models):
    original_image = fake_models.image

    def flaky_image(prompt):
        if "Member 2" in prompt:
            raise ConnectionError("one bad render")
        return original_image(prompt)

    session._generator._image_fn = flaky_image
    state = session.spawn_ecosystem(5)

    assert state.app_state == AppState.ERROR
    assert state.error == ECOSYSTEM_ERROR_MESSAGE


def test_ecosystem_text_failure_sets_ecosystem_error(session, fake_models):
    fake_models.fail_text = True
    state = session.spawn_ecosystem()
    assert state.error == ECOSYSTEM_ERROR_MESSAGE


def test_generation_while_loading_is_rejected(session):
    session.begin_species()
    with pytest.raises(SessionBusyError):
        session.begin_species()
    with pytest.raises(SessionBusyError):
        session.begin_ecosystem()


def test_concurrent_begin_allows_exactly_one(session):
    results = []
    barrier = threading.Barrier(4)

    def attempt():
        barrier.wait()
        try:
            session.begin_species()
            results.append("ok")
        except SessionBusyError:
            results.append("busy")

    threads = [threading.Thread(target=attempt) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(results) == ["busy", "busy", "busy", "ok"]


def test_generation_records_budget_usage(session):
    session.generate_species()
    assert check_budget("client-1").client_calls_today == 2

    session.spawn_ecosystem(3)
    assert check_budget("client-1").client_calls_today == 2 + 1 + 3


def test_generation_refused_when_budget_exhausted(session, monkeypatch):
    monkeypatch.setattr("xenoform.infrastructure.llm_budget.LLM_CLIENT_DAILY_LIMIT", 1)
    with pytest.raises(BudgetExceededError):
        session.generate_species()
    assert session.snapshot().app_state == AppState.IDLE


def test_toggle_favorites_view_round_trips(session):
    assert session.toggle_favorites_view() == DisplayMode.FAVORITES
    assert session.toggle_favorites_view() == DisplayMode.SPECIES


def test_view_favorite_uses_placeholder_without_stored_image(session, make_species):
    session.set_display_mode(DisplayMode.FAVORITES)
    record = FavoriteRecord(client_id="client-1", species=make_species())
    state = session.view_favorite(record)

    assert state.display_mode == DisplayMode.SPECIES
    assert state.app_state == AppState.DISPLAYING
    assert state.current_species.image_url == FAVORITE_PLACEHOLDER_IMAGE


def test_view_favorite_keeps_stored_image(session, make_species):
    record = FavoriteRecord(
        client_id="client-1", species=make_species(), image_url="https://cdn.example/a.jpg"
    )
    assert session.view_favorite(record).current_species.image_url == "https://cdn.example/a.jpg"


def test_find_displayed_searches_species_and_ecosystem(session):
    session.spawn_ecosystem(3)
    assert session.find_displayed("Member 1").name == "Member 1"
    assert session.find_displayed("Nobody") is None


def test_show_error_leaves_favorites_panel(session):
    session.toggle_favorites_view()
    state = session.show_error("Daily limit")
    assert state.app_state == AppState.ERROR
    assert state.display_mode == DisplayMode.SPECIES


def test_session_store_reuses_sessions_per_client(generator):
    store = SessionStore(generator=generator)
    first = store.get("a")
    assert store.get("a") is first
    assert store.get("b") is not first
    assert len(store) == 2


def test_snapshot_is_detached(session):
    state = session.snapshot()
    state.mutation_mode = True
    assert session.snapshot().mutation_mode is False


def _failing_first_member(image_fn, delay=0.05):
    def image(prompt):
        if "appearance of Member 0." in prompt:
            raise ConnectionError("imagen unavailable")
        time.sleep(delay)
        return image_fn(prompt)

    return image


def test_failed_ecosystem_charges_every_image_that_ran(generator, fake_models):
    session = GeneratorSession("client-1", generator=generator, max_workers=5)
    all_started = threading.Barrier(5, timeout=5)
    failing = _failing_first_member(fake_models.image)

    def image(prompt):
        all_started.wait()
        return failing(prompt)

    generator._image_fn = image

    state = session.spawn_ecosystem(5)

    assert state.error == ECOSYSTEM_ERROR_MESSAGE
    # One text call plus all five images, including the failed one
    assert check_budget("client-1").client_calls_today == 1 + 5


def test_failed_ecosystem_cancels_members_not_started(generator, fake_models):
    session = GeneratorSession("client-1", generator=generator, max_workers=1)
    attempted = []

    def image(prompt):
        attempted.append(prompt)
        return _failing_first_member(fake_models.image)(prompt)

    generator._image_fn = image

    session.spawn_ecosystem(5)

    assert len(attempted) < 5
    assert check_budget("client-1").client_calls_today == 1 + len(attempted)


def test_failed_species_image_is_charged(session, fake_models):
    fake_models.fail_image = True
    session.generate_species()
    assert check_budget("client-1").client_calls_today == 2


def test_view_favorite_rejected_while_generating(session, make_species):
    previous = session.begin_species()
    record = FavoriteRecord(client_id="client-1", species=make_species())

    with pytest.raises(SessionBusyError):
        session.view_favorite(record)

    state = session.run_species(previous)
    assert state.current_species.name == "Specimen 1"
    assert state.app_state == AppState.DISPLAYING


def test_show_error_does_not_end_a_running_generation(session):
    previous = session.begin_species()

    state = session.show_error("Favorites are full")
    assert state.app_state == AppState.LOADING
    with pytest.raises(SessionBusyError):
        session.begin_species()

    assert session.run_species(previous).app_state == AppState.DISPLAYING
