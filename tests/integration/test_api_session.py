"""Integration tests for /api/session"""

from __future__ import annotations

from xenoform.species.session import SPECIES_ERROR_MESSAGE


def test_initial_state(client):
    state = client.get("/api/session").json()

    assert state["app_state"] == "idle"
    assert state["display_mode"] == "species"
    assert state["current_species"] is None
    assert state["current_ecosystem"] == []
    assert state["mutation_mode"] is False


def test_generate_species(client):
    state = client.post("/api/session/species").json()

    assert state["app_state"] == "displaying"
    species = state["current_species"]
    assert species["species"]["name"] == "Specimen 1"
    assert species["image_url"].startswith("data:image/jpeg;base64,")


def test_state_persists_per_client(client):
    client.post("/api/session/species")
    assert client.get("/api/session").json()["current_species"]["species"]["name"] == "Specimen 1"


def test_generation_failure_is_reported_in_state(client, fake_models):
    fake_models.fail_text = True
    response = client.post("/api/session/species")

    assert response.status_code == 200
    assert response.json()["app_state"] == "error"
    assert response.json()["error"] == SPECIES_ERROR_MESSAGE


def test_spawn_ecosystem_with_size(client):
    state = client.post("/api/session/ecosystem", json={"size": 3}).json()

    assert state["display_mode"] == "ecosystem"
    assert [v["species"]["name"] for v in state["current_ecosystem"]] == [
        "Member 0",
        "Member 1",
        "Member 2",
    ]


def test_spawn_ecosystem_defaults_to_five(client):
    state = client.post("/api/session/ecosystem").json()
    assert len(state["current_ecosystem"]) == 5


def test_ecosystem_size_validated(client):
    response = client.post("/api/session/ecosystem", json={"size": 0})

    assert response.status_code == 422
    assert response.json()["invalid_fields"] == ["size"]


def test_mutation_mode(client, fake_models):
    client.post("/api/session/species")
    response = client.put("/api/session/mutation", json={"enabled": True})
    assert response.json() == {"mutation_mode": True}

    client.post("/api/session/species")
    assert fake_models.text_calls[-1][0] == "mutation"


def test_display_mode(client):
    response = client.put("/api/session/mode", json={"mode": "favorites"})
    assert response.json() == {"display_mode": "favorites"}
    assert client.get("/api/session").json()["display_mode"] == "favorites"


def test_invalid_display_mode(client):
    assert client.put("/api/session/mode", json={"mode": "gallery"}).status_code == 422


def test_busy_session_returns_409(client):
    client.get("/api/session")
    from xenoform.api.app import app
    from xenoform.api.dependencies import get_store
    from xenoform.config import SESSION_COOKIE_NAME

    store = app.dependency_overrides[get_store]()
    store.get(client.cookies.get(SESSION_COOKIE_NAME)).begin_ecosystem()

    response = client.post("/api/session/species")
    assert response.status_code == 409
    assert response.json()["detail"] == "A generation is already in progress."


def test_budget_exhausted_returns_429(client, monkeypatch):
    monkeypatch.setattr("xenoform.infrastructure.llm_budget.LLM_CLIENT_DAILY_LIMIT", 3)
    response = client.post("/api/session/ecosystem")

    assert response.status_code == 429
    assert "Daily generation limit" in response.json()["detail"]
