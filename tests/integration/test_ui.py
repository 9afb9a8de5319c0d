"""Integration tests for the server-rendered page and its form actions"""

from __future__ import annotations

from urllib.parse import quote

from xenoform.config import FAVORITE_PLACEHOLDER_IMAGE, SESSION_COOKIE_NAME
from xenoform.species.session import ECOSYSTEM_ERROR_MESSAGE, SPECIES_ERROR_MESSAGE


def test_first_visit_shows_welcome_and_issues_cookie(client):
    response = client.get("/")

    assert response.status_code == 200
    assert "Welcome to the Xenoform Codex" in response.text
    assert "Favorites (0)" in response.text
    assert SESSION_COOKIE_NAME in response.cookies


def test_cookie_is_stable_across_requests(client):
    client.get("/")
    first = client.cookies.get(SESSION_COOKIE_NAME)
    response = client.get("/")

    assert SESSION_COOKIE_NAME not in response.cookies
    assert client.cookies.get(SESSION_COOKIE_NAME) == first


def test_generate_species_renders_card(client):
    response = client.post("/ui/species")

    assert response.status_code == 200
    assert response.history[0].status_code == 303
    assert "Specimen 1" in response.text
    assert "BIOME SOUNDTRACK:" in response.text
    assert 'src="data:image/jpeg;base64,' in response.text
    assert ">Save<" in response.text


def test_species_failure_shows_error(client, fake_models):
    fake_models.fail_text = True
    response = client.post("/ui/species")
    assert SPECIES_ERROR_MESSAGE in response.text


def test_spawn_ecosystem_renders_all_members(client):
    response = client.post("/ui/ecosystem")

    for i in range(5):
        assert f"Member {i}" in response.text
    assert response.text.index("Member 0") < response.text.index("Member 4")


def test_ecosystem_failure_shows_error(client, fake_models):
    fake_models.fail_image = True
    response = client.post("/ui/ecosystem")
    assert ECOSYSTEM_ERROR_MESSAGE in response.text


def test_mutation_toggle(client, fake_models):
    client.post("/ui/species")
    response = client.post("/ui/mutation")
    assert '<button class="toggle on">ON</button>' in response.text

    client.post("/ui/species")
    assert fake_models.text_calls[-1][0] == "mutation"


def test_save_then_view_favorite(client):
    client.post("/ui/species")

    response = client.post("/ui/favorites/toggle?name=Specimen%201")
    assert ">Saved<" in response.text
    assert "Favorites (1)" in response.text

    response = client.post("/ui/favorites-view")
    assert "Favorite Specimens" in response.text
    assert "Specimen 1" in response.text

    response = client.post(f"/ui/favorites/{quote('Specimen 1')}/view")
    assert "Favorite Specimens" not in response.text
    # Inline images are not kept with favorites
    assert FAVORITE_PLACEHOLDER_IMAGE in response.text


def test_save_toggle_removes(client):
    client.post("/ui/species")
    client.post("/ui/favorites/toggle?name=Specimen%201")
    response = client.post("/ui/favorites/toggle?name=Specimen%201")

    assert ">Save<" in response.text
    assert "Favorites (0)" in response.text


def test_toggle_unknown_species_is_404(client):
    response = client.post("/ui/favorites/toggle?name=Nobody", follow_redirects=False)
    assert response.status_code == 404


def test_delete_favorite_from_list(client):
    client.post("/ui/species")
    client.post("/ui/favorites/toggle?name=Specimen%201")
    client.post("/ui/favorites-view")

    response = client.post(f"/ui/favorites/{quote('Specimen 1')}/delete")
    assert "No species saved yet." in response.text


def test_favorite_names_with_slashes(client, make_species):
    species = make_species(name="Alpha/Beta hybrida")
    client.post("/api/favorites/toggle", json={"species": species.model_dump()})
    client.post("/ui/favorites-view")

    response = client.post(f"/ui/favorites/{quote(species.name, safe='')}/view")
    assert response.status_code == 200
    assert "Alpha/Beta hybrida" in response.text


def test_export_displayed_species(client):
    client.post("/ui/species")

    response = client.get("/ui/export", params={"name": "Specimen 1"})
    assert response.status_code == 200
    assert 'filename="Specimen_1.json"' in response.headers["content-disposition"]
    assert response.text.startswith('{\n  "name": "Specimen 1"')


def test_export_unknown_species_is_404(client):
    assert client.get("/ui/export", params={"name": "Nobody"}).status_code == 404


def test_busy_session_ignores_second_submit(client):
    client.get("/")
    client_id = client.cookies.get(SESSION_COOKIE_NAME)

    from xenoform.api.app import app
    from xenoform.api.dependencies import get_store

    session = app.dependency_overrides[get_store]().get(client_id)
    session.begin_species()

    response = client.post("/ui/species")
    assert response.status_code == 200
    assert "Generating Species..." in response.text
    assert '<meta http-equiv="refresh"' in response.text
    assert '<button class="primary" disabled>' in response.text


def test_budget_exhaustion_shows_message(client, monkeypatch):
    monkeypatch.setattr("xenoform.infrastructure.llm_budget.LLM_CLIENT_DAILY_LIMIT", 1)
    response = client.post("/ui/species")
    assert "Daily generation limit reached" in response.text


def test_model_text_is_escaped(client, fake_models, make_species):
    fake_models.raw_text = make_species(name="<script>alert(1)</script>").to_json()
    response = client.post("/ui/species")

    assert "<script>alert(1)</script>" not in response.text
    assert "&lt;script&gt;" in response.text


def test_security_headers_on_page(client):
    response = client.get("/")
    assert "script-src 'none'" in response.headers["content-security-policy"]
    assert response.headers["x-frame-options"] == "DENY"


def test_view_favorite_while_generating_keeps_loading(client, make_species):
    species = make_species()
    client.post("/api/favorites/toggle", json={"species": species.model_dump()})

    from xenoform.api.app import app
    from xenoform.api.dependencies import get_store

    session = app.dependency_overrides[get_store]().get(client.cookies.get(SESSION_COOKIE_NAME))
    session.begin_species()

    response = client.post(f"/ui/favorites/{quote(species.name)}/view")
    assert response.status_code == 200
    assert "Generating Species..." in response.text
