"""
HTML rendering for the Xenoform page.

The page is server-rendered and script-free: every control is a bodiless
form POST to /ui/* (arguments travel in the action URL), and a loading page
refreshes itself until the session settles.
"""

from __future__ import annotations

import html
from urllib.parse import quote, urlencode

from xenoform.species.models import FavoriteRecord, SpeciesView
from xenoform.species.session import AppState, DisplayMode, ViewState

REFRESH_SECONDS = 2


def render_page(state: ViewState, favorites: list[FavoriteRecord]) -> str:
    """Render the whole page for one client's view state."""
    favorite_names = {f.name for f in favorites}
    refresh = (
        f'<meta http-equiv="refresh" content="{REFRESH_SECONDS}">' if state.is_loading else ""
    )

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <title>Xenoform</title>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    {refresh}
    <style>
        {_get_page_css()}
    </style>
</head>
<body>
    <header>
        <h1>XENOFORM</h1>
        <p class="tagline">PROCEDURAL LIFE-FORM GENERATOR</p>
    </header>
    {_render_controls(state, len(favorites))}
    <main>
        {_render_main(state, favorites, favorite_names)}
    </main>
</body>
</html>
"""


def _render_controls(state: ViewState, favorite_count: int) -> str:
    disabled = " disabled" if state.is_loading else ""
    mutation_label = "ON" if state.mutation_mode else "OFF"
    mutation_class = "toggle on" if state.mutation_mode else "toggle"

    return f"""
    <nav class="controls">
        <form method="post" action="/ui/species">
            <button class="primary"{disabled}>Generate Species</button>
        </form>
        <form method="post" action="/ui/ecosystem">
            <button class="secondary"{disabled}>Spawn Ecosystem</button>
        </form>
        <form method="post" action="/ui/favorites-view">
            <button class="neutral">Favorites ({favorite_count})</button>
        </form>
        <form method="post" action="/ui/mutation">
            <span class="label">Mutation Mode</span>
            <button class="{mutation_class}">{mutation_label}</button>
        </form>
    </nav>
    """


def _render_main(
    state: ViewState, favorites: list[FavoriteRecord], favorite_names: set[str]
) -> str:
    if state.display_mode == DisplayMode.FAVORITES:
        return _render_favorites(favorites)

    if state.app_state == AppState.LOADING:
        message = (
            "Generating Ecosystem..."
            if state.display_mode == DisplayMode.ECOSYSTEM
            else "Generating Species..."
        )
        # Partial results (text ready, images rendering) show under the loader
        partial = "".join(
            _render_card(view, view.name in favorite_names) for view in _views_for(state)
        )
        return f"""
        <div class="loader">
            <p class="loader-title">{message}</p>
            <p class="muted">Please wait, the Xenoform algorithm is synthesizing...</p>
        </div>
        {partial}
        """

    if state.app_state == AppState.ERROR:
        return f'<p class="error">{html.escape(state.error or "")}</p>'

    if state.app_state == AppState.IDLE:
        return _render_welcome()

    return "".join(_render_card(view, view.name in favorite_names) for view in _views_for(state))


def _views_for(state: ViewState) -> list[SpeciesView]:
    if state.display_mode == DisplayMode.ECOSYSTEM:
        return list(state.current_ecosystem)
    return [state.current_species] if state.current_species else []


def _render_welcome() -> str:
    return """
    <section class="card welcome">
        <h2>Welcome to the Xenoform Codex</h2>
        <p>Press "Generate Species" to discover a new life-form, or "Spawn Ecosystem"
        to create an interconnected web of alien biology.</p>
        <p class="muted">Toggle "Mutation Mode" to evolve new species from the current
        specimen.</p>
        <p class="notice">Ambient biome audio simulation is offline for maintenance.</p>
    </section>
    """


def _render_card(view: SpeciesView, is_favorite: bool) -> str:
    """Render one species card

    All model-provided fields are HTML-escaped.
    """
    species = view.species
    name = html.escape(species.name)

    if view.image_url:
        image = (
            f'<img src="{html.escape(view.image_url, quote=True)}" '
            f'alt="Illustration of {name}">'
        )
    else:
        image = '<div class="image-pending">Rendering Specimen...</div>'

    save_label = "Saved" if is_favorite else "Save"
    save_class = "action active" if is_favorite else "action"
    query = urlencode({"name": species.name})
    toggle_href = f"/ui/favorites/toggle?{query}"
    export_href = f"/ui/export?{query}"

    fields = "".join(
        f"""
        <div class="field">
            <h3>{label}</h3>
            <p>{html.escape(value)}</p>
        </div>
        """
        for label, value in (
            ("Appearance", species.appearance),
            ("Habitat", species.habitat),
            ("Behaviour", species.behaviour),
            ("Evolution Story", species.evolution_story),
        )
    )

    return f"""
    <article class="card species">
        <div class="image">{image}</div>
        <div class="details">
            <div class="title-row">
                <h2>{name}</h2>
                <div class="actions">
                    <form method="post" action="{html.escape(toggle_href, quote=True)}">
                        <button class="{save_class}">{save_label}</button>
                    </form>
                    <a class="action" href="{html.escape(export_href, quote=True)}">Export</a>
                </div>
            </div>
            <p class="soundtrack">BIOME SOUNDTRACK: {html.escape(species.biome_soundtrack_prompt)}</p>
            {fields}
            <details class="copy">
                <summary>Copy</summary>
                <pre>{html.escape(species.to_json())}</pre>
            </details>
        </div>
    </article>
    """


def _render_favorites(favorites: list[FavoriteRecord]) -> str:
    """Render the favorites list

    Names are escaped for HTML and percent-encoded for the action URLs.
    """
    if not favorites:
        body = '<p class="muted">No species saved yet.</p>'
    else:
        items = ""
        for fav in favorites:
            path = quote(fav.name, safe="")
            items += f"""
            <li>
                <form method="post" action="/ui/favorites/{path}/view">
                    <button class="link">{html.escape(fav.name)}</button>
                </form>
                <form method="post" action="/ui/favorites/{path}/delete">
                    <button class="delete" title="Delete">Delete</button>
                </form>
            </li>
            """
        body = f'<ul class="favorites">{items}</ul>'

    return f"""
    <section class="card favorites-panel">
        <h2>Favorite Specimens</h2>
        {body}
    </section>
    """


def _get_page_css() -> str:
    """Page CSS styles"""
    return """
        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif;
            background: #0f172a;
            color: #f8fafc;
            max-width: 1100px;
            margin: 0 auto;
            padding: 32px 16px;
        }
        header { text-align: center; }
        h1 {
            font-size: 3em;
            letter-spacing: 0.3em;
            color: #67e8f9;
            margin-bottom: 4px;
        }
        .tagline { color: rgba(103, 232, 249, 0.7); font-size: 0.85em; }
        .controls {
            position: sticky;
            top: 0;
            display: flex;
            gap: 12px;
            justify-content: center;
            align-items: center;
            padding: 16px;
            margin-bottom: 32px;
            background: rgba(30, 41, 59, 0.85);
            border-radius: 8px;
        }
        .controls form { margin: 0; }
        button {
            font-weight: bold;
            color: white;
            border: none;
            border-radius: 6px;
            padding: 8px 16px;
            cursor: pointer;
        }
        button[disabled] { opacity: 0.5; cursor: not-allowed; }
        .primary { background: #06b6d4; }
        .secondary { background: #a855f7; }
        .neutral { background: #475569; }
        .toggle { background: #4b5563; }
        .toggle.on { background: #22c55e; }
        .label { color: #cbd5e1; font-size: 0.85em; margin-right: 6px; }
        .card {
            background: rgba(30, 41, 59, 0.7);
            border-radius: 8px;
            padding: 24px;
            margin: 0 auto 32px;
        }
        .species { display: grid; grid-template-columns: 1fr 1fr; gap: 24px; }
        .image img { width: 100%; border-radius: 6px; }
        .image-pending {
            min-height: 240px;
            display: flex;
            align-items: center;
            justify-content: center;
            background: #1e293b;
            color: #22d3ee;
        }
        .title-row { display: flex; justify-content: space-between; gap: 12px; }
        .title-row h2 { color: #67e8f9; margin: 0; word-break: break-word; }
        .actions { display: flex; gap: 8px; align-items: flex-start; }
        .action {
            background: rgba(51, 65, 85, 0.5);
            color: #22d3ee;
            font-size: 0.85em;
            padding: 8px 12px;
            border-radius: 6px;
            text-decoration: none;
        }
        .action.active { background: #22d3ee; color: #0f172a; }
        .soundtrack { color: rgba(103, 232, 249, 0.5); font-size: 0.75em; }
        .field h3 {
            color: #22d3ee;
            font-size: 0.8em;
            text-transform: uppercase;
            letter-spacing: 0.15em;
            margin-bottom: 4px;
        }
        .field p { color: #cbd5e1; white-space: pre-wrap; }
        .copy pre { white-space: pre-wrap; font-size: 0.8em; color: #94a3b8; }
        .loader { text-align: center; padding: 32px; }
        .loader-title { font-size: 1.2em; color: #67e8f9; }
        .muted { color: #94a3b8; font-size: 0.9em; }
        .notice { color: rgba(251, 191, 36, 0.5); font-size: 0.75em; margin-top: 24px; }
        .error { color: #f87171; text-align: center; }
        .welcome { max-width: 640px; text-align: center; }
        .favorites-panel { max-width: 760px; }
        .favorites { list-style: none; padding: 0; }
        .favorites li {
            display: flex;
            justify-content: space-between;
            align-items: center;
            background: rgba(30, 41, 59, 0.5);
            padding: 12px;
            border-radius: 6px;
            margin-bottom: 8px;
        }
        .link { background: none; padding: 0; }
        .delete { background: none; color: #f87171; }
    """
