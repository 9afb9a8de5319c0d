"""
Pytest configuration for Xenoform tests

Model calls are replaced by FakeModels (deterministic JSON and image bytes),
and every test that touches storage gets its own SQLite file.
"""

from __future__ import annotations

import itertools
import json
import os
import re
import tempfile
import threading
import time
from pathlib import Path

import pytest

# Keep the app's import-time init_database() out of the source tree
os.environ.setdefault(
    "XENOFORM_DB_PATH", str(Path(tempfile.mkdtemp(prefix="xenoform-")) / "xenoform.db")
)

from xenoform.infrastructure.database import init_database, reset_pool  # noqa: E402
from xenoform.infrastructure.llm_budget import reset_budget  # noqa: E402
from xenoform.observability.telemetry import reset_telemetry  # noqa: E402
from xenoform.species.generator import SpeciesGenerator  # noqa: E402
from xenoform.species.models import Species  # noqa: E402
from xenoform.species.session import GeneratorSession, SessionStore  # noqa: E402

_ip_counter = itertools.count(1)


def build_species(name: str = "Thalassoraptor viridis", **overrides: str) -> Species:
    fields = {
        "name": name,
        "appearance": f"appearance of {name}",
        "habitat": "Tidal flats of a tidally locked ocean world",
        "behaviour": "Ambush predator that hunts in pairs",
        "evolution_story": "Descended from filter feeders that learned to bite.",
        "biome_soundtrack_prompt": "slow hydrophone drones, distant clicks",
    }
    fields.update(overrides)
    return Species(**fields)


class FakeModels:
    """Stand-ins for call_llm and generate_image_bytes."""

    def __init__(self) -> None:
        self.text_calls: list[tuple[str, str, dict | None]] = []
        self.image_prompts: list[str] = []
        self.fail_text = False
        self.fail_image = False
        self.raw_text: str | None = None
        self.ecosystem_override: list[dict] | None = None
        self.image_delay: float = 0.0
        self._serial = itertools.count(1)
        self._lock = threading.Lock()

    def text(self, prompt: str, counter_prefix: str = "llm", response_schema=None) -> str:
        with self._lock:
            self.text_calls.append((counter_prefix, prompt, response_schema))
        if self.fail_text:
            raise ConnectionError("backend unavailable")
        if self.raw_text is not None:
            return self.raw_text

        if counter_prefix == "ecosystem":
            if self.ecosystem_override is not None:
                return json.dumps({"ecosystem": self.ecosystem_override})
            size = int(re.search(r"ecosystem of (\d+) alien species", prompt).group(1))
            members = [build_species(f"Member {i}").model_dump() for i in range(size)]
            return json.dumps({"ecosystem": members})

        serial = next(self._serial)
        return build_species(f"Specimen {serial}").to_json()

    def image(self, prompt: str) -> bytes:
        with self._lock:
            self.image_prompts.append(prompt)
        if self.fail_image:
            raise ConnectionError("imagen unavailable")

        subject = re.search(r"Subject Description: appearance of (.+?)\.\n", prompt).group(1)
        match = re.search(r"Member (\d+)", subject)
        if match and self.image_delay:
            # Later members finish first so ordering is actually exercised
            time.sleep(self.image_delay * (10 - int(match.group(1))))
        return f"image:{subject}".encode()


@pytest.fixture(autouse=True)
def _reset_process_state():
    reset_budget()
    reset_telemetry()
    yield
    reset_budget()


@pytest.fixture
def make_species():
    return build_species


@pytest.fixture
def fake_models() -> FakeModels:
    return FakeModels()


@pytest.fixture
def generator(fake_models) -> SpeciesGenerator:
    return SpeciesGenerator(text_fn=fake_models.text, image_fn=fake_models.image)


@pytest.fixture
def session(generator) -> GeneratorSession:
    return GeneratorSession("client-1", generator=generator)


@pytest.fixture
def db_path(tmp_path, monkeypatch) -> Path:
    """Fresh initialized database for one test."""
    path = tmp_path / "xenoform.db"
    monkeypatch.setenv("XENOFORM_DB_PATH", str(path))
    reset_pool()
    init_database()
    yield path
    reset_pool()


@pytest.fixture
def client(db_path, generator):
    """TestClient with fake models; each test appears to come from its own IP."""
    from fastapi.testclient import TestClient

    from xenoform.api.app import app
    from xenoform.api.dependencies import get_generator, get_store

    store = SessionStore(generator=generator)
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_generator] = lambda: generator

    n = next(_ip_counter)
    headers = {"X-Forwarded-For": f"10.{n // 65536 % 256}.{n // 256 % 256}.{n % 256}"}
    with TestClient(app, headers=headers) as test_client:
        yield test_client

    app.dependency_overrides.clear()
