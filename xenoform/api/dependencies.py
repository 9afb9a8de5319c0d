"""FastAPI dependencies shared by the Xenoform routers."""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends

from xenoform.api.middleware.client_identity import get_client_id
from xenoform.species.generator import SpeciesGenerator
from xenoform.species.session import GeneratorSession, SessionStore, get_session_store


@lru_cache(maxsize=1)
def get_generator() -> SpeciesGenerator:
    """Generator used by the stateless /api/generate endpoints."""
    return SpeciesGenerator()


def get_store() -> SessionStore:
    return get_session_store()


def get_session(
    client_id: str = Depends(get_client_id),
    store: SessionStore = Depends(get_store),
) -> GeneratorSession:
    """The caller's view session, created on first use."""
    return store.get(client_id)
