"""Xenoform - procedural alien species and ecosystem generator"""

from __future__ import annotations

__version__ = "1.0.0"


# Lazy imports so `import xenoform` does not pull in the model SDKs
def __getattr__(name: str):
    if name in ("Species", "SpeciesView", "FavoriteRecord"):
        from xenoform.species import models

        return getattr(models, name)

    if name in ("SpeciesGenerator", "GenerationError"):
        from xenoform.species import generator

        return getattr(generator, name)

    if name == "FavoritesRepository":
        from xenoform.storage.favorites import FavoritesRepository

        return FavoritesRepository

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)


__all__ = [
    "FavoriteRecord",
    "FavoritesRepository",
    "GenerationError",
    "Species",
    "SpeciesGenerator",
    "SpeciesView",
]
