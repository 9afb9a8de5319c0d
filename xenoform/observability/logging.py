"""Process-wide logging setup.

Every module calls get_logger(__name__); the first call attaches a single
stream handler to the root logger so uvicorn, the CLI and the tests all share
one format.
"""

from __future__ import annotations

import logging
import os
from typing import Final

_HANDLER_ATTACHED: bool = False
_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"


def _resolve_level(override: str | None = None) -> int:
    level_name = (override or os.getenv("XENOFORM_LOG_LEVEL", "INFO")).upper()
    return getattr(logging, level_name, logging.INFO)


def configure_logging(level: str | None = None) -> None:
    """Attach the root handler (once) and apply the requested level.

    An explicit level always wins; without one the level comes from
    XENOFORM_LOG_LEVEL the first time only.
    """
    global _HANDLER_ATTACHED

    root = logging.getLogger()

    if not _HANDLER_ATTACHED:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT))
        root.addHandler(handler)
        root.setLevel(_resolve_level(level))
        _HANDLER_ATTACHED = True
    elif level is not None:
        root.setLevel(_resolve_level(level))


def get_logger(name: str) -> logging.Logger:
    """Return a module logger that inherits the root handler and level."""
    configure_logging()
    return logging.getLogger(name)
