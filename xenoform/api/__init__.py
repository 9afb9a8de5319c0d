"""Xenoform web API and server-rendered UI."""

from __future__ import annotations


def main() -> None:
    """Run the API server (xenoform-api console script)."""
    import uvicorn

    from xenoform.config import API_HOST, API_PORT, DEBUG, LOG_LEVEL

    uvicorn.run(
        "xenoform.api.app:app",
        host=API_HOST,
        port=API_PORT,
        reload=DEBUG,
        log_level=LOG_LEVEL.lower(),
    )
