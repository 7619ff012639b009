"""Entrypoint for the AAR records HTTP server."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

if __package__ in (None, ""):
    sys.path.insert(0, str(Path(__file__).resolve().parents[1]))  # pragma: no cover

from aar_records import __version__
from aar_records.config import load_settings
from aar_records.logging_utils import configure_logging

logger = logging.getLogger(__name__)


def run_entrypoint() -> None:
    """Load settings, configure logging and serve the app with uvicorn."""
    settings = load_settings()
    configure_logging(settings.logging)
    logger.info("Initializing AAR records server v%s", __version__)

    from aar_records.transport.http_server import create_http_app

    try:
        import uvicorn
    except ImportError as exc:
        raise RuntimeError("uvicorn is required to run the HTTP server") from exc

    app = create_http_app()
    # Plain HTTP only; no websocket endpoints are exposed.
    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        ws="none",
        log_config=None,
    )


if __name__ == "__main__":  # pragma: no cover
    run_entrypoint()
