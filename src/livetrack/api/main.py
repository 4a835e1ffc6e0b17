"""Livetrack API service entry point.

This module provides the application instance for ASGI servers (uvicorn)
and a run() function for direct execution.
"""

import logging

from livetrack.api import create_app
from livetrack.api.middleware import RequestIDLogFilter
from livetrack.core.settings import get_settings_safe

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(request_id)s]: %(message)s"

# Application instance for ASGI servers: livetrack.api.main:app
app = create_app(get_settings_safe())


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with request ID correlation."""
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
    for handler in logging.getLogger().handlers:
        handler.addFilter(RequestIDLogFilter())


def run() -> None:
    """Run the API server using uvicorn.

    This function is called by the livetrack-api console script
    defined in pyproject.toml.
    """
    import uvicorn

    settings = app.state.settings
    if settings is not None:
        configure_logging(settings.log_level)
        host = settings.api_host
        port = settings.api_port
    else:
        configure_logging()
        logger.warning("Could not load settings, using defaults")
        host = "127.0.0.1"
        port = 8000

    logger.info("Starting Livetrack API on %s:%d", host, port)

    uvicorn.run(
        "livetrack.api.main:app",
        host=host,
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    run()
