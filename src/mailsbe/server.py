#!/usr/bin/env python
"""
Mailsbe server - the tracking pixel endpoint plus the dashboard.
"""

from typing import Optional

from .app import create_app
from .config import Settings, load_settings
from .dashboard_page import register_dashboard_routes
from .logging import setup_logging, get_logger

logger = get_logger(__name__)


def create_tracking_app(settings: Optional[Settings] = None):
    """Create and configure the tracking application."""
    settings = settings or load_settings()
    setup_logging(settings=settings)

    app = create_app(settings=settings)
    register_dashboard_routes(app)

    logger.info("Using %s backend", settings.backend)
    return app


def run(settings: Optional[Settings] = None) -> None:
    settings = settings or load_settings()
    app = create_tracking_app(settings)

    logger.info("Starting Mailsbe on %s:%s", settings.host, settings.port)
    logger.info("Pixel endpoint: %s", settings.endpoint_base_url)
    logger.info("Dashboard: http://%s:%s/dashboard", settings.host, settings.port)

    try:
        app.run(host=settings.host, port=settings.port, debug=settings.debug, threaded=True)
    finally:
        app.store.close()


if __name__ == '__main__':
    run()
