"""
Application factory.
"""
from __future__ import annotations

from typing import Optional

from aiohttp import web

from .config import ShelfConfig, load_config
from .deps import ShelfServices, build_services
from .routes import SERVICES_KEY, register_all_routes
from .shared import get_logger, log_success

logger = get_logger(__name__)

MAX_REQUEST_BYTES = 8 * 1024 * 1024 * 1024


def create_app(config: Optional[ShelfConfig] = None, services: Optional[ShelfServices] = None) -> web.Application:
    """
    Build the aiohttp application.

    ``services`` lets tests inject a container built around fakes; otherwise
    one is built from ``config`` (or the environment).
    """
    if services is None:
        built = build_services(config or load_config())
        services = built.unwrap()

    app = web.Application(client_max_size=min(MAX_REQUEST_BYTES, services.config.max_upload_bytes * 2))
    app[SERVICES_KEY] = services
    register_all_routes(app)
    app.on_startup.append(_on_startup)
    app.on_shutdown.append(_on_shutdown)
    return app


async def _on_startup(app: web.Application) -> None:
    services = app[SERVICES_KEY]
    await services.start()
    log_success(logger, f"Media library ready (input: {services.config.input_root})")


async def _on_shutdown(app: web.Application) -> None:
    services = app[SERVICES_KEY]
    await services.stop()
