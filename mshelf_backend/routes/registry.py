"""
Route registration system.
Collects every handler group into one RouteTableDef and installs it on an app.
"""

from __future__ import annotations

from aiohttp import web

from mshelf_backend.observability import ensure_observability
from mshelf_backend.shared import get_logger

from .handlers import (
    register_library_routes,
    register_listing_routes,
    register_processing_routes,
    register_upload_routes,
    register_ws_routes,
)

API_PREFIX = "/api/"
_APP_KEY_ROUTES_REGISTERED: web.AppKey[bool] = web.AppKey("_shelf_routes_registered", bool)

logger = get_logger(__name__)


def build_route_table() -> web.RouteTableDef:
    routes = web.RouteTableDef()
    register_listing_routes(routes)
    register_upload_routes(routes)
    register_library_routes(routes)
    register_processing_routes(routes)
    register_ws_routes(routes)
    return routes


def register_all_routes(app: web.Application) -> None:
    """Install middleware and every route on ``app`` (idempotent)."""
    if app.get(_APP_KEY_ROUTES_REGISTERED):
        return
    ensure_observability(app)
    routes = build_route_table()
    app.add_routes(routes)
    app[_APP_KEY_ROUTES_REGISTERED] = True
    logger.debug("Registered %s routes", len(list(routes)))
