"""
Request-id correlation and request timing for aiohttp routes.
"""

from __future__ import annotations

import time
from typing import Any
from uuid import uuid4

from aiohttp import web

from .shared import get_logger, request_id_var

logger = get_logger(__name__)

_SLOW_REQUEST_MS = 750.0


def _new_request_id() -> str:
    return uuid4().hex[:12]


def _get_request_id(request: web.Request) -> str:
    rid = (request.headers.get("X-Request-ID") or "").strip()
    return rid[:64] or _new_request_id()


def _attach_request_id_header(response: Any, rid: str) -> None:
    if isinstance(response, web.StreamResponse) and not response.prepared:
        response.headers["X-Request-ID"] = rid


@web.middleware
async def request_context_middleware(request: web.Request, handler):
    """Add request-id correlation and log slow or failing requests."""
    rid = _get_request_id(request)
    request["shelf_request_id"] = rid
    token = request_id_var.set(rid)
    start = time.perf_counter()
    status: int | None = None
    try:
        response = await handler(request)
        status = getattr(response, "status", 200)
        _attach_request_id_header(response, rid)
        return response
    except web.HTTPException as exc:
        status = exc.status
        exc.headers["X-Request-ID"] = rid
        raise
    except Exception:
        status = 500
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        raise
    finally:
        duration_ms = (time.perf_counter() - start) * 1000.0
        if status is not None and status >= 500:
            logger.error("%s %s -> %s (%.1fms)", request.method, request.path, status, duration_ms)
        elif duration_ms > _SLOW_REQUEST_MS and request.path != "/ws":
            logger.warning("Slow request %s %s -> %s (%.1fms)", request.method, request.path, status, duration_ms)
        request_id_var.reset(token)


def ensure_observability(app: web.Application) -> None:
    """Install the middleware once."""
    if request_context_middleware not in app.middlewares:
        app.middlewares.append(request_context_middleware)
