"""
Access to the per-application service container from handlers.
"""

from __future__ import annotations

from typing import Any

from aiohttp import web

from mshelf_backend.deps import ShelfServices
from mshelf_backend.shared import ErrorCode, Result

SERVICES_KEY: web.AppKey[ShelfServices] = web.AppKey("mshelf_services", ShelfServices)


def _require_services(request: web.Request) -> tuple[ShelfServices | None, Result[Any] | None]:
    svc = request.app.get(SERVICES_KEY)
    if svc is None:
        return None, Result.Err(ErrorCode.SERVICE_UNAVAILABLE, "Services are not initialized")
    return svc, None
