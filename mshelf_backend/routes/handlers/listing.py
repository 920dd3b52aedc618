"""
Directory listing and tag lookup endpoints.
"""
from aiohttp import web

from mshelf_backend.path_utils import normalize_logical_path
from mshelf_backend.shared import ErrorCode, Result, get_logger

from ..core import _json_response, _require_services

logger = get_logger(__name__)


def register_listing_routes(routes: web.RouteTableDef) -> None:
    @routes.get("/api/listing")
    async def get_listing(request: web.Request) -> web.Response:
        """
        Sorted listing of one library directory.

        Query params:
            - path: logical directory ("" or "/" for the root)
            - sort: ``<key>-<asc|desc>`` (optional; the stored choice is reused)
        """
        svc, error = _require_services(request)
        if error:
            return _json_response(error)
        folder = normalize_logical_path(request.query.get("path", ""))
        if folder is None:
            return _json_response(Result.Err(ErrorCode.INVALID_INPUT, "Invalid path"))
        return _json_response(await svc.listing_cache.get(folder, request.query.get("sort")))

    @routes.get("/api/tags/{tag}")
    async def find_by_tag(request: web.Request) -> web.Response:
        svc, error = _require_services(request)
        if error:
            return _json_response(error)
        tag = request.match_info.get("tag", "").strip()
        if not tag:
            return _json_response(Result.Err(ErrorCode.INVALID_INPUT, "Missing tag"))
        items = await svc.metadata.find_items_by_tag(tag)
        return _json_response(Result.Ok(items, total=len(items)))
