"""
Library mutation endpoints: delete, move, new folder, thumbnail pick, metadata reset.
"""
from aiohttp import web

from mshelf_backend.path_utils import normalize_logical_path, safe_item_name
from mshelf_backend.shared import ErrorCode, Result, get_logger
from mshelf_backend.utils import parse_bool, parse_int

from ..core import _json_response, _read_json, _require_services

logger = get_logger(__name__)


def register_library_routes(routes: web.RouteTableDef) -> None:
    @routes.post("/api/delete")
    async def delete_item(request: web.Request) -> web.Response:
        """Body: ``{path, name, isFolder}``. Data: ``{hasContent}``."""
        svc, error = _require_services(request)
        if error:
            return _json_response(error)
        body = await _read_json(request)
        if not body.ok:
            return _json_response(body)
        payload = body.data
        result = await svc.library.delete_item(
            payload.get("path", ""),
            payload.get("name"),
            is_folder=parse_bool(payload.get("isFolder"), False),
        )
        return _json_response(result)

    @routes.post("/api/move")
    async def move_item(request: web.Request) -> web.Response:
        """Body: ``{sourcePath, destinationPath, operatingPath, name, isFolder}``."""
        svc, error = _require_services(request)
        if error:
            return _json_response(error)
        body = await _read_json(request)
        if not body.ok:
            return _json_response(body)
        payload = body.data
        result = await svc.library.move_item(
            payload.get("name"),
            payload.get("destinationPath"),
            operating_path=payload.get("operatingPath"),
            source_path=payload.get("sourcePath"),
            is_folder=parse_bool(payload.get("isFolder"), False),
        )
        return _json_response(result)

    @routes.post("/api/newfolder")
    async def create_folder(request: web.Request) -> web.Response:
        """Body: ``{path, name}``. Data: true when the folder was created."""
        svc, error = _require_services(request)
        if error:
            return _json_response(error)
        body = await _read_json(request)
        if not body.ok:
            return _json_response(body)
        created = await svc.library.create_folder(body.data.get("path", ""), body.data.get("name"))
        return _json_response(Result.Ok(created))

    @routes.post("/api/thumbnail")
    async def set_thumbnail(request: web.Request) -> web.Response:
        """Body: ``{path, name, frame}``; the chosen sprite frame becomes the thumbnail."""
        svc, error = _require_services(request)
        if error:
            return _json_response(error)
        body = await _read_json(request)
        if not body.ok:
            return _json_response(body)
        folder = normalize_logical_path(body.data.get("path", ""))
        name = safe_item_name(body.data.get("name"))
        if folder is None or name is None:
            return _json_response(Result.Err(ErrorCode.INVALID_INPUT, "Invalid path or name"))
        result = await svc.thumbnails.set_thumbnail_from_sprite(folder, name, parse_int(body.data.get("frame"), -1))
        if result.ok:
            svc.listing_cache.invalidate(folder)
        return _json_response(result)

    @routes.post("/api/metadata/clear")
    async def clear_metadata(request: web.Request) -> web.Response:
        svc, error = _require_services(request)
        if error:
            return _json_response(error)
        result = await svc.library.clear_metadata()
        if result.ok:
            logger.info("Metadata and listing cache cleared")
        return _json_response(result)
