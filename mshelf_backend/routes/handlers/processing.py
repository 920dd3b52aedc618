"""
Processing control: manual trigger and state snapshot.
"""
from aiohttp import web

from mshelf_backend.shared import Result
from mshelf_backend.tool_detect import get_tool_status

from ..core import _json_response, _require_services


def register_processing_routes(routes: web.RouteTableDef) -> None:
    @routes.post("/api/process")
    async def start_processing(request: web.Request) -> web.Response:
        """Start a processing pass now (or queue one if a pass is running)."""
        svc, error = _require_services(request)
        if error:
            return _json_response(error)
        already_running = svc.pipeline.is_running
        svc.debouncer.cancel()
        svc.pipeline.schedule()
        return _json_response(Result.Ok({"started": not already_running, "queued": already_running}))

    @routes.get("/api/state")
    async def get_state(request: web.Request) -> web.Response:
        svc, error = _require_services(request)
        if error:
            return _json_response(error)
        snapshot = svc.state.snapshot()
        snapshot["lastLog"] = svc.broadcaster.last_log
        last = svc.pipeline.last_stats
        snapshot["lastPass"] = last.to_dict() if last is not None else None
        snapshot["tools"] = get_tool_status(svc.config)
        return _json_response(Result.Ok(snapshot))
