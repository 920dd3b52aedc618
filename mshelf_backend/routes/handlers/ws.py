"""
WebSocket endpoint: pushes ``{command, content}`` envelopes and accepts
``metadata-update`` messages from clients.
"""
import json
from typing import Any

from aiohttp import WSMsgType, web

from mshelf_backend.features.notify.broadcaster import CMD_METADATA_UPDATE, CMD_QUEUE_UPDATE
from mshelf_backend.shared import get_logger

from ..core import _require_services

logger = get_logger(__name__)

_HEARTBEAT_S = 30.0


async def _handle_client_message(svc: Any, ws: web.WebSocketResponse, raw: str) -> None:
    try:
        message = json.loads(raw)
    except ValueError:
        logger.warning("Ignoring malformed WebSocket message")
        return
    if not isinstance(message, dict):
        return
    command = message.get("command")
    if command == CMD_METADATA_UPDATE:
        result = await svc.metadata_updates.apply(message.get("content"), origin=ws)
        if not result.ok:
            logger.warning("Rejected metadata update: %s", result.error)
        return
    logger.debug("Ignoring unknown WebSocket command %r", command)


def register_ws_routes(routes: web.RouteTableDef) -> None:
    @routes.get("/ws")
    async def websocket(request: web.Request) -> web.StreamResponse:
        svc, error = _require_services(request)
        if error:
            raise web.HTTPServiceUnavailable(reason=error.error or "Services are not initialized")

        ws = web.WebSocketResponse(heartbeat=_HEARTBEAT_S)
        await ws.prepare(request)
        svc.broadcaster.register(ws)
        try:
            await ws.send_json({"command": CMD_QUEUE_UPDATE, "content": svc.state.snapshot()})
            async for msg in ws:
                if msg.type == WSMsgType.TEXT:
                    await _handle_client_message(svc, ws, msg.data)
                elif msg.type == WSMsgType.ERROR:
                    logger.warning("WebSocket closed with error: %s", ws.exception())
        finally:
            svc.broadcaster.unregister(ws)
        return ws
