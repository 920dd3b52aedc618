"""
Fan-out of ``{command, content}`` envelopes to every open WebSocket.

Sends are fire-and-forget: a slow or dead observer never blocks the pipeline,
and sockets that fail are dropped from the registry.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Iterable, Optional

from aiohttp import web

from ...shared import get_logger

logger = get_logger(__name__)

CMD_LOG = "log"
CMD_QUEUE_UPDATE = "queue-update"
CMD_CONVERSION_PROGRESS = "conversion-progress"
CMD_METADATA_UPDATE = "metadata-update"


class NotificationBroadcaster:
    def __init__(self) -> None:
        self._clients: set[web.WebSocketResponse] = set()
        self._pending: set[asyncio.Task] = set()
        self.last_log: str = ""

    @property
    def client_count(self) -> int:
        return len(self._clients)

    def register(self, ws: web.WebSocketResponse) -> None:
        self._clients.add(ws)
        logger.debug("Observer connected (%s open)", len(self._clients))

    def unregister(self, ws: web.WebSocketResponse) -> None:
        self._clients.discard(ws)

    def broadcast(self, command: str, content: Any, *, exclude: Optional[web.WebSocketResponse] = None) -> int:
        """
        Queue one envelope to every open observer.

        Returns the number of sockets a send was scheduled for. Must be called
        from the event loop thread.
        """
        if not self._clients:
            return 0
        data = json.dumps({"command": command, "content": content}, default=str)
        scheduled = 0
        for ws in list(self._clients):
            if ws is exclude:
                continue
            if ws.closed:
                self._clients.discard(ws)
                continue
            task = asyncio.create_task(self._send(ws, data))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            scheduled += 1
        return scheduled

    async def _send(self, ws: web.WebSocketResponse, data: str) -> None:
        try:
            await ws.send_str(data)
        except (ConnectionError, RuntimeError) as exc:
            logger.debug("Dropping observer after failed send: %s", exc)
            self._clients.discard(ws)

    async def drain(self) -> None:
        """Wait for in-flight sends (used on shutdown and in tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close_all(self) -> None:
        await self.drain()
        for ws in list(self._clients):
            await ws.close()
        self._clients.clear()

    def queue_update(self, state: dict) -> int:
        return self.broadcast(CMD_QUEUE_UPDATE, state)

    def conversion_progress(self, percent: float, eta: str) -> int:
        return self.broadcast(CMD_CONVERSION_PROGRESS, {"percent": percent, "eta": eta})

    def metadata_update(self, payloads: Iterable[dict], *, exclude: Optional[web.WebSocketResponse] = None) -> int:
        return self.broadcast(CMD_METADATA_UPDATE, list(payloads), exclude=exclude)

    def log_line(self, message: str) -> int:
        self.last_log = message
        return self.broadcast(CMD_LOG, message)


class BroadcastLogHandler(logging.Handler):
    """
    Mirror log records to observers as ``log`` messages.

    Records may come from worker threads (``asyncio.to_thread``), so delivery
    is always marshalled onto the owning loop.
    """

    def __init__(self, broadcaster: NotificationBroadcaster, loop: asyncio.AbstractEventLoop, level: int = logging.INFO):
        super().__init__(level)
        self._broadcaster = broadcaster
        self._loop = loop
        self.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        # Sends are logged by the broadcaster itself
        if record.name == logger.name:
            return
        try:
            message = self.format(record)
            if self._loop.is_closed():
                return
            self._loop.call_soon_threadsafe(self._broadcaster.log_line, message)
        except (RuntimeError, ValueError, TypeError):
            self.handleError(record)
