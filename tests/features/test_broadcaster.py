import asyncio
import json
import logging

import pytest

from mshelf_backend.features.ingest.state import ProcessingState
from mshelf_backend.features.notify.broadcaster import BroadcastLogHandler, NotificationBroadcaster


class _Socket:
    def __init__(self, fail: bool = False, closed: bool = False):
        self.fail = fail
        self.closed = closed
        self.sent = []

    async def send_str(self, data):
        if self.fail:
            raise ConnectionResetError("gone")
        self.sent.append(json.loads(data))

    async def close(self):
        self.closed = True


@pytest.mark.asyncio
async def test_broadcast_reaches_every_open_socket() -> None:
    hub = NotificationBroadcaster()
    a, b, closed = _Socket(), _Socket(), _Socket(closed=True)
    for ws in (a, b, closed):
        hub.register(ws)

    scheduled = hub.conversion_progress(42.5, "00h01m00s")
    await hub.drain()

    assert scheduled == 2
    expected = {"command": "conversion-progress", "content": {"percent": 42.5, "eta": "00h01m00s"}}
    assert a.sent == [expected]
    assert b.sent == [expected]
    assert hub.client_count == 2


@pytest.mark.asyncio
async def test_failed_send_drops_socket_without_affecting_others() -> None:
    hub = NotificationBroadcaster()
    good, bad = _Socket(), _Socket(fail=True)
    hub.register(good)
    hub.register(bad)

    hub.log_line("hello")
    await hub.drain()

    assert good.sent == [{"command": "log", "content": "hello"}]
    assert hub.client_count == 1
    assert hub.last_log == "hello"


@pytest.mark.asyncio
async def test_exclude_skips_origin() -> None:
    hub = NotificationBroadcaster()
    origin, other = _Socket(), _Socket()
    hub.register(origin)
    hub.register(other)

    hub.metadata_update([{"fullname": "x.jpg"}], exclude=origin)
    await hub.drain()

    assert origin.sent == []
    assert other.sent[0]["command"] == "metadata-update"


@pytest.mark.asyncio
async def test_close_all() -> None:
    hub = NotificationBroadcaster()
    ws = _Socket()
    hub.register(ws)
    await hub.close_all()
    assert ws.closed is True
    assert hub.client_count == 0


@pytest.mark.asyncio
async def test_no_observers_is_a_noop() -> None:
    hub = NotificationBroadcaster()
    assert hub.queue_update({"queue": []}) == 0


@pytest.mark.asyncio
async def test_state_changes_publish_queue_updates() -> None:
    hub = NotificationBroadcaster()
    ws = _Socket()
    hub.register(ws)
    state = ProcessingState(hub)

    state.enqueue("a.mov")
    state.set_running(True)
    state.mark_started("a.mov")
    state.set_running(False)
    await hub.drain()

    snapshots = [msg["content"] for msg in ws.sent]
    assert all(msg["command"] == "queue-update" for msg in ws.sent)
    assert snapshots[0]["queue"] == ["a.mov"]
    assert snapshots[2]["currentProcessingFile"] == "a.mov"
    assert snapshots[2]["queue"] == []
    assert snapshots[-1] == {
        "isProcessing": False,
        "processingStage": "idle",
        "currentProcessingFile": None,
        "queue": [],
    }


@pytest.mark.asyncio
async def test_log_handler_mirrors_records_from_threads() -> None:
    hub = NotificationBroadcaster()
    ws = _Socket()
    hub.register(ws)
    handler = BroadcastLogHandler(hub, asyncio.get_running_loop())
    logger = logging.getLogger("shelf.tests.mirror")
    logger.addHandler(handler)
    try:
        await asyncio.to_thread(logger.warning, "disk almost full")
        await asyncio.sleep(0)
        await hub.drain()
    finally:
        logger.removeHandler(handler)

    assert ws.sent
    assert ws.sent[0]["command"] == "log"
    assert "disk almost full" in ws.sent[0]["content"]
    assert "disk almost full" in hub.last_log
