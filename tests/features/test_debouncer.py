import asyncio

import pytest

from mshelf_backend.features.ingest.debounce import Debouncer


class _FakeTimer:
    def __init__(self):
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class _FakeLoop:
    def __init__(self):
        self.calls = []
        self.timers = []

    def call_later(self, delay, fn):
        self.calls.append((delay, fn))
        timer = _FakeTimer()
        self.timers.append(timer)
        return timer


def test_rearm_cancels_previous_timer() -> None:
    loop = _FakeLoop()
    fired = []
    debouncer = Debouncer(2.0, lambda: fired.append(1), loop=loop)

    debouncer.arm()
    debouncer.arm()
    debouncer.arm()

    assert [delay for delay, _ in loop.calls] == [2.0, 2.0, 2.0]
    assert [t.cancelled for t in loop.timers] == [True, True, False]
    assert debouncer.pending is True

    _, fire = loop.calls[-1]
    fire()
    assert fired == [1]
    assert debouncer.fire_count == 1
    assert debouncer.pending is False


def test_cancel_clears_pending_timer() -> None:
    loop = _FakeLoop()
    debouncer = Debouncer(1.0, lambda: None, loop=loop)
    debouncer.arm()
    debouncer.cancel()
    assert loop.timers[0].cancelled is True
    assert debouncer.pending is False


@pytest.mark.asyncio
async def test_burst_of_arms_fires_once_and_schedules_coroutines() -> None:
    runs = []

    async def _callback():
        runs.append(asyncio.get_running_loop().time())

    debouncer = Debouncer(0.05, _callback)
    for _ in range(5):
        debouncer.arm()
        await asyncio.sleep(0.005)
    await asyncio.sleep(0.2)

    assert debouncer.fire_count == 1
    assert len(runs) == 1
