"""
Re-armable one-shot timer on the event loop.
"""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional

from ...shared import get_logger

logger = get_logger(__name__)


class Debouncer:
    """
    Fire ``callback`` once, ``delay_s`` after the most recent :meth:`arm`.

    Re-arming cancels the pending fire. Coroutine results are scheduled as
    tasks. Must be armed from the loop thread (watchers use
    ``call_soon_threadsafe``).
    """

    def __init__(self, delay_s: float, callback: Callable[[], Any], loop: Optional[asyncio.AbstractEventLoop] = None):
        self.delay_s = max(0.0, float(delay_s))
        self._callback = callback
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self._tasks: set[asyncio.Task] = set()
        self.fire_count = 0

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def arm(self) -> None:
        loop = self._loop or asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self.delay_s, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self.fire_count += 1
        outcome = self._callback()
        if asyncio.iscoroutine(outcome):
            task = asyncio.ensure_future(outcome)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
