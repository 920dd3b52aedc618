"""
Write-completion detection by polling file sizes.

A file is considered finished once its size has not changed for longer than the
stability window. There is no per-file timeout: a file that keeps growing keeps
the wait open.
"""
from __future__ import annotations

import asyncio
import os
import time
from pathlib import Path
from typing import Awaitable, Callable

from ...shared import get_logger

logger = get_logger(__name__)


def _snapshot_sizes(directory: Path) -> dict[str, int]:
    sizes: dict[str, int] = {}
    if not directory.is_dir():
        return sizes
    for dirpath, _dirnames, filenames in os.walk(directory):
        for name in filenames:
            path = os.path.join(dirpath, name)
            try:
                sizes[path] = os.stat(path).st_size
            except OSError:
                # Vanished between listing and stat
                continue
    return sizes


class StabilityMonitor:
    def __init__(
        self,
        window_s: float = 5.0,
        poll_s: float = 1.0,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.window_s = float(window_s)
        self.poll_s = float(poll_s)
        self._clock = clock
        self._sleep = sleep

    async def wait_until_stable(self, directory: Path) -> int:
        """
        Resolve once every file under ``directory`` has held its size for longer
        than the window. Returns the number of files seen stable.
        """
        tracked: dict[str, tuple[int, float]] = {}
        settled: dict[str, int] = {}
        cycles = 0
        while True:
            cycles += 1
            now = self._clock()
            sizes = await asyncio.to_thread(_snapshot_sizes, Path(directory))

            for gone in [p for p in tracked if p not in sizes]:
                del tracked[gone]
            for gone in [p for p in settled if p not in sizes]:
                del settled[gone]

            for path, size in sizes.items():
                if path in settled:
                    if settled[path] == size:
                        continue
                    # Grew again after settling
                    del settled[path]
                previous = tracked.get(path)
                if previous is None or previous[0] != size:
                    tracked[path] = (size, now)
                    continue
                if now - previous[1] > self.window_s:
                    del tracked[path]
                    settled[path] = size

            if not tracked:
                if cycles > 1:
                    logger.debug("%s file(s) stable after %s poll(s)", len(settled), cycles)
                return len(settled)
            await self._sleep(self.poll_s)
