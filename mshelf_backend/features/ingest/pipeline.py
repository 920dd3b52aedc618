"""
Single-flight processing state machine.

``idle -> running -> idle`` with a ``queued`` overlay: triggers that arrive while
a pass is running collapse into exactly one follow-up pass.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from ...shared import get_logger, log_structured, log_success, timer
from .stability import StabilityMonitor
from .state import ProcessingState
from .walker import FolderWalker, WalkStats

logger = get_logger(__name__)


class ProcessingPipeline:
    def __init__(self, input_root: Path, monitor: StabilityMonitor, walker: FolderWalker, state: ProcessingState):
        self._input_root = Path(input_root)
        self._monitor = monitor
        self._walker = walker
        self.state = state
        self._queued = False
        self._idle = asyncio.Event()
        self._idle.set()
        self._tasks: set[asyncio.Task] = set()
        self.passes_completed = 0
        self.last_stats: Optional[WalkStats] = None

    @property
    def is_running(self) -> bool:
        return self.state.is_running

    @property
    def queued(self) -> bool:
        return self._queued

    async def trigger(self) -> bool:
        """
        Run processing passes until no further trigger is pending.

        Returns False when a pass was already running (the request is queued).
        """
        if self.state.is_running:
            self._queued = True
            logger.info("Processing already running, another pass queued")
            return False

        self.state.set_running(True)
        self._idle.clear()
        try:
            while True:
                await self._run_pass()
                if not self._queued:
                    break
                self._queued = False
        finally:
            self.state.set_running(False)
            self._idle.set()
        return True

    async def _run_pass(self) -> None:
        try:
            with timer("processing pass", logger):
                await self._monitor.wait_until_stable(self._input_root)
                stats = await self._walker.process("")
        except Exception:
            logger.exception("Processing pass failed")
            return
        self.passes_completed += 1
        self.last_stats = stats
        log_success(
            logger,
            f"Processing pass complete ({stats.transcoded} transcoded, {stats.copied} copied, "
            f"{stats.derived} derived, {stats.failed} failed)",
        )
        log_structured(logger, logging.DEBUG, "processing pass stats", **stats.to_dict())

    def schedule(self) -> asyncio.Task:
        """Start :meth:`trigger` in the background."""
        task = asyncio.create_task(self.trigger())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> None:
        await self._idle.wait()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
