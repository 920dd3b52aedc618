"""
Observable processing state shared by the pipeline, walker and intake.
"""
from __future__ import annotations

from typing import Optional

from ...shared import ProcessingStage
from ..notify.broadcaster import NotificationBroadcaster


class ProcessingState:
    """
    ``isRunning``, current stage/file and the ingest queue for one pipeline.

    Every mutation republishes a ``queue-update`` to observers.
    """

    def __init__(self, broadcaster: Optional[NotificationBroadcaster] = None):
        self._broadcaster = broadcaster
        self.is_running = False
        self.stage = ProcessingStage.IDLE
        self.current_file: Optional[str] = None
        self.queue: list[str] = []

    def snapshot(self) -> dict:
        return {
            "isProcessing": self.is_running,
            "processingStage": self.stage.value,
            "currentProcessingFile": self.current_file,
            "queue": list(self.queue),
        }

    def publish(self) -> None:
        if self._broadcaster is not None:
            self._broadcaster.queue_update(self.snapshot())

    def enqueue(self, name: str) -> None:
        self.queue.append(name)
        self.publish()

    def mark_started(self, name: str) -> None:
        """Drop the first queue entry for ``name``; the walker is now on it."""
        if name in self.queue:
            self.queue.remove(name)
        self.current_file = name
        self.publish()

    def set_stage(self, stage: ProcessingStage, current_file: Optional[str] = None) -> None:
        self.stage = stage
        if current_file is not None:
            self.current_file = current_file
        self.publish()

    def set_running(self, running: bool) -> None:
        self.is_running = running
        if not running:
            self.stage = ProcessingStage.IDLE
            self.current_file = None
        self.publish()
