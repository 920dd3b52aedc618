"""
Optional watchdog observer over the input tree.

Files copied straight into the input folder (not uploaded) are queued and arm
the same debounce as uploads, so they are picked up by the next pass.
"""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ...shared import get_logger

logger = get_logger(__name__)


class InputEventHandler(FileSystemEventHandler):
    """Forward file arrivals under ``root`` to ``on_arrival`` on the loop thread."""

    def __init__(self, root: Path, loop: asyncio.AbstractEventLoop, on_arrival: Callable[[str], None]):
        super().__init__()
        self._root = Path(root)
        self._loop = loop
        self._on_arrival = on_arrival

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle(str(event.src_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        # Slow copies report content after the create event
        if not event.is_directory:
            self._handle(str(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle(str(getattr(event, "dest_path", "") or ""))

    def _handle(self, raw_path: str) -> None:
        if not raw_path:
            return
        try:
            relative = Path(raw_path).relative_to(self._root)
        except ValueError:
            return
        if any(part.startswith(".") for part in relative.parts):
            return
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._on_arrival, relative.name)


class InputWatcher:
    def __init__(self, root: Path, on_arrival: Callable[[str], None]):
        self._root = Path(root)
        self._on_arrival = on_arrival
        self._observer: Optional[Any] = None

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def start(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> bool:
        if self._observer is not None:
            return True
        if not self._root.is_dir():
            logger.warning("Input watcher not started, missing directory: %s", self._root)
            return False
        handler = InputEventHandler(self._root, loop or asyncio.get_running_loop(), self._on_arrival)
        observer = Observer()
        observer.schedule(handler, str(self._root), recursive=True)
        observer.start()
        self._observer = observer
        logger.info("Watching input folder for new files: %s", self._root)
        return True

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=2)
        self._observer = None
        logger.info("Input watcher stopped")
