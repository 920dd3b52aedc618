"""
Recursive dispatch of the input tree to the transform adapters.

Each item is handled on its own: a failing transcode or thumbnail is logged and
the walk moves on. Output artifacts that already exist are never rebuilt, which
makes repeated walks over an unchanged tree free of adapter calls.
"""
from __future__ import annotations

import asyncio
import os
import shutil
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

from ...adapters.tools import HandBrakeTranscoder
from ...config import ShelfConfig
from ...path_utils import join_logical, parent_logical, resolve_under
from ...shared import ProcessingStage, classify_file, get_logger, is_hidden_name
from ..browser.listing_cache import DirectoryListingCache
from ..derivatives.service import ThumbnailMaker
from ..notify.broadcaster import NotificationBroadcaster
from .state import ProcessingState

logger = get_logger(__name__)


@dataclass
class WalkStats:
    transcoded: int = 0
    copied: int = 0
    derived: int = 0
    skipped: int = 0
    failed: int = 0
    removed: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def _list_entries(directory: Path) -> list[tuple[str, bool]]:
    if not directory.is_dir():
        return []
    with os.scandir(directory) as it:
        entries = [(entry.name, entry.is_dir()) for entry in it if not is_hidden_name(entry.name)]
    return sorted(entries, key=lambda e: e[0].casefold())


class FolderWalker:
    def __init__(
        self,
        config: ShelfConfig,
        transcoder: HandBrakeTranscoder,
        thumbnails: ThumbnailMaker,
        listing_cache: DirectoryListingCache,
        state: ProcessingState,
        broadcaster: Optional[NotificationBroadcaster] = None,
    ):
        self._config = config
        self._transcoder = transcoder
        self._thumbnails = thumbnails
        self._cache = listing_cache
        self._state = state
        self._broadcaster = broadcaster

    async def process(self, folder: str = "") -> WalkStats:
        """Walk ``folder`` (logical, relative to the input root) and everything below it."""
        stats = WalkStats()
        await self._walk(folder, stats)
        return stats

    async def _walk(self, folder: str, stats: WalkStats) -> None:
        await self._ensure_output_dirs(folder)
        entries = await asyncio.to_thread(_list_entries, resolve_under(self._config.input_root, folder))
        for name, is_dir in entries:
            if is_dir:
                await self._walk(join_logical(folder, name), stats)
                continue
            self._state.mark_started(name)
            try:
                succeeded = await self._dispatch(folder, name, stats)
            except Exception:
                logger.exception("Unexpected failure while processing %s", join_logical(folder, name))
                stats.failed += 1
                succeeded = False
            if succeeded and self._config.delete_source_after_processing:
                await self._remove_source(folder, name, stats)
            self._cache.invalidate(folder)

    async def _ensure_output_dirs(self, folder: str) -> None:
        output_dir = resolve_under(self._config.output_root, folder)
        created = not output_dir.is_dir()
        await asyncio.to_thread(output_dir.mkdir, parents=True, exist_ok=True)
        await asyncio.to_thread(
            resolve_under(self._config.thumbnail_root, folder).mkdir, parents=True, exist_ok=True
        )
        if created and folder:
            self._cache.invalidate(parent_logical(folder))

    async def _dispatch(self, folder: str, name: str, stats: WalkStats) -> bool:
        kind = classify_file(name)
        if kind == "video":
            return await self._process_video(folder, name, stats)
        if kind == "image":
            return await self._process_image(folder, name, stats)
        logger.info("Not a video or image file, skipping: %s", join_logical(folder, name))
        stats.skipped += 1
        return True

    async def _process_video(self, folder: str, name: str, stats: WalkStats) -> bool:
        source = resolve_under(self._config.input_root, folder) / name
        output_name = f"{Path(name).stem}.{self._config.converted_ext}"
        output_path = resolve_under(self._config.output_root, folder) / output_name

        if output_path.exists():
            logger.info("Converted output already exists, skipping transcode: %s", join_logical(folder, output_name))
        else:
            self._state.set_stage(ProcessingStage.TRANSCODING, name)
            working_dir = resolve_under(self._config.working_root, folder)
            await asyncio.to_thread(working_dir.mkdir, parents=True, exist_ok=True)
            staged = working_dir / output_name
            await asyncio.to_thread(staged.unlink, missing_ok=True)

            result = await self._transcoder.transcode(source, staged, on_progress=self._report_progress)
            if not result.ok:
                logger.error("Transcode failed for %s: %s", join_logical(folder, name), result.error)
                stats.failed += 1
                return False
            self._state.set_stage(ProcessingStage.RELOCATING, name)
            await asyncio.to_thread(shutil.move, str(staged), str(output_path))
            stats.transcoded += 1

        if self._thumbnails.has_video_derivatives(folder, output_name):
            return True
        self._state.set_stage(ProcessingStage.DERIVING, name)
        derived = await self._thumbnails.make_video_derivatives(output_path, folder)
        if not derived.ok:
            logger.error("Thumbnails failed for %s: %s", join_logical(folder, output_name), derived.error)
            stats.failed += 1
            return False
        stats.derived += 1
        return True

    async def _process_image(self, folder: str, name: str, stats: WalkStats) -> bool:
        source = resolve_under(self._config.input_root, folder) / name
        destination = resolve_under(self._config.output_root, folder) / name

        if not destination.exists():
            self._state.set_stage(ProcessingStage.RELOCATING, name)
            await asyncio.to_thread(shutil.copy2, source, destination)
            stats.copied += 1

        if self._thumbnails.has_image_thumbnail(folder, name):
            return True
        self._state.set_stage(ProcessingStage.DERIVING, name)
        derived = await self._thumbnails.make_image_thumbnail(destination, folder)
        if not derived.ok:
            logger.error("Thumbnail failed for %s: %s", join_logical(folder, name), derived.error)
            stats.failed += 1
            return False
        stats.derived += 1
        return True

    async def _remove_source(self, folder: str, name: str, stats: WalkStats) -> None:
        source = resolve_under(self._config.input_root, folder) / name
        try:
            await asyncio.to_thread(source.unlink, missing_ok=True)
            stats.removed += 1
        except OSError as exc:
            logger.warning("Could not remove processed source %s: %s", join_logical(folder, name), exc)

    async def _report_progress(self, percent: float, eta: str) -> None:
        if self._broadcaster is not None:
            self._broadcaster.conversion_progress(percent, eta)
