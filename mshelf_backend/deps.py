"""
Dependency injection - builds services.
Simple, debug-friendly DI without framework magic.
"""
from __future__ import annotations

import asyncio
import logging
import shutil
from dataclasses import dataclass, field
from typing import Optional

from .adapters.tools import FFmpegFrames, FFProbe, HandBrakeTranscoder
from .config import ShelfConfig
from .features.browser import DirectoryListingCache
from .features.derivatives import ThumbnailMaker
from .features.ingest import (
    Debouncer,
    FolderWalker,
    InputWatcher,
    ProcessingPipeline,
    ProcessingState,
    StabilityMonitor,
    UploadIntake,
)
from .features.library import LibraryService
from .features.metadata import MetadataStore, MetadataUpdateService
from .features.notify import BroadcastLogHandler, NotificationBroadcaster
from .shared import ROOT_LOGGER_NAME, ErrorCode, Result, get_logger, log_success, sanitize_error_message

logger = get_logger(__name__)


@dataclass
class ShelfServices:
    """Everything one running library needs; tests build isolated instances."""

    config: ShelfConfig
    broadcaster: NotificationBroadcaster
    ffprobe: FFProbe
    frames: FFmpegFrames
    transcoder: HandBrakeTranscoder
    thumbnails: ThumbnailMaker
    metadata: MetadataStore
    listing_cache: DirectoryListingCache
    metadata_updates: MetadataUpdateService
    state: ProcessingState
    walker: FolderWalker
    pipeline: ProcessingPipeline
    debouncer: Debouncer
    intake: UploadIntake
    library: LibraryService
    watcher: Optional[InputWatcher] = None
    _log_handler: Optional[logging.Handler] = field(default=None, repr=False)

    async def start(self) -> None:
        """Prepare directories, mirror logs to observers, start the input watcher."""
        prepare_directories(self.config)
        handler = BroadcastLogHandler(self.broadcaster, asyncio.get_running_loop())
        logging.getLogger(ROOT_LOGGER_NAME).addHandler(handler)
        self._log_handler = handler
        if self.watcher is not None:
            self.watcher.start()

    async def stop(self) -> None:
        self.debouncer.cancel()
        if self.watcher is not None:
            self.watcher.stop()
        if self._log_handler is not None:
            logging.getLogger(ROOT_LOGGER_NAME).removeHandler(self._log_handler)
            self._log_handler = None
        await self.broadcaster.close_all()


def prepare_directories(config: ShelfConfig) -> None:
    """Create the library roots and start from an empty working folder."""
    for root in config.roots:
        root.mkdir(parents=True, exist_ok=True)
    if config.working_root.exists():
        shutil.rmtree(config.working_root)
    config.working_root.mkdir(parents=True, exist_ok=True)


def _log_tool_availability(transcoder: HandBrakeTranscoder, ffprobe: FFProbe, frames: FFmpegFrames) -> None:
    if transcoder.is_available():
        log_success(logger, "HandBrakeCLI is available")
    else:
        logger.warning("HandBrakeCLI not found - videos will not be converted")
    if ffprobe.is_available():
        log_success(logger, "ffprobe is available")
    else:
        logger.warning("ffprobe not found - video details will show as empty")
    if frames.is_available():
        log_success(logger, "ffmpeg is available")
    else:
        logger.warning("ffmpeg not found - video thumbnails will not be generated")


def build_services(
    config: ShelfConfig,
    *,
    ffprobe: Optional[FFProbe] = None,
    frames: Optional[FFmpegFrames] = None,
    transcoder: Optional[HandBrakeTranscoder] = None,
) -> Result[ShelfServices]:
    """
    Wire every service for ``config``.

    Tool adapters may be passed in (tests use fakes); otherwise they are built
    from the configured binaries.
    """
    try:
        broadcaster = NotificationBroadcaster()
        ffprobe = ffprobe or FFProbe(bin_name=config.ffprobe_bin, timeout=config.ffprobe_timeout_s)
        frames = frames or FFmpegFrames(bin_name=config.ffmpeg_bin)
        transcoder = transcoder or HandBrakeTranscoder(bin_name=config.handbrake_bin, preset=config.handbrake_preset)
        _log_tool_availability(transcoder, ffprobe, frames)

        thumbnails = ThumbnailMaker(config, ffprobe, frames)
        metadata = MetadataStore(
            config.output_root,
            counter_fields=config.counter_fields,
            filename=config.metadata_filename,
            default_sort=config.default_sort,
        )
        listing_cache = DirectoryListingCache(config, metadata, ffprobe)
        metadata_updates = MetadataUpdateService(metadata, listing_cache, broadcaster)

        state = ProcessingState(broadcaster)
        walker = FolderWalker(config, transcoder, thumbnails, listing_cache, state, broadcaster)
        monitor = StabilityMonitor(config.stability_window_s, config.stability_poll_s)
        pipeline = ProcessingPipeline(config.input_root, monitor, walker, state)
        debouncer = Debouncer(config.upload_debounce_s, pipeline.schedule)
        intake = UploadIntake(config, state, debouncer, thumbnails, listing_cache)
        library = LibraryService(config, metadata, listing_cache, thumbnails, state)
        watcher = InputWatcher(config.input_root, intake.note_arrival) if config.watch_input else None
    except (OSError, ValueError) as exc:
        logger.error("Failed to build services: %s", exc)
        return Result.Err(ErrorCode.SERVICE_UNAVAILABLE, sanitize_error_message(exc, "Failed to initialize services"))

    return Result.Ok(
        ShelfServices(
            config=config,
            broadcaster=broadcaster,
            ffprobe=ffprobe,
            frames=frames,
            transcoder=transcoder,
            thumbnails=thumbnails,
            metadata=metadata,
            listing_cache=listing_cache,
            metadata_updates=metadata_updates,
            state=state,
            walker=walker,
            pipeline=pipeline,
            debouncer=debouncer,
            intake=intake,
            library=library,
            watcher=watcher,
        )
    )
