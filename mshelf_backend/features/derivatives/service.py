"""
Thumbnail / sprite-sheet generation.

For an item named ``<name>`` in logical folder ``<path>`` the thumbnail tree holds:

- ``<path>/<name>.<ext>``        thumbnail (videos: frame at 50% of duration)
- ``<path>/<name>.sheet.<ext>``  sprite sheet of evenly spaced frames (videos)
- ``<path>/<name>.json``         sprite-sheet frame coordinates (videos)
"""
from __future__ import annotations

import asyncio
import base64
import json
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from PIL import UnidentifiedImageError

from ...adapters.imaging import crop_region, pack_sprite_sheet, resize_to_width
from ...adapters.tools import FFmpegFrames, FFProbe
from ...config import ShelfConfig
from ...path_utils import resolve_under
from ...shared import ErrorCode, Result, get_logger, sanitize_error_message

logger = get_logger(__name__)

_IMAGE_ERRORS = (OSError, UnidentifiedImageError, ValueError)


@dataclass(frozen=True)
class DerivativePaths:
    thumbnail: Path
    sprite_sheet: Path
    coordinates: Path

    def all(self) -> tuple[Path, Path, Path]:
        return (self.thumbnail, self.sprite_sheet, self.coordinates)


class ThumbnailMaker:
    """Turns videos and images into thumbnails and preview sprite sheets."""

    def __init__(self, config: ShelfConfig, ffprobe: FFProbe, frames: FFmpegFrames):
        self._config = config
        self._ffprobe = ffprobe
        self._frames = frames

    def paths_for(self, folder: str, name: str) -> DerivativePaths:
        base = resolve_under(self._config.thumbnail_root, folder)
        ext = self._config.thumbnail_ext
        return DerivativePaths(
            thumbnail=base / f"{name}.{ext}",
            sprite_sheet=base / f"{name}.sheet.{ext}",
            coordinates=base / f"{name}.json",
        )

    def has_video_derivatives(self, folder: str, name: str) -> bool:
        paths = self.paths_for(folder, name)
        return paths.thumbnail.is_file() and paths.sprite_sheet.is_file()

    def has_image_thumbnail(self, folder: str, name: str) -> bool:
        return self.paths_for(folder, name).thumbnail.is_file()

    async def make_video_derivatives(self, video: Path, folder: str) -> Result[dict]:
        """Create the thumbnail, sprite sheet and coordinates file for ``video``."""
        probe = await self._ffprobe.probe(video)
        if not probe.ok:
            return Result.Err(probe.code, probe.error or "probe failed")
        duration = float(probe.data.get("duration") or 0)
        if duration <= 0:
            return Result.Err(ErrorCode.THUMBNAIL_FAILED, "video has no duration")

        paths = self.paths_for(folder, video.name)
        paths.thumbnail.parent.mkdir(parents=True, exist_ok=True)
        self._config.working_root.mkdir(parents=True, exist_ok=True)
        count = self._config.sprite_frame_count
        max_width = self._config.thumbnail_max_width

        with tempfile.TemporaryDirectory(prefix="frames-", dir=self._config.working_root) as tmp:
            scratch = Path(tmp)
            center = await self._frames.extract_frame(video, duration * 0.5, scratch / "center.png")
            if not center.ok:
                return Result.Err(ErrorCode.THUMBNAIL_FAILED, center.error or "frame extraction failed")
            try:
                await asyncio.to_thread(resize_to_width, center.data, paths.thumbnail, max_width)
            except _IMAGE_ERRORS as exc:
                return Result.Err(ErrorCode.THUMBNAIL_FAILED, sanitize_error_message(exc, "Thumbnail resize failed"))

            scaled: list[Path] = []
            interval = duration / count
            for index in range(count):
                grabbed = await self._frames.extract_frame(video, index * interval, scratch / f"frame-{index}.png")
                if not grabbed.ok:
                    logger.warning("Skipping sprite frame %s of %s: %s", index, video.name, grabbed.error)
                    continue
                small = scratch / f"frame-{index}-small.png"
                try:
                    await asyncio.to_thread(resize_to_width, grabbed.data, small, max_width)
                except _IMAGE_ERRORS as exc:
                    logger.warning("Skipping sprite frame %s of %s: %s", index, video.name, exc)
                    continue
                scaled.append(small)
            if not scaled:
                return Result.Err(ErrorCode.THUMBNAIL_FAILED, "no sprite frames could be extracted")

            try:
                sheet_size, coordinates = await asyncio.to_thread(pack_sprite_sheet, scaled, paths.sprite_sheet)
            except _IMAGE_ERRORS as exc:
                return Result.Err(ErrorCode.THUMBNAIL_FAILED, sanitize_error_message(exc, "Sprite packing failed"))

        await asyncio.to_thread(_write_json, paths.coordinates, coordinates)
        return Result.Ok(
            {
                "thumbnail": paths.thumbnail,
                "spriteSheet": paths.sprite_sheet,
                "coordinates": paths.coordinates,
                "sheetSize": sheet_size,
                "probe": probe.data,
            }
        )

    async def make_image_thumbnail(self, image: Path, folder: str) -> Result[Path]:
        target = self.paths_for(folder, image.name).thumbnail
        return await self.make_thumbnail(image, target)

    async def make_thumbnail(self, source: Path, destination: Path) -> Result[Path]:
        """Resize ``source`` into ``destination`` at the configured thumbnail width."""
        try:
            await asyncio.to_thread(resize_to_width, source, destination, self._config.thumbnail_max_width)
        except _IMAGE_ERRORS as exc:
            logger.warning("Thumbnail failed for %s: %s", source.name, exc)
            return Result.Err(ErrorCode.THUMBNAIL_FAILED, sanitize_error_message(exc, "Thumbnail failed"))
        return Result.Ok(destination)

    async def set_thumbnail_from_sprite(self, folder: str, name: str, frame: int) -> Result[dict]:
        """Replace a video's thumbnail with one frame cut out of its sprite sheet."""
        paths = self.paths_for(folder, name)
        coordinates = await asyncio.to_thread(read_coordinates, paths.coordinates)
        if coordinates is None or not paths.sprite_sheet.is_file():
            return Result.Err(ErrorCode.NOT_FOUND, "Sprite sheet not found")
        if frame < 0 or frame >= len(coordinates):
            return Result.Err(ErrorCode.INVALID_INPUT, f"frame must be between 0 and {len(coordinates) - 1}")

        staged = paths.thumbnail.with_name(f".{paths.thumbnail.name}.tmp{paths.thumbnail.suffix}")
        try:
            size = await asyncio.to_thread(crop_region, paths.sprite_sheet, coordinates[frame], staged)
            await asyncio.to_thread(os.replace, staged, paths.thumbnail)
            encoded = await asyncio.to_thread(lambda: base64.b64encode(paths.thumbnail.read_bytes()).decode("ascii"))
        except (*_IMAGE_ERRORS, KeyError) as exc:
            staged.unlink(missing_ok=True)
            return Result.Err(ErrorCode.THUMBNAIL_FAILED, sanitize_error_message(exc, "Could not set thumbnail"))
        return Result.Ok({**size, "base64": encoded})


def read_coordinates(path: Path) -> Optional[list[dict]]:
    """Load a sprite-sheet coordinates file, or None when missing/corrupt."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (OSError, ValueError) as exc:
        logger.warning("Unreadable sprite coordinates %s: %s", path.name, exc)
        return None
    return data if isinstance(data, list) else None


def _write_json(path: Path, payload) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload), encoding="utf-8")
