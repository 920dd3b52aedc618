"""
FFmpeg adapter for single-frame extraction.
"""
from pathlib import Path
from typing import List, Optional

from ...shared import ErrorCode, Result, get_logger
from ...tool_detect import resolve_tool
from .process import communicate_with_timeout, spawn_process

logger = get_logger(__name__)


class FFmpegFrames:
    """Grab still frames from a video at given offsets. Never raises, never times out."""

    def __init__(self, bin_name: str = "ffmpeg"):
        self.bin = bin_name
        self._resolved_bin: Optional[str] = resolve_tool(bin_name, "ffmpeg")
        self._available = self._resolved_bin is not None

    def is_available(self) -> bool:
        return self._available

    async def extract_frame(self, video: Path, offset_s: float, destination: Path) -> Result[Path]:
        """Write the frame at ``offset_s`` seconds of ``video`` to ``destination``."""
        if not self._available:
            return Result.Err(ErrorCode.TOOL_MISSING, "ffmpeg not found in PATH")
        try:
            process = await spawn_process(self._build_cmd(video, offset_s, destination))
            communicated = await communicate_with_timeout(process, None, "ffmpeg")
        except OSError as exc:
            logger.error("ffmpeg could not start: %s", exc)
            return Result.Err(ErrorCode.FFMPEG_ERROR, str(exc))
        if not communicated.ok:
            return Result.Err(communicated.code, communicated.error or "ffmpeg failed")
        _, stderr = communicated.data
        if process.returncode != 0 or not destination.is_file():
            message = stderr.strip().splitlines()[-1:] or ["ffmpeg produced no frame"]
            logger.warning("Frame extraction failed for %s at %.2fs: %s", video.name, offset_s, message[0])
            return Result.Err(ErrorCode.FFMPEG_ERROR, message[0])
        return Result.Ok(destination)

    def _build_cmd(self, video: Path, offset_s: float, destination: Path) -> List[str]:
        return [
            self._resolved_bin or self.bin,
            "-hide_banner",
            "-loglevel", "error",
            "-y",
            "-ss", f"{max(0.0, offset_s):.3f}",
            "-i", str(video),
            "-frames:v", "1",
            str(destination),
        ]
