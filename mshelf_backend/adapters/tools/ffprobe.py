"""
FFprobe adapter for video stream inspection.
"""
import json
from pathlib import Path
from typing import List, Optional

from ...shared import ErrorCode, Result, get_logger
from ...tool_detect import resolve_tool
from .process import communicate_with_timeout, spawn_process

logger = get_logger(__name__)

PROBE_STUB = {"width": 0, "height": 0, "duration": 0, "aspectRatio": ""}


class FFProbe:
    """
    FFprobe wrapper returning a compact probe summary for the first video stream.

    Never raises exceptions - always returns Result.
    """

    def __init__(self, bin_name: str = "ffprobe", timeout: float = 10.0):
        self.bin = bin_name
        self.timeout = float(timeout)
        self._resolved_bin: Optional[str] = resolve_tool(bin_name, "ffprobe")
        self._available = self._resolved_bin is not None

    def is_available(self) -> bool:
        """Check if ffprobe is available."""
        return self._available

    async def probe(self, path: str | Path) -> Result[dict]:
        """
        Probe a video file.

        Returns:
            Result with ``{width, height, duration, aspectRatio}``
        """
        if not self._available:
            return Result.Err(ErrorCode.TOOL_MISSING, "ffprobe not found in PATH")

        target = str(path)
        try:
            process = await spawn_process(self._build_ffprobe_cmd(target))
            communicated = await communicate_with_timeout(process, self.timeout, "ffprobe")
            if not communicated.ok:
                return Result.Err(communicated.code, communicated.error or "ffprobe communication failed")
            stdout, stderr = communicated.data
            return self._parse_ffprobe_output(stdout, stderr, process.returncode, target)
        except json.JSONDecodeError as e:
            logger.error("ffprobe JSON parse error: %s", e)
            return Result.Err(ErrorCode.PARSE_ERROR, f"Failed to parse ffprobe output: {e}")
        except OSError as e:
            logger.error("ffprobe could not start: %s", e)
            return Result.Err(ErrorCode.FFPROBE_ERROR, str(e))

    def _build_ffprobe_cmd(self, path: str) -> List[str]:
        return [
            self._resolved_bin or self.bin,
            "-v", "error",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            "-select_streams", "v:0",
            path,
        ]

    def _parse_ffprobe_output(
        self,
        stdout: str,
        stderr: str,
        returncode: Optional[int],
        path: str,
    ) -> Result[dict]:
        if returncode != 0:
            stderr_msg = stderr.strip()
            logger.warning("ffprobe error for %s: %s", path, stderr_msg)
            return Result.Err(ErrorCode.FFPROBE_ERROR, stderr_msg or "ffprobe command failed")
        if not stdout.strip():
            logger.warning("ffprobe returned empty output for %s", path)
            return Result.Err(ErrorCode.FFPROBE_ERROR, "No ffprobe output")
        data = json.loads(stdout)
        if not isinstance(data, dict):
            return Result.Err(ErrorCode.PARSE_ERROR, "Invalid ffprobe output format")
        stream = self._find_video_stream(data.get("streams") or [])
        if not stream:
            return Result.Err(ErrorCode.PARSE_ERROR, "No video stream found")
        return Result.Ok(summarize_stream(stream, data.get("format") or {}))

    @staticmethod
    def _find_video_stream(streams: list) -> dict:
        for stream in streams:
            if isinstance(stream, dict) and stream.get("codec_type") == "video":
                return stream
        return {}


def summarize_stream(stream: dict, format_info: dict) -> dict:
    """Reduce an ffprobe stream record to the fields the library stores."""
    width = _as_int(stream.get("width"))
    height = _as_int(stream.get("height"))
    duration = _as_float(stream.get("duration"))
    if duration <= 0:
        duration = _as_float(format_info.get("duration"))
    aspect = str(stream.get("display_aspect_ratio") or "")
    if (not aspect or aspect == "0:1") and width and height:
        aspect = f"{width}:{height}"
    return {"width": width, "height": height, "duration": duration, "aspectRatio": aspect}


def is_valid_probe(value) -> bool:
    """A stored probe is usable when it carries real dimensions and a duration."""
    if not isinstance(value, dict):
        return False
    try:
        return (
            int(value.get("width") or 0) > 0
            and int(value.get("height") or 0) > 0
            and float(value.get("duration") or 0) > 0
        )
    except (TypeError, ValueError):
        return False


def _as_int(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _as_float(value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0
