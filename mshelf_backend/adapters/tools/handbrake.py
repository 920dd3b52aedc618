"""
HandBrakeCLI adapter for video transcoding with progress reporting.
"""
from __future__ import annotations

import asyncio
import re
from collections import deque
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

from ...shared import ErrorCode, Result, get_logger
from ...tool_detect import resolve_tool
from .process import spawn_process

logger = get_logger(__name__)

ProgressCallback = Callable[[float, str], Awaitable[None] | None]

# "Encoding: task 1 of 1, 45.20 % (30.12 fps, avg 31.00 fps, ETA 00h01m20s)"
_PROGRESS_RE = re.compile(r"(?P<percent>\d+(?:\.\d+)?)\s*%(?:.*?ETA\s+(?P<eta>[0-9hms]+))?")
_STDERR_TAIL_LINES = 20
_READ_CHUNK = 4096


def parse_progress(line: str) -> Optional[tuple[float, str]]:
    """Extract ``(percent, eta)`` from one HandBrakeCLI status line."""
    if "Encoding" not in line:
        return None
    match = _PROGRESS_RE.search(line)
    if not match:
        return None
    try:
        percent = float(match.group("percent"))
    except ValueError:
        return None
    return min(100.0, max(0.0, percent)), match.group("eta") or ""


class HandBrakeTranscoder:
    """
    Transcode one input into one output with HandBrakeCLI.

    Transcodes are not cancellable and have no timeout. Never raises.
    """

    def __init__(self, bin_name: str = "HandBrakeCLI", preset: str = "Fast 1080p30"):
        self.bin = bin_name
        self.preset = preset
        self._resolved_bin: Optional[str] = resolve_tool(bin_name, "handbrakecli")
        self._available = self._resolved_bin is not None

    def is_available(self) -> bool:
        return self._available

    async def transcode(
        self,
        source: Path,
        destination: Path,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Result[Path]:
        if not self._available:
            return Result.Err(ErrorCode.TOOL_MISSING, "HandBrakeCLI not found in PATH")
        try:
            process = await spawn_process(self._build_cmd(source, destination))
        except OSError as exc:
            logger.error("HandBrakeCLI could not start: %s", exc)
            return Result.Err(ErrorCode.TRANSCODE_FAILED, str(exc))

        stderr_tail: deque[str] = deque(maxlen=_STDERR_TAIL_LINES)
        try:
            await asyncio.gather(
                self._pump_progress(process.stdout, on_progress),
                self._pump_stderr(process.stderr, stderr_tail),
            )
        except Exception as exc:
            logger.exception("Progress handling failed for %s, stopping HandBrakeCLI", source.name)
            _kill(process)
            await process.wait()
            return Result.Err(ErrorCode.TRANSCODE_FAILED, str(exc) or "Progress handling failed")
        returncode = await process.wait()
        if returncode != 0 or not destination.is_file():
            message = stderr_tail[-1] if stderr_tail else f"HandBrakeCLI exited with {returncode}"
            logger.error("Transcode failed for %s: %s", source.name, message)
            return Result.Err(ErrorCode.TRANSCODE_FAILED, message, returncode=returncode)
        return Result.Ok(destination)

    def _build_cmd(self, source: Path, destination: Path) -> List[str]:
        return [
            self._resolved_bin or self.bin,
            "-i", str(source),
            "-o", str(destination),
            "--preset", self.preset,
        ]

    @staticmethod
    async def _pump_progress(stream: Optional[asyncio.StreamReader], on_progress: Optional[ProgressCallback]) -> None:
        if stream is None:
            return
        pending = ""
        last_percent = -1.0
        while True:
            chunk = await stream.read(_READ_CHUNK)
            if not chunk:
                break
            pending += chunk.decode("utf-8", errors="replace")
            # HandBrakeCLI rewrites its status line with carriage returns
            *lines, pending = re.split(r"[\r\n]", pending)
            for line in lines:
                parsed = parse_progress(line)
                if parsed is None or on_progress is None:
                    continue
                percent, eta = parsed
                if percent == last_percent:
                    continue
                last_percent = percent
                outcome = on_progress(percent, eta)
                if asyncio.iscoroutine(outcome):
                    await outcome

    @staticmethod
    async def _pump_stderr(stream: Optional[asyncio.StreamReader], tail: deque[str]) -> None:
        if stream is None:
            return
        async for raw in stream:
            line = raw.decode("utf-8", errors="replace").strip()
            if line:
                tail.append(line)


def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is not None:
        return
    try:
        process.kill()
    except ProcessLookupError:
        pass
