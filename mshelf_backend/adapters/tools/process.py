"""
Asyncio subprocess helpers shared by the tool adapters.
"""
from __future__ import annotations

import asyncio
import os
from typing import List, Optional

from ...shared import ErrorCode, Result, get_logger

logger = get_logger(__name__)


async def spawn_process(cmd: List[str], *, stdout: int = asyncio.subprocess.PIPE) -> asyncio.subprocess.Process:
    return await asyncio.create_subprocess_exec(
        *cmd,
        stdout=stdout,
        stderr=asyncio.subprocess.PIPE,
        close_fds=os.name != "nt",
    )


async def communicate_with_timeout(
    process: asyncio.subprocess.Process,
    timeout: Optional[float],
    label: str,
) -> Result[tuple[str, str]]:
    """Collect stdout/stderr, killing the process when ``timeout`` elapses."""
    try:
        stdout_b, stderr_b = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        try:
            process.kill()
        except ProcessLookupError:
            pass
        logger.error("%s timed out after %ss", label, timeout)
        return Result.Err(ErrorCode.TIMEOUT, f"{label} timeout after {timeout}s")
    stdout = (stdout_b or b"").decode("utf-8", errors="replace")
    stderr = (stderr_b or b"").decode("utf-8", errors="replace")
    return Result.Ok((stdout, stderr))
