"""
Safe JSON request parsing with size limits.

Never raises to handlers (returns Result).
"""

from __future__ import annotations

import json
from typing import Any, Optional

from aiohttp import web

from mshelf_backend.shared import ErrorCode, Result

DEFAULT_MAX_JSON_BYTES = 1024 * 1024
REQUEST_STREAM_CHUNK_BYTES = 64 * 1024


async def _read_json(request: web.Request, *, max_bytes: Optional[int] = None) -> Result[dict]:
    """Read and decode a JSON object body no larger than ``max_bytes``."""
    limit = int(max_bytes) if max_bytes is not None else DEFAULT_MAX_JSON_BYTES

    declared = request.content_length
    if declared is not None and declared > limit:
        return Result.Err(ErrorCode.INVALID_INPUT, f"JSON body too large ({declared} > {limit})", limit=limit)

    buf = bytearray()
    try:
        async for chunk in request.content.iter_chunked(REQUEST_STREAM_CHUNK_BYTES):
            buf.extend(chunk)
            if len(buf) > limit:
                return Result.Err(ErrorCode.INVALID_INPUT, f"JSON body too large (> {limit})", limit=limit)
    except (ConnectionError, ValueError) as exc:
        return Result.Err(ErrorCode.INVALID_JSON, f"Failed to read request body: {exc}")
    return _decode_and_parse_json_dict(bytes(buf))


def _decode_and_parse_json_dict(body: bytes) -> Result[dict]:
    try:
        text = body.decode("utf-8", errors="strict")
    except UnicodeDecodeError as exc:
        return Result.Err(ErrorCode.INVALID_JSON, f"Invalid UTF-8 JSON body: {exc}")
    try:
        parsed: Any = json.loads(text) if text else {}
    except ValueError as exc:
        return Result.Err(ErrorCode.INVALID_JSON, f"Invalid JSON body: {exc}")
    if not isinstance(parsed, dict):
        return Result.Err(ErrorCode.INVALID_JSON, "JSON body must be an object")
    return Result.Ok(parsed)
