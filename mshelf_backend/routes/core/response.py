"""
Response utilities for route handlers.
"""

import json
import math

from aiohttp import web

from mshelf_backend.shared import Result


def _json_response(result: Result, status: int | None = None) -> web.Response:
    """
    Convert Result to JSON response.

    Business and validation errors are returned with HTTP 200 and ``ok: false``;
    an explicit status is reserved for genuine server failures.
    """
    if status is None:
        status = 200

    payload = _sanitize_json_payload(
        {
            "ok": result.ok,
            "data": result.data,
            "error": result.error,
            "code": result.code,
            "meta": result.meta,
        }
    )
    return web.json_response(payload, status=status, dumps=_dumps)


def _dumps(value) -> str:
    # Paths and enums fall back to str()
    return json.dumps(value, default=str)


def _sanitize_json_payload(value):
    """
    Normalize payload values so they are always valid strict JSON.
    - Converts NaN/Infinity floats to None.
    - Recurses through dict/list/tuple containers.
    """
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, dict):
        return {k: _sanitize_json_payload(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_sanitize_json_payload(v) for v in value]
    return value
