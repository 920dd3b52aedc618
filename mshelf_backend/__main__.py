"""
Command-line entry point: ``python -m mshelf_backend``.
"""
from __future__ import annotations

import argparse
import dataclasses
from typing import Optional, Sequence

from aiohttp import web

from .app import create_app
from .config import load_config
from .shared import get_logger, set_log_level

logger = get_logger(__name__)


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="mediashelf", description="Self-hosted media library server")
    parser.add_argument("--host", help="Bind address (default from MSHELF_HOST)")
    parser.add_argument("--port", type=int, help="Port (default from MSHELF_PORT)")
    parser.add_argument("--watch-input", action="store_true", help="Also process files copied into the input folder")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = _parse_args(argv)
    config = load_config()
    overrides = {}
    if args.host:
        overrides["host"] = args.host
    if args.port:
        overrides["port"] = args.port
    if args.watch_input:
        overrides["watch_input"] = True
    if args.log_level:
        overrides["log_level"] = args.log_level
    if overrides:
        config = dataclasses.replace(config, **overrides)

    set_log_level(config.log_level)
    web.run_app(create_app(config), host=config.host, port=config.port, print=None)


if __name__ == "__main__":
    main()
