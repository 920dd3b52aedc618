"""
Synchronous Pillow operations. Callers run them through ``asyncio.to_thread``.
"""
from __future__ import annotations

import math
from pathlib import Path
from typing import Iterable, Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from ...shared import get_logger

logger = get_logger(__name__)

_OPAQUE_FORMATS = {".jpg", ".jpeg", ".bmp"}


def _save(img: Image.Image, destination: Path) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    if destination.suffix.lower() in _OPAQUE_FORMATS and img.mode not in ("RGB", "L"):
        img = img.convert("RGB")
    img.save(destination)


def image_size(path: Path) -> Optional[dict]:
    """Return ``{width, height}`` or None when the file is not a readable image."""
    try:
        with Image.open(path) as img:
            width, height = img.size
    except (OSError, UnidentifiedImageError) as exc:
        logger.debug("Could not read image size for %s: %s", path.name, exc)
        return None
    return {"width": int(width), "height": int(height)}


def resize_to_width(source: Path, destination: Path, max_width: int) -> dict:
    """
    Write a copy of ``source`` no wider than ``max_width`` (aspect preserved).

    Raises OSError / UnidentifiedImageError for unreadable input.
    """
    with Image.open(source) as img:
        img = ImageOps.exif_transpose(img)
        if img.width > max_width:
            height = max(1, round(img.height * max_width / img.width))
            img = img.resize((max_width, height), Image.Resampling.LANCZOS)
        _save(img, destination)
        return {"width": img.width, "height": img.height}


def pack_sprite_sheet(frames: Iterable[Path], destination: Path) -> tuple[dict, list[dict]]:
    """
    Pack frames into a near-square grid sheet.

    Returns:
        (``{width, height}`` of the sheet, per-frame ``{x, y, width, height}`` list
        in input order)
    """
    images: list[Image.Image] = []
    try:
        for frame in frames:
            with Image.open(frame) as img:
                images.append(img.convert("RGB"))
        if not images:
            raise ValueError("no frames to pack")

        columns = math.ceil(math.sqrt(len(images)))
        rows = math.ceil(len(images) / columns)
        cell_w = max(img.width for img in images)
        cell_h = max(img.height for img in images)

        sheet = Image.new("RGB", (cell_w * columns, cell_h * rows))
        coordinates: list[dict] = []
        for index, img in enumerate(images):
            x = (index % columns) * cell_w
            y = (index // columns) * cell_h
            sheet.paste(img, (x, y))
            coordinates.append({"x": x, "y": y, "width": img.width, "height": img.height})
        _save(sheet, destination)
        return {"width": sheet.width, "height": sheet.height}, coordinates
    finally:
        for img in images:
            img.close()


def crop_region(source: Path, box: dict, destination: Path) -> dict:
    """Crop ``box`` (``{x, y, width, height}``) out of ``source`` into ``destination``."""
    x, y = int(box["x"]), int(box["y"])
    width, height = int(box["width"]), int(box["height"])
    if width <= 0 or height <= 0:
        raise ValueError("crop box must have a positive size")
    with Image.open(source) as img:
        region = img.crop((x, y, x + width, y + height))
        _save(region, destination)
        return {"width": region.width, "height": region.height}
