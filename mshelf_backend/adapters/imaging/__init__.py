"""Pillow-backed image helpers."""
from .pillow_ops import crop_region, image_size, pack_sprite_sheet, resize_to_width

__all__ = ["crop_region", "image_size", "pack_sprite_sheet", "resize_to_width"]
