"""Thumbnail and preview sprite-sheet derivatives."""
from .service import DerivativePaths, ThumbnailMaker

__all__ = ["DerivativePaths", "ThumbnailMaker"]
