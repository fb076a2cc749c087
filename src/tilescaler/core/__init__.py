"""Core types and tile addressing for tilescaler."""

from .pattern import TilePattern
from .types import ColorMode, Extent, LevelInfo, ScaleReport, TileAddress

__all__ = [
    "ColorMode",
    "Extent",
    "LevelInfo",
    "ScaleReport",
    "TileAddress",
    "TilePattern",
]
