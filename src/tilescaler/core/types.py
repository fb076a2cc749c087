"""Shared type definitions for the tilescaler core module."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import NamedTuple


class ColorMode(str, Enum):
    """Pixel representation of tiles read, scaled and written during a run."""

    RGB = "rgb"
    GRAY = "gray"

    @property
    def bands(self) -> int:
        return 3 if self is ColorMode.RGB else 1

    @classmethod
    def parse(cls, value: str) -> ColorMode:
        """Parse a user supplied type name; "grey" is accepted for gray."""
        name = value.strip().lower()
        if name in ("gray", "grey"):
            return cls.GRAY
        if name == "rgb":
            return cls.RGB
        raise ValueError(f"Unknown tile type {value!r}, expected 'rgb' or 'gray'")


class TileAddress(NamedTuple):
    """Address of one tile in a z-section's scale pyramid.

    Attributes:
        scale: Scale level (0 = full resolution)
        row: Row index in tiles at this scale level
        col: Column index in tiles at this scale level
        z: Section index
    """

    scale: int
    row: int
    col: int
    z: int

    def children(self) -> tuple[TileAddress, TileAddress, TileAddress, TileAddress]:
        """The 2x2 block at ``scale - 1`` covering this tile's footprint.

        Ordered top-left, top-right, bottom-left, bottom-right.
        """
        s1 = self.scale - 1
        r, c = 2 * self.row, 2 * self.col
        return (
            TileAddress(s1, r, c, self.z),
            TileAddress(s1, r, c + 1, self.z),
            TileAddress(s1, r + 1, c, self.z),
            TileAddress(s1, r + 1, c + 1, self.z),
        )


@dataclass(frozen=True)
class Extent:
    """Bounding box of a z-section in level 0 pixels, ``[min_x, max_x) x [min_y, max_y)``."""

    min_x: int
    max_x: int
    min_y: int
    max_y: int

    @property
    def width(self) -> int:
        return self.max_x - self.min_x

    @property
    def height(self) -> int:
        return self.max_y - self.min_y

    def tile_range(self, pitch_x: int, pitch_y: int) -> tuple[range, range]:
        """Row and column index ranges of tiles with the given level 0 pitch.

        Every tile whose footprint intersects the extent is included.

        Returns:
            Tuple of (rows, cols)
        """
        rows = range(self.min_y // pitch_y, -(-self.max_y // pitch_y))
        cols = range(self.min_x // pitch_x, -(-self.max_x // pitch_x))
        return rows, cols


@dataclass
class LevelInfo:
    """Outcome of generating one scale level of one z-section.

    Attributes:
        level: Scale level that was generated (>= 1)
        positions: Output positions visited
        produced: Positions with at least one source tile present
        written: Tiles actually written (``produced`` minus suppressed empty tiles)
    """

    level: int
    positions: int
    produced: int
    written: int


@dataclass
class ScaleReport:
    """Per z-section level summaries of a pyramid run."""

    sections: dict[int, list[LevelInfo]] = field(default_factory=dict)

    @property
    def tiles_written(self) -> int:
        return sum(info.written for levels in self.sections.values() for info in levels)

    @property
    def levels_generated(self) -> int:
        return sum(len(levels) for levels in self.sections.values())
