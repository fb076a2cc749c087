"""Centralized configuration for tilescaler.

All tunable parameters are defined here with sensible defaults.
Values can be overridden via environment variables.

Environment Variables:
    TILESCALER_TILE_WIDTH: Default tile width in pixels (default: 256)
    TILESCALER_TILE_HEIGHT: Default tile height in pixels (default: 256)
    TILESCALER_FORMAT: Default tile file format (default: jpg)
    TILESCALER_QUALITY: Default JPEG quality, 0-1 (default: 0.85)
    TILESCALER_TILE_PATTERN: Default tile path pattern (default: %5$d/%8$d_%9$d_%1$d)
    TILESCALER_VIPS_CONCURRENCY: VIPS internal thread count (default: 1)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from tilescaler.core.pattern import TilePattern
from tilescaler.core.types import ColorMode, Extent

logger = logging.getLogger(__name__)


def _get_env_int(name: str, default: int) -> int:
    """Get an integer from environment variable with fallback."""
    value = os.environ.get(name)
    if value is not None:
        try:
            return int(value)
        except ValueError:
            logger.warning(
                "Invalid integer for %s: %r, using default %d", name, value, default
            )
    return default


def _get_env_float(name: str, default: float) -> float:
    """Get a float from environment variable with fallback."""
    value = os.environ.get(name)
    if value is not None:
        try:
            return float(value)
        except ValueError:
            logger.warning(
                "Invalid float for %s: %r, using default %g", name, value, default
            )
    return default


def _get_env_str(name: str, default: str) -> str:
    """Get a string from environment variable with fallback."""
    return os.environ.get(name, default)


# =============================================================================
# Tile Defaults
# =============================================================================

#: Default tile width in pixels
DEFAULT_TILE_WIDTH: int = _get_env_int("TILESCALER_TILE_WIDTH", 256)

#: Default tile height in pixels
DEFAULT_TILE_HEIGHT: int = _get_env_int("TILESCALER_TILE_HEIGHT", 256)

#: Default tile file format (also the file extension)
DEFAULT_FORMAT: str = _get_env_str("TILESCALER_FORMAT", "jpg")

#: Default JPEG quality in [0, 1]
DEFAULT_QUALITY: float = _get_env_float("TILESCALER_QUALITY", 0.85)

#: Default tile path pattern relative to the base path, without extension.
#: Resolves to <z>/<row>_<col>_<scale>.
DEFAULT_TILE_PATTERN: str = _get_env_str("TILESCALER_TILE_PATTERN", "%5$d/%8$d_%9$d_%1$d")

#: Tile file formats that can be written
SUPPORTED_FORMATS: frozenset[str] = frozenset({"jpg", "jpeg", "png"})

#: Sample value of the placeholder substituted for absent tiles (black)
PLACEHOLDER_VALUE: int = 0


# =============================================================================
# Processing Configuration
# =============================================================================

#: VIPS internal concurrency (threads), set before pyvips is first imported;
#: tiles are small and processed serially
VIPS_CONCURRENCY: str = _get_env_str("TILESCALER_VIPS_CONCURRENCY", "1")


# =============================================================================
# Run Parameters
# =============================================================================


def _is_power_of_two(value: int) -> bool:
    return value > 0 and value & (value - 1) == 0


@dataclass
class ScaleParams:
    """Parameters of one scaling run.

    Row and column bounds are inclusive and given in level 0 tiles.

    Attributes:
        max_col: Last level 0 tile column
        max_row: Last level 0 tile row
        min_col: First level 0 tile column
        min_row: First level 0 tile row
        min_z: First z-section to scale
        max_z: Last z-section to scale (inclusive)
        tile_width: Tile width in pixels
        tile_height: Tile height in pixels
        base_path: Directory (or URL-like prefix) holding the tile set
        tile_pattern: Tile path pattern relative to ``base_path``, without extension
        format: Tile file format, e.g. "jpg" or "png"
        quality: JPEG quality in [0, 1]
        color_mode: Pixel type of written tiles
        ignore_empty_tiles: Skip writing tiles without any source data. The
            builder already skips positions whose four source tiles are all
            absent, so this only changes output for callers that assemble
            mosaics through ``MosaicBuffer`` or ``downsample`` directly
    """

    max_col: int
    max_row: int
    min_col: int = 0
    min_row: int = 0
    min_z: int = 0
    max_z: int = 0
    tile_width: int = DEFAULT_TILE_WIDTH
    tile_height: int = DEFAULT_TILE_HEIGHT
    base_path: str = ""
    tile_pattern: str = DEFAULT_TILE_PATTERN
    format: str = DEFAULT_FORMAT
    quality: float = DEFAULT_QUALITY
    color_mode: ColorMode = ColorMode.RGB
    ignore_empty_tiles: bool = False

    def validate(self) -> None:
        """Reject parameters that cannot produce a consistent pyramid.

        Raises:
            ValueError: On the first invalid parameter found
        """
        for name in ("tile_width", "tile_height"):
            value = getattr(self, name)
            if not _is_power_of_two(value):
                raise ValueError(f"{name} must be a positive power of two, got {value}")
        for name in ("min_col", "max_col", "min_row", "max_row"):
            value = getattr(self, name)
            if value < 0:
                raise ValueError(f"{name} must not be negative, got {value}")
        if self.min_col > self.max_col:
            raise ValueError(f"min_col ({self.min_col}) is greater than max_col ({self.max_col})")
        if self.min_row > self.max_row:
            raise ValueError(f"min_row ({self.min_row}) is greater than max_row ({self.max_row})")
        if self.min_z > self.max_z:
            raise ValueError(f"min_z ({self.min_z}) is greater than max_z ({self.max_z})")
        if not 0.0 <= self.quality <= 1.0:
            raise ValueError(f"quality must be within [0, 1], got {self.quality}")
        if self.format.lower() not in SUPPORTED_FORMATS:
            raise ValueError(
                f"Unsupported format {self.format!r}, expected one of "
                f"{', '.join(sorted(SUPPORTED_FORMATS))}"
            )
        # Fails on malformed templates
        TilePattern(self.path_template)

    @property
    def extent(self) -> Extent:
        """Section extent in level 0 pixels, including ``max_col`` and ``max_row``."""
        return Extent(
            min_x=self.min_col * self.tile_width,
            max_x=(self.max_col + 1) * self.tile_width,
            min_y=self.min_row * self.tile_height,
            max_y=(self.max_row + 1) * self.tile_height,
        )

    @property
    def path_template(self) -> str:
        """Full tile path template: base path, pattern and extension."""
        if not self.base_path:
            return f"{self.tile_pattern}.{self.format}"
        return f"{self.base_path.rstrip('/')}/{self.tile_pattern}.{self.format}"
