"""Scale pyramid generation for z-sections of level 0 tiles.

Each z-section is scaled independently. Level ``s`` is built only from the
tiles of level ``s - 1``: every output tile is the 2x2 box downsampling of the
four tiles covering its footprint one level below. Levels are generated until
one yields at most a single tile, so the depth of the pyramid follows from the
data actually present rather than from the configured extent.
"""

from __future__ import annotations

import logging
from typing import Callable

import numpy as np

from tilescaler.config import (
    DEFAULT_FORMAT,
    DEFAULT_QUALITY,
    DEFAULT_TILE_HEIGHT,
    DEFAULT_TILE_WIDTH,
    PLACEHOLDER_VALUE,
    ScaleParams,
)
from tilescaler.core.types import ColorMode, Extent, LevelInfo, ScaleReport, TileAddress

from .backends import pyvips
from .downsample import MosaicBuffer
from .store import TileStore, TileWriteError

logger = logging.getLogger(__name__)

# Reader failures that fall back to the placeholder
_READ_ERRORS: tuple[type[Exception], ...] = (OSError, ValueError, RuntimeError)
if pyvips is not None:
    _READ_ERRORS += (pyvips.error.Error,)

ReadTile = Callable[[TileAddress], "np.ndarray | None"]
WriteTile = Callable[[np.ndarray, TileAddress, str, float], None]
ProgressCallback = Callable[[str, int, int], None]


class ScalePyramidBuilder:
    """Builds scale levels 1, 2, ... from the level 0 tiles of z-sections.

    The builder owns one set of mosaic buffers that is reused for every
    output tile, so an instance must only be used by one thread at a time.
    Separate instances share no state and may scale different z ranges
    concurrently.

    Args:
        read_tile: Returns the tile at an address, or None if it is absent
            or unreadable
        write_tile: Persists a tile; failures propagate and abort the run
        tile_width: Tile width in pixels
        tile_height: Tile height in pixels
        mode: Color mode of the tiles
        fmt: Output format passed through to ``write_tile``
        quality: Output quality passed through to ``write_tile``
        ignore_empty_tiles: If True, tiles without any source data are not
            written. Positions with all four sources absent are skipped before
            downsampling, so the flag never suppresses a tile here
        placeholder_value: Sample value substituted for absent tiles
    """

    def __init__(
        self,
        read_tile: ReadTile,
        write_tile: WriteTile,
        tile_width: int = DEFAULT_TILE_WIDTH,
        tile_height: int = DEFAULT_TILE_HEIGHT,
        mode: ColorMode = ColorMode.RGB,
        fmt: str = DEFAULT_FORMAT,
        quality: float = DEFAULT_QUALITY,
        ignore_empty_tiles: bool = False,
        placeholder_value: int = PLACEHOLDER_VALUE,
    ) -> None:
        if tile_width <= 0 or tile_height <= 0:
            raise ValueError(f"Invalid tile size {tile_width}x{tile_height}")
        self.read_tile = read_tile
        self.write_tile = write_tile
        self.tile_width = tile_width
        self.tile_height = tile_height
        self.mode = mode
        self.fmt = fmt
        self.quality = quality
        self.ignore_empty_tiles = ignore_empty_tiles
        self._mosaic = MosaicBuffer(tile_width, tile_height, mode, placeholder_value)

    def build(
        self,
        extent: Extent,
        min_z: int,
        max_z: int,
        progress_callback: ProgressCallback | None = None,
    ) -> ScaleReport:
        """Scale every z-section in ``[min_z, max_z]``.

        Args:
            extent: Section extent in level 0 pixels
            min_z: First z-section
            max_z: Last z-section (inclusive)
            progress_callback: Optional callback(stage, current, total), called
                with stage "z" before each section and "level" before each
                scale level. Raising InterruptedError from it cancels the run.

        Returns:
            ScaleReport with the generated levels of each section

        Raises:
            TileWriteError: If a tile cannot be written
        """
        report = ScaleReport()
        total = max_z - min_z + 1
        for index, z in enumerate(range(min_z, max_z + 1)):
            if progress_callback:
                progress_callback("z", index, total)
            report.sections[z] = self.scale_section(extent, z, progress_callback)
        if progress_callback:
            progress_callback("z", total, total)

        logger.info(
            "Scaled %d section(s): %d level(s), %d tile(s) written",
            len(report.sections), report.levels_generated, report.tiles_written,
        )
        return report

    def scale_section(
        self,
        extent: Extent,
        z: int,
        progress_callback: ProgressCallback | None = None,
    ) -> list[LevelInfo]:
        """Generate all scale levels of one z-section.

        Args:
            extent: Section extent in level 0 pixels
            z: Section index
            progress_callback: Optional callback(stage, current, total)

        Returns:
            LevelInfo for each generated level, coarsest last
        """
        logger.info("z-index: %d", z)
        levels: list[LevelInfo] = []

        work_to_do = True
        scale = 1
        while work_to_do:
            if progress_callback:
                progress_callback("level", scale, 0)
            info = self._scale_level(extent, z, scale)
            levels.append(info)
            logger.info(
                "z %d scale %d: %d position(s), %d produced, %d written",
                z, scale, info.positions, info.produced, info.written,
            )
            # Converged to a single tile, or nothing left to scale
            work_to_do = info.produced > 1
            scale += 1

        return levels

    def _scale_level(self, extent: Extent, z: int, scale: int) -> LevelInfo:
        """Generate one scale level of a section from the level below it."""
        pitch_x = self.tile_width << scale
        pitch_y = self.tile_height << scale
        rows, cols = extent.tile_range(pitch_x, pitch_y)

        positions = produced = written = 0
        for row in rows:
            for col in cols:
                positions += 1
                address = TileAddress(scale, row, col, z)
                tiles = [self._read(child) for child in address.children()]
                if all(tile is None for tile in tiles):
                    continue

                produced += 1
                self._mosaic.assemble(tiles)
                pixels, is_empty = self._mosaic.downsample()
                if is_empty and self.ignore_empty_tiles:
                    continue

                self._write(pixels, address)
                written += 1

        return LevelInfo(level=scale, positions=positions, produced=produced, written=written)

    def _read(self, address: TileAddress) -> np.ndarray | None:
        try:
            return self.read_tile(address)
        except _READ_ERRORS as e:
            logger.debug("Failed to read %s, using placeholder: %s", address, e)
            return None

    def _write(self, pixels: np.ndarray, address: TileAddress) -> None:
        try:
            self.write_tile(pixels, address, self.fmt, self.quality)
        except TileWriteError:
            raise
        except OSError as e:
            raise TileWriteError(address, None, e) from e


def scale_pyramid(
    params: ScaleParams,
    progress_callback: ProgressCallback | None = None,
) -> ScaleReport:
    """Scale a tile set on disk as described by ``params``.

    Args:
        params: Run parameters
        progress_callback: Optional callback(stage, current, total)

    Returns:
        ScaleReport with the generated levels of each section

    Raises:
        ValueError: If the parameters are invalid
        RuntimeError: If pyvips is not available
        TileWriteError: If a tile cannot be written
    """
    params.validate()
    store = TileStore(
        params.path_template, params.tile_width, params.tile_height, params.color_mode
    )
    logger.info("Tile pattern: %s", store.pattern.template)

    builder = ScalePyramidBuilder(
        read_tile=store.read,
        write_tile=store.write,
        tile_width=params.tile_width,
        tile_height=params.tile_height,
        mode=params.color_mode,
        fmt=params.format,
        quality=params.quality,
        ignore_empty_tiles=params.ignore_empty_tiles,
    )
    return builder.build(params.extent, params.min_z, params.max_z, progress_callback)
