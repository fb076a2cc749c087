"""2x2 box downsampling of tile mosaics.

Four tiles of one scale level are composed into a mosaic of twice the tile
size, which is then reduced to a single tile of the next coarser level by
averaging each 2x2 pixel block per channel.

Averages are rounded half up: ``(a + b + c + d + 2) // 4``. For non-negative
samples this is round-to-nearest with ties away from zero, and it is the
only rounding rule used anywhere in the pyramid.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from tilescaler.config import PLACEHOLDER_VALUE
from tilescaler.core.types import ColorMode

#: Quadrant order of a mosaic: top-left, top-right, bottom-left, bottom-right
QUADRANTS: tuple[tuple[int, int], ...] = ((0, 0), (0, 1), (1, 0), (1, 1))


def tile_shape(tile_width: int, tile_height: int, mode: ColorMode) -> tuple[int, ...]:
    """numpy shape of a single tile in the given color mode."""
    if mode is ColorMode.RGB:
        return (tile_height, tile_width, 3)
    return (tile_height, tile_width)


def _check_mode(source: np.ndarray, mode: ColorMode) -> None:
    bands = source.shape[2] if source.ndim == 3 else 1
    if source.ndim not in (2, 3) or bands != mode.bands:
        raise ValueError(
            f"Expected a {mode.value} buffer with {mode.bands} band(s), got shape {source.shape}"
        )


def box_downsample(
    source: np.ndarray,
    out: np.ndarray | None = None,
    scratch: np.ndarray | None = None,
) -> np.ndarray:
    """Halve a uint8 image by averaging every 2x2 pixel block per channel.

    Args:
        source: (2H, 2W) or (2H, 2W, C) uint8 array
        out: Optional (H, W[, C]) uint8 array receiving the result
        scratch: Optional (H, W[, C]) uint16 accumulator reused across calls

    Returns:
        The downsampled (H, W[, C]) uint8 array (``out`` if given)
    """
    height, width = source.shape[:2]
    if height % 2 or width % 2:
        raise ValueError(f"Source dimensions must be even, got {width}x{height}")

    acc = scratch
    if acc is None:
        acc = np.empty((height // 2, width // 2) + source.shape[2:], dtype=np.uint16)

    # 4 * 255 + 2 fits comfortably in uint16
    np.add(source[0::2, 0::2], source[0::2, 1::2], out=acc, dtype=np.uint16)
    np.add(acc, source[1::2, 0::2], out=acc)
    np.add(acc, source[1::2, 1::2], out=acc)
    acc += 2
    acc //= 4

    if out is None:
        return acc.astype(np.uint8)
    out[...] = acc
    return out


def downsample(
    source: np.ndarray,
    mode: ColorMode,
    present: Sequence[bool] = (True, True, True, True),
) -> tuple[np.ndarray, bool]:
    """Downsample a 2W x 2H mosaic into one W x H tile.

    Args:
        source: Mosaic array in ``mode``
        mode: Color mode of the mosaic
        present: Per quadrant (top-left, top-right, bottom-left,
            bottom-right), whether it holds real tile data rather than
            the placeholder

    Returns:
        Tuple of (tile, is_empty); ``is_empty`` is True only if no quadrant
        held real data, regardless of the pixel values themselves.
    """
    _check_mode(source, mode)
    return box_downsample(source), not any(present)


class MosaicBuffer:
    """Reusable scratch buffers for assembling and downsampling mosaics.

    Allocated once per builder and overwritten completely on every
    :meth:`assemble`, so nothing leaks from one output position to the next.
    Instances must not be shared between threads.

    Args:
        tile_width: Tile width in pixels
        tile_height: Tile height in pixels
        mode: Color mode of all tiles
        placeholder_value: Sample value of the placeholder tile
    """

    def __init__(
        self,
        tile_width: int,
        tile_height: int,
        mode: ColorMode,
        placeholder_value: int = PLACEHOLDER_VALUE,
    ) -> None:
        self.tile_width = tile_width
        self.tile_height = tile_height
        self.mode = mode

        shape = tile_shape(tile_width, tile_height, mode)
        self.source = np.empty((2 * tile_height, 2 * tile_width) + shape[2:], dtype=np.uint8)
        self.placeholder = np.full(shape, placeholder_value, dtype=np.uint8)
        self.placeholder.flags.writeable = False
        self.target = np.empty(shape, dtype=np.uint8)
        self._scratch = np.empty(shape, dtype=np.uint16)
        self._present: tuple[bool, ...] = (False, False, False, False)

    def quadrant(self, index: int) -> np.ndarray:
        """Writable view of one quadrant of the mosaic."""
        qy, qx = QUADRANTS[index]
        h, w = self.tile_height, self.tile_width
        return self.source[qy * h:(qy + 1) * h, qx * w:(qx + 1) * w]

    def assemble(self, tiles: Sequence[np.ndarray | None]) -> tuple[bool, ...]:
        """Compose four tiles into the mosaic.

        ``None`` entries are replaced by the placeholder. Tiles whose
        dimensions differ from the configured tile size are clipped or
        padded with the placeholder, never resized.

        Args:
            tiles: Four tiles ordered top-left, top-right, bottom-left, bottom-right

        Returns:
            Per quadrant presence flags
        """
        if len(tiles) != 4:
            raise ValueError(f"A mosaic needs exactly 4 tiles, got {len(tiles)}")

        for index, tile in enumerate(tiles):
            view = self.quadrant(index)
            if tile is None:
                view[...] = self.placeholder
            else:
                self._paste(view, tile)

        self._present = tuple(tile is not None for tile in tiles)
        return self._present

    def _paste(self, view: np.ndarray, tile: np.ndarray) -> None:
        if tile.ndim != view.ndim or tile.shape[2:] != view.shape[2:]:
            raise ValueError(
                f"Tile of shape {tile.shape} does not match {self.mode.value} mosaic quadrant {view.shape}"
            )
        if tile.shape == view.shape:
            view[...] = tile
            return
        h = min(tile.shape[0], view.shape[0])
        w = min(tile.shape[1], view.shape[1])
        view[...] = self.placeholder
        view[:h, :w] = tile[:h, :w]

    def downsample(self) -> tuple[np.ndarray, bool]:
        """Downsample the current mosaic into :attr:`target`.

        Returns:
            Tuple of (tile, is_empty). The tile is a view of the reused
            target buffer and is only valid until the next call.
        """
        box_downsample(self.source, out=self.target, scratch=self._scratch)
        return self.target, not any(self._present)
