"""Template-addressed tile storage on the local filesystem."""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np

from tilescaler.core.pattern import TilePattern
from tilescaler.core.types import ColorMode, TileAddress

from .backends import get_backend, pyvips

logger = logging.getLogger(__name__)


class TileWriteError(OSError):
    """A scaled tile could not be written.

    Attributes:
        address: Address of the tile that failed
        path: Path the tile was written to, if known
        cause: Underlying I/O or encoder error
    """

    def __init__(
        self, address: TileAddress, path: str | None, cause: BaseException
    ) -> None:
        self.address = address
        self.path = path
        self.cause = cause
        target = f" to {path}" if path else ""
        super().__init__(
            f"Failed to write tile s={address.scale} z={address.z} "
            f"row={address.row} col={address.col}{target}: {cause}"
        )


class TileStore:
    """Reads and writes tiles addressed through a :class:`TilePattern`.

    Args:
        pattern: Path template including base path and extension
        tile_width: Tile width in pixels
        tile_height: Tile height in pixels
        mode: Color mode tiles are converted to on read
    """

    def __init__(
        self,
        pattern: TilePattern | str,
        tile_width: int,
        tile_height: int,
        mode: ColorMode,
    ) -> None:
        self.pattern = pattern if isinstance(pattern, TilePattern) else TilePattern(pattern)
        self.tile_width = tile_width
        self.tile_height = tile_height
        self.mode = mode
        self._backend = get_backend()

    def path(self, address: TileAddress) -> str:
        return self.pattern.format(address, self.tile_width, self.tile_height)

    def read(self, address: TileAddress) -> np.ndarray | None:
        """Read a tile; missing and corrupt tiles are both None."""
        return self._backend.load_tile(Path(self.path(address)), self.mode)

    def write(self, pixels: np.ndarray, address: TileAddress, fmt: str, quality: float) -> None:
        """Write a tile.

        Raises:
            TileWriteError: If the tile cannot be encoded or written
        """
        path = self.path(address)
        try:
            self._backend.save_tile(pixels, Path(path), fmt, quality)
        except (OSError, ValueError, pyvips.error.Error) as e:
            raise TileWriteError(address, path, e) from e
        logger.debug("Wrote %s", path)
