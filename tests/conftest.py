"""Test fixtures for tilescaler tests."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Generator

import numpy as np
import pytest

from tilescaler.core.types import ColorMode, TileAddress

TILE = 256


class MemoryTiles:
    """In-memory tile storage with the read/write signatures of TileStore."""

    def __init__(self) -> None:
        self.tiles: dict[TileAddress, np.ndarray] = {}
        self.reads: list[TileAddress] = []
        self.writes: list[TileAddress] = []

    def read(self, address: TileAddress) -> np.ndarray | None:
        self.reads.append(address)
        return self.tiles.get(address)

    def write(self, pixels: np.ndarray, address: TileAddress, fmt: str, quality: float) -> None:
        # The builder reuses its output buffer
        self.tiles[address] = pixels.copy()
        self.writes.append(address)

    def put(self, row: int, col: int, value, z: int = 0, size: int = TILE, mode=ColorMode.RGB) -> None:
        """Add a uniform level 0 tile."""
        shape = (size, size, 3) if mode is ColorMode.RGB else (size, size)
        self.tiles[TileAddress(0, row, col, z)] = np.full(shape, value, dtype=np.uint8)

    def written_at(self, scale: int) -> list[TileAddress]:
        return [a for a in self.writes if a.scale == scale]


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory that's cleaned up after tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def memory_tiles() -> MemoryTiles:
    return MemoryTiles()


@pytest.fixture
def grid_3x3(memory_tiles: MemoryTiles) -> MemoryTiles:
    """3x3 level 0 tiles of section 0, each a distinct solid gray level."""
    for row in range(3):
        for col in range(3):
            memory_tiles.put(row, col, 10 + 20 * (3 * row + col))
    return memory_tiles


@pytest.fixture
def sample_rgb_array() -> np.ndarray:
    """Create a simple RGB test tile with colored quadrants."""
    img = np.full((TILE, TILE, 3), 255, dtype=np.uint8)
    half = TILE // 2

    # Top-left: red
    img[0:half, 0:half] = [200, 50, 50]

    # Top-right: green
    img[0:half, half:TILE] = [50, 200, 50]

    # Bottom-left: blue
    img[half:TILE, 0:half] = [50, 50, 200]

    # Bottom-right: purple
    img[half:TILE, half:TILE] = [150, 50, 150]

    return img


@pytest.fixture
def tile_dir(temp_dir: Path) -> Path:
    """A directory with 3x3 solid color PNG level 0 tiles of section 0.

    Uses the default <z>/<row>_<col>_<scale> layout.
    """
    from tilescaler.scale.backends import VIPSBackend

    section = temp_dir / "0"
    section.mkdir()
    for row in range(3):
        for col in range(3):
            tile = np.zeros((TILE, TILE, 3), dtype=np.uint8)
            tile[...] = [40 * row, 40 * col, 100]
            VIPSBackend.save_tile(tile, section / f"{row}_{col}_0.png", "png", 1.0)
    return temp_dir
