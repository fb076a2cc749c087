"""Scale pyramid generation for level 0 tile sets."""

from .backends import (
    VIPSBackend,
    is_vips_available,
)
from .downsample import MosaicBuffer, box_downsample, downsample
from .pyramid import ScalePyramidBuilder, scale_pyramid
from .store import TileStore, TileWriteError

__all__ = [
    "MosaicBuffer",
    "ScalePyramidBuilder",
    "TileStore",
    "TileWriteError",
    "VIPSBackend",
    "box_downsample",
    "downsample",
    "is_vips_available",
    "scale_pyramid",
]
