"""Tile image decoding and encoding using PyVIPS.

This module provides the pixel-level I/O of the scaler: reading tiles into
numpy arrays of the run's color mode and writing scaled tiles back as JPEG
or PNG. libvips decodes and encodes small tiles considerably faster than PIL.

Usage:
    from tilescaler.scale.backends import VIPSBackend

    tile = VIPSBackend.load_tile(Path("0/3_4_0.jpg"), ColorMode.RGB)
    if tile is not None:
        VIPSBackend.save_tile(tile, Path("copy.jpg"), "jpg", quality=0.85)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import numpy as np

from tilescaler.core.types import ColorMode

logger = logging.getLogger(__name__)

# pyvips is first imported (with libvips warnings silenced) in tilescaler/__init__.py
_HAS_VIPS = False
_vips_import_error: str | None = None
pyvips: Any = None

try:
    import pyvips
    _HAS_VIPS = True
except (ImportError, OSError) as e:
    _vips_import_error = str(e)


def is_vips_available() -> bool:
    """Check if PyVIPS is available.

    Returns:
        True if pyvips is installed and working
    """
    return _HAS_VIPS


def get_vips_import_error() -> str | None:
    """Get the error message if PyVIPS failed to import.

    Returns:
        Error message string, or None if pyvips is available
    """
    return _vips_import_error


def _strict_load() -> dict[str, Any]:
    """Loader options that turn decode warnings into errors."""
    if pyvips.at_least_libvips(8, 12):
        return {"fail_on": "warning"}
    return {"fail": True}


def jpeg_q(quality: float) -> int:
    """Map a [0, 1] quality to the libvips JPEG ``Q`` factor (1-100)."""
    return max(1, min(100, int(round(quality * 100))))


class VIPSBackend:
    """PyVIPS-based tile codec and color conversion.

    Requires pyvips to be installed: pip install pyvips
    """

    @staticmethod
    def from_numpy(arr: np.ndarray) -> "pyvips.Image":
        """Convert a numpy array to pyvips format.

        Args:
            arr: numpy array (H, W) gray or (H, W, 3) RGB uint8

        Returns:
            pyvips.Image tagged as sRGB or B_W
        """
        if not _HAS_VIPS:
            raise RuntimeError(f"PyVIPS is not available: {_vips_import_error}")

        height, width = arr.shape[:2]
        bands = arr.shape[2] if arr.ndim == 3 else 1

        # Ensure contiguous array
        arr = np.ascontiguousarray(arr, dtype=np.uint8)

        vips_img = pyvips.Image.new_from_memory(
            arr.tobytes(),
            width,
            height,
            bands,
            "uchar"
        )
        interpretation = "srgb" if bands == 3 else "b-w"
        return vips_img.copy(interpretation=interpretation)

    @staticmethod
    def to_numpy(img: "pyvips.Image") -> np.ndarray:
        """Convert a uchar pyvips image to a numpy array.

        Args:
            img: pyvips.Image with 1 or 3 bands

        Returns:
            numpy array (H, W) for one band, (H, W, bands) otherwise
        """
        data = img.write_to_memory()
        shape: tuple[int, ...] = (img.height, img.width)
        if img.bands > 1:
            shape += (img.bands,)
        return np.frombuffer(data, dtype=np.uint8).reshape(shape)

    @staticmethod
    def convert_mode(img: "pyvips.Image", mode: ColorMode) -> "pyvips.Image":
        """Convert a decoded tile to 8-bit RGB or gray.

        Alpha is flattened against black, 16-bit images are scaled down to
        8 bit, gray is expanded to RGB and RGB reduced to luminance as needed.

        Args:
            img: Decoded pyvips.Image
            mode: Target color mode

        Returns:
            uchar pyvips.Image with ``mode.bands`` bands
        """
        if img.hasalpha():
            img = img.flatten()

        target = "srgb" if mode is ColorMode.RGB else "b-w"
        img = img.colourspace(target)

        if img.bands > mode.bands:
            img = img.extract_band(0, n=mode.bands)
        elif img.bands < mode.bands:
            # Grayscale to RGB: bandjoin joins self + list, so [img, img] gives 3 bands
            img = img.bandjoin([img, img])

        if img.format != "uchar":
            img = img.cast("uchar")
        return img

    @staticmethod
    def load_tile(path: Path, mode: ColorMode) -> np.ndarray | None:
        """Load a tile, treating any unreadable file as absent.

        Args:
            path: Path to the tile image
            mode: Color mode to convert the tile to

        Returns:
            numpy array of the tile, or None if it does not exist or cannot
            be decoded
        """
        if not _HAS_VIPS:
            raise RuntimeError(f"PyVIPS is not available: {_vips_import_error}")

        path = Path(path)
        if not path.is_file():
            return None

        try:
            # Sequential access is faster for one-pass operations. Truncated
            # files only warn by default and decode as gray, so fail on warnings.
            img = pyvips.Image.new_from_file(str(path), access="sequential", **_strict_load())
            return VIPSBackend.to_numpy(VIPSBackend.convert_mode(img, mode))
        except (pyvips.error.Error, OSError, ValueError) as e:
            logger.debug("Unreadable tile %s treated as absent: %s", path, e)
            return None

    @staticmethod
    def save_tile(pixels: np.ndarray, path: Path, fmt: str, quality: float) -> None:
        """Encode and write a tile, creating missing parent directories.

        Args:
            pixels: Tile array (H, W) gray or (H, W, 3) RGB uint8
            path: Output path, including extension
            fmt: "jpg", "jpeg" or "png"
            quality: JPEG quality in [0, 1], ignored for PNG

        Raises:
            ValueError: If the format is not supported
            OSError: If the directory cannot be created
            pyvips.error.Error: If encoding or writing fails
        """
        path = Path(path)
        fmt = fmt.lower()
        if fmt not in ("jpg", "jpeg", "png"):
            raise ValueError(f"Unsupported tile format: {fmt!r}")

        path.parent.mkdir(parents=True, exist_ok=True)
        img = VIPSBackend.from_numpy(pixels)
        if fmt == "png":
            img.pngsave(str(path))
        else:
            img.jpegsave(str(path), Q=jpeg_q(quality))


def get_backend() -> type[VIPSBackend]:
    """Get the image processing backend.

    Returns:
        VIPSBackend class

    Raises:
        RuntimeError: If PyVIPS is not available
    """
    if not _HAS_VIPS:
        raise RuntimeError(
            f"PyVIPS is required but not available: {_vips_import_error}\n"
            "Install pyvips and libvips: pip install pyvips"
        )
    return VIPSBackend
