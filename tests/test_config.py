"""Tests for configuration defaults and run parameter validation."""

from __future__ import annotations

import logging
import os

import pytest

from tilescaler import config
from tilescaler.config import ScaleParams
from tilescaler.core.types import ColorMode, Extent


class TestEnvHelpers:
    """Tests for environment variable overrides."""

    def test_int_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TILESCALER_TEST_INT", "512")
        assert config._get_env_int("TILESCALER_TEST_INT", 256) == 512

    def test_invalid_int_falls_back(
        self, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        monkeypatch.setenv("TILESCALER_TEST_INT", "big")
        with caplog.at_level(logging.WARNING, logger="tilescaler.config"):
            assert config._get_env_int("TILESCALER_TEST_INT", 256) == 256
        assert "Invalid integer for TILESCALER_TEST_INT" in caplog.text

    def test_float_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TILESCALER_TEST_FLOAT", "0.5")
        assert config._get_env_float("TILESCALER_TEST_FLOAT", 0.85) == 0.5

    def test_invalid_float_falls_back(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TILESCALER_TEST_FLOAT", "high")
        assert config._get_env_float("TILESCALER_TEST_FLOAT", 0.85) == 0.85

    def test_unset_uses_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("TILESCALER_TEST_STR", raising=False)
        assert config._get_env_str("TILESCALER_TEST_STR", "jpg") == "jpg"


class TestScaleParams:
    """Tests for ScaleParams."""

    def test_defaults_are_valid(self) -> None:
        params = ScaleParams(max_col=10, max_row=10)
        params.validate()
        assert params.tile_pattern == config.DEFAULT_TILE_PATTERN
        assert params.color_mode is ColorMode.RGB
        assert not params.ignore_empty_tiles

    def test_extent_includes_max_row_and_col(self) -> None:
        params = ScaleParams(max_col=2, max_row=1, min_col=1, tile_width=256, tile_height=128)
        assert params.extent == Extent(min_x=256, max_x=768, min_y=0, max_y=256)

    @pytest.mark.parametrize(
        "base_path, expected",
        [
            ("/data/tiles", "/data/tiles/%5$d/%8$d_%9$d_%1$d.png"),
            ("/data/tiles/", "/data/tiles/%5$d/%8$d_%9$d_%1$d.png"),
            ("", "%5$d/%8$d_%9$d_%1$d.png"),
        ],
    )
    def test_path_template(self, base_path: str, expected: str) -> None:
        params = ScaleParams(
            max_col=0, max_row=0, base_path=base_path,
            tile_pattern="%5$d/%8$d_%9$d_%1$d", format="png",
        )
        assert params.path_template == expected

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"tile_width": 300}, "tile_width"),
            ({"tile_height": 0}, "tile_height"),
            ({"tile_width": -256}, "tile_width"),
            ({"min_col": -1}, "min_col"),
            ({"min_row": 5}, "min_row"),
            ({"min_col": 5}, "min_col"),
            ({"min_z": 3, "max_z": 2}, "min_z"),
            ({"quality": 1.5}, "quality"),
            ({"format": "gif"}, "Unsupported format"),
            ({"tile_pattern": "{12}"}, "field"),
        ],
    )
    def test_invalid(self, overrides: dict, message: str) -> None:
        params = ScaleParams(max_col=4, max_row=4, **overrides)
        with pytest.raises(ValueError, match=message):
            params.validate()


class TestColorMode:
    """Tests for tile type parsing."""

    @pytest.mark.parametrize(
        "name, expected",
        [("rgb", ColorMode.RGB), ("RGB", ColorMode.RGB), ("gray", ColorMode.GRAY), ("Grey", ColorMode.GRAY)],
    )
    def test_parse(self, name: str, expected: ColorMode) -> None:
        assert ColorMode.parse(name) is expected

    def test_parse_unknown(self) -> None:
        with pytest.raises(ValueError, match="rgb"):
            ColorMode.parse("cmyk")

    def test_bands(self) -> None:
        assert ColorMode.RGB.bands == 3
        assert ColorMode.GRAY.bands == 1


def test_vips_concurrency_set_on_import() -> None:
    """libvips reads VIPS_CONCURRENCY at startup, so importing the package sets it."""
    assert os.environ.get("VIPS_CONCURRENCY") is not None
