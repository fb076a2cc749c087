"""Tests for the command-line interface."""

from __future__ import annotations

from pathlib import Path

from click.testing import CliRunner

from tilescaler.scale.__main__ import main


def _invoke(*args: str):
    return CliRunner().invoke(main, list(args))


class TestCli:
    """Tests for `python -m tilescaler`."""

    def test_scales_tile_set(self, tile_dir: Path):
        result = _invoke(str(tile_dir), "--max-col", "2", "--max-row", "2", "-f", "png")

        assert result.exit_code == 0, result.output
        assert "Completed" in result.output
        assert "5 tile(s) written" in result.output
        assert (tile_dir / "0" / "0_0_2.png").exists()

    def test_custom_pattern_and_gray(self, tile_dir: Path):
        result = _invoke(
            str(tile_dir), "--max-col", "2", "--max-row", "2",
            "-f", "png", "--type", "grey",
            "-p", "%5$d/%8$d_%9$d_%1$d",
        )

        assert result.exit_code == 0, result.output
        assert "Type: gray" in result.output
        assert (tile_dir / "0" / "1_1_1.png").exists()

    def test_missing_bounds(self, tile_dir: Path):
        result = _invoke(str(tile_dir), "--max-row", "2")
        assert result.exit_code == 2
        assert "--max-col" in result.output

    def test_invalid_tile_size(self, tile_dir: Path):
        result = _invoke(str(tile_dir), "--max-col", "2", "--max-row", "2", "--tile-width", "300")
        assert result.exit_code == 2
        assert "power of two" in result.output
        assert not (tile_dir / "0" / "0_0_1.png").exists()

    def test_inverted_z_range(self, tile_dir: Path):
        result = _invoke(
            str(tile_dir), "--max-col", "2", "--max-row", "2", "--min-z", "3", "--max-z", "1"
        )
        assert result.exit_code == 2
        assert "min_z" in result.output

    def test_write_failure_exits_nonzero(self, tile_dir: Path):
        # A directory where the first scaled tile should go
        (tile_dir / "0" / "0_0_1.png").mkdir()

        result = _invoke(str(tile_dir), "--max-col", "2", "--max-row", "2", "-f", "png")

        assert result.exit_code == 1
        assert "Failed to write tile" in result.output
        assert not (tile_dir / "0" / "0_0_2.png").exists()

    def test_nonexistent_base_path(self, temp_dir: Path):
        result = _invoke(str(temp_dir / "missing"), "--max-col", "0", "--max-row", "0")
        assert result.exit_code == 2

    def test_ignore_empty_tiles_help_names_its_scope(self):
        result = _invoke("--help")
        assert result.exit_code == 0
        help_text = " ".join(result.output.split())
        assert "always skipped" in help_text
        assert "MosaicBuffer/downsample" in help_text
