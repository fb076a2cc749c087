"""CLI entry point for tilescaler."""

from __future__ import annotations

import logging
import sys

import click
from tqdm import tqdm

from tilescaler.config import (
    DEFAULT_FORMAT,
    DEFAULT_QUALITY,
    DEFAULT_TILE_HEIGHT,
    DEFAULT_TILE_PATTERN,
    DEFAULT_TILE_WIDTH,
    SUPPORTED_FORMATS,
    ScaleParams,
)
from tilescaler.core.types import ColorMode, ScaleReport

from .backends import is_vips_available, get_vips_import_error
from .pyramid import scale_pyramid
from .store import TileWriteError

logger = logging.getLogger(__name__)


def _configure_logging(verbose: int) -> None:
    """Log to stderr; -v for progress messages, -vv for per-tile detail."""
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _check_prerequisites() -> None:
    """Check that pyvips is available.

    Exits the process with an error message if not.
    """
    if not is_vips_available():
        click.echo(click.style(
            f"Error: tilescaler requires pyvips ({get_vips_import_error()}). "
            "Install it with: pip install pyvips",
            fg="red"
        ), err=True)
        sys.exit(1)


def _print_header(params: ScaleParams) -> None:
    """Print the CLI banner with processing parameters."""
    extent = params.extent
    click.echo(click.style("tilescaler", fg="cyan", bold=True))
    click.echo(click.style("=" * 40, fg="cyan"))
    click.echo(f"Tile pattern: {params.path_template}")
    click.echo(
        f"Tiles: {params.tile_width}x{params.tile_height}px | "
        f"Type: {params.color_mode.value} | Format: {params.format}"
        + (f" Q{params.quality:.2f}" if params.format.lower() != "png" else "")
    )
    click.echo(
        f"Extent: x [{extent.min_x}, {extent.max_x}) y [{extent.min_y}, {extent.max_y}) | "
        f"z {params.min_z}..{params.max_z}"
    )
    if params.ignore_empty_tiles:
        click.echo(click.style("Empty tiles will not be written", fg="yellow"))
    click.echo()


def _run(params: ScaleParams) -> ScaleReport:
    """Run the scaler with a progress bar over z-sections."""
    total = params.max_z - params.min_z + 1
    with tqdm(total=total, desc="Scaling sections", unit="z") as pbar:

        def _on_progress(stage: str, current: int, _total: int) -> None:
            if stage == "z":
                pbar.update(current - pbar.n)
            elif stage == "level":
                pbar.set_postfix(scale=current)

        return scale_pyramid(params, progress_callback=_on_progress)


def _print_summary(report: ScaleReport) -> None:
    """Print the colored processing summary."""
    click.echo()
    click.echo(click.style("=" * 40, fg="cyan"))
    sections = len(report.sections)
    depths = [len(levels) for levels in report.sections.values()]
    deepest = max(depths) if depths else 0
    summary = click.style(
        f"{sections} section(s), {report.tiles_written} tile(s) written", fg="green"
    )
    click.echo(click.style("Completed: ", bold=True) + summary)
    click.echo(f"  deepest pyramid: {deepest} scaled level(s)")


@click.command()
@click.argument("base_path", type=click.Path(exists=True, file_okay=False))
@click.option("--max-col", type=click.IntRange(min=0), required=True,
              help="Last level 0 tile column (inclusive)")
@click.option("--max-row", type=click.IntRange(min=0), required=True,
              help="Last level 0 tile row (inclusive)")
@click.option("--min-col", type=click.IntRange(min=0), default=0, show_default=True,
              help="First level 0 tile column")
@click.option("--min-row", type=click.IntRange(min=0), default=0, show_default=True,
              help="First level 0 tile row")
@click.option("--min-z", type=int, default=0, show_default=True,
              help="First z-section to scale")
@click.option("--max-z", type=int, default=None,
              help="Last z-section to scale (inclusive, default: --min-z)")
@click.option("--tile-width", type=int, default=DEFAULT_TILE_WIDTH, show_default=True,
              help="Tile width in pixels")
@click.option("--tile-height", type=int, default=DEFAULT_TILE_HEIGHT, show_default=True,
              help="Tile height in pixels")
@click.option("--tile-pattern", "-p", default=DEFAULT_TILE_PATTERN, show_default=True,
              help="Tile path pattern relative to BASE_PATH, without extension")
@click.option("--format", "-f", "fmt", type=click.Choice(sorted(SUPPORTED_FORMATS), case_sensitive=False),
              default=DEFAULT_FORMAT, show_default=True, help="Tile file format")
@click.option("--quality", "-q", type=click.FloatRange(0.0, 1.0), default=DEFAULT_QUALITY,
              show_default=True, help="JPEG quality")
@click.option("--type", "tile_type", type=click.Choice(["rgb", "gray", "grey"], case_sensitive=False),
              default="rgb", show_default=True, help="Pixel type of the tiles")
@click.option("--ignore-empty-tiles", is_flag=True,
              help="Do not write tiles without source data. Positions whose four "
                   "source tiles are all missing are always skipped, so this only "
                   "matters for callers of MosaicBuffer/downsample")
@click.option("--verbose", "-v", count=True, help="Increase log verbosity (-v, -vv)")
def main(
    base_path: str,
    max_col: int,
    max_row: int,
    min_col: int,
    min_row: int,
    min_z: int,
    max_z: int | None,
    tile_width: int,
    tile_height: int,
    tile_pattern: str,
    fmt: str,
    quality: float,
    tile_type: str,
    ignore_empty_tiles: bool,
    verbose: int,
) -> None:
    """Generate the scale pyramid of an existing level 0 tile set.

    BASE_PATH is the directory holding the level 0 tiles; scaled tiles are
    written next to them using the same tile pattern. The pattern takes
    positional fields, either as {0}..{8} or as %1$d..%9$d:

    \b
      1: scale level          6: tile width at scale (level 0 px)
      2: scale factor 1/2^s   7: tile height at scale (level 0 px)
      3: x (level 0 px)       8: row
      4: y (level 0 px)       9: column
      5: z

    Sections are independent; run one process per z range to scale a
    stack in parallel.

    Examples:

        # Scale sections 0-99 of a 40x30 tile grid
        python -m tilescaler ./tiles --max-col 39 --max-row 29 --max-z 99

        # Grayscale PNG tiles in <z>/<s>/<row>_<col>.png
        python -m tilescaler ./tiles --max-col 9 --max-row 9 -f png --type gray -p '%5$d/%1$d/%8$d_%9$d'
    """
    _configure_logging(verbose)

    params = ScaleParams(
        max_col=max_col,
        max_row=max_row,
        min_col=min_col,
        min_row=min_row,
        min_z=min_z,
        max_z=min_z if max_z is None else max_z,
        tile_width=tile_width,
        tile_height=tile_height,
        base_path=base_path,
        tile_pattern=tile_pattern,
        format=fmt.lower(),
        quality=quality,
        color_mode=ColorMode.parse(tile_type),
        ignore_empty_tiles=ignore_empty_tiles,
    )
    try:
        params.validate()
    except ValueError as e:
        raise click.UsageError(str(e)) from e

    _check_prerequisites()
    _print_header(params)

    try:
        report = _run(params)
    except TileWriteError as e:
        logger.error("Aborting: %s", e)
        click.echo(click.style(f"\nError: {e}", fg="red"), err=True)
        sys.exit(1)

    _print_summary(report)


if __name__ == "__main__":
    main()
