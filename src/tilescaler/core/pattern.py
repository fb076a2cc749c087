"""Tile path templates.

A template addresses a tile through nine positional values, always supplied
in the same order:

    0. scale level ``s``
    1. scale factor ``1 / 2**s``
    2. x of the tile's top-left corner in level 0 pixels
    3. y of the tile's top-left corner in level 0 pixels
    4. z-section index
    5. tile width in level 0 pixels (``tile_width * 2**s``)
    6. tile height in level 0 pixels (``tile_height * 2**s``)
    7. row index at scale ``s``
    8. column index at scale ``s``

Templates are either Python format strings with positional fields
(``"{4}/{7}_{8}_{0}"``) or use the 1-based ``%N$d`` notation of printf-style
positional arguments (``"%5$d/%8$d_%9$d_%1$d"``), which is translated once.
"""

from __future__ import annotations

import re
import string

from .types import TileAddress

#: Number of positional values supplied to every template
FIELD_COUNT = 9

_PRINTF_FIELD = re.compile(r"%(\d+)\$([-+ 0#,]*)(\d*)(?:\.(\d+))?([dfsxXeEgG])")


def _translate_printf(template: str) -> str:
    """Translate ``%N$<conv>`` positional fields into ``{N-1:<spec>}`` fields."""

    def _replace(match: re.Match[str]) -> str:
        index = int(match.group(1)) - 1
        flags, width, precision, conv = match.group(2, 3, 4, 5)
        spec = ""
        if "-" in flags:
            spec += "<"
        if "+" in flags:
            spec += "+"
        elif " " in flags:
            spec += " "
        if "#" in flags:
            spec += "#"
        if "0" in flags and "-" not in flags:
            spec += "0"
        spec += width
        if "," in flags:
            spec += ","
        if precision:
            spec += f".{precision}"
        if conv != "s":
            spec += conv
        return f"{{{index}:{spec}}}" if spec else f"{{{index}}}"

    # Escape literal braces so they survive str.format
    escaped = template.replace("{", "{{").replace("}", "}}")
    return _PRINTF_FIELD.sub(_replace, escaped).replace("%%", "%")


class TilePattern:
    """A validated tile path template.

    Args:
        template: Template string in either supported notation
    """

    def __init__(self, template: str) -> None:
        self.template = template
        self._format = _translate_printf(template) if _PRINTF_FIELD.search(template) else template
        self._validate()

    def _validate(self) -> None:
        auto_numbered = False
        for _literal, name, _spec, _conv in string.Formatter().parse(self._format):
            if name is None:
                continue
            if name == "":
                auto_numbered = True
                continue
            head = name.split(".", 1)[0].split("[", 1)[0]
            if not head.isdigit() or int(head) >= FIELD_COUNT:
                raise ValueError(
                    f"Tile pattern {self.template!r} references field {name!r}; "
                    f"only positional fields 0-{FIELD_COUNT - 1} are available"
                )
        if auto_numbered:
            raise ValueError(
                f"Tile pattern {self.template!r} uses automatic field numbering; "
                "use explicit positions such as {4}"
            )

    def values(
        self, address: TileAddress, tile_width: int, tile_height: int
    ) -> tuple[int, float, int, int, int, int, int, int, int]:
        """The nine template values for a tile, in template order."""
        factor = 1 << address.scale
        pitch_x = tile_width * factor
        pitch_y = tile_height * factor
        return (
            address.scale,
            1.0 / factor,
            address.col * pitch_x,
            address.row * pitch_y,
            address.z,
            pitch_x,
            pitch_y,
            address.row,
            address.col,
        )

    def format(self, address: TileAddress, tile_width: int, tile_height: int) -> str:
        """Format the storage path of a tile."""
        return self._format.format(*self.values(address, tile_width, tile_height))

    def __repr__(self) -> str:
        return f"TilePattern({self.template!r})"
