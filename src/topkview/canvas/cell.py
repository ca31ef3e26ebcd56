"""A single terminal cell of the canvas.

Braille glyphs U+2800..U+28FF encode a 2x4 dot matrix in their low byte, so
a cell stores the OR of its dot bits and adds the block offset when printed.
Box-drawing glyphs (axes) and plain characters (labels) reuse the same
``val + offset`` scheme with a different offset.
"""

from __future__ import annotations

from dataclasses import dataclass

from topkview.canvas.color import DEFAULT, Color, wrap

BRAILLE_OFFSET = 0x2800
LINE_OFFSET = 0x2500
NO_OFFSET = 0x0000

# Dot bit for sub-pixel (row, column) within a cell.
BRAILLE: tuple[tuple[int, int], ...] = (
    (0x01, 0x08),
    (0x02, 0x10),
    (0x04, 0x20),
    (0x40, 0x80),
)

# Axis glyphs relative to LINE_OFFSET.
YAXIS = 0x24  # ┤
XAXIS = 0x00  # ─
ORIGIN = 0x70  # ╰
XLABELMARKER = 0x2C  # ┬
LABELSTART = 0x14  # └
LABELEND = 0x18  # ┘


@dataclass(frozen=True, slots=True)
class Cell:
    """Packed glyph value, its code-point offset and its color."""

    val: int = 0
    offset: int = NO_OFFSET
    color: Color = DEFAULT

    def __str__(self) -> str:
        code = self.val + self.offset
        if code == 0:
            return " "
        return wrap(chr(code), self.color)


__all__ = [
    "Cell",
    "BRAILLE",
    "BRAILLE_OFFSET",
    "LINE_OFFSET",
    "NO_OFFSET",
    "YAXIS",
    "XAXIS",
    "ORIGIN",
    "XLABELMARKER",
    "LABELSTART",
    "LABELEND",
]
