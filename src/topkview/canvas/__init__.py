"""Canvas - braille-resolution terminal line plots."""

from topkview.canvas.canvas import MIN_HEIGHT, MIN_WIDTH, Canvas
from topkview.canvas.cell import Cell
from topkview.canvas.color import DEFAULT, PALETTE, RESET, Color, named

__all__ = [
    "Canvas",
    "Cell",
    "Color",
    "DEFAULT",
    "RESET",
    "PALETTE",
    "MIN_WIDTH",
    "MIN_HEIGHT",
    "named",
]
