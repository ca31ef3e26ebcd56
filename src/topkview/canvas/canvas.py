"""Braille line-plot canvas.

Each terminal cell holds a 2x4 grid of braille dots, so a ``W x H`` canvas
offers ``2W x 4H`` sub-pixels. `Canvas.fill` rasterizes any number of series
into a cell map; `str(canvas)` turns the map into colored text. The map is
rebuilt from scratch on every fill, so rendering is a pure function of the
last ``fill`` call.

Layout with the axis enabled::

    1.00 ┤ ⠀⡠⠊
    0.50 ┤⡠⠊
    0.00 ┤
         ╰────────
          └start   end┘   <- only with horizontal_labels

Usage:
    from topkview.canvas import Canvas

    canvas = Canvas(60, 12)
    canvas.num_data_points = 30
    print(canvas.plot([series_a, series_b]))
"""

from __future__ import annotations

import math
from typing import Iterable, Sequence

from topkview.canvas.cell import (
    BRAILLE,
    BRAILLE_OFFSET,
    LABELEND,
    LABELSTART,
    LINE_OFFSET,
    NO_OFFSET,
    ORIGIN,
    XAXIS,
    XLABELMARKER,
    YAXIS,
    Cell,
)
from topkview.canvas.color import DEFAULT, Color

# Smallest canvas that can hold an axis row, a label row and a plot.
MIN_WIDTH = 2
MIN_HEIGHT = 4

Point = tuple[int, int]


def _min_max(data: Sequence[Sequence[float]]) -> tuple[float, float] | None:
    lo = math.inf
    hi = -math.inf
    for series in data:
        for value in series:
            if value < lo:
                lo = value
            if value > hi:
                hi = value
    if lo == math.inf:
        return None
    return lo, hi


def _line(p0: Point, p1: Point) -> list[Point]:
    """Sub-pixels on the segment from ``p0`` to ``p1``, walking left to right.

    The right end point is excluded; the next segment starts there. Vertical
    runs are filled one sub-row at a time so steep segments stay connected.
    """
    left, right = (p0, p1) if p0[0] <= p1[0] else (p1, p0)
    x_distance = right[0] - left[0]
    if x_distance == 0:
        return []
    y_distance = abs(right[1] - left[1])
    slope = y_distance / x_distance
    sign = -1 if right[1] < left[1] else 1

    points: list[Point] = []
    target = float(left[1])
    current = left[1]
    for x in range(left[0], right[0]):
        points.append((x, current))
        target += slope * sign
        while current != int(target):
            points.append((x, current))
            current += sign
    return points


class Canvas:
    """A fixed-size braille plot.

    Attributes:
        line_colors: Color per series index; missing entries use DEFAULT.
        label_color: Color of the axis labels.
        axis_color: Color of the axis glyphs.
        show_axis: Draw Y labels, the Y axis and the X axis row.
        horizontal_labels: X labels; the first and last are printed.
        num_data_points: Expected points per series. Sets the horizontal
            scale so that many points span the plot width; 0 plots one
            sample per sub-column.
    """

    def __init__(self, width: int, height: int) -> None:
        self.width = width
        self.height = height
        self.line_colors: list[Color] = []
        self.label_color: Color = DEFAULT
        self.axis_color: Color = DEFAULT
        self.show_axis = True
        self.horizontal_labels: list[str] = []
        self.num_data_points = 0

        self._points: dict[Point, Cell] = {}
        self._plot_width = 0
        self._graph_height = 0
        self._horizontal_offset = 0
        self._max_x = 0

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    def fill(self, data: Sequence[Sequence[float]]) -> None:
        """Rasterize ``data`` (one sequence per series) into the cell map."""
        self._points = {}
        self._max_x = 0
        self._horizontal_offset = 0
        if not data or self.width < MIN_WIDTH or self.height < MIN_HEIGHT:
            return
        bounds = _min_max(data)
        if bounds is None:
            return
        lo, hi = bounds
        if hi == lo:
            # Zero range: one unit centered on the value, drawn mid-height.
            lo -= 0.5
            hi += 0.5
        diff = hi - lo

        self._graph_height = self.height
        if self.show_axis:
            self._draw_y_axis(lo, hi)
        self._plot_width = max(0, (self.width - self._horizontal_offset) * 2)

        if self._plot_width > 0:
            for i, series in enumerate(data):
                self._draw_series(i, series, lo, diff)

        if self.show_axis:
            self._draw_x_axis()

    def plot(self, data: Sequence[Sequence[float]]) -> str:
        """Fill and render in one call."""
        if not data:
            return ""
        self.fill(data)
        return str(self)

    def __str__(self) -> str:
        if not self._points:
            return ""
        rows = []
        for row in range(self.height):
            cells = []
            for col in range(self.width):
                cell = self._points.get((col, row))
                cells.append(str(cell) if cell is not None else " ")
            rows.append("".join(cells))
        return "\n".join(rows)

    def _draw_y_axis(self, lo: float, hi: float) -> None:
        self._graph_height -= 1
        if self.horizontal_labels:
            self._graph_height -= 1
        label_width = max(len(f"{hi:.2f}"), len(f"{lo:.2f}"))
        self._horizontal_offset = label_width + 2
        vertical_scale = (hi - lo) / (self._graph_height - 1)
        current = lo
        for row in range(self._graph_height - 1, -1, -1):
            label = f"{current:.2f}"
            self._set_runes(row, label_width - len(label), self.label_color, NO_OFFSET, map(ord, label))
            self._set_runes(row, label_width + 1, self.axis_color, LINE_OFFSET, [YAXIS])
            current += vertical_scale

    def _draw_series(self, index: int, series: Sequence[float], lo: float, diff: float) -> None:
        if not series:
            return
        if self.num_data_points > 0:
            series = series[-self.num_data_points :]
            scale = max(1, math.ceil(self._plot_width / self.num_data_points))
        else:
            scale = 1
        # Narrower than one sub-column per point: keep the newest points.
        series = series[-self._plot_width :]

        top = self._graph_height - 1
        x0 = self._horizontal_offset * 2
        color = self._line_color(index)
        previous = int(((series[0] - lo) / diff) * top)
        for j, value in enumerate(series[1:]):
            height = int(((value - lo) / diff) * top)
            self._set_line(
                (x0 + int(j * scale), (top - previous) * 4),
                (x0 + int((j + 1) * scale), (top - height) * 4),
                color,
            )
            previous = height

    def _draw_x_axis(self) -> None:
        offset = self._horizontal_offset
        label_row = self._graph_height + 1
        axis_runes = [ORIGIN]
        remaining = self._plot_width // 2
        labels = self.horizontal_labels
        if labels and len(labels) <= remaining:
            start, end = labels[0], labels[-1]
            self._set_runes(label_row, offset, self.axis_color, LINE_OFFSET, [LABELSTART])
            self._set_runes(label_row, offset + 1, self.label_color, NO_OFFSET, map(ord, start))
            axis_runes.append(XLABELMARKER)
            remaining -= 1
            # Room for both labels, two spaces between them and the two corner glyphs.
            min_width = len(start) + len(end) + 4
            length = self._max_x - offset
            if length >= min_width:
                label_pos = offset + length - len(end)
                self._set_runes(label_row, label_pos, self.label_color, NO_OFFSET, map(ord, end))
                self._set_runes(label_row, label_pos + len(end), self.axis_color, LINE_OFFSET, [LABELEND])
                axis_runes.extend([XAXIS] * (length - 1))
                axis_runes.append(XLABELMARKER)
                remaining -= length
        axis_runes.extend([XAXIS] * remaining)
        self._set_runes(self._graph_height, offset - 1, self.axis_color, LINE_OFFSET, axis_runes)

    def _in_area(self, col: int, row: int) -> bool:
        return 0 <= col < self.width and 0 <= row < self.height

    def _set_runes(self, row: int, col: int, color: Color, offset: int, runes: Iterable[int]) -> None:
        for i, rune in enumerate(runes):
            if self._in_area(col + i, row):
                self._points[(col + i, row)] = Cell(rune, offset, color)

    def _set_line(self, p0: Point, p1: Point, color: Color) -> None:
        for x, y in _line(p0, p1):
            cell_pos = (x // 2, y // 4)
            if not self._in_area(*cell_pos):
                continue
            if cell_pos[0] > self._max_x:
                self._max_x = cell_pos[0]
            previous = self._points.get(cell_pos)
            bits = previous.val if previous is not None else 0
            self._points[cell_pos] = Cell(bits | BRAILLE[y % 4][x % 2], BRAILLE_OFFSET, color)

    def _line_color(self, index: int) -> Color:
        if index >= len(self.line_colors):
            return DEFAULT
        return self.line_colors[index]


__all__ = ["Canvas", "MIN_WIDTH", "MIN_HEIGHT"]
