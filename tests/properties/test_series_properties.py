"""Property-based tests for sketch series and canvas rendering.

Tier coverage:
- Series length always equals the history length
- Series values are non-negative and sum to the item's window count
- Count refresh never reorders or resizes the list
- Canvas rendering is a pure function of the last fill
"""

from __future__ import annotations

import threading

from hypothesis import given
from hypothesis import strategies as st

from topkview.canvas import Canvas
from topkview.ranked import RankedSetView
from topkview.series import SeriesExtractor, log_scale
from topkview.sketch import SlidingSketch

labels = st.sampled_from(["a", "b", "c", "d", "e", "f"])
# (label, count) adds interleaved with tick advances.
operations = st.lists(
    st.one_of(
        st.tuples(st.just("add"), labels, st.integers(min_value=1, max_value=20)),
        st.tuples(st.just("tick"), st.just(""), st.integers(min_value=1, max_value=4)),
    ),
    max_size=40,
)


def _run(ops, history_length: int = 8) -> SlidingSketch:
    sketch = SlidingSketch(k=4, history_length=history_length, width=256, depth=3, seed=0)
    for op, label, n in ops:
        if op == "add":
            sketch.add(label, n)
        else:
            sketch.ticks(n)
    return sketch


class TestSeriesProperties:
    """Invariants of extracted series."""

    @given(ops=operations, history_length=st.integers(min_value=1, max_value=16))
    def test_series_length_and_sign(self, ops, history_length: int) -> None:
        sketch = _run(ops, history_length)
        extractor = SeriesExtractor(sketch, threading.Lock())
        for item in sketch.sorted_items():
            series = extractor.get_series(item)
            assert len(series) == history_length
            assert all(value >= 0 for value in series)

    @given(ops=operations)
    def test_tracked_count_bounds_series(self, ops) -> None:
        sketch = _run(ops)
        extractor = SeriesExtractor(sketch, threading.Lock())
        for item in sketch.sorted_items():
            assert max(extractor.get_series(item)) <= sketch.count(item.label)

    @given(ops=operations, extra=st.lists(st.tuples(labels, st.integers(1, 5)), max_size=10))
    def test_count_refresh_keeps_order(self, ops, extra) -> None:
        sketch = _run(ops)
        view = RankedSetView(sketch, threading.Lock())
        items = view.refresh_ranked()
        before = [(i.label, i.rank) for i in items]
        for label, n in extra:
            sketch.add(label, n)
        view.refresh_counts(items)
        assert [(i.label, i.rank) for i in items] == before


class TestLogScaleProperties:
    @given(a=st.floats(-1e6, 1e6), b=st.floats(-1e6, 1e6))
    def test_monotonic(self, a: float, b: float) -> None:
        lo, hi = sorted((a, b))
        assert log_scale(lo) <= log_scale(hi)
        assert log_scale(lo) >= 0.0


class TestCanvasProperties:
    @given(
        data=st.lists(
            st.lists(st.floats(0, 1000, allow_nan=False), min_size=1, max_size=20),
            min_size=1,
            max_size=4,
        ),
        width=st.integers(2, 40),
        height=st.integers(4, 12),
        show_axis=st.booleans(),
    )
    def test_render_is_deterministic(self, data, width: int, height: int, show_axis: bool) -> None:
        canvas = Canvas(width, height)
        canvas.show_axis = show_axis
        canvas.fill(data)
        first = str(canvas)
        assert str(canvas) == first

        other = Canvas(width, height)
        other.show_axis = show_axis
        other.fill(data)
        assert str(other) == first
