"""Tests for the Scheduler: refreshes, ingestion and lifecycle."""

from __future__ import annotations

import io
import logging
import threading
from unittest.mock import MagicMock

import pytest

from topkview.config import DashboardConfig
from topkview.scheduler import PlotFrame, Scheduler, SchedulerState, TickTracker


def _feed(scheduler: Scheduler, **counts: int) -> None:
    with scheduler.sketch_lock:
        for label, count in counts.items():
            scheduler.sketch.add(label, count)


class TestTickTracker:
    """Tests for timestamp -> tick conversion."""

    def test_first_timestamp_sets_baseline(self) -> None:
        tracker = TickTracker(1.0)
        assert tracker.advance(100.4) == 0
        assert tracker.tick_start() == 100.0

    def test_elapsed_ticks(self) -> None:
        tracker = TickTracker(2.0)
        tracker.advance(10.0)
        assert tracker.advance(11.9) == 0
        assert tracker.advance(16.5) == 3
        assert tracker.tick_start() == 16.0

    def test_backwards_time_advances_nothing(self) -> None:
        tracker = TickTracker(1.0)
        tracker.advance(50.0)
        assert tracker.advance(40.0) == 0
        assert tracker.tick_start() == 50.0

    def test_no_baseline(self) -> None:
        assert TickTracker(1.0).tick_start() is None


class TestListRefresh:
    """Tests for rank refresh and selection tracking."""

    def test_ranks_within_one_tick(self, scheduler: Scheduler) -> None:
        _feed(scheduler, a=3, b=1)
        items = scheduler.refresh_list()
        assert [(i.label, i.count, i.rank) for i in items] == [("a", 3, 1), ("b", 1, 2)]

    def test_publishes_to_view(self, scheduler: Scheduler) -> None:
        view = MagicMock()
        scheduler.attach_view(view)
        _feed(scheduler, a=3)
        scheduler.refresh_list()
        items, selected, tracking = view.show_items.call_args.args
        assert [i.label for i in items] == ["a"]
        assert selected is None
        assert tracking is False

    def test_view_gets_copies(self, scheduler: Scheduler) -> None:
        view = MagicMock()
        scheduler.attach_view(view)
        _feed(scheduler, a=3)
        scheduler.refresh_list()
        published = view.show_items.call_args.args[0]
        published[0].count = 999
        assert scheduler.items[0].count == 3

    def test_tracking_follows_selected_label(self, scheduler: Scheduler) -> None:
        view = MagicMock()
        scheduler.attach_view(view)
        _feed(scheduler, a=5, b=3)
        scheduler.refresh_list()
        scheduler.select(1)
        assert scheduler.toggle_tracking() is True

        _feed(scheduler, b=10)
        scheduler.refresh_list()

        assert scheduler.selected_index == 0
        assert scheduler.items[0].label == "b"
        assert view.show_items.call_args.args[1:] == (0, True)

    def test_tracking_absent_label_leaves_selection(self, scheduler: Scheduler) -> None:
        _feed(scheduler, a=5, b=3)
        scheduler.refresh_list()
        scheduler.select(1)
        scheduler.toggle_tracking()

        with scheduler.sketch_lock:
            scheduler.sketch.ticks(10)
        _feed(scheduler, c=2)
        scheduler.refresh_list()

        assert scheduler.selected_index == 1
        assert [i.label for i in scheduler.items] == ["c"]

    def test_without_tracking_selection_stays_on_row(self, scheduler: Scheduler) -> None:
        _feed(scheduler, a=5, b=3)
        scheduler.refresh_list()
        scheduler.select(1)
        _feed(scheduler, b=10)
        scheduler.refresh_list()
        assert scheduler.selected_index == 1
        assert scheduler.items[1].label == "a"

    def test_select_clamps_negative(self, scheduler: Scheduler) -> None:
        scheduler.select(-4)
        assert scheduler.selected_index == 0


class TestCountRefresh:
    """Tests for count-only refresh."""

    def test_keeps_order_updates_counts(self, scheduler: Scheduler) -> None:
        view = MagicMock()
        scheduler.attach_view(view)
        _feed(scheduler, a=5, b=3)
        scheduler.refresh_list()
        _feed(scheduler, b=10)

        items = scheduler.refresh_counts()

        assert [(i.label, i.rank, i.count) for i in items] == [("a", 1, 5), ("b", 2, 13)]
        view.show_counts.assert_called_once()

    def test_noop_at_rank_rate(self) -> None:
        config = DashboardConfig(k=5, width=512, items_fps=2, item_counts_fps=2)
        scheduler = Scheduler(config)
        view = MagicMock()
        scheduler.attach_view(view)
        _feed(scheduler, a=5)
        scheduler.refresh_list()
        assert scheduler.refresh_counts() == []
        view.show_counts.assert_not_called()


class TestPlotRefresh:
    """Tests for plot rendering."""

    def test_nothing_to_plot(self, scheduler: Scheduler) -> None:
        view = MagicMock()
        scheduler.attach_view(view)
        assert scheduler.refresh_plot() is None
        view.show_plot.assert_not_called()

    def test_frame_matches_canvas(self, scheduler: Scheduler) -> None:
        view = MagicMock()
        scheduler.attach_view(view)
        scheduler.resize(30, 8)
        _feed(scheduler, a=5, b=3)
        scheduler.refresh_list()

        frame = scheduler.refresh_plot()

        assert isinstance(frame, PlotFrame)
        assert (frame.width, frame.height) == (30, 8)
        assert len(frame.text.split("\n")) == 8
        assert frame.log_scale is False
        view.show_plot.assert_called_once_with(frame)

    def test_selected_item_is_highlighted_last(self, scheduler: Scheduler) -> None:
        _feed(scheduler, a=5, b=3, c=1)
        scheduler.refresh_list()
        scheduler.select(0)
        scheduler.refresh_plot()

        # Slots: the two other items, the previous highlight, the highlight.
        colors = scheduler._canvas.line_colors
        assert len(colors) == 4
        assert colors[-1] == scheduler.highlight_color
        assert set(colors[:-1]) == {scheduler.dim_color}

    def test_log_scale_toggle(self, scheduler: Scheduler) -> None:
        _feed(scheduler, a=5)
        scheduler.refresh_list()
        assert scheduler.toggle_log_scale() is True
        assert scheduler.refresh_plot().log_scale is True
        assert scheduler.toggle_log_scale() is False

    def test_latest_tick_in_frame(self, scheduler: Scheduler) -> None:
        scheduler.ingest_tick(now=42.5)
        _feed(scheduler, a=1)
        scheduler.refresh_list()
        assert scheduler.refresh_plot().latest_tick == 42.0

    def test_light_background_palette(self) -> None:
        scheduler = Scheduler(DashboardConfig(width=64, light_background=True))
        assert scheduler.highlight_color == 0
        assert scheduler.dim_color == 252

    def test_dark_background_palette(self, scheduler: Scheduler) -> None:
        assert scheduler.highlight_color == 14
        assert scheduler.dim_color == 242


class TestIngestion:
    """Tests for wall-clock ticks and stream ingestion."""

    def test_wall_clock_ticks(self, scheduler: Scheduler) -> None:
        assert scheduler.ingest_tick(now=100.0) == 0
        _feed(scheduler, a=4)
        assert scheduler.ingest_tick(now=103.2) == 3
        assert scheduler.latest_tick == 103.0
        with scheduler.sketch_lock:
            assert scheduler.sketch.count("a") == 4
        scheduler.ingest_tick(now=120.0)
        with scheduler.sketch_lock:
            assert scheduler.sketch.count("a") == 0

    def test_uses_clock_when_no_time_given(self) -> None:
        now = iter([10.0, 12.0])
        scheduler = Scheduler(DashboardConfig(width=64), clock=lambda: next(now))
        scheduler.ingest_tick()
        assert scheduler.ingest_tick() == 2

    def test_read_text_input(self, scheduler: Scheduler) -> None:
        scheduler.read_input(io.StringIO("a\na\n\nb\na\n"))
        assert scheduler.stats.records == 4
        with scheduler.sketch_lock:
            assert scheduler.sketch.count("a") == 3
            assert scheduler.sketch.count("b") == 1

    def test_read_logs_stats_at_end(self, scheduler: Scheduler, caplog) -> None:
        with caplog.at_level(logging.INFO, logger="topkview.scheduler"):
            scheduler.read_input(io.StringIO("a\n"))
        assert "1 records (0 dropped)" in caplog.text

    def test_json_timestamps_drive_ticks(self) -> None:
        config = DashboardConfig(k=5, width=512, json_input=True)
        scheduler = Scheduler(config)
        stream = io.StringIO(
            '{"item": "a", "count": 2, "timestamp": 100}\n'
            '{"item": "a", "timestamp": 100.5}\n'
            '{"item": "b", "timestamp": 102}\n'
        )
        scheduler.read_input(stream)

        assert scheduler.timestamps_from_data
        assert scheduler.latest_tick == 102.0
        item = next(i for i in scheduler.refresh_list() if i.label == "a")
        assert scheduler.series.get_series(item)[-3:] == [3, 0, 0]
        # Wall-clock ticks are suppressed while data timestamps are in use.
        assert scheduler.ingest_tick(now=5000.0) == 0

    def test_missing_timestamp_falls_back_for_good(self) -> None:
        config = DashboardConfig(k=5, width=512, json_input=True)
        scheduler = Scheduler(config)
        scheduler.read_input(
            io.StringIO(
                '{"item": "a", "timestamp": 100}\n'
                '{"item": "a"}\n'
                '{"item": "a", "timestamp": 900}\n'
            )
        )
        assert not scheduler.timestamps_from_data
        with scheduler.sketch_lock:
            assert scheduler.sketch.count("a") == 3
        assert scheduler.ingest_tick(now=10.0) == 0
        assert scheduler.ingest_tick(now=12.0) == 2

    def test_non_finite_timestamp_keeps_ingesting(self) -> None:
        scheduler = Scheduler(DashboardConfig(k=5, width=512, json_input=True))
        scheduler.read_input(
            io.StringIO(
                '{"item": "a", "timestamp": 1}\n'
                '{"item": "b", "timestamp": NaN}\n'
                '{"item": "c", "timestamp": 2}\n'
            )
        )
        assert scheduler.stats.records == 3
        assert not scheduler.timestamps_from_data
        with scheduler.sketch_lock:
            assert [scheduler.sketch.count(label) for label in "abc"] == [1, 1, 1]

    def test_text_mode_never_uses_data_timestamps(self, scheduler: Scheduler) -> None:
        assert not scheduler.timestamps_from_data

    def test_malformed_json_is_counted_and_skipped(self) -> None:
        scheduler = Scheduler(DashboardConfig(k=5, width=512, json_input=True))
        scheduler.read_input(io.StringIO('{"item": "a"}\n{bad\n'))
        assert scheduler.stats.records == 1
        assert scheduler.stats.dropped == 1


class TestLifecycle:
    """Tests for start/stop and loop behavior."""

    def test_initial_state(self, scheduler: Scheduler) -> None:
        assert scheduler.state is SchedulerState.IDLE

    def test_start_and_stop(self, scheduler: Scheduler) -> None:
        scheduler.start(io.StringIO("a\nb\n"))
        try:
            assert scheduler.state is SchedulerState.RUNNING
            names = {t.name for t in scheduler._threads}
            assert names == {
                "topkview-ingest-tick",
                "topkview-list-refresh",
                "topkview-plot-refresh",
                "topkview-count-refresh",
            }
        finally:
            scheduler.stop()
        assert scheduler.state is SchedulerState.TERMINATING
        assert not any(t.is_alive() for t in scheduler._threads)

    def test_count_loop_not_armed_at_rank_rate(self) -> None:
        scheduler = Scheduler(DashboardConfig(width=64, items_fps=5, item_counts_fps=5))
        scheduler.start()
        try:
            assert "topkview-count-refresh" not in {t.name for t in scheduler._threads}
            assert scheduler._ingest_thread is None
        finally:
            scheduler.stop()

    def test_cannot_start_twice(self, scheduler: Scheduler) -> None:
        scheduler.start()
        try:
            with pytest.raises(RuntimeError):
                scheduler.start()
        finally:
            scheduler.stop()

    def test_stop_is_idempotent(self, scheduler: Scheduler) -> None:
        scheduler.stop()
        scheduler.stop()
        assert scheduler.state is SchedulerState.TERMINATING

    def test_failing_cycle_is_logged_and_loop_continues(self, scheduler: Scheduler, caplog) -> None:
        calls = []

        def work() -> None:
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")
            scheduler._stop.set()

        thread = threading.Thread(target=scheduler._run_every, args=("test", 0.001, work))
        with caplog.at_level(logging.ERROR, logger="topkview.scheduler"):
            thread.start()
            thread.join(timeout=5.0)
        assert len(calls) == 2
        assert "test cycle failed" in caplog.text
