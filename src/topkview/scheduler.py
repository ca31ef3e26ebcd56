"""Scheduler - ingestion and refresh loops over the shared sketch.

Runs one ingestion thread plus independently clocked loops:

- ingest tick: advances the sketch window on wall-clock time;
- list refresh: re-ranks the heavy hitters (expensive, ~1 Hz);
- count refresh: re-reads counts of the listed items (cheap, ~5 Hz);
- plot refresh: extracts a series per listed item and renders the canvas.

Every loop is "wait, work, repeat" on its own daemon thread, so a slow cycle
delays only its own next run and never builds a backlog.

Locking:
    ``sketch_lock`` guards the sketch and everything computed by iterating it.
    ``ui_lock`` guards the item list, the selection, the tracking flag, the
    latest tick time and the canvas reference. When both are needed they are
    taken in ``ui_lock`` -> ``sketch_lock`` order. The log-scale and
    timestamps-from-data flags are ``threading.Event``s and need no lock.

Usage:
    scheduler = Scheduler(DashboardConfig())
    scheduler.attach_view(view)
    scheduler.start(sys.stdin)
    ...
    scheduler.stop()
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Callable, Protocol, TextIO

from topkview.canvas import Canvas, Color, named
from topkview.ingest import IngestStats, iter_records
from topkview.ranked import RankedSetView, TrackedItem
from topkview.series import SeriesExtractor
from topkview.series import log_scale as log_transform
from topkview.sketch import SlidingSketch

if TYPE_CHECKING:
    from topkview.config import DashboardConfig

_logger = logging.getLogger(__name__)

DEFAULT_CANVAS_WIDTH = 80
DEFAULT_CANVAS_HEIGHT = 20


class SchedulerState(Enum):
    """Lifecycle of the scheduler."""

    IDLE = "idle"
    RUNNING = "running"
    TERMINATING = "terminating"


@dataclass(frozen=True, slots=True)
class PlotFrame:
    """One rendered plot, ready for display."""

    text: str
    width: int
    height: int
    latest_tick: float | None
    log_scale: bool


class DashboardView(Protocol):
    """Receiver of scheduler output. Called from scheduler threads."""

    def show_items(self, items: list[TrackedItem], selected: int | None, tracking: bool) -> None:
        """New ranking. ``selected`` is the index to re-select, or None to leave it."""
        ...

    def show_counts(self, items: list[TrackedItem]) -> None:
        """Same items in the same order with fresh counts."""
        ...

    def show_plot(self, frame: PlotFrame) -> None:
        """A freshly rendered plot."""
        ...


class TickTracker:
    """Turns timestamps into whole-tick window advances.

    The first timestamp only sets the baseline. Later timestamps report how
    many ticks elapsed since the last advance, collapsing a stall into one
    multi-tick advance. Timestamps going backwards advance nothing.
    """

    def __init__(self, tick_size: float) -> None:
        self.tick_size = tick_size
        self.last: int | None = None

    def advance(self, timestamp: float) -> int:
        tick = math.floor(timestamp / self.tick_size)
        if self.last is None:
            self.last = tick
            return 0
        elapsed = tick - self.last
        if elapsed <= 0:
            return 0
        self.last = tick
        return elapsed

    def tick_start(self) -> float | None:
        """Epoch seconds at the start of the last tick seen."""
        if self.last is None:
            return None
        return self.last * self.tick_size


class Scheduler:
    """Owns the sketch, the shared dashboard state and the refresh loops.

    Args:
        config: Dashboard configuration.
        sketch: Sketch to use; built from ``config`` when omitted.
        view: Output receiver; may be attached later with `attach_view`.
        clock: Wall-clock source in epoch seconds.
    """

    def __init__(
        self,
        config: "DashboardConfig",
        sketch: SlidingSketch | None = None,
        view: DashboardView | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.sketch = sketch or SlidingSketch(
            config.k,
            config.history_length,
            width=config.width,
            depth=config.depth,
            decay=config.decay,
            decay_lut_size=config.decay_lut_size,
            seed=config.seed,
        )
        self.sketch_lock = threading.Lock()
        self.ui_lock = threading.Lock()
        self.series = SeriesExtractor(self.sketch, self.sketch_lock)
        self.ranked = RankedSetView(self.sketch, self.sketch_lock)
        self.stats = IngestStats()
        self._view = view
        self._clock = clock

        self._state = SchedulerState.IDLE
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []
        self._ingest_thread: threading.Thread | None = None

        # Guarded by ui_lock
        self._items: list[TrackedItem] = []
        self._selected = 0
        self._tracking = config.track_selected
        self._latest_tick: float | None = None
        self._canvas = self._new_canvas(DEFAULT_CANVAS_WIDTH, DEFAULT_CANVAS_HEIGHT)

        self._log_scale = threading.Event()
        if config.log_scale:
            self._log_scale.set()
        # Cleared for good by the first record without a usable timestamp.
        self._timestamps_from_data = threading.Event()
        self._timestamps_from_data.set()
        self._wall_ticks = TickTracker(config.tick_size)
        self._data_ticks = TickTracker(config.tick_size)

        # Plot thread only
        history = config.history_length
        self._plot_data: list[list[float]] = [[0.0] * history for _ in range(config.k + 1)]
        self._previous_highlight: list[float] = [0.0] * history
        if config.light_background:
            self.highlight_color: Color = named("black")
            self.dim_color: Color = named("light_gray")
        else:
            self.highlight_color = named("cyan")
            self.dim_color = named("dim_gray")

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def history_length(self) -> int:
        return self.config.history_length

    @property
    def items(self) -> list[TrackedItem]:
        with self.ui_lock:
            return [replace(item) for item in self._items]

    @property
    def selected_index(self) -> int:
        with self.ui_lock:
            return self._selected

    @property
    def tracking(self) -> bool:
        with self.ui_lock:
            return self._tracking

    @property
    def latest_tick(self) -> float | None:
        with self.ui_lock:
            return self._latest_tick

    @property
    def log_scale(self) -> bool:
        return self._log_scale.is_set()

    @property
    def timestamps_from_data(self) -> bool:
        """True while JSON record timestamps drive the window."""
        return self.config.json_input and self._timestamps_from_data.is_set()

    def attach_view(self, view: DashboardView) -> None:
        self._view = view

    # ------------------------------------------------------------------
    # UI commands
    # ------------------------------------------------------------------

    def select(self, index: int) -> None:
        """Record the row the user selected."""
        with self.ui_lock:
            self._selected = max(0, index)

    def toggle_tracking(self) -> bool:
        with self.ui_lock:
            self._tracking = not self._tracking
            return self._tracking

    def toggle_log_scale(self) -> bool:
        if self._log_scale.is_set():
            self._log_scale.clear()
            return False
        self._log_scale.set()
        return True

    def resize(self, width: int, height: int) -> None:
        """Replace the canvas with one of the given size."""
        canvas = self._new_canvas(max(0, width), max(0, height))
        with self.ui_lock:
            self._canvas = canvas

    def canvas_size(self) -> tuple[int, int]:
        with self.ui_lock:
            return self._canvas.size

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def ingest_tick(self, now: float | None = None) -> int:
        """Advance the window on wall-clock time.

        Suppressed while JSON record timestamps drive the window.

        Returns:
            Number of ticks the sketch was advanced by.
        """
        if self.timestamps_from_data:
            return 0
        if now is None:
            now = self._clock()
        elapsed = self._wall_ticks.advance(now)
        with self.ui_lock:
            self._latest_tick = self._wall_ticks.tick_start()
        if elapsed:
            with self.sketch_lock:
                self.sketch.ticks(elapsed)
        return elapsed

    def read_input(self, stream: TextIO) -> None:
        """Count every record of ``stream`` into the sketch until end of input."""
        config = self.config
        for record in iter_records(stream, config.json_input, config.timestamp_layout, self.stats):
            if self._stop.is_set():
                return
            if self.timestamps_from_data:
                if record.timestamp is None:
                    self._timestamps_from_data.clear()
                    _logger.info("Record without usable timestamp; switching to wall-clock ticks")
                else:
                    self._advance_to(record.timestamp)
            with self.sketch_lock:
                self.sketch.add(record.item, record.count)
        _logger.info(
            "Input stream ended after %d records (%d dropped)",
            self.stats.records,
            self.stats.dropped,
        )

    def _advance_to(self, timestamp: float) -> None:
        elapsed = self._data_ticks.advance(timestamp)
        if elapsed:
            with self.sketch_lock:
                self.sketch.ticks(elapsed)
        with self.ui_lock:
            self._latest_tick = self._data_ticks.tick_start()

    # ------------------------------------------------------------------
    # Refreshes
    # ------------------------------------------------------------------

    def refresh_list(self) -> list[TrackedItem]:
        """Re-rank the heavy hitters and publish them.

        With tracking on, the previously selected label is re-selected at its
        new rank; when it dropped out the selection is left alone.
        """
        items = self.ranked.refresh_ranked()
        with self.ui_lock:
            previous = None
            if 0 <= self._selected < len(self._items):
                previous = self._items[self._selected].label
            self._items = items
            selected = None
            if self._tracking and previous is not None:
                for i, item in enumerate(items):
                    if item.label == previous:
                        selected = i
                        self._selected = i
                        break
            tracking = self._tracking
            snapshot = [replace(item) for item in items]
        if self._view is not None:
            self._view.show_items(snapshot, selected, tracking)
        return snapshot

    def refresh_counts(self) -> list[TrackedItem]:
        """Re-read counts of the listed items without reordering them.

        A no-op when count refresh runs at the rank-refresh rate.
        """
        if not self.config.count_refresh_enabled:
            return []
        with self.ui_lock:
            self.ranked.refresh_counts(self._items)
            snapshot = [replace(item) for item in self._items]
        if self._view is not None:
            self._view.show_counts(snapshot)
        return snapshot

    def refresh_plot(self) -> PlotFrame | None:
        """Render one plot of every listed item.

        The selected item is drawn last in the highlight color; the previous
        highlight stays one more frame as a dimmed trace.
        """
        use_log = self.log_scale
        with self.ui_lock:
            items = list(self._items)
            selected = self._selected
            canvas = self._canvas
            latest_tick = self._latest_tick
        if not items:
            return None

        n = len(items)
        selected = min(selected, n - 1)
        ordered = [items[(selected + 1 + i) % n] for i in range(n)]
        data = self._plot_data
        for i, item in enumerate(ordered[:-1]):
            data[i] = self._series_values(item, use_log)
        highlight = self._series_values(ordered[-1], use_log)
        data[n - 1] = self._previous_highlight
        data[n] = highlight
        self._previous_highlight = highlight

        colors = [self.dim_color] * (n + 1)
        colors[n] = self.highlight_color
        canvas.line_colors = colors
        canvas.fill(data[: n + 1])
        frame = PlotFrame(
            text=str(canvas),
            width=canvas.width,
            height=canvas.height,
            latest_tick=latest_tick,
            log_scale=use_log,
        )
        if self._view is not None:
            self._view.show_plot(frame)
        return frame

    def _series_values(self, item: TrackedItem, use_log: bool) -> list[float]:
        series = self.series.get_series(item, self.history_length)
        if use_log:
            return [log_transform(value) for value in series]
        return [float(value) for value in series]

    def _new_canvas(self, width: int, height: int) -> Canvas:
        canvas = Canvas(width, height)
        canvas.num_data_points = self.config.history_length
        canvas.show_axis = False
        return canvas

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, input_stream: TextIO | None = None) -> None:
        """Arm the refresh loops and, given a stream, the ingestion thread."""
        if self._state is not SchedulerState.IDLE:
            raise RuntimeError(f"Scheduler cannot start from state {self._state.value}")
        self._state = SchedulerState.RUNNING
        config = self.config

        loops: list[tuple[str, float, Callable[[], object]]] = [
            ("ingest-tick", config.tick_size, self.ingest_tick),
            ("list-refresh", 1.0 / config.items_fps, self.refresh_list),
            ("plot-refresh", 1.0 / config.plot_fps, self.refresh_plot),
        ]
        if config.count_refresh_enabled:
            loops.append(("count-refresh", 1.0 / config.item_counts_fps, self.refresh_counts))

        for name, interval, work in loops:
            thread = threading.Thread(
                target=self._run_every,
                args=(name, interval, work),
                name=f"topkview-{name}",
                daemon=True,
            )
            self._threads.append(thread)
            thread.start()

        if input_stream is not None:
            # Never joined: a read blocked on the stream is abandoned at exit.
            self._ingest_thread = threading.Thread(
                target=self.read_input,
                args=(input_stream,),
                name="topkview-ingest",
                daemon=True,
            )
            self._ingest_thread.start()
        _logger.info("Scheduler started with %d refresh loops", len(self._threads))

    def stop(self, timeout: float = 1.0) -> None:
        """Stop rearming loops and wait briefly for in-flight cycles."""
        if self._state is SchedulerState.TERMINATING:
            return
        self._state = SchedulerState.TERMINATING
        self._stop.set()
        current = threading.current_thread()
        for thread in self._threads:
            if thread is not current:
                thread.join(timeout=timeout)
        _logger.info("Scheduler stopped")

    def _run_every(self, name: str, interval: float, work: Callable[[], object]) -> None:
        while not self._stop.wait(interval):
            try:
                work()
            except Exception:
                _logger.exception("%s cycle failed", name)


__all__ = [
    "DashboardView",
    "PlotFrame",
    "Scheduler",
    "SchedulerState",
    "TickTracker",
]
