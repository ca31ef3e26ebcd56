"""TopK Textual application.

Left pane: the ranked heavy hitters. Right pane: a braille plot of every
listed item's recent history, the selected one highlighted, above a label row
with the window bounds and the active scale.

The `Scheduler` renders on its own threads and hands results to the app
through `TextualView`, which only posts messages; all widget updates happen
on the app's event loop.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import TYPE_CHECKING, TextIO

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.events import Resize
from textual.message import Message
from textual.widgets import Footer, Header, OptionList, Static
from textual.widgets.option_list import Option

if TYPE_CHECKING:
    from topkview.ranked import TrackedItem
    from topkview.scheduler import PlotFrame, Scheduler

# Header, footer, label row and the plot border.
PLOT_VERTICAL_CHROME = 5
PLOT_HORIZONTAL_CHROME = 2


class ItemsRefreshed(Message):
    """A new ranking is available."""

    def __init__(self, items: list["TrackedItem"], selected: int | None, tracking: bool) -> None:
        super().__init__()
        self.items = items
        self.selected = selected
        self.tracking = tracking


class CountsRefreshed(Message):
    """Fresh counts for the listed items, same order."""

    def __init__(self, items: list["TrackedItem"]) -> None:
        super().__init__()
        self.items = items


class PlotRefreshed(Message):
    """A newly rendered plot."""

    def __init__(self, frame: "PlotFrame") -> None:
        super().__init__()
        self.frame = frame


class TextualView:
    """Scheduler output sink that forwards everything to a Textual app.

    ``App.post_message`` is safe to call from any thread.
    """

    def __init__(self, app: App) -> None:
        self._app = app

    def show_items(self, items: list["TrackedItem"], selected: int | None, tracking: bool) -> None:
        self._app.post_message(ItemsRefreshed(items, selected, tracking))

    def show_counts(self, items: list["TrackedItem"]) -> None:
        self._app.post_message(CountsRefreshed(items))

    def show_plot(self, frame: "PlotFrame") -> None:
        self._app.post_message(PlotRefreshed(frame))


def rank_width(k: int) -> int:
    """Column width of the rank number for a list of up to ``k`` items."""
    return 1 + math.ceil(math.log10(k + 1))


def item_prompt(item: "TrackedItem", width: int) -> Text:
    """Two-line list entry: rank and label, then the count."""
    title = f"#{item.rank:<{width}d} {item.label}"
    return Text.assemble(title, "\n", (str(item.count), "dim"))


def format_tick(timestamp: float) -> str:
    """RFC 3339 UTC rendering of an epoch-seconds tick time."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def plot_labels(frame: "PlotFrame", window_size: float) -> Text:
    """Label row under the plot: window start, scale switch, window end."""
    scale = Text.assemble(
        ("LIN", "reverse" if not frame.log_scale else "dim"),
        " ",
        ("LOG", "reverse" if frame.log_scale else "dim"),
    )
    if frame.latest_tick is None:
        start = end = ""
    else:
        start = format_tick(frame.latest_tick - window_size)
        end = format_tick(frame.latest_tick)

    used = len(start) + len(scale) + len(end)
    gap = max(1, frame.width - used)
    left_gap = gap // 2
    return Text.assemble(start, " " * left_gap, scale, " " * (gap - left_gap), end)


def empty_plot(height: int) -> str:
    """Blank placeholder shown until there is something to plot."""
    return "\n" * max(0, height - 1)


class TopKApp(App):
    """Live top-K dashboard.

    Usage:
        scheduler = Scheduler(config)
        TopKApp(scheduler, input_stream=sys.stdin).run()
    """

    TITLE = "topkview"

    DEFAULT_CSS = """
    #main {
        height: 1fr;
    }

    #items {
        height: 1fr;
        border: solid $primary;
    }

    #plot-pane {
        height: 1fr;
    }

    #plot {
        height: 1fr;
        border: solid $primary;
    }

    #plot-labels {
        height: 1;
        padding: 0 1;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit", show=True),
        Binding("ctrl+c", "quit", "Quit", show=False, priority=True),
        Binding("t", "toggle_tracking", "Track", show=True),
        Binding("space", "toggle_tracking", "Track", show=False),
        Binding("s", "toggle_scale", "Lin/Log", show=True),
    ]

    def __init__(
        self,
        scheduler: "Scheduler",
        input_stream: TextIO | None = None,
        start_scheduler: bool = True,
        **kwargs,
    ) -> None:
        """Initialize the dashboard.

        Args:
            scheduler: Scheduler owning the sketch and refresh loops
            input_stream: Record stream to ingest; None ingests nothing
            start_scheduler: Start the scheduler on mount
            **kwargs: Additional args passed to App
        """
        super().__init__(**kwargs)
        self.scheduler = scheduler
        self._input_stream = input_stream
        self._start_scheduler = start_scheduler
        self._rank_width = rank_width(scheduler.config.k)
        # Labels in the order they are currently listed.
        self._listed_labels: list[str] = []

    def compose(self) -> ComposeResult:
        split = self.scheduler.config.view_split
        yield Header()
        with Horizontal(id="main"):
            items = OptionList(id="items")
            items.styles.width = f"{split}%"
            yield items
            with Vertical(id="plot-pane") as pane:
                pane.styles.width = f"{100 - split}%"
                yield Static("", id="plot")
                yield Static("", id="plot-labels")
        yield Footer()

    def on_mount(self) -> None:
        self.scheduler.attach_view(TextualView(self))
        self._resize_plot(self.size.width, self.size.height)
        self.query_one("#plot", Static).update(empty_plot(self.scheduler.canvas_size()[1]))
        self.query_one("#items", OptionList).focus()
        self._update_sub_title()
        if self._start_scheduler:
            self.scheduler.start(self._input_stream)

    def on_unmount(self) -> None:
        self.scheduler.stop()

    def on_resize(self, event: Resize) -> None:
        self._resize_plot(event.size.width, event.size.height)

    def _resize_plot(self, width: int, height: int) -> None:
        pane_width = width * (100 - self.scheduler.config.view_split) // 100
        self.scheduler.resize(pane_width - PLOT_HORIZONTAL_CHROME, height - PLOT_VERTICAL_CHROME)

    def _update_sub_title(self) -> None:
        tracking = "tracking" if self.scheduler.tracking else "not tracking"
        scale = "log" if self.scheduler.log_scale else "linear"
        self.sub_title = f"{tracking} | {scale}"

    # ------------------------------------------------------------------
    # Scheduler messages
    # ------------------------------------------------------------------

    def on_items_refreshed(self, message: ItemsRefreshed) -> None:
        option_list = self.query_one("#items", OptionList)
        previous = option_list.highlighted
        option_list.clear_options()
        option_list.add_options([Option(item_prompt(item, self._rank_width)) for item in message.items])
        self._listed_labels = [item.label for item in message.items]
        if not message.items:
            return
        index = message.selected if message.selected is not None else previous
        option_list.highlighted = min(index or 0, len(message.items) - 1)

    def on_counts_refreshed(self, message: CountsRefreshed) -> None:
        option_list = self.query_one("#items", OptionList)
        # A newer ranking may have landed since the counts were read.
        for index, (item, label) in enumerate(zip(message.items, self._listed_labels)):
            if item.label != label:
                continue
            option_list.replace_option_prompt_at_index(index, item_prompt(item, self._rank_width))

    def on_plot_refreshed(self, message: PlotRefreshed) -> None:
        frame = message.frame
        self.query_one("#plot", Static).update(Text.from_ansi(frame.text) if frame.text else empty_plot(frame.height))
        self.query_one("#plot-labels", Static).update(plot_labels(frame, self.scheduler.config.window_size))

    def on_option_list_option_highlighted(self, event: OptionList.OptionHighlighted) -> None:
        self.scheduler.select(event.option_index)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def action_toggle_tracking(self) -> None:
        self.scheduler.toggle_tracking()
        self._update_sub_title()

    def action_toggle_scale(self) -> None:
        self.scheduler.toggle_log_scale()
        self._update_sub_title()


__all__ = [
    "CountsRefreshed",
    "ItemsRefreshed",
    "PlotRefreshed",
    "TextualView",
    "TopKApp",
    "format_tick",
    "item_prompt",
    "plot_labels",
    "rank_width",
]
