#!/usr/bin/env python3
# src/topkview/scripts/topk.py
"""topkview TUI Entry Point.

Pipe a stream of labels (or JSON records) in and watch the heavy hitters.

Usage:
    tail -f access.log | awk '{print $1}' | topkview --window 1m --tick 2s
    producer | topkview --json --track-selected
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Any, Sequence, TextIO

from topkview.errors import TerminalAttachError

_logger = logging.getLogger(__name__)

TTY_PATH = "/dev/tty"

# CLI option -> config field. Options left unset keep the config-file value.
_CONFIG_OPTIONS = {
    "k": "k",
    "width": "width",
    "depth": "depth",
    "window": "window_size",
    "tick": "tick_size",
    "decay": "decay",
    "decay_lut_size": "decay_lut_size",
    "plot_fps": "plot_fps",
    "items_fps": "items_fps",
    "item_counts_fps": "item_counts_fps",
    "json": "json_input",
    "track_selected": "track_selected",
    "log_scale": "log_scale",
    "json_timestamp_layout": "timestamp_layout",
    "view_split": "view_split",
    "light_background": "light_background",
    "seed": "seed",
}


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="topkview",
        description="Live top-K heavy hitters of a stream, with per-item history plots",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Count text lines
    tail -f access.log | awk '{print $1}' | topkview

    # JSON records with event-time ticks
    producer | topkview --json --window 5m --tick 10s

Keyboard shortcuts:
    q         Quit
    t/space   Toggle tracking of the selected item
    s         Toggle linear/log scale
""",
    )

    sketch = parser.add_argument_group("sketch")
    sketch.add_argument("--k", type=int, default=None, help="Track the top K items (default: 50)")
    sketch.add_argument("--width", type=int, default=None, help="Sketch width (default: 3000)")
    sketch.add_argument("--depth", type=int, default=None, help="Sketch depth (default: 3)")
    sketch.add_argument("--window", type=str, default=None, metavar="DURATION", help="Window size (default: 10s)")
    sketch.add_argument(
        "--tick",
        type=str,
        default=None,
        metavar="DURATION",
        help="Sliding window tick size, the time bucket precision (default: 1s)",
    )
    sketch.add_argument(
        "--decay", type=float, default=None, help="Counter decay probability on collisions (default: 0.9)"
    )
    sketch.add_argument("--decay-lut-size", type=int, default=None, help="Decay look-up table size (default: 8192)")
    sketch.add_argument("--seed", type=int, default=None, help="Seed for the sketch's decay randomness")

    render = parser.add_argument_group("display")
    render.add_argument("--plot-fps", type=int, default=None, help="Plot refresh rate (default: 20)")
    render.add_argument("--items-fps", type=int, default=None, help="Item ranking refresh rate (default: 1)")
    render.add_argument("--item-counts-fps", type=int, default=None, help="Item count refresh rate (default: 5)")
    render.add_argument(
        "--track-selected", action="store_true", default=None, help="Keep the selected item focused"
    )
    render.add_argument("--log-scale", action="store_true", default=None, help="Start with a logarithmic Y scale")
    render.add_argument(
        "--view-split",
        type=int,
        default=None,
        help="Split the view at this %% of the screen width, clamped to [20,80] (default: 50)",
    )
    render.add_argument(
        "--light-background", action="store_true", default=None, help="Use colors for light terminals"
    )

    source = parser.add_argument_group("input")
    source.add_argument(
        "--json",
        action="store_true",
        default=None,
        help="Read JSON records {item,[count],[timestamp]} instead of text lines",
    )
    source.add_argument(
        "--json-timestamp-layout",
        type=str,
        default=None,
        metavar="LAYOUT",
        help="RFC3339 or a strptime format for string timestamps (default: RFC3339)",
    )

    parser.add_argument(
        "--config-json",
        type=str,
        default=None,
        metavar="PATH",
        help="Load settings from a JSON object; flags override it",
    )
    parser.add_argument("--log-file", type=str, default=None, metavar="FILE", help="Write logs to FILE")
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level when --log-file is set (default: INFO)",
    )
    return parser


def config_values(args: argparse.Namespace) -> dict[str, Any]:
    """Merge ``--config-json`` contents with explicitly given flags."""
    values: dict[str, Any] = {}
    if args.config_json:
        with open(args.config_json, "r", encoding="utf-8") as fp:
            data = json.load(fp)
        if not isinstance(data, dict):
            raise ValueError("Config JSON must contain an object at the top level")
        values.update(data)
    for option, field in _CONFIG_OPTIONS.items():
        value = getattr(args, option)
        if value is not None:
            values[field] = value
    return values


def configure_logging(log_file: str | None, level: str) -> None:
    """Log to ``log_file`` at ``level``; without one, only warnings reach stderr."""
    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    if log_file:
        logging.basicConfig(filename=log_file, level=getattr(logging, level), format=fmt)
    else:
        logging.basicConfig(level=logging.WARNING, format=fmt)


def detach_console_logging() -> list[logging.Handler]:
    """Take root handlers writing to stderr off while the TUI owns the screen.

    Returns:
        The removed handlers, to be re-attached after the TUI exits.
    """
    root = logging.getLogger()
    removed = [
        handler
        for handler in root.handlers
        if type(handler) is logging.StreamHandler and handler.stream is sys.stderr
    ]
    for handler in removed:
        root.removeHandler(handler)
    if not root.handlers:
        # Otherwise logging.lastResort still writes warnings to stderr.
        root.addHandler(logging.NullHandler())
    return removed


def attach_terminal() -> TextIO | None:
    """Detach piped input from fd 0 and put the controlling terminal there.

    Returns:
        A stream over the piped input, or None when stdin is already a
        terminal (nothing to ingest).

    Raises:
        TerminalAttachError: If the controlling terminal cannot be opened.
    """
    if os.isatty(0):
        return None
    try:
        input_stream = os.fdopen(os.dup(0), "r", encoding="utf-8", errors="replace")
    except OSError as e:
        raise TerminalAttachError(f"Cannot read piped input: {e}") from e
    try:
        tty_fd = os.open(TTY_PATH, os.O_RDONLY)
        os.dup2(tty_fd, 0)
        os.close(tty_fd)
    except OSError as e:
        input_stream.close()
        raise TerminalAttachError(f"Cannot attach to {TTY_PATH}: {e}") from e
    return input_stream


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_file, args.log_level)

    from topkview.config import DashboardConfig

    try:
        config = DashboardConfig.from_dict(config_values(args))
    except (OSError, ValueError, TypeError) as e:
        _logger.error("Invalid configuration: %s", e)
        print(f"Error: Invalid configuration: {e}", file=sys.stderr)
        return 1

    try:
        input_stream = attach_terminal()
    except TerminalAttachError as e:
        _logger.critical("%s", e)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    if input_stream is None:
        _logger.warning("stdin is a terminal; nothing to ingest")

    # Import app here to avoid slow import on --help
    from topkview.app import TopKApp
    from topkview.scheduler import Scheduler

    scheduler = Scheduler(config)
    app = TopKApp(scheduler, input_stream=input_stream)
    muted = [] if args.log_file else detach_console_logging()
    try:
        app.run()
    finally:
        scheduler.stop()
        for handler in muted:
            logging.getLogger().addHandler(handler)

    return 0


if __name__ == "__main__":
    sys.exit(main())
