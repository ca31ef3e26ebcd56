"""Strict, JSON-loadable configuration for the top-K dashboard.

`DashboardConfig` is the single source of truth for sketch sizing, refresh
cadences and display options. Configs are built from CLI flags or loaded from
JSON, with unknown keys rejected.

Usage:
    from topkview.config import DashboardConfig

    config = DashboardConfig(k=20, window_size=60.0)
    config = DashboardConfig.from_json_path("dashboard.json")
    config.history_length  # window_size / tick_size
"""

from __future__ import annotations

import json
import re
from dataclasses import asdict, dataclass, fields
from typing import Any

from topkview.sketch.sliding import (
    DEFAULT_DECAY,
    DEFAULT_DECAY_LUT_SIZE,
    DEFAULT_DEPTH,
    DEFAULT_WIDTH,
)

VIEW_SPLIT_MIN = 20
VIEW_SPLIT_MAX = 80
RFC3339 = "RFC3339"

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d*)?|\.\d+)\s*(ms|s|m|h)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, None: 1.0}


def parse_duration(value: str | float | int) -> float:
    """Parse a duration into seconds.

    Accepts numbers (seconds) or strings such as ``"500ms"``, ``"1s"``,
    ``"1.5m"`` and ``"2h"``.

    Examples:
        >>> parse_duration("500ms")
        0.5
        >>> parse_duration("2m")
        120.0
        >>> parse_duration(3)
        3.0
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    match = _DURATION_RE.match(value)
    if match is None:
        raise ValueError(f"Invalid duration: {value!r}")
    number, unit = match.groups()
    return float(number) * _DURATION_UNITS[unit]


@dataclass(slots=True)
class DashboardConfig:
    """Dashboard configuration.

    Durations are in seconds. ``view_split`` is clamped to [20, 80] rather
    than rejected.
    """

    # === Sketch ===
    k: int = 50
    width: int = DEFAULT_WIDTH
    depth: int = DEFAULT_DEPTH
    decay: float = DEFAULT_DECAY
    decay_lut_size: int = DEFAULT_DECAY_LUT_SIZE
    tick_size: float = 1.0
    window_size: float = 10.0
    seed: int | None = None

    # === Render ===
    plot_fps: int = 20
    items_fps: int = 1
    item_counts_fps: int = 5
    track_selected: bool = False
    log_scale: bool = False
    view_split: int = 50
    light_background: bool = False

    # === Input ===
    json_input: bool = False
    timestamp_layout: str = RFC3339

    def __post_init__(self) -> None:
        self.view_split = min(VIEW_SPLIT_MAX, max(VIEW_SPLIT_MIN, self.view_split))
        self._validate()

    @property
    def history_length(self) -> int:
        """Ticks per window; also the number of points per plotted series."""
        return int(round(self.window_size / self.tick_size, 9))

    @property
    def count_refresh_enabled(self) -> bool:
        """Count refresh is redundant when it runs at the rank-refresh rate."""
        return self.item_counts_fps != self.items_fps

    @classmethod
    def _validate_known_keys(cls, data: dict[str, Any]) -> None:
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DashboardConfig":
        """Build a config from a mapping, failing on unknown keys.

        ``tick_size`` and ``window_size`` may be given as duration strings.
        """
        cls._validate_known_keys(data)
        values = dict(data)
        for name in ("tick_size", "window_size"):
            if name in values:
                values[name] = parse_duration(values[name])
        return cls(**values)

    @classmethod
    def from_json_path(cls, path: str) -> "DashboardConfig":
        """Load config from a JSON file, failing on unknown keys."""
        with open(path, "r", encoding="utf-8") as fp:
            data = json.load(fp)
        if not isinstance(data, dict):
            raise ValueError("Config JSON must contain an object at the top level")
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def _validate_positive(self, value: int | float, name: str) -> None:
        if value <= 0:
            raise ValueError(f"{name} must be > 0 (got {value})")

    def _validate(self) -> None:
        for name in (
            "k",
            "width",
            "depth",
            "decay_lut_size",
            "plot_fps",
            "items_fps",
            "item_counts_fps",
            "tick_size",
            "window_size",
        ):
            self._validate_positive(getattr(self, name), name)
        if not 0.0 < self.decay <= 1.0:
            raise ValueError(f"decay must be in (0, 1] (got {self.decay})")
        if self.history_length < 1:
            raise ValueError(
                f"window_size ({self.window_size}s) must be at least one "
                f"tick_size ({self.tick_size}s)"
            )
        if not self.timestamp_layout:
            raise ValueError("timestamp_layout cannot be empty")


__all__ = ["DashboardConfig", "parse_duration", "RFC3339", "VIEW_SPLIT_MIN", "VIEW_SPLIT_MAX"]
