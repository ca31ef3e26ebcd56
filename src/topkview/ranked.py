"""Ranked view over the sketch's heavy hitters.

Two refreshes with very different costs:

- `RankedSetView.refresh_ranked` takes a full sorted snapshot and rebuilds
  the list (rank order can change).
- `RankedSetView.refresh_counts` only re-reads the count of the items already
  listed, keeping order and length.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from topkview.sketch.sliding import SlidingSketch


@dataclass(slots=True)
class TrackedItem:
    """A ranked row of the dashboard.

    Identity across refreshes is the label; everything else is recreated.
    """

    label: str
    fingerprint: int
    rank: int
    count: int


class RankedSetView:
    """Builds and updates the ranked item list from a sketch.

    Args:
        sketch: The sketch to read.
        lock: The lock serializing sketch access.
    """

    def __init__(self, sketch: "SlidingSketch", lock: threading.Lock) -> None:
        self._sketch = sketch
        self._lock = lock

    def refresh_ranked(self) -> list[TrackedItem]:
        """Return tracked items ranked 1..K by descending count."""
        with self._lock:
            snapshot = self._sketch.sorted_items()
        return [
            TrackedItem(label=item.label, fingerprint=item.fingerprint, rank=rank, count=item.count)
            for rank, item in enumerate(snapshot, start=1)
        ]

    def refresh_counts(self, items: list[TrackedItem]) -> None:
        """Update ``count`` of each item in place; order and length are kept."""
        for item in items:
            with self._lock:
                count = self._sketch.count(item.label)
            item.count = count


__all__ = ["TrackedItem", "RankedSetView"]
