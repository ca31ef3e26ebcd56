"""Per-item count history reconstructed from sketch buckets.

The sketch never stores a time series per item; it stores one circular
per-tick buffer per bucket. An item's history is recovered by reading, for
every tick offset, the buckets it owns in each hash row and keeping the
largest value. Rows where another item owns the bucket contribute nothing, so
a single-row collision does not corrupt the series.
"""

from __future__ import annotations

import math
import threading
from typing import TYPE_CHECKING, Protocol

from topkview.sketch.hashing import bucket_index

if TYPE_CHECKING:
    from topkview.sketch.sliding import SlidingSketch


class HasFingerprint(Protocol):
    """Anything carrying the label and fingerprint of a tracked item."""

    label: str
    fingerprint: int


def log_scale(value: float) -> float:
    """Natural log clamped at zero: values <= 1 map to 0."""
    return math.log(max(1.0, value))


class SeriesExtractor:
    """Reads an item's per-tick counts out of a `SlidingSketch`.

    Args:
        sketch: The sketch to read.
        lock: The lock serializing sketch mutation. Held for the full
            D-row scan of one tick offset so a concurrent ``ticks()`` cannot
            tear the read.
    """

    def __init__(self, sketch: "SlidingSketch", lock: threading.Lock) -> None:
        self._sketch = sketch
        self._lock = lock

    def count_at_offset(self, item: HasFingerprint, offset: int) -> int:
        """Count of ``item`` ``offset`` ticks ago (0 = current tick).

        Caller must hold the sketch lock.
        """
        sketch = self._sketch
        history = sketch.bucket_history_length
        if not 0 <= offset < history:
            return 0
        best = 0
        for row in range(sketch.depth):
            bucket = sketch.buckets[bucket_index(item.label, row, sketch.width)]
            if bucket.fingerprint == item.fingerprint:
                count = bucket.counts[(bucket.first + offset) % history]
                if count > best:
                    best = count
        return best

    def get_series(self, item: HasFingerprint, history_length: int | None = None) -> list[int]:
        """Chronological per-tick counts of ``item``, oldest first.

        The last element is the current tick. Items that own no bucket (for
        example after eviction) produce an all-zero series.
        """
        if history_length is None:
            history_length = self._sketch.bucket_history_length
        series = [0] * history_length
        for offset in range(history_length):
            with self._lock:
                value = self.count_at_offset(item, offset)
            series[history_length - 1 - offset] = value
        return series


__all__ = ["SeriesExtractor", "HasFingerprint", "log_scale"]
