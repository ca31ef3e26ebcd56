"""Sliding-window HeavyKeeper sketch.

A D x W grid of buckets. Each bucket is owned by at most one fingerprint and
keeps a circular buffer of per-tick counts, so the sketch can both answer
"how often was X seen in the last window" and expose the per-tick history
that the plot reconstructs.

Buffer layout: ``counts[first]`` is the current tick and
``counts[(first + j) % len(counts)]`` is the tick ``j`` steps in the past.
Advancing time moves ``first`` backwards and recycles the oldest slot.

Collisions are resolved the HeavyKeeper way: a foreign item decays the
incumbent with probability ``decay ** counts_sum`` per unit of count and
takes the bucket over once it empties. Large counts are therefore hard to
evict while small ones turn over quickly.

Not thread-safe: callers serialize access (see ``Scheduler.sketch_lock``).
"""

from __future__ import annotations

import random

from topkview.sketch.hashing import bucket_index, fingerprint
from topkview.sketch.heap import SketchItem, TopKHeap

DEFAULT_WIDTH = 3000
DEFAULT_DEPTH = 3
DEFAULT_DECAY = 0.9
DEFAULT_DECAY_LUT_SIZE = 8192


class Bucket:
    """One hashed counter with its per-tick history."""

    __slots__ = ("fingerprint", "first", "counts", "counts_sum")

    def __init__(self, history_length: int) -> None:
        self.fingerprint = 0
        self.first = 0
        self.counts = [0] * history_length
        self.counts_sum = 0

    @property
    def empty(self) -> bool:
        return self.counts_sum == 0

    def add(self, count: int) -> None:
        self.counts[self.first] += count
        self.counts_sum += count

    def decrement(self) -> None:
        """Remove one unit from the most recent non-zero tick."""
        n = len(self.counts)
        for offset in range(n):
            pos = (self.first + offset) % n
            if self.counts[pos] > 0:
                self.counts[pos] -= 1
                self.counts_sum -= 1
                return

    def tick(self, n: int) -> None:
        """Advance ``n`` ticks, discarding the counts that leave the window."""
        length = len(self.counts)
        if n >= length:
            self.counts = [0] * length
            self.counts_sum = 0
            self.first = (self.first - n) % length
            return
        for _ in range(n):
            self.first = (self.first - 1) % length
            self.counts_sum -= self.counts[self.first]
            self.counts[self.first] = 0


class SlidingSketch:
    """Top-K heavy hitters over a sliding window of ``history_length`` ticks.

    Args:
        k: Number of heavy hitters to track.
        history_length: Ticks per window (window size / tick size).
        width: Buckets per hash row.
        depth: Number of hash rows.
        decay: Base of the decay probability on collisions, in (0, 1].
        decay_lut_size: Entries in the precomputed ``decay ** n`` table.
        seed: Seed for the decay coin flips (None = nondeterministic).
    """

    def __init__(
        self,
        k: int,
        history_length: int,
        width: int = DEFAULT_WIDTH,
        depth: int = DEFAULT_DEPTH,
        decay: float = DEFAULT_DECAY,
        decay_lut_size: int = DEFAULT_DECAY_LUT_SIZE,
        seed: int | None = None,
    ) -> None:
        if history_length <= 0:
            raise ValueError(f"history_length must be >= 1 (got {history_length})")
        if width <= 0 or depth <= 0:
            raise ValueError(f"width and depth must be >= 1 (got {width}x{depth})")
        if not 0.0 < decay <= 1.0:
            raise ValueError(f"decay must be in (0, 1] (got {decay})")
        if decay_lut_size <= 0:
            raise ValueError(f"decay_lut_size must be >= 1 (got {decay_lut_size})")

        self.k = k
        self.width = width
        self.depth = depth
        self.decay = decay
        self.bucket_history_length = history_length
        self.buckets = [Bucket(history_length) for _ in range(width * depth)]
        self.heap = TopKHeap(k)
        self._decay_lut = [decay**i for i in range(decay_lut_size)]
        self._random = random.Random(seed)

    def incr(self, label: str) -> None:
        """Count one occurrence of ``label`` in the current tick."""
        self.add(label, 1)

    def add(self, label: str, count: int) -> None:
        """Count ``count`` occurrences of ``label`` in the current tick."""
        if count <= 0:
            return
        fp = fingerprint(label)
        max_count = 0
        for row in range(self.depth):
            bucket = self.buckets[bucket_index(label, row, self.width)]
            if bucket.empty:
                bucket.fingerprint = fp
                bucket.add(count)
            elif bucket.fingerprint == fp:
                bucket.add(count)
            else:
                self._decay_into(bucket, fp, count)
            if bucket.fingerprint == fp and not bucket.empty:
                max_count = max(max_count, bucket.counts_sum)
        if max_count > 0:
            self.heap.update(label, fp, max_count)

    def ticks(self, n: int) -> None:
        """Advance the window by ``n`` ticks."""
        if n <= 0:
            return
        for bucket in self.buckets:
            if not bucket.empty:
                bucket.tick(n)
            else:
                bucket.first = (bucket.first - n) % self.bucket_history_length
        self.heap.rebuild({item.label: self.count(item.label) for item in self.heap.items()})

    def count(self, label: str) -> int:
        """Estimated count of ``label`` over the whole window."""
        fp = fingerprint(label)
        best = 0
        for row in range(self.depth):
            bucket = self.buckets[bucket_index(label, row, self.width)]
            if bucket.fingerprint == fp:
                best = max(best, bucket.counts_sum)
        return best

    def sorted_items(self) -> list[SketchItem]:
        """Tracked items, highest count first, ties broken by label."""
        items = [SketchItem(i.label, i.fingerprint, i.count) for i in self.heap.items()]
        items.sort(key=lambda item: (-item.count, item.label))
        return items

    def _decay_probability(self, count: int) -> float:
        if count < len(self._decay_lut):
            return self._decay_lut[count]
        return self.decay**count

    def _decay_into(self, bucket: Bucket, fp: int, count: int) -> None:
        for remaining in range(count, 0, -1):
            if self._random.random() < self._decay_probability(bucket.counts_sum):
                bucket.decrement()
                if bucket.empty:
                    bucket.fingerprint = fp
                    bucket.add(remaining)
                    return


__all__ = [
    "Bucket",
    "SlidingSketch",
    "DEFAULT_WIDTH",
    "DEFAULT_DEPTH",
    "DEFAULT_DECAY",
    "DEFAULT_DECAY_LUT_SIZE",
]
