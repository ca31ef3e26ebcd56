"""Bounded min-heap of the K heaviest items seen by the sketch.

The heap is indexed by label so an already-tracked item can have its count
changed in place (sift up or down) without a linear scan.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class SketchItem:
    """A tracked item as reported by the sketch."""

    label: str
    fingerprint: int
    count: int


class TopKHeap:
    """Min-heap holding at most ``k`` items, smallest count at the root."""

    def __init__(self, k: int) -> None:
        if k <= 0:
            raise ValueError(f"k must be positive, got {k}")
        self.k = k
        self._items: list[SketchItem] = []
        self._index: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, label: object) -> bool:
        return label in self._index

    def items(self) -> list[SketchItem]:
        """Return the tracked items in heap order (not sorted)."""
        return list(self._items)

    def min_count(self) -> int:
        """Smallest tracked count, 0 while the heap is not yet full."""
        if len(self._items) < self.k:
            return 0
        return self._items[0].count

    def update(self, label: str, fingerprint: int, count: int) -> bool:
        """Insert or re-rank ``label`` with ``count``.

        Returns True when the item is tracked after the call.
        """
        pos = self._index.get(label)
        if pos is not None:
            item = self._items[pos]
            old = item.count
            item.count = count
            item.fingerprint = fingerprint
            if count < old:
                self._sift_up(pos)
            else:
                self._sift_down(pos)
            return True

        if count <= 0:
            return False
        if len(self._items) < self.k:
            self._items.append(SketchItem(label, fingerprint, count))
            self._index[label] = len(self._items) - 1
            self._sift_up(len(self._items) - 1)
            return True
        if count <= self._items[0].count:
            return False

        evicted = self._items[0]
        del self._index[evicted.label]
        self._items[0] = SketchItem(label, fingerprint, count)
        self._index[label] = 0
        self._sift_down(0)
        return True

    def rebuild(self, counts: dict[str, int]) -> None:
        """Replace every tracked count and drop items whose count is zero."""
        kept = []
        for item in self._items:
            item.count = counts.get(item.label, 0)
            if item.count > 0:
                kept.append(item)
        self._items = kept
        self._index = {item.label: i for i, item in enumerate(kept)}
        for pos in range(len(kept) // 2 - 1, -1, -1):
            self._sift_down(pos)

    def _less(self, i: int, j: int) -> bool:
        a, b = self._items[i], self._items[j]
        if a.count != b.count:
            return a.count < b.count
        # Among equal counts the lexically greatest label is evicted first.
        return a.label > b.label

    def _swap(self, i: int, j: int) -> None:
        items = self._items
        items[i], items[j] = items[j], items[i]
        self._index[items[i].label] = i
        self._index[items[j].label] = j

    def _sift_up(self, pos: int) -> None:
        while pos > 0:
            parent = (pos - 1) // 2
            if not self._less(pos, parent):
                break
            self._swap(pos, parent)
            pos = parent

    def _sift_down(self, pos: int) -> None:
        n = len(self._items)
        while True:
            smallest = pos
            for child in (2 * pos + 1, 2 * pos + 2):
                if child < n and self._less(child, smallest):
                    smallest = child
            if smallest == pos:
                return
            self._swap(pos, smallest)
            pos = smallest


__all__ = ["SketchItem", "TopKHeap"]
