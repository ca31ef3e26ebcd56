"""Sketch - decaying sliding-window frequency sketch.

Usage:
    from topkview.sketch import SlidingSketch

    sketch = SlidingSketch(k=50, history_length=10)
    sketch.incr("GET /index.html")
    sketch.ticks(1)
    sketch.sorted_items()
"""

from topkview.sketch.hashing import bucket_index, fingerprint
from topkview.sketch.heap import SketchItem, TopKHeap
from topkview.sketch.sliding import Bucket, SlidingSketch

__all__ = [
    "Bucket",
    "SketchItem",
    "SlidingSketch",
    "TopKHeap",
    "bucket_index",
    "fingerprint",
]
