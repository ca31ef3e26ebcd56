"""topkview - live top-K heavy hitters of a stream, in the terminal.

A decaying sliding-window sketch counts every label read from the input; the
dashboard lists the current heavy hitters and plots each one's recent history.

Subpackages:
- sketch: Sliding-window heavy-hitter sketch
- canvas: Braille line-plot renderer
"""

__version__ = "0.3.0"

from topkview.config import DashboardConfig
from topkview.errors import InputRecordError, TerminalAttachError, TopKViewError
from topkview.sketch import SlidingSketch

__all__ = [
    "DashboardConfig",
    "InputRecordError",
    "SlidingSketch",
    "TerminalAttachError",
    "TopKViewError",
]
