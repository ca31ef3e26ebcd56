"""topkview errors.

Fatal conditions (the dashboard cannot attach to a terminal) are raised and
end the process with a logged message. Bad input records are recoverable and
never escape the ingestion thread.
"""

from __future__ import annotations


class TopKViewError(RuntimeError):
    """Base class for topkview errors."""


class TerminalAttachError(TopKViewError):
    """Raised when the dashboard cannot take over a controlling terminal."""


class InputRecordError(TopKViewError, ValueError):
    """Raised when an input record cannot be decoded.

    Attributes:
        line: The raw input line that was rejected.
    """

    def __init__(self, message: str, line: str) -> None:
        super().__init__(message)
        self.line = line


__all__ = ["TopKViewError", "TerminalAttachError", "InputRecordError"]
