"""Input stream decoding.

Two formats, one record per line:

- text: the whole line is the item label;
- JSON: ``{"item": str, "count"?: int, "timestamp"?: int | float | str}``.

Bad JSON lines are dropped and decoding resumes on the next line. Record
timestamps are returned as epoch seconds; a missing or unparseable timestamp
is reported as ``None`` so the caller can fall back to wall-clock ticking.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterator, TextIO

from topkview.config import RFC3339
from topkview.errors import InputRecordError

_logger = logging.getLogger(__name__)

MAX_COUNT = 2**32 - 1


@dataclass(frozen=True, slots=True)
class InputRecord:
    """One decoded input record."""

    item: str
    count: int = 1
    timestamp: float | None = None


@dataclass(slots=True)
class IngestStats:
    """Counters for one pass over the input stream."""

    records: int = 0
    dropped: int = 0


def parse_timestamp(value: Any, layout: str = RFC3339) -> float | None:
    """Convert a JSON timestamp value to epoch seconds.

    Finite numbers are seconds since the epoch. Strings are parsed with ``layout``:
    ``"RFC3339"`` accepts ISO-8601 text, anything else is a
    ``datetime.strptime`` format. Naive datetimes are taken as UTC.

    Returns:
        Epoch seconds, or None when the value is missing or unparseable.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            seconds = float(value)
        except OverflowError:
            return None
        return seconds if math.isfinite(seconds) else None
    if not isinstance(value, str):
        return None
    try:
        if layout == RFC3339:
            parsed = datetime.fromisoformat(value)
        else:
            parsed = datetime.strptime(value, layout)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def parse_text_line(line: str) -> InputRecord | None:
    """A raw label line; blank lines yield None."""
    label = line.rstrip("\r\n")
    if not label:
        return None
    return InputRecord(item=label)


def parse_json_line(line: str, layout: str = RFC3339) -> InputRecord | None:
    """Decode one JSON record; blank lines yield None.

    Raises:
        InputRecordError: If the line is not a valid record.
    """
    text = line.strip()
    if not text:
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise InputRecordError(f"Invalid JSON: {e.msg}", line) from e
    if not isinstance(data, dict):
        raise InputRecordError("Record is not a JSON object", line)

    item = data.get("item")
    if not isinstance(item, str):
        raise InputRecordError("Record has no string 'item' field", line)

    count = data.get("count", 1)
    if count is None:
        count = 1
    if isinstance(count, bool) or not isinstance(count, int):
        raise InputRecordError(f"Record 'count' is not an integer: {count!r}", line)
    count = min(MAX_COUNT, max(1, count))

    return InputRecord(item=item, count=count, timestamp=parse_timestamp(data.get("timestamp"), layout))


def iter_records(
    stream: TextIO,
    json_input: bool = False,
    layout: str = RFC3339,
    stats: IngestStats | None = None,
) -> Iterator[InputRecord]:
    """Yield records from ``stream`` until end of input.

    Malformed JSON records are logged and skipped.
    """
    if stats is None:
        stats = IngestStats()
    for line in stream:
        if json_input:
            try:
                record = parse_json_line(line, layout)
            except InputRecordError as e:
                stats.dropped += 1
                _logger.debug("Dropped input record: %s (%r)", e, e.line[:200])
                continue
        else:
            record = parse_text_line(line)
        if record is None:
            continue
        stats.records += 1
        yield record


__all__ = [
    "InputRecord",
    "IngestStats",
    "MAX_COUNT",
    "iter_records",
    "parse_json_line",
    "parse_text_line",
    "parse_timestamp",
]
