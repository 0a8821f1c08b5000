"""Line parser for timestamped log lines."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from .models import LogEntry, LogLevel

_TIMESTAMP_RE = re.compile(r"^(\d{4}-\d{2}-\d{2}\s\d{2}:\d{2}:\d{2}[.\d]*)")
_LEVEL_RE = re.compile(r"\b(DEBUG|INFO|WARN|WARNING|ERROR|FATAL|TRACE)\b", re.IGNORECASE)
_SOURCE_RE = re.compile(r"\[([\w.\-]+)\]")

_LEVEL_ALIASES = {"WARNING": "WARN"}

UNKNOWN_SOURCE = "Unknown"


class LineParser(Protocol):
    """Parser interface: return LogEntry if the line is an entry, else None."""

    def parse(self, offset: int, line: str, *, entry_id: str | None = None) -> LogEntry | None:
        """Parse a raw line found at ``offset``."""
        ...


def parse_level(value: str) -> LogLevel:
    """Parse a level token into a LogLevel."""
    name = value.strip().upper()
    return LogLevel(_LEVEL_ALIASES.get(name, name))


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a matched timestamp string; None when it is not a valid date."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.strip())
    except ValueError:
        return None


def parse_line(line: str, offset: int, *, entry_id: str | None = None) -> LogEntry | None:
    """Parse one raw line into a LogEntry.

    Lines without a leading ``YYYY-MM-DD HH:MM:SS[.fff]`` timestamp are not
    entries and yield None.
    """
    ts_match = _TIMESTAMP_RE.match(line)
    if not ts_match:
        return None

    level_match = _LEVEL_RE.search(line)
    level = parse_level(level_match.group(1)) if level_match else LogLevel.INFO

    source_match = _SOURCE_RE.search(line)
    source = source_match.group(1) if source_match else UNKNOWN_SOURCE

    return LogEntry(
        id=entry_id if entry_id is not None else f"entry_{offset}",
        timestamp=ts_match.group(1),
        level=level,
        source=source,
        message=line[ts_match.end():].strip(),
        raw=line,
        offset=offset,
    )


@dataclass(frozen=True, slots=True)
class TimestampLineParser:
    """Object form of :func:`parse_line`, used by the stream processor."""

    def parse(self, offset: int, line: str, *, entry_id: str | None = None) -> LogEntry | None:
        """Parse a timestamped line into a LogEntry."""
        return parse_line(line, offset, entry_id=entry_id)
