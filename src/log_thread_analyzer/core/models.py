"""Core data models for thread analysis."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class LogLevel(str, Enum):
    """Normalized severity levels recognized by the line parser."""

    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    FATAL = "FATAL"


class ThreadStatus(str, Enum):
    """Status derived for a thread group."""

    ACTIVE = "active"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class LogEntry:
    """One parsed log line."""

    id: str
    timestamp: str
    level: LogLevel
    source: str
    message: str
    raw: str  # original, unmodified line
    offset: int  # byte offset of the line start within its source

    @property
    def full_message(self) -> str:
        return self.raw

    @property
    def raw_line(self) -> str:
        return self.raw

    def to_dict(self) -> dict[str, Any]:
        """Convert the entry into a JSON-serializable dict."""
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "level": self.level.value,
            "source": self.source,
            "message": self.message,
            "offset": self.offset,
            "raw": self.raw,
        }


@dataclass(frozen=True, slots=True)
class ThreadPattern:
    """Identification rule: a regex source plus metadata.

    The pattern is always kept in source form; use
    :func:`log_thread_analyzer.core.patterns.compile_pattern` to obtain the
    compiled regex.
    """

    id: str
    name: str
    pattern: str
    description: str = ""
    enabled: bool = True
    priority: int = 0
    is_custom: bool = False
    flags: int = re.IGNORECASE


@dataclass(frozen=True, slots=True)
class PatternMatch:
    """An identifier found in a search text and the rule that produced it."""

    identifier: str
    pattern: ThreadPattern
    position: int


@dataclass(slots=True)
class TimeRange:
    start: str | None = None
    end: str | None = None


@dataclass(slots=True)
class ThreadGroup:
    """Entries sharing one extracted thread identifier."""

    thread_id: str
    identifier: PatternMatch
    entries: list[LogEntry] = field(default_factory=list)
    log_levels: set[LogLevel] = field(default_factory=set)
    log_level: LogLevel = LogLevel.INFO
    status: ThreadStatus = ThreadStatus.ACTIVE
    time_range: TimeRange = field(default_factory=TimeRange)
    # parsed bounds backing time_range
    _start_dt: datetime | None = field(default=None, init=False, repr=False, compare=False)
    _end_dt: datetime | None = field(default=None, init=False, repr=False, compare=False)

    @property
    def thread_name(self) -> str:
        return self.thread_id

    @property
    def entry_count(self) -> int:
        return len(self.entries)

    def to_dict(self, *, include_entries: bool = True) -> dict[str, Any]:
        """Convert the group into a JSON-serializable dict."""
        d: dict[str, Any] = {
            "threadId": self.thread_id,
            "threadName": self.thread_name,
            "identifier": {
                "identifier": self.identifier.identifier,
                "patternId": self.identifier.pattern.id,
                "position": self.identifier.position,
            },
            "entryCount": self.entry_count,
            "logLevels": sorted(level.value for level in self.log_levels),
            "logLevel": self.log_level.value,
            "status": self.status.value,
            "timeRange": {"start": self.time_range.start, "end": self.time_range.end},
        }
        if include_entries:
            d["entries"] = [e.to_dict() for e in self.entries]
        return d


@dataclass(frozen=True, slots=True)
class GroupingResult:
    """Output of one grouping run."""

    thread_groups: list[ThreadGroup]
    ungrouped_entries: list[LogEntry]

    @property
    def total_threads(self) -> int:
        return len(self.thread_groups)

    @property
    def total_grouped_entries(self) -> int:
        return sum(g.entry_count for g in self.thread_groups)

    @property
    def total_ungrouped_entries(self) -> int:
        return len(self.ungrouped_entries)

    def to_dict(self, *, include_entries: bool = True) -> dict[str, Any]:
        """Convert the result into a JSON-serializable dict."""
        d: dict[str, Any] = {
            "threadGroups": [
                g.to_dict(include_entries=include_entries) for g in self.thread_groups
            ],
            "totalThreads": self.total_threads,
            "totalGroupedEntries": self.total_grouped_entries,
            "totalUngroupedEntries": self.total_ungrouped_entries,
        }
        if include_entries:
            d["ungroupedEntries"] = [e.to_dict() for e in self.ungrouped_entries]
        return d
