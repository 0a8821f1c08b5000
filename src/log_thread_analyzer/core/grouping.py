"""Group log entries into threads by extracted identifier."""

from __future__ import annotations

from collections.abc import Collection, Iterable

from .diagnostics import Diagnostics
from .extraction import EARLY_EXIT_PRIORITY, ThreadIdentifierExtractor, search_text_for
from .models import (
    GroupingResult,
    LogEntry,
    LogLevel,
    PatternMatch,
    ThreadGroup,
    ThreadPattern,
    ThreadStatus,
    TimeRange,
)
from .parsing import parse_timestamp

# FATAL counts as ERROR and TRACE as DEBUG when deriving a group's level.
_DERIVATION_ORDER: tuple[tuple[LogLevel, frozenset[LogLevel]], ...] = (
    (LogLevel.ERROR, frozenset({LogLevel.ERROR, LogLevel.FATAL})),
    (LogLevel.WARN, frozenset({LogLevel.WARN})),
    (LogLevel.INFO, frozenset({LogLevel.INFO})),
)


def derive_log_level(levels: Collection[LogLevel]) -> LogLevel:
    """Worst level present, using ERROR > WARN > INFO > DEBUG."""
    for derived, members in _DERIVATION_ORDER:
        if not members.isdisjoint(levels):
            return derived
    return LogLevel.DEBUG


def _new_group(match: PatternMatch) -> ThreadGroup:
    return ThreadGroup(thread_id=match.identifier, identifier=match)


def _snapshot(group: ThreadGroup) -> ThreadGroup:
    """Detached copy of ``group``; later additions do not show through."""
    copy = ThreadGroup(
        thread_id=group.thread_id,
        identifier=group.identifier,
        entries=list(group.entries),
        log_levels=set(group.log_levels),
        log_level=group.log_level,
        status=group.status,
        time_range=TimeRange(start=group.time_range.start, end=group.time_range.end),
    )
    copy._start_dt = group._start_dt
    copy._end_dt = group._end_dt
    return copy


def add_to_group(group: ThreadGroup, entry: LogEntry) -> None:
    """Append ``entry`` and refresh the group's derived fields."""
    group.entries.append(entry)
    group.log_levels.add(entry.level)

    ts = parse_timestamp(entry.timestamp)
    if ts is not None:
        if group._start_dt is None or ts < group._start_dt:
            group._start_dt = ts
            group.time_range.start = entry.timestamp
        if group._end_dt is None or ts > group._end_dt:
            group._end_dt = ts
            group.time_range.end = entry.timestamp

    group.log_level = derive_log_level(group.log_levels)
    group.status = ThreadStatus.ERROR if group.log_level is LogLevel.ERROR else ThreadStatus.ACTIVE


class ThreadGrouper:
    """Incremental aggregator: fold entries in, take snapshots out."""

    def __init__(
        self,
        patterns: Iterable[ThreadPattern],
        *,
        diagnostics: Diagnostics | None = None,
        early_exit_priority: int | None = EARLY_EXIT_PRIORITY,
    ) -> None:
        self._extractor = ThreadIdentifierExtractor.from_patterns(
            patterns,
            diagnostics=diagnostics,
            early_exit_priority=early_exit_priority,
        )
        self._groups: dict[str, ThreadGroup] = {}
        self._ungrouped: list[LogEntry] = []

    def add(self, entry: LogEntry) -> ThreadGroup | None:
        """Route one entry; returns its group, or None when ungrouped."""
        matches = self._extractor.extract(search_text_for(entry))
        if not matches:
            self._ungrouped.append(entry)
            return None

        primary = matches[0]
        group = self._groups.get(primary.identifier)
        if group is None:
            group = _new_group(primary)
            self._groups[primary.identifier] = group
        add_to_group(group, entry)
        return group

    def add_all(self, entries: Iterable[LogEntry]) -> ThreadGrouper:
        for entry in entries:
            self.add(entry)
        return self

    def result(self) -> GroupingResult:
        """Snapshot of the groups built so far (in first-seen order)."""
        return GroupingResult(
            thread_groups=[_snapshot(g) for g in self._groups.values()],
            ungrouped_entries=list(self._ungrouped),
        )


def group_by_pattern(
    entries: Iterable[LogEntry],
    patterns: Iterable[ThreadPattern],
    *,
    diagnostics: Diagnostics | None = None,
    early_exit_priority: int | None = EARLY_EXIT_PRIORITY,
) -> GroupingResult:
    """Group ``entries`` from scratch using ``patterns``."""
    grouper = ThreadGrouper(
        patterns,
        diagnostics=diagnostics,
        early_exit_priority=early_exit_priority,
    )
    return grouper.add_all(entries).result()


def filter_groups(
    groups: Iterable[ThreadGroup],
    *,
    query: str | None = None,
    levels: Iterable[LogLevel] | None = None,
    thread_ids: Iterable[str] | None = None,
) -> list[ThreadGroup]:
    """Filter thread groups for display.

    ``query`` is a case-insensitive substring matched against the thread id,
    thread name and every entry message. ``levels`` filters on the group's
    derived level; ``thread_ids`` is an allow-list. Empty filters match all.
    """
    needle = query.lower() if query else None
    allowed_levels = set(levels) if levels else None
    allowed_ids = set(thread_ids) if thread_ids else None

    out: list[ThreadGroup] = []
    for group in groups:
        if needle is not None and not (
            needle in group.thread_name.lower()
            or needle in group.thread_id.lower()
            or any(needle in e.message.lower() for e in group.entries)
        ):
            continue
        if allowed_levels is not None and group.log_level not in allowed_levels:
            continue
        if allowed_ids is not None and group.thread_id not in allowed_ids:
            continue
        out.append(group)
    return out
