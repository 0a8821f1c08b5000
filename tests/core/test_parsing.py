from __future__ import annotations

import pytest

from log_thread_analyzer.core.models import LogLevel
from log_thread_analyzer.core.parsing import (
    TimestampLineParser,
    parse_level,
    parse_line,
    parse_timestamp,
)


def test_parse_line_extracts_fields() -> None:
    line = "2024-01-15 08:30:15.123 INFO [TaskManager.java] Starting task-141 processing"
    entry = parse_line(line, 42)

    assert entry is not None
    assert entry.id == "entry_42"
    assert entry.timestamp == "2024-01-15 08:30:15.123"
    assert entry.level == LogLevel.INFO
    assert entry.source == "TaskManager.java"
    assert entry.message == "INFO [TaskManager.java] Starting task-141 processing"
    assert entry.raw == line
    assert entry.full_message == line
    assert entry.offset == 42


def test_parse_line_is_deterministic() -> None:
    line = "2024-01-15 08:30:16.456 DEBUG [DatabaseConnector.java] task-141: connected"
    assert parse_line(line, 7) == parse_line(line, 7)


@pytest.mark.parametrize(
    "line",
    [
        "not a log line at all",
        "",
        "   2024-01-15 08:30:15 INFO indented",
        "2024/01/15 08:30:15 INFO wrong separators",
        "08:30:15 INFO time only",
    ],
)
def test_parse_line_without_timestamp_returns_none(line: str) -> None:
    assert parse_line(line, 0) is None


def test_parse_line_defaults_level_and_source() -> None:
    entry = parse_line("2024-01-15 08:30:15 something happened", 0)

    assert entry is not None
    assert entry.level == LogLevel.INFO
    assert entry.source == "Unknown"
    assert entry.message == "something happened"


def test_parse_line_level_is_case_insensitive_and_normalizes_warning() -> None:
    entry = parse_line("2024-01-15 08:30:15 warning [Db] slow query", 0)

    assert entry is not None
    assert entry.level == LogLevel.WARN


def test_parse_line_first_level_token_wins() -> None:
    entry = parse_line("2024-01-15 08:30:15 ERROR [Db] previous INFO was wrong", 0)

    assert entry is not None
    assert entry.level == LogLevel.ERROR


def test_parse_line_uses_given_entry_id() -> None:
    entry = parse_line("2024-01-15 08:30:15 INFO hi", 5, entry_id="app.log:5")

    assert entry is not None
    assert entry.id == "app.log:5"


def test_parse_level_aliases() -> None:
    assert parse_level("Warning") == LogLevel.WARN
    assert parse_level(" fatal ") == LogLevel.FATAL
    with pytest.raises(ValueError):
        parse_level("CRITICAL")


def test_parse_timestamp() -> None:
    ts = parse_timestamp("2024-01-15 08:30:15.123")
    assert ts is not None
    assert (ts.hour, ts.minute, ts.second, ts.microsecond) == (8, 30, 15, 123000)

    assert parse_timestamp("2024-13-45 08:30:15") is None
    assert parse_timestamp(None) is None


def test_timestamp_line_parser_delegates() -> None:
    line = "2024-01-15 08:30:15 INFO [A] x"
    assert TimestampLineParser().parse(3, line) == parse_line(line, 3)
