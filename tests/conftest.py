from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from log_thread_analyzer.core.models import LogEntry, LogLevel

SCENARIO_LINES = [
    "2024-01-15 08:30:15.123 INFO [TaskManager.java] Starting task-141 processing",
    "2024-01-15 08:30:16.456 DEBUG [DatabaseConnector.java] task-141: connected",
    "2024-01-15 08:32:10.234 INFO [AuthService.java] task-142 started auth",
    "not a log line at all",
]


@pytest.fixture
def scenario_text() -> str:
    return "\n".join(SCENARIO_LINES) + "\n"


@pytest.fixture
def write_log(scenario_text: str) -> Callable[[Path], None]:
    def _write(path: Path) -> None:
        path.write_text(scenario_text, encoding="utf-8")

    return _write


@pytest.fixture
def synthetic_log() -> Callable[[int], bytes]:
    """Line-aligned log data: ``n`` entries cycling through a few threads."""

    def _make(n: int) -> bytes:
        levels = ["INFO", "DEBUG", "WARN", "ERROR"]
        lines = [
            f"2024-02-01 10:{i // 60:02d}:{i % 60:02d}.000 {levels[i % 4]} "
            f"[Svc{i % 3}.java] task-{i % 5} step {i}"
            for i in range(n)
        ]
        return ("\n".join(lines) + "\n").encode("utf-8")

    return _make


@pytest.fixture
def make_entry() -> Callable[..., LogEntry]:
    counter = iter(range(10_000))

    def _make(
        message: str,
        level: LogLevel = LogLevel.INFO,
        *,
        timestamp: str = "2024-01-15 08:30:15.123",
        source: str = "App.java",
    ) -> LogEntry:
        offset = next(counter)
        raw = f"{timestamp} {level.value} [{source}] {message}"
        return LogEntry(
            id=f"mem_{offset}",
            timestamp=timestamp,
            level=level,
            source=source,
            message=f"{level.value} [{source}] {message}",
            raw=raw,
            offset=offset,
        )

    return _make
