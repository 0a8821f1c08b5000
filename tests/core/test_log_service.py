from __future__ import annotations

from pathlib import Path

import pytest

from log_thread_analyzer.core.config import ReaderConfig
from log_thread_analyzer.core.diagnostics import Diagnostics
from log_thread_analyzer.core.file_queue import JobStatus
from log_thread_analyzer.core.log_service import analyze_file, analyze_files, get_entries
from log_thread_analyzer.core.models import LogLevel, ThreadPattern
from log_thread_analyzer.core.patterns import PatternRegistry


@pytest.mark.asyncio
async def test_analyze_file_scenario(tmp_path: Path, write_log) -> None:
    path = tmp_path / "app.log"
    write_log(path)

    result = await analyze_file(path, config=ReaderConfig(chunk_size=40))

    assert [(g.thread_id, g.entry_count, g.log_level) for g in result.thread_groups] == [
        ("task-141", 2, LogLevel.INFO),
        ("task-142", 1, LogLevel.INFO),
    ]
    assert result.ungrouped_entries == []
    assert result.total_grouped_entries == 3


@pytest.mark.asyncio
async def test_analyze_files_merges_groups_across_files(tmp_path: Path, write_log) -> None:
    first = tmp_path / "a.log"
    second = tmp_path / "b.log"
    write_log(first)
    second.write_text(
        "2024-01-15 09:00:00.000 ERROR [Worker.java] task-141 crashed\n"
        "2024-01-15 09:00:01.000 INFO [Worker.java] idle\n",
        encoding="utf-8",
    )
    progress_files = set()

    analysis = await analyze_files(
        [first, second],
        config=ReaderConfig(chunk_size=64),
        on_file_progress=lambda job, progress: progress_files.add(job.source.name),
    )

    groups = {g.thread_id: g for g in analysis.result.thread_groups}
    assert groups["task-141"].entry_count == 3
    assert groups["task-141"].log_level == LogLevel.ERROR
    assert groups["task-141"].time_range.end == "2024-01-15 09:00:00.000"
    assert analysis.result.total_ungrouped_entries == 1
    assert [j.status for j in analysis.jobs] == [JobStatus.COMPLETED, JobStatus.COMPLETED]
    assert analysis.failed == []
    assert progress_files == {str(first), str(second)}


@pytest.mark.asyncio
async def test_analyze_files_reports_bad_patterns(tmp_path: Path, write_log) -> None:
    path = tmp_path / "app.log"
    write_log(path)
    diagnostics = Diagnostics()
    patterns = [
        ThreadPattern(id="broken", name="Broken", pattern="(", priority=1),
        *PatternRegistry.default(),
    ]

    analysis = await analyze_files([path], patterns=patterns, diagnostics=diagnostics)

    assert analysis.result.total_threads == 2
    assert analysis.diagnostics is diagnostics
    assert len(diagnostics.warnings) == 1


@pytest.mark.asyncio
async def test_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        await analyze_files([tmp_path / "missing.log"])


@pytest.mark.asyncio
async def test_get_entries_in_byte_order(tmp_path: Path, write_log) -> None:
    path = tmp_path / "app.log"
    write_log(path)

    entries = await get_entries(path, config=ReaderConfig(chunk_size=16))

    assert [e.level for e in entries] == [LogLevel.INFO, LogLevel.DEBUG, LogLevel.INFO]
    assert entries[0].offset == 0
    assert entries[1].offset == len(entries[0].raw) + 1
