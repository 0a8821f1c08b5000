"""File analysis entry points.

This module is the main integration point that reads log files and returns
grouped threads.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .config import ReaderConfig, resolve_reader_config
from .diagnostics import Diagnostics
from .extraction import EARLY_EXIT_PRIORITY
from .file_queue import FileJob, JobStatus, process_files
from .grouping import ThreadGrouper
from .models import GroupingResult, LogEntry, ThreadPattern
from .parsing import LineParser
from .patterns import default_patterns
from .reader import LogChunk, PathSource, ProgressiveFileReader, ReadProgress

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FileAnalysis:
    """Grouping over every file of a run plus the per-file outcome."""

    result: GroupingResult
    jobs: list[FileJob]
    diagnostics: Diagnostics = field(default_factory=Diagnostics)

    @property
    def failed(self) -> list[FileJob]:
        return [j for j in self.jobs if j.status is JobStatus.ERRORED]


async def analyze_files(
    log_paths: Iterable[str | Path],
    *,
    patterns: Iterable[ThreadPattern] | None = None,
    config: ReaderConfig | None = None,
    concurrency: int | None = None,
    parser: LineParser | None = None,
    diagnostics: Diagnostics | None = None,
    early_exit_priority: int | None = EARLY_EXIT_PRIORITY,
    on_file_progress: Callable[[FileJob, ReadProgress], Any] | None = None,
) -> FileAnalysis:
    """Read ``log_paths`` with bounded concurrency and group all their entries.

    Entries are folded into one grouping as chunks arrive, so chunk eviction
    in the readers never loses entries. Files that fail keep whatever they
    contributed before the failure.
    """
    sources = [PathSource(p) for p in log_paths]
    diagnostics = diagnostics if diagnostics is not None else Diagnostics()
    grouper = ThreadGrouper(
        patterns if patterns is not None else default_patterns(),
        diagnostics=diagnostics,
        early_exit_priority=early_exit_priority,
    )

    def on_chunk(job: FileJob, chunk: LogChunk) -> None:
        grouper.add_all(chunk.entries)

    jobs = await process_files(
        sources,
        config if config is not None else resolve_reader_config(),
        concurrency=concurrency,
        parser=parser,
        on_file_chunk=on_chunk,
        on_file_progress=on_file_progress,
    )
    for job in jobs:
        if job.status is JobStatus.ERRORED:
            logger.warning("File %s failed: %s", job.source.name, job.error)

    return FileAnalysis(result=grouper.result(), jobs=jobs, diagnostics=diagnostics)


async def analyze_file(
    log_path: str | Path,
    **kwargs: Any,
) -> GroupingResult:
    """Group one file; raises RuntimeError when the file cannot be read."""
    analysis = await analyze_files([log_path], **kwargs)
    job = analysis.jobs[0]
    if job.status is JobStatus.ERRORED:
        raise RuntimeError(f"Failed to read {log_path}: {job.error}")
    return analysis.result


async def get_entries(
    log_path: str | Path,
    *,
    config: ReaderConfig | None = None,
    parser: LineParser | None = None,
) -> list[LogEntry]:
    """Collect every parsed entry of a file, in byte order."""
    entries: list[LogEntry] = []

    def on_chunk(chunk: LogChunk) -> None:
        entries.extend(chunk.entries)

    reader = ProgressiveFileReader(
        config if config is not None else resolve_reader_config(),
        parser=parser,
        on_chunk=on_chunk,
    )
    await reader.read_file(PathSource(log_path))
    if reader.error is not None:
        raise RuntimeError(f"Failed to read {log_path}: {reader.error}") from reader.error
    return entries
