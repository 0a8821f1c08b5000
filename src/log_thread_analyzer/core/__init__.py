"""Thread identification and grouping core.

Contains the line parser, pattern registry, identifier extraction, grouping,
the chunked file reader and the progressive page cache.
"""

from __future__ import annotations

from .config import PageCacheConfig, ReaderConfig, resolve_page_cache_config, resolve_reader_config
from .diagnostics import Diagnostics
from .extraction import (
    EARLY_EXIT_PRIORITY,
    ThreadIdentifierExtractor,
    extract_identifiers,
    search_text_for,
)
from .file_queue import FileJob, FileProcessingQueue, JobStatus, process_files
from .grouping import ThreadGrouper, derive_log_level, filter_groups, group_by_pattern
from .log_service import FileAnalysis, analyze_file, analyze_files, get_entries
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
from .page_cache import Page, PageRequest, PageResult, ProgressivePageCache, sequence_loader
from .parsing import LineParser, TimestampLineParser, parse_line, parse_timestamp
from .pattern_io import export_patterns, load_patterns, load_patterns_file
from .patterns import (
    PatternRegistry,
    PatternValidation,
    compile_pattern,
    default_patterns,
    test_pattern,
    validate_pattern,
)
from .reader import (
    BytesSource,
    EntriesPage,
    FileSource,
    LogChunk,
    PathSource,
    ProgressiveFileReader,
    ReaderState,
    ReadProgress,
    ReadSummary,
)

__all__ = [
    "EARLY_EXIT_PRIORITY",
    "BytesSource",
    "Diagnostics",
    "EntriesPage",
    "FileAnalysis",
    "FileJob",
    "FileProcessingQueue",
    "FileSource",
    "GroupingResult",
    "JobStatus",
    "LineParser",
    "LogChunk",
    "LogEntry",
    "LogLevel",
    "Page",
    "PageCacheConfig",
    "PageRequest",
    "PageResult",
    "PathSource",
    "PatternMatch",
    "PatternRegistry",
    "PatternValidation",
    "ProgressiveFileReader",
    "ProgressivePageCache",
    "ReadProgress",
    "ReadSummary",
    "ReaderConfig",
    "ReaderState",
    "ThreadGroup",
    "ThreadGrouper",
    "ThreadIdentifierExtractor",
    "ThreadPattern",
    "ThreadStatus",
    "TimeRange",
    "TimestampLineParser",
    "analyze_file",
    "analyze_files",
    "compile_pattern",
    "default_patterns",
    "derive_log_level",
    "export_patterns",
    "extract_identifiers",
    "filter_groups",
    "get_entries",
    "group_by_pattern",
    "load_patterns",
    "load_patterns_file",
    "parse_line",
    "parse_timestamp",
    "process_files",
    "resolve_page_cache_config",
    "resolve_reader_config",
    "search_text_for",
    "sequence_loader",
    "test_pattern",
    "validate_pattern",
]
