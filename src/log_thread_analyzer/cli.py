from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from collections.abc import Sequence
from dataclasses import replace

from log_thread_analyzer.core.config import resolve_reader_config
from log_thread_analyzer.core.diagnostics import Diagnostics
from log_thread_analyzer.core.extraction import EARLY_EXIT_PRIORITY
from log_thread_analyzer.core.grouping import filter_groups
from log_thread_analyzer.core.log_service import analyze_files
from log_thread_analyzer.core.models import GroupingResult, LogLevel, ThreadGroup
from log_thread_analyzer.core.pattern_io import export_patterns, load_patterns_file
from log_thread_analyzer.core.patterns import PatternRegistry, test_pattern, validate_pattern

LOG_LEVEL_ENV = "LOG_THREADS_LOG_LEVEL"


def _configure_logging() -> None:
    """Log to stderr so stdout stays clean for results."""
    level_name = os.getenv(LOG_LEVEL_ENV, "WARNING").upper()
    level = getattr(logging, level_name, logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _parse_levels(s: str) -> list[LogLevel]:
    """Parse comma-separated levels into LogLevel values."""
    out: list[LogLevel] = []
    for part in s.split(","):
        name = part.strip().upper()
        if not name:
            continue
        try:
            out.append(LogLevel(name))
        except ValueError as e:
            raise argparse.ArgumentTypeError(
                "Invalid level. Allowed: TRACE, DEBUG, INFO, WARN, ERROR, FATAL"
            ) from e
    if not out:
        raise argparse.ArgumentTypeError("At least one level must be provided")
    return out


def _positive_int(s: str) -> int:
    try:
        value = int(s)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"expected an integer, got {s!r}") from e
    if value < 1:
        raise argparse.ArgumentTypeError("value must be >= 1")
    return value


def _load_registry(args: argparse.Namespace, diagnostics: Diagnostics) -> PatternRegistry:
    if args.patterns_file:
        registry = PatternRegistry(load_patterns_file(args.patterns_file, diagnostics=diagnostics))
    else:
        registry = PatternRegistry.default()
    for pattern_id in getattr(args, "enable", None) or []:
        registry = registry.enable(pattern_id)
    for pattern_id in getattr(args, "disable", None) or []:
        registry = registry.disable(pattern_id)
    return registry


def _fmt_group(group: ThreadGroup) -> str:
    start = group.time_range.start or "-"
    end = group.time_range.end or "-"
    return (
        f"{group.thread_id} [{group.log_level.value}] {group.status.value} "
        f"{group.entry_count} entries {start} -> {end} ({group.identifier.pattern.id})"
    )


def _print_text(
    result: GroupingResult,
    groups: list[ThreadGroup],
    *,
    show_ungrouped: bool,
    file_count: int,
) -> None:
    for group in groups:
        print(_fmt_group(group))

    if show_ungrouped and result.ungrouped_entries:
        print("\nUngrouped entries:")
        for e in result.ungrouped_entries:
            print(f"{e.offset} {e.timestamp} [{e.level.value}] {e.message}")

    print(
        f"\nFound {len(groups)} of {result.total_threads} threads "
        f"({result.total_grouped_entries} grouped, {result.total_ungrouped_entries} ungrouped entries) "
        f"in {file_count} file(s)."
    )


def _cmd_analyze(args: argparse.Namespace) -> int:
    diagnostics = Diagnostics()
    registry = _load_registry(args, diagnostics)

    config = resolve_reader_config()
    if args.chunk_size is not None:
        config = replace(config, chunk_size=args.chunk_size)

    analysis = asyncio.run(
        analyze_files(
            args.log_paths,
            patterns=registry,
            config=config,
            concurrency=args.concurrency,
            diagnostics=diagnostics,
            early_exit_priority=None if args.no_early_exit else EARLY_EXIT_PRIORITY,
        )
    )

    result = analysis.result
    groups = filter_groups(result.thread_groups, query=args.query, levels=args.levels)

    if args.json:
        out = result.to_dict(include_entries=args.show_ungrouped)
        out["threadGroups"] = [g.to_dict(include_entries=args.show_ungrouped) for g in groups]
        out["warnings"] = diagnostics.warnings
        out["files"] = [
            {"path": job.source.name, "status": job.status.value, "entries": job.entry_count, "error": job.error}
            for job in analysis.jobs
        ]
        print(json.dumps(out, indent=2))
    else:
        _print_text(result, groups, show_ungrouped=args.show_ungrouped, file_count=len(analysis.jobs))

    for job in analysis.failed:
        print(f"Error: {job.source.name}: {job.error}", file=sys.stderr)
    return 1 if analysis.failed else 0


def _cmd_validate(args: argparse.Namespace) -> int:
    result = validate_pattern(args.pattern)
    if not result.valid:
        print(f"invalid: {result.error}")
        return 1
    print("valid")
    if args.sample is not None:
        for match in test_pattern(args.pattern, args.sample):
            print(match)
    return 0


def _cmd_patterns(args: argparse.Namespace) -> int:
    registry = _load_registry(args, Diagnostics())
    print(export_patterns(registry, enabled_only=args.enabled_only))
    return 0


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="log-threads",
        description="Group log lines into threads using ordered regex patterns.",
    )
    sub = p.add_subparsers(dest="command", required=True)

    a = sub.add_parser("analyze", help="Read log files and group entries by thread")
    a.add_argument("log_paths", nargs="+")
    a.add_argument("--patterns", dest="patterns_file", default=None, help="Pattern document (JSON)")
    a.add_argument("--enable", action="append", metavar="ID", help="Enable a pattern by id")
    a.add_argument("--disable", action="append", metavar="ID", help="Disable a pattern by id")
    a.add_argument("--chunk-size", type=_positive_int, default=None, help="Bytes per read window")
    a.add_argument("--concurrency", type=_positive_int, default=None, help="Files processed at once")
    a.add_argument("--query", default=None, help="Case-insensitive search over thread ids and messages")
    a.add_argument("--levels", type=_parse_levels, default=None, help="Comma-separated, e.g. ERROR,WARN")
    a.add_argument("--no-early-exit", action="store_true", help="Always evaluate every pattern")
    a.add_argument("--show-ungrouped", action="store_true", help="Include entries (and ungrouped lines)")
    a.add_argument("--json", action="store_true", help="Print JSON instead of text")
    a.set_defaults(func=_cmd_analyze)

    v = sub.add_parser("validate", help="Validate a pattern and optionally test it")
    v.add_argument("pattern")
    v.add_argument("--sample", default=None, help="Sample text to match against")
    v.set_defaults(func=_cmd_validate)

    x = sub.add_parser("patterns", help="Export a pattern document")
    x.add_argument("--from", dest="patterns_file", default=None, help="Pattern document to re-export")
    x.add_argument("--enabled-only", action="store_true")
    x.set_defaults(func=_cmd_patterns)

    return p


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entrypoint."""
    _configure_logging()
    args = _build_parser().parse_args(argv)

    try:
        code = args.func(args)
    except FileNotFoundError as e:
        print(str(e), file=sys.stderr)
        raise SystemExit(2)
    except (ValueError, KeyError) as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(2)

    if code:
        raise SystemExit(code)


if __name__ == "__main__":
    main()
