"""Thread identifier extraction.

Patterns are evaluated in priority order. Once a pattern at or above the
early-exit priority produces a match, looser patterns are not consulted.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from .diagnostics import Diagnostics, warn
from .models import LogEntry, PatternMatch, ThreadPattern
from .patterns import PatternRegistry, compile_pattern, find_matches

EARLY_EXIT_PRIORITY = 2


def search_text_for(entry: LogEntry) -> str:
    """Text searched for identifiers: message, source and the full line."""
    return f"{entry.message} {entry.source} {entry.full_message}"


@dataclass(frozen=True, slots=True)
class ThreadIdentifierExtractor:
    """Patterns compiled once and kept in evaluation order."""

    compiled: tuple[tuple[ThreadPattern, re.Pattern[str]], ...]
    early_exit_priority: int | None = EARLY_EXIT_PRIORITY

    @classmethod
    def from_patterns(
        cls,
        patterns: Iterable[ThreadPattern],
        *,
        diagnostics: Diagnostics | None = None,
        early_exit_priority: int | None = EARLY_EXIT_PRIORITY,
    ) -> ThreadIdentifierExtractor:
        """Filter, order and compile ``patterns``; invalid ones are skipped."""
        compiled: list[tuple[ThreadPattern, re.Pattern[str]]] = []
        for p in PatternRegistry.of(patterns).enabled():
            try:
                regex = compile_pattern(p.pattern, p.flags)
            except re.error as e:
                warn(diagnostics, f"Invalid pattern '{p.id}' ({p.pattern!r}) skipped: {e}")
                continue
            compiled.append((p, regex))
        return cls(compiled=tuple(compiled), early_exit_priority=early_exit_priority)

    def extract(self, search_text: str) -> list[PatternMatch]:
        """Return distinct identifiers found in ``search_text``."""
        matches: list[PatternMatch] = []
        seen: set[str] = set()

        for pattern, regex in self.compiled:
            found = find_matches(regex, search_text)
            if not found:
                continue

            for ident in found:
                if ident in seen:
                    continue
                seen.add(ident)
                matches.append(
                    PatternMatch(
                        identifier=ident,
                        pattern=pattern,
                        position=search_text.find(ident),
                    )
                )

            if self.early_exit_priority is not None and pattern.priority <= self.early_exit_priority:
                break

        return matches


def extract_identifiers(
    search_text: str,
    patterns: Iterable[ThreadPattern],
    *,
    diagnostics: Diagnostics | None = None,
    early_exit_priority: int | None = EARLY_EXIT_PRIORITY,
) -> list[PatternMatch]:
    """One-shot extraction; prefer an extractor instance for many texts."""
    extractor = ThreadIdentifierExtractor.from_patterns(
        patterns,
        diagnostics=diagnostics,
        early_exit_priority=early_exit_priority,
    )
    return extractor.extract(search_text)
