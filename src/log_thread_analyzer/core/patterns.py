"""Thread pattern registry and validation helpers."""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from functools import lru_cache

from .models import ThreadPattern

DEFAULT_FLAGS = re.IGNORECASE


@dataclass(frozen=True, slots=True)
class PatternValidation:
    valid: bool
    error: str | None = None


def default_patterns() -> tuple[ThreadPattern, ...]:
    """Built-in identification rules, in priority order."""
    return (
        ThreadPattern(
            id="task-pattern",
            name="Task Pattern",
            pattern=r"task-\d+",
            description="Matches task-### format (e.g., task-141)",
            enabled=True,
            priority=1,
        ),
        ThreadPattern(
            id="thread-pattern",
            name="Thread Pattern",
            pattern=r"thread-\d+",
            description="Matches thread-### format (e.g., thread-001)",
            enabled=True,
            priority=2,
        ),
        ThreadPattern(
            id="worker-pattern",
            name="Worker Pattern",
            pattern=r"\w+Worker-\d+",
            description="Matches worker patterns (e.g., FileProcessingWorker-3)",
            enabled=True,
            priority=3,
        ),
        ThreadPattern(
            id="session-pattern",
            name="Session Pattern",
            pattern=r"sess_[a-zA-Z0-9]+",
            description="Matches session IDs (e.g., sess_abc123xyz789)",
            enabled=False,
            priority=4,
        ),
        ThreadPattern(
            id="custom-pattern",
            name="Custom Pattern",
            pattern="",
            description="User-defined custom pattern",
            enabled=False,
            priority=5,
        ),
    )


@lru_cache(maxsize=256)
def compile_pattern(source: str, flags: int = DEFAULT_FLAGS) -> re.Pattern[str]:
    """Compile a pattern source; raises re.error when invalid."""
    return re.compile(source, flags)


def validate_pattern(source: str | None, flags: int = DEFAULT_FLAGS) -> PatternValidation:
    """Check that a candidate pattern is non-empty and compiles."""
    if not source or not source.strip():
        return PatternValidation(valid=False, error="Pattern cannot be empty")
    try:
        compile_pattern(source, flags)
    except re.error as e:
        return PatternValidation(valid=False, error=f"Invalid regular expression: {e}")
    return PatternValidation(valid=True)


def find_matches(regex: re.Pattern[str], text: str) -> list[str]:
    """Return every non-empty full-match substring, in order."""
    return [m.group(0) for m in regex.finditer(text) if m.group(0)]


def test_pattern(source: str, sample_text: str, flags: int = DEFAULT_FLAGS) -> list[str]:
    """Return all matches of ``source`` in ``sample_text`` ([] when invalid)."""
    try:
        regex = compile_pattern(source, flags)
    except re.error:
        return []
    return find_matches(regex, sample_text)


test_pattern.__test__ = False  # type: ignore[attr-defined]


@dataclass(frozen=True, slots=True)
class PatternRegistry:
    """Immutable, ordered collection of thread patterns.

    Mutators return a new registry, so a registry handed to a grouping run
    can never change underneath it.
    """

    patterns: tuple[ThreadPattern, ...] = ()

    @classmethod
    def default(cls) -> PatternRegistry:
        return cls(default_patterns())

    @classmethod
    def of(cls, patterns: Iterable[ThreadPattern]) -> PatternRegistry:
        if isinstance(patterns, PatternRegistry):
            return patterns
        return cls(tuple(patterns))

    def __iter__(self) -> Iterator[ThreadPattern]:
        return iter(self.patterns)

    def __len__(self) -> int:
        return len(self.patterns)

    def __contains__(self, pattern_id: object) -> bool:
        return any(p.id == pattern_id for p in self.patterns)

    def get(self, pattern_id: str) -> ThreadPattern | None:
        for p in self.patterns:
            if p.id == pattern_id:
                return p
        return None

    def enabled(self) -> list[ThreadPattern]:
        """Enabled, non-empty patterns in evaluation order (priority, then position)."""
        active = [p for p in self.patterns if p.enabled and p.pattern]
        return sorted(active, key=lambda p: p.priority)

    def add(self, pattern: ThreadPattern) -> PatternRegistry:
        """Return a registry with ``pattern`` appended after validating it."""
        if pattern.id in self:
            raise ValueError(f"Pattern id already registered: {pattern.id}")
        result = validate_pattern(pattern.pattern, pattern.flags)
        if not result.valid:
            raise ValueError(f"Pattern '{pattern.name}' is invalid: {result.error}")
        return PatternRegistry(self.patterns + (pattern,))

    def update(self, pattern_id: str, **changes: object) -> PatternRegistry:
        """Return a registry with one pattern's fields replaced."""
        current = self._require(pattern_id)
        updated = dataclasses.replace(current, **changes)
        if updated.pattern:
            result = validate_pattern(updated.pattern, updated.flags)
            if not result.valid:
                raise ValueError(f"Pattern '{updated.name}' is invalid: {result.error}")
        elif updated.enabled:
            raise ValueError("Pattern cannot be empty")
        return PatternRegistry(
            tuple(updated if p.id == pattern_id else p for p in self.patterns)
        )

    def remove(self, pattern_id: str) -> PatternRegistry:
        self._require(pattern_id)
        return PatternRegistry(tuple(p for p in self.patterns if p.id != pattern_id))

    def enable(self, pattern_id: str) -> PatternRegistry:
        return self.update(pattern_id, enabled=True)

    def disable(self, pattern_id: str) -> PatternRegistry:
        return self.update(pattern_id, enabled=False)

    def _require(self, pattern_id: str) -> ThreadPattern:
        p = self.get(pattern_id)
        if p is None:
            raise KeyError(f"Unknown pattern id: {pattern_id}")
        return p
