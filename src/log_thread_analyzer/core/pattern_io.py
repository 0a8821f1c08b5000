"""JSON import/export of thread pattern lists.

Document shape::

    {"version": "1.0", "timestamp": "...", "patterns": [...], "metadata": {...}}

A bare JSON array of pattern records is accepted as well. Malformed records
are skipped with a diagnostic warning instead of failing the whole import.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .diagnostics import Diagnostics, warn
from .models import ThreadPattern
from .patterns import validate_pattern

DOCUMENT_VERSION = "1.0"


class PatternRecord(BaseModel):
    """One pattern as it appears in an import/export document."""

    model_config = ConfigDict(populate_by_name=True)

    id: str | None = Field(default=None, description="Stable pattern id.")
    name: str = Field(min_length=1, description="Human label.")
    pattern: str = Field(min_length=1, description="Regular expression source.")
    description: str = ""
    enabled: bool = True
    priority: int | None = Field(default=None, description="Lower is evaluated first.")
    is_custom: bool = Field(default=True, alias="isCustom")

    @field_validator("pattern")
    @classmethod
    def _pattern_compiles(cls, value: str) -> str:
        result = validate_pattern(value)
        if not result.valid:
            raise ValueError(result.error)
        return value

    def to_pattern(self, position: int) -> ThreadPattern:
        """Build a ThreadPattern; ``position`` fills in a missing id/priority."""
        return ThreadPattern(
            id=self.id or f"imported-{position + 1}",
            name=self.name,
            pattern=self.pattern,
            description=self.description,
            enabled=self.enabled,
            priority=self.priority if self.priority is not None else position + 1,
            is_custom=self.is_custom,
        )


class PatternExportMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_patterns: int = Field(alias="totalPatterns")
    enabled_patterns: int = Field(alias="enabledPatterns")
    export_type: Literal["all", "enabled-only"] = Field(alias="exportType")


class PatternDocument(BaseModel):
    """Top-level import/export document; records are validated one by one."""

    version: str = DOCUMENT_VERSION
    timestamp: datetime | None = None
    patterns: list[Any]
    metadata: dict[str, Any] = Field(default_factory=dict)


def _record_dict(pattern: ThreadPattern) -> dict[str, Any]:
    """Export form of a pattern (camelCase keys)."""
    return {
        "id": pattern.id,
        "name": pattern.name,
        "pattern": pattern.pattern,
        "description": pattern.description,
        "enabled": pattern.enabled,
        "priority": pattern.priority,
        "isCustom": pattern.is_custom,
    }


def load_patterns(
    source: str | bytes | dict[str, Any] | list[Any],
    *,
    diagnostics: Diagnostics | None = None,
) -> tuple[ThreadPattern, ...]:
    """Parse a pattern document (JSON text or decoded data)."""
    data: Any = source
    if isinstance(source, (str, bytes)):
        try:
            data = json.loads(source)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid pattern file: {exc}") from exc
    if isinstance(data, list):
        data = {"patterns": data}

    try:
        document = PatternDocument.model_validate(data)
    except ValidationError as exc:
        raise ValueError("Invalid file format: missing patterns array") from exc

    patterns: list[ThreadPattern] = []
    seen_ids: set[str] = set()
    for position, raw in enumerate(document.patterns):
        try:
            record = PatternRecord.model_validate(raw)
        except ValidationError as exc:
            reasons = "; ".join(err["msg"] for err in exc.errors())
            warn(diagnostics, f"Skipping pattern record #{position + 1}: {reasons}")
            continue

        pattern = record.to_pattern(position)
        if pattern.id in seen_ids:
            warn(diagnostics, f"Skipping pattern record #{position + 1}: duplicate id '{pattern.id}'")
            continue
        seen_ids.add(pattern.id)
        patterns.append(pattern)

    if not patterns:
        raise ValueError("No valid patterns found in the file")
    return tuple(patterns)


def load_patterns_file(
    path: str | Path,
    *,
    diagnostics: Diagnostics | None = None,
) -> tuple[ThreadPattern, ...]:
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"Pattern file not found: {p}")
    return load_patterns(p.read_text(encoding="utf-8"), diagnostics=diagnostics)


def export_patterns(
    patterns: Iterable[ThreadPattern],
    *,
    enabled_only: bool = False,
    now: datetime | None = None,
) -> str:
    """Serialize patterns into a pattern document (JSON text)."""
    all_patterns = list(patterns)
    selected = [p for p in all_patterns if p.enabled] if enabled_only else all_patterns
    metadata = PatternExportMetadata(
        total_patterns=len(all_patterns),
        enabled_patterns=sum(1 for p in all_patterns if p.enabled),
        export_type="enabled-only" if enabled_only else "all",
    )
    document = PatternDocument(
        timestamp=now or datetime.now(UTC),
        patterns=[_record_dict(p) for p in selected],
        metadata=metadata.model_dump(by_alias=True),
    )
    return document.model_dump_json(indent=2)
