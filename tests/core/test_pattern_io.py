from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

import pytest

from log_thread_analyzer.core.diagnostics import Diagnostics
from log_thread_analyzer.core.pattern_io import export_patterns, load_patterns, load_patterns_file
from log_thread_analyzer.core.patterns import PatternRegistry, default_patterns


def test_export_document_shape() -> None:
    now = datetime(2024, 1, 15, 8, 30, tzinfo=UTC)

    doc = json.loads(export_patterns(default_patterns(), now=now))

    assert doc["version"] == "1.0"
    assert doc["timestamp"].startswith("2024-01-15T08:30:00")
    assert doc["metadata"] == {"totalPatterns": 5, "enabledPatterns": 3, "exportType": "all"}
    assert [p["id"] for p in doc["patterns"]][:2] == ["task-pattern", "thread-pattern"]
    assert doc["patterns"][0]["isCustom"] is False


def test_export_enabled_only() -> None:
    doc = json.loads(export_patterns(PatternRegistry.default(), enabled_only=True))

    assert doc["metadata"]["exportType"] == "enabled-only"
    assert doc["metadata"]["totalPatterns"] == 5
    assert [p["id"] for p in doc["patterns"]] == ["task-pattern", "thread-pattern", "worker-pattern"]


def test_exported_document_loads_back() -> None:
    diagnostics = Diagnostics()

    loaded = load_patterns(export_patterns(default_patterns()), diagnostics=diagnostics)

    # the empty custom pattern cannot be imported
    assert [p.id for p in loaded] == ["task-pattern", "thread-pattern", "worker-pattern", "session-pattern"]
    assert loaded[3].enabled is False
    assert len(diagnostics.warnings) == 1


def test_bare_list_fills_missing_id_and_priority() -> None:
    loaded = load_patterns(
        [
            {"name": "Order", "pattern": r"order-\d+"},
            {"id": "req", "name": "Request", "pattern": r"req-\w+", "priority": 9, "isCustom": False},
        ]
    )

    assert loaded[0].id == "imported-1"
    assert loaded[0].priority == 1
    assert loaded[0].is_custom is True
    assert loaded[0].description == ""
    assert loaded[1].priority == 9
    assert loaded[1].is_custom is False


def test_malformed_records_are_skipped() -> None:
    diagnostics = Diagnostics()
    document = {
        "version": "1.0",
        "patterns": [
            {"id": "ok", "name": "Ok", "pattern": r"ok-\d+"},
            {"id": "no-name", "pattern": r"x-\d+"},
            {"id": "bad-regex", "name": "Bad", "pattern": "[unclosed"},
            {"id": "ok", "name": "Duplicate", "pattern": r"dup-\d+"},
            "not even an object",
        ],
    }

    loaded = load_patterns(document, diagnostics=diagnostics)

    assert [p.id for p in loaded] == ["ok"]
    assert len(diagnostics.warnings) == 4
    assert any("duplicate id 'ok'" in w for w in diagnostics.warnings)


@pytest.mark.parametrize(
    ("source", "message"),
    [
        ('{"version": "1.0"}', "missing patterns array"),
        ('{"patterns": {"id": "x"}}', "missing patterns array"),
        ('{"patterns": []}', "No valid patterns"),
        ('[{"name": "", "pattern": "x"}]', "No valid patterns"),
        ("{not json", "Invalid pattern file"),
    ],
)
def test_load_patterns_rejects_unusable_documents(source: str, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        load_patterns(source)


def test_load_patterns_file(tmp_path: Path) -> None:
    path = tmp_path / "patterns.json"
    path.write_text(json.dumps({"patterns": [{"name": "Job", "pattern": r"job-\d+"}]}), encoding="utf-8")

    assert [p.pattern for p in load_patterns_file(path)] == [r"job-\d+"]

    with pytest.raises(FileNotFoundError, match="Pattern file not found"):
        load_patterns_file(tmp_path / "missing.json")
