"""Pattern-based thread grouping for large log files."""

from __future__ import annotations

__version__ = "0.1.0"
