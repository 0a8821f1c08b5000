"""Diagnostics sink for non-fatal conditions (bad patterns, skipped records)."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Diagnostics:
    """Collect warnings and forward them to an optional callback.

    Every warning is also logged, so hosts that ignore the sink still see it.
    """

    warnings: list[str] = field(default_factory=list)
    sink: Callable[[str], None] | None = None

    def warn(self, message: str) -> None:
        logger.warning("%s", message)
        self.warnings.append(message)
        if self.sink is not None:
            self.sink(message)


def warn(diagnostics: Diagnostics | None, message: str) -> None:
    """Emit a warning to ``diagnostics`` or, when absent, to the log only."""
    if diagnostics is None:
        logger.warning("%s", message)
        return
    diagnostics.warn(message)
