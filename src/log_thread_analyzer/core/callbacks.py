"""Helpers for invoking user callbacks that may be sync or async."""

from __future__ import annotations

import inspect
from collections.abc import Callable
from typing import Any


async def emit(callback: Callable[..., Any] | None, *args: Any) -> None:
    """Call ``callback`` and await its result when it returns an awaitable."""
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result
