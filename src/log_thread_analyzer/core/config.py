"""Reader and page cache configuration.

Defaults can be overridden from the environment via ``resolve_*_config``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace

CHUNK_SIZE_ENV = "LOG_THREADS_CHUNK_SIZE"
MAX_MEMORY_ENV = "LOG_THREADS_MAX_MEMORY"
MAX_CONCURRENT_FILES_ENV = "LOG_THREADS_MAX_CONCURRENT_FILES"
PAGE_SIZE_ENV = "LOG_THREADS_PAGE_SIZE"
MAX_MEMORY_PAGES_ENV = "LOG_THREADS_MAX_MEMORY_PAGES"


@dataclass(frozen=True, slots=True)
class ReaderConfig:
    chunk_size: int = 1024 * 1024
    max_memory_usage: int = 100 * 1024 * 1024
    retained_chunks: int = 10
    estimated_entry_bytes: int = 500
    pause_poll_interval: float = 0.1
    max_concurrent_files: int = 2
    encoding: str = "utf-8"
    decode_errors: str = "replace"

    def __post_init__(self) -> None:
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if self.max_memory_usage < 0:
            raise ValueError("max_memory_usage must be >= 0")
        if self.retained_chunks < 1:
            raise ValueError("retained_chunks must be >= 1")
        if self.pause_poll_interval <= 0:
            raise ValueError("pause_poll_interval must be > 0")
        if self.max_concurrent_files < 1:
            raise ValueError("max_concurrent_files must be >= 1")


@dataclass(frozen=True, slots=True)
class PageCacheConfig:
    page_size: int = 100
    max_memory_pages: int = 10
    preload_pages: int = 2
    prefetch_delay: float = 0.1  # seconds between staggered prefetches

    def __post_init__(self) -> None:
        if self.page_size < 1:
            raise ValueError("page_size must be >= 1")
        if self.max_memory_pages < 1:
            raise ValueError("max_memory_pages must be >= 1")
        if self.preload_pages < 0:
            raise ValueError("preload_pages must be >= 0")
        if self.prefetch_delay < 0:
            raise ValueError("prefetch_delay must be >= 0")


def _env_int(name: str) -> int | None:
    """Read a positive integer from the environment (None when unset)."""
    raw = os.getenv(name)
    if raw is None or raw == "":
        return None
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if value < 1:
        raise ValueError(f"{name} must be >= 1")
    return value


def resolve_reader_config(cfg: ReaderConfig | None = None) -> ReaderConfig:
    """Return config with optional env overrides applied."""
    if cfg is None:
        cfg = ReaderConfig()

    overrides: dict[str, int] = {}
    for env, attr in (
        (CHUNK_SIZE_ENV, "chunk_size"),
        (MAX_MEMORY_ENV, "max_memory_usage"),
        (MAX_CONCURRENT_FILES_ENV, "max_concurrent_files"),
    ):
        value = _env_int(env)
        if value is not None and value != getattr(cfg, attr):
            overrides[attr] = value

    return replace(cfg, **overrides) if overrides else cfg


def resolve_page_cache_config(cfg: PageCacheConfig | None = None) -> PageCacheConfig:
    """Return config with optional env overrides applied."""
    if cfg is None:
        cfg = PageCacheConfig()

    overrides: dict[str, int] = {}
    for env, attr in (
        (PAGE_SIZE_ENV, "page_size"),
        (MAX_MEMORY_PAGES_ENV, "max_memory_pages"),
    ):
        value = _env_int(env)
        if value is not None and value != getattr(cfg, attr):
            overrides[attr] = value

    return replace(cfg, **overrides) if overrides else cfg
