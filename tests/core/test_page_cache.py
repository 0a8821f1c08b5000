from __future__ import annotations

import asyncio

import pytest

from log_thread_analyzer.core.config import PageCacheConfig
from log_thread_analyzer.core.page_cache import (
    PageRequest,
    PageResult,
    ProgressivePageCache,
    sequence_loader,
)


def _cache(items, **config) -> ProgressivePageCache:
    config.setdefault("page_size", 10)
    config.setdefault("preload_pages", 0)
    return ProgressivePageCache(sequence_loader(items), PageCacheConfig(**config))


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_lru_keeps_most_recent_pages() -> None:
    cache = _cache(list(range(200)), max_memory_pages=3)

    for page in range(8):
        await cache.load_page(page)
    await _settle()

    assert cache.memory_usage == 3
    assert cache.cached_pages == [5, 6, 7]


@pytest.mark.asyncio
async def test_cache_hit_refreshes_recency() -> None:
    cache = _cache(list(range(200)), max_memory_pages=3)

    for page in (0, 1, 2):
        await cache.load_page(page)
    assert await cache.load_page(0) == list(range(0, 10))
    await cache.load_page(3)
    await _settle()

    assert sorted(cache.cached_pages) == [0, 2, 3]
    assert not cache.is_page_loaded(1)


@pytest.mark.asyncio
async def test_visible_range_spans_pages() -> None:
    cache = _cache(list(range(100)))

    assert await cache.get_visible_range(5, 24) == list(range(5, 25))
    assert cache.is_page_loaded(0) and cache.is_page_loaded(1) and cache.is_page_loaded(2)
    assert await cache.get_visible_range(95, 120) == list(range(95, 100))

    with pytest.raises(ValueError):
        await cache.get_visible_range(10, 5)


@pytest.mark.asyncio
async def test_prefetches_neighbours_within_bounds() -> None:
    requested = []
    inner = sequence_loader(list(range(100)))

    async def loader(request: PageRequest) -> PageResult[int]:
        requested.append(request.page)
        return await inner(request)

    cache = ProgressivePageCache(
        loader,
        PageCacheConfig(page_size=10, preload_pages=1, prefetch_delay=0),
    )

    await cache.load_page(9)
    await _settle()
    assert sorted(requested) == [8, 9]

    await cache.load_page(0)
    await _settle()
    assert sorted(requested) == [0, 1, 8, 9]
    assert cache.loading is False


@pytest.mark.asyncio
async def test_loader_failure_reports_and_cache_stays_usable() -> None:
    errors = []
    inner = sequence_loader(list(range(50)))

    async def loader(request: PageRequest) -> PageResult[int]:
        if request.page == 1:
            raise ConnectionError("backend down")
        return await inner(request)

    cache = ProgressivePageCache(loader, PageCacheConfig(page_size=10, preload_pages=0), on_error=errors.append)

    assert await cache.load_page(1) == []
    assert isinstance(cache.error, ConnectionError)
    assert [str(e) for e in errors] == ["backend down"]

    assert await cache.load_page(0) == list(range(10))
    assert cache.error is None


@pytest.mark.asyncio
async def test_prefetch_failures_are_silent() -> None:
    errors = []
    inner = sequence_loader(list(range(50)))

    async def loader(request: PageRequest) -> PageResult[int]:
        if request.page == 1:
            raise ConnectionError("backend down")
        return await inner(request)

    cache = ProgressivePageCache(
        loader,
        PageCacheConfig(page_size=10, preload_pages=1, prefetch_delay=0),
        on_error=errors.append,
    )

    await cache.load_page(0)
    await _settle()

    assert errors == []
    assert cache.error is None
    assert not cache.is_page_loaded(1)


@pytest.mark.asyncio
async def test_latest_request_for_a_page_wins() -> None:
    calls = 0
    release = asyncio.Event()

    async def loader(request: PageRequest) -> PageResult[str]:
        nonlocal calls
        calls += 1
        if calls == 1:
            await release.wait()
            return PageResult(data=["stale"], total_count=1, has_more=False)
        return PageResult(data=["fresh"], total_count=1, has_more=False)

    cache = ProgressivePageCache(loader, PageCacheConfig(preload_pages=0))

    first = asyncio.create_task(cache.load_page(0))
    await asyncio.sleep(0.01)
    second = asyncio.create_task(cache.load_page(0))

    assert await second == ["fresh"]
    assert await first == ["fresh"]
    release.set()
    await _settle()
    assert await cache.load_page(0) == ["fresh"]


@pytest.mark.asyncio
async def test_reset_discards_in_flight_results() -> None:
    release = asyncio.Event()

    async def loader(request: PageRequest) -> PageResult[int]:
        await release.wait()
        return PageResult(data=[1, 2, 3], total_count=3, has_more=False)

    cache = ProgressivePageCache(loader, PageCacheConfig(preload_pages=0))

    pending = asyncio.create_task(cache.load_page(0))
    await asyncio.sleep(0.01)
    assert cache.loading is True

    cache.reset()
    release.set()

    assert await pending == []
    assert cache.is_page_loaded(0) is False
    assert cache.total_count == 0
    assert cache.current_page == -1


@pytest.mark.asyncio
async def test_load_next_page_accumulates() -> None:
    cache = _cache(list(range(25)))

    assert await cache.load_next_page() is True
    assert await cache.load_next_page() is True
    assert cache.has_more is True
    assert await cache.load_next_page() is True

    assert cache.data == list(range(25))
    assert cache.current_page == 2
    assert cache.total_count == 25
    assert cache.has_more is False
    assert await cache.load_next_page() is False

    cache.reset()
    assert cache.data == []
    assert cache.memory_usage == 0
    assert await cache.load_next_page() is True
    assert cache.data == list(range(10))


@pytest.mark.asyncio
async def test_search_is_not_cached() -> None:
    cache = _cache(["alpha", "beta", "alphabet", "gamma"])

    assert await cache.search("ALPHA", limit=10) == ["alpha", "alphabet"]
    assert cache.memory_usage == 0


@pytest.mark.asyncio
async def test_negative_page_is_rejected() -> None:
    cache = _cache([1, 2, 3])

    with pytest.raises(ValueError):
        await cache.load_page(-1)
