"""Paged LRU cache for serving large result sets.

Pages are fetched through a caller-supplied async loader. Only the most
recent load of a page is applied; older in-flight loads are cancelled.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from .callbacks import emit
from .config import PageCacheConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class PageRequest:
    page: int
    page_size: int
    search: str | None = None


@dataclass(frozen=True, slots=True)
class PageResult(Generic[T]):
    data: list[T]
    total_count: int = 0
    has_more: bool = True


@dataclass(slots=True)
class Page(Generic[T]):
    page_number: int
    data: list[T]
    total_count: int
    has_more: bool
    last_accessed: float = field(default_factory=time.monotonic)


PageLoader = Callable[[PageRequest], Awaitable[PageResult[T]]]


def sequence_loader(items: Sequence[T]) -> PageLoader[T]:
    """Loader serving pages of an in-memory sequence.

    A ``search`` request filters items whose ``str()`` contains the query
    (case-insensitive) and returns the first ``page_size`` hits.
    """

    async def load(request: PageRequest) -> PageResult[T]:
        source: Sequence[T] = items
        if request.search:
            needle = request.search.lower()
            source = [item for item in items if needle in str(item).lower()]
        start = request.page * request.page_size
        end = start + request.page_size
        return PageResult(
            data=list(source[start:end]),
            total_count=len(source),
            has_more=end < len(source),
        )

    return load


class ProgressivePageCache(Generic[T]):
    """LRU page store with on-demand loading and adjacent-page prefetch."""

    def __init__(
        self,
        load_page: PageLoader[T],
        config: PageCacheConfig | None = None,
        *,
        on_error: Callable[[BaseException], Any] | None = None,
    ) -> None:
        self.config = config or PageCacheConfig()
        self._loader = load_page
        self.on_error = on_error

        self._pages: OrderedDict[int, Page[T]] = OrderedDict()
        self._inflight: dict[int, asyncio.Task[Page[T] | None]] = {}
        self._background: set[asyncio.Task[Any]] = set()
        self._epoch = 0
        self._demand = 0

        self.data: list[T] = []
        self.current_page = -1
        self.total_count = 0
        self.has_more = True
        self.error: BaseException | None = None

    @property
    def page_size(self) -> int:
        return self.config.page_size

    @property
    def loading(self) -> bool:
        """True while an on-demand load is outstanding (prefetches excluded)."""
        return self._demand > 0

    @property
    def memory_usage(self) -> int:
        return len(self._pages)

    @property
    def cached_pages(self) -> list[int]:
        """Cached page numbers, least recently accessed first."""
        return list(self._pages)

    def is_page_loaded(self, page: int) -> bool:
        return page in self._pages

    async def load_page(self, page: int) -> list[T]:
        """Return one page's items ([] when the load failed or was superseded)."""
        record = await self._load(page)
        return record.data if record is not None else []

    async def get_visible_range(self, start_index: int, end_index: int) -> list[T]:
        """Return items ``start_index..end_index`` (inclusive)."""
        if start_index < 0 or end_index < start_index:
            raise ValueError("invalid range")

        size = self.page_size
        pages = range(start_index // size, end_index // size + 1)
        records = await asyncio.gather(*(self._load(p) for p in pages))

        out: list[T] = []
        for p, record in zip(pages, records):
            if record is None:
                continue
            page_start = p * size
            lo = max(0, start_index - page_start)
            hi = min(size, end_index - page_start + 1)
            out.extend(record.data[lo:hi])
        return out

    async def load_next_page(self) -> bool:
        """Load the page after ``current_page`` and append it to ``data``."""
        if not self.has_more or self.loading:
            return False

        next_page = self.current_page + 1
        record = await self._load(next_page)
        if record is None:
            return False

        self.has_more = record.has_more
        if not record.data:
            return False

        self.data.extend(record.data)
        self.current_page = next_page
        return True

    async def search(self, query: str, *, limit: int = 100) -> list[T]:
        """Ask the loader for up to ``limit`` items matching ``query``; not cached."""
        try:
            result = await self._loader(PageRequest(page=0, page_size=limit, search=query))
        except Exception as exc:
            await self._report(exc)
            return []
        return list(result.data)

    def reset(self) -> None:
        """Drop all pages and counters and cancel outstanding loads."""
        self._epoch += 1
        for task in list(self._inflight.values()) + list(self._background):
            task.cancel()
        self._inflight.clear()
        self._background.clear()
        self._pages.clear()
        self.data = []
        self.current_page = -1
        self.total_count = 0
        self.has_more = True
        self.error = None

    async def _load(self, page: int) -> Page[T] | None:
        if page < 0:
            raise ValueError("page must be >= 0")

        cached = self._touch(page)
        if cached is not None:
            return cached

        self._demand += 1
        try:
            record = await self._wait_for(page, self._start_load(page))
        finally:
            self._demand -= 1

        if record is not None:
            self._schedule_prefetch(page)
        return record

    def _touch(self, page: int) -> Page[T] | None:
        cached = self._pages.get(page)
        if cached is not None:
            cached.last_accessed = time.monotonic()
            self._pages.move_to_end(page)
        return cached

    def _start_load(self, page: int, *, report_errors: bool = True) -> asyncio.Task[Page[T] | None]:
        stale = self._inflight.get(page)
        if stale is not None and not stale.done():
            stale.cancel()
        task = asyncio.create_task(self._fetch(page, self._epoch, report_errors=report_errors))
        self._inflight[page] = task
        return task

    async def _wait_for(self, page: int, task: asyncio.Task[Page[T] | None]) -> Page[T] | None:
        """Await a load; if it was superseded, follow the newer one."""
        while True:
            await asyncio.wait({task})
            if not task.cancelled():
                return task.result()
            newer = self._inflight.get(page)
            if newer is None or newer is task:
                # The newer load may already have landed; reset() clears it.
                return self._pages.get(page)
            task = newer

    async def _fetch(self, page: int, epoch: int, *, report_errors: bool) -> Page[T] | None:
        current = asyncio.current_task()
        try:
            result = await self._loader(PageRequest(page=page, page_size=self.page_size))
        except Exception as exc:
            if epoch != self._epoch:
                return None
            if report_errors:
                await self._report(exc)
            else:
                logger.debug("Prefetch of page %d failed: %s", page, exc)
            return None
        finally:
            if self._inflight.get(page) is current:
                del self._inflight[page]

        if epoch != self._epoch:
            return None

        record = Page(
            page_number=page,
            data=list(result.data),
            total_count=result.total_count,
            has_more=result.has_more,
        )
        self._pages[page] = record
        self._pages.move_to_end(page)
        self.total_count = result.total_count
        self.error = None
        asyncio.get_running_loop().call_soon(self._manage_memory)
        return record

    def _manage_memory(self) -> None:
        limit = self.config.max_memory_pages
        while len(self._pages) > limit:
            evicted, _ = self._pages.popitem(last=False)
            logger.debug("Evicted page %d", evicted)

    def _schedule_prefetch(self, center: int) -> None:
        last_page = None
        if self.total_count:
            last_page = (self.total_count - 1) // self.page_size

        for i in range(1, self.config.preload_pages + 1):
            for page in (center - i, center + i):
                if page < 0 or (last_page is not None and page > last_page):
                    continue
                if page in self._pages or page in self._inflight:
                    continue
                task = asyncio.create_task(self._prefetch(page, self.config.prefetch_delay * i))
                self._background.add(task)
                task.add_done_callback(self._background.discard)

    async def _prefetch(self, page: int, delay: float) -> None:
        if delay:
            await asyncio.sleep(delay)
        if page in self._pages or page in self._inflight:
            return
        await self._start_load(page, report_errors=False)

    async def _report(self, exc: BaseException) -> None:
        self.error = exc
        logger.warning("Page load failed: %s", exc)
        await emit(self.on_error, exc)
