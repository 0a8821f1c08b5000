"""Progressive (chunked) log file reader.

Reads a source in fixed-size byte windows, parses complete lines into
entries and reports each chunk as it is processed. The reader is an explicit
state machine: ``step()`` processes one chunk and returns control, and
``read_file()`` drives ``step()`` on the running event loop, yielding after
every chunk.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

import aiofiles

from .callbacks import emit
from .config import ReaderConfig
from .models import LogEntry, LogLevel
from .parsing import LineParser, TimestampLineParser

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_FIELDS: tuple[str, ...] = ("message", "source", "full_message")


class ReaderState(str, Enum):
    IDLE = "idle"
    READING = "reading"
    PAUSED = "paused"
    COMPLETED = "completed"
    ERRORED = "errored"
    ABORTED = "aborted"


class FileSource(Protocol):
    """Random-access byte source (conceptually a file)."""

    @property
    def name(self) -> str: ...

    @property
    def size(self) -> int: ...

    async def read(self, start: int, end: int) -> bytes:
        """Return bytes in ``[start, end)``."""
        ...

    async def close(self) -> None:
        """Release any handle held between reads."""
        ...


@dataclass(frozen=True, slots=True)
class BytesSource:
    """In-memory source."""

    data: bytes
    name: str = "<memory>"

    @property
    def size(self) -> int:
        return len(self.data)

    async def read(self, start: int, end: int) -> bytes:
        return self.data[start:end]

    async def close(self) -> None:
        return None


class PathSource:
    """File on disk, read window by window through aiofiles."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        if not self.path.is_file():
            raise FileNotFoundError(f"Log file not found: {self.path}")
        self._handle: Any = None

    def __repr__(self) -> str:
        return f"PathSource({str(self.path)!r})"

    @property
    def name(self) -> str:
        return str(self.path)

    @property
    def size(self) -> int:
        return self.path.stat().st_size

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    async def read(self, start: int, end: int) -> bytes:
        # opened on first read, kept until close()
        if self._handle is None:
            self._handle = await aiofiles.open(self.path, "rb")
        await self._handle.seek(start)
        return await self._handle.read(end - start)

    async def close(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            await handle.close()


@dataclass(frozen=True, slots=True)
class LogChunk:
    id: str
    offset: int
    size: int
    entries: tuple[LogEntry, ...]
    is_last_chunk: bool
    processed_at: datetime


@dataclass(frozen=True, slots=True)
class ReadProgress:
    progress_percent: float
    processed_bytes: int
    total_bytes: int
    current_chunk_index: int
    estimated_time_remaining: float | None  # seconds; None until progress > 0


@dataclass(frozen=True, slots=True)
class ReadSummary:
    source_name: str
    total_chunks: int
    total_size: int
    processing_time: float  # seconds
    average_chunk_size: float


@dataclass(frozen=True, slots=True)
class EntriesPage:
    entries: list[LogEntry]
    page: int
    page_size: int
    total_entries: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool


ProgressCallback = Callable[[ReadProgress], Any]
ChunkCallback = Callable[[LogChunk], Any]
CompleteCallback = Callable[[ReadSummary], Any]
ErrorCallback = Callable[[str, BaseException], Any]


class ProgressiveFileReader:
    """Chunked reader with pause/resume/abort and bounded chunk retention."""

    def __init__(
        self,
        config: ReaderConfig | None = None,
        *,
        parser: LineParser | None = None,
        on_progress: ProgressCallback | None = None,
        on_chunk: ChunkCallback | None = None,
        on_complete: CompleteCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self.config = config or ReaderConfig()
        self.parser: LineParser = parser or TimestampLineParser()
        self.on_progress = on_progress
        self.on_chunk = on_chunk
        self.on_complete = on_complete
        self.on_error = on_error

        self.state = ReaderState.IDLE
        self.source: FileSource | None = None
        self.current_offset = 0
        self.total_size = 0
        self.processed_chunks: list[LogChunk] = []
        self.chunks_processed = 0
        self.error: BaseException | None = None
        self.summary: ReadSummary | None = None
        self._carry = b""
        self._start_time = 0.0

    @property
    def is_reading(self) -> bool:
        return self.state in (ReaderState.READING, ReaderState.PAUSED)

    @property
    def is_paused(self) -> bool:
        return self.state is ReaderState.PAUSED

    def start(self, source: FileSource) -> None:
        """Arm the reader for ``source`` at offset 0."""
        if self.is_reading:
            raise RuntimeError("Reader is already processing a file")

        total = source.size
        self.source = source
        self.total_size = total
        self.current_offset = 0
        self.processed_chunks = []
        self.chunks_processed = 0
        self.error = None
        self.summary = None
        self._carry = b""
        self._start_time = time.monotonic()
        self.state = ReaderState.READING
        logger.debug("Reading %s (%d bytes)", source.name, total)

    async def step(self) -> bool:
        """Process at most one chunk; return True while work remains.

        A paused reader does nothing and reports that work remains.
        """
        if self.state is ReaderState.PAUSED:
            return True
        if self.state is not ReaderState.READING:
            await self._release()
            return False

        try:
            if self.current_offset >= self.total_size:
                await self._complete()
                return False
            await self._read_next_chunk()
        except Exception as exc:
            await self._fail(exc)
            return False
        return self.is_reading

    async def read_file(self, source: FileSource) -> ReadSummary | None:
        """Read ``source`` to the end; returns the summary unless it failed or was aborted."""
        self.start(source)
        try:
            while True:
                if self.state is ReaderState.PAUSED:
                    await self._wait_for_resume()
                    continue
                if not await self.step():
                    break
                # Yield to the event loop between chunks.
                await asyncio.sleep(0)
        finally:
            await self._release()
        return self.summary if self.state is ReaderState.COMPLETED else None

    def pause(self) -> None:
        if self.state is ReaderState.READING:
            self.state = ReaderState.PAUSED

    def resume(self) -> None:
        if self.state is ReaderState.PAUSED:
            self.state = ReaderState.READING

    def abort(self) -> None:
        """Stop at the next check point; no further callbacks fire."""
        if self.is_reading:
            self.state = ReaderState.ABORTED
            logger.debug(
                "Aborted %s at offset %d",
                self.source.name if self.source else "<none>",
                self.current_offset,
            )

    async def _wait_for_resume(self) -> None:
        while self.state is ReaderState.PAUSED:
            await asyncio.sleep(self.config.pause_poll_interval)

    async def _read_next_chunk(self) -> None:
        assert self.source is not None
        offset = self.current_offset
        end = min(offset + self.config.chunk_size, self.total_size)

        data = await self.source.read(offset, end)
        if self.state is ReaderState.ABORTED:
            return
        if not data:
            raise EOFError(f"Unexpected end of data at offset {offset}")

        is_last = offset + len(data) >= self.total_size
        chunk = LogChunk(
            id=f"chunk_{offset}",
            offset=offset,
            size=len(data),
            entries=tuple(self._parse_window(offset, data, is_last=is_last)),
            is_last_chunk=is_last,
            processed_at=datetime.now(UTC),
        )

        await emit(self.on_chunk, chunk)
        if self.state is ReaderState.ABORTED:
            return

        self.processed_chunks.append(chunk)
        self.chunks_processed += 1
        self.current_offset = offset + len(data)
        self._manage_memory()

        await emit(self.on_progress, self._progress())

    def _parse_window(self, offset: int, data: bytes, *, is_last: bool) -> list[LogEntry]:
        """Parse the complete lines of a window.

        The trailing partial line is carried into the next window, so entry
        offsets are exact byte offsets regardless of the chunk size.
        """
        buf = self._carry + data
        pos = offset - len(self._carry)
        lines = buf.split(b"\n")
        self._carry = b"" if is_last else lines.pop()

        assert self.source is not None
        name = self.source.name
        entries: list[LogEntry] = []
        for raw in lines:
            line_offset = pos
            pos += len(raw) + 1

            line = raw.decode(self.config.encoding, errors=self.config.decode_errors).rstrip("\r")
            if not line.strip():
                continue
            entry = self.parser.parse(line_offset, line, entry_id=f"{name}:{line_offset}")
            if entry is not None:
                entries.append(entry)
        return entries

    def _manage_memory(self) -> None:
        """Drop the oldest retained chunks once the estimate exceeds the budget."""
        cfg = self.config
        estimated = sum(len(c.entries) for c in self.processed_chunks) * cfg.estimated_entry_bytes
        if estimated > cfg.max_memory_usage and len(self.processed_chunks) > cfg.retained_chunks:
            dropped = len(self.processed_chunks) - cfg.retained_chunks
            del self.processed_chunks[:dropped]
            logger.debug("Evicted %d chunks (estimated %d bytes retained)", dropped, estimated)

    def _progress(self) -> ReadProgress:
        fraction = self.current_offset / self.total_size if self.total_size else 1.0
        eta: float | None = None
        if fraction > 0:
            elapsed = time.monotonic() - self._start_time
            eta = elapsed * (1.0 - fraction) / fraction
        return ReadProgress(
            progress_percent=fraction * 100.0,
            processed_bytes=self.current_offset,
            total_bytes=self.total_size,
            current_chunk_index=self.chunks_processed,
            estimated_time_remaining=eta,
        )

    async def _complete(self) -> None:
        assert self.source is not None
        chunks = self.chunks_processed
        summary = ReadSummary(
            source_name=self.source.name,
            total_chunks=chunks,
            total_size=self.total_size,
            processing_time=time.monotonic() - self._start_time,
            average_chunk_size=(self.total_size / chunks) if chunks else 0.0,
        )
        self.summary = summary
        self.state = ReaderState.COMPLETED
        logger.debug("Finished %s in %d chunks", summary.source_name, chunks)
        await self._release()

        # A completed read stays completed even if the consumer fails here.
        try:
            await emit(self.on_complete, summary)
        except Exception:
            logger.exception("Completion callback failed for %s", summary.source_name)

    async def _fail(self, exc: Exception) -> None:
        if self.state is ReaderState.ABORTED:
            return
        self.error = exc
        self.state = ReaderState.ERRORED
        name = self.source.name if self.source else "<none>"
        logger.error("Failed reading %s at offset %d: %s", name, self.current_offset, exc)
        await self._release()
        await emit(self.on_error, str(exc), exc)

    async def _release(self) -> None:
        if self.source is not None:
            await self.source.close()

    # Retrieval over retained chunks; evicted chunks are no longer visible.

    def get_all_entries(self) -> list[LogEntry]:
        return [e for chunk in self.processed_chunks for e in chunk.entries]

    def get_entries_page(self, page: int = 0, page_size: int = 100) -> EntriesPage:
        if page < 0:
            raise ValueError("page must be >= 0")
        if page_size < 1:
            raise ValueError("page_size must be >= 1")

        entries = self.get_all_entries()
        start = page * page_size
        end = start + page_size
        return EntriesPage(
            entries=entries[start:end],
            page=page,
            page_size=page_size,
            total_entries=len(entries),
            total_pages=math.ceil(len(entries) / page_size),
            has_next_page=end < len(entries),
            has_previous_page=page > 0,
        )

    def search_entries(
        self,
        query: str,
        *,
        case_sensitive: bool = False,
        fields: Sequence[str] = DEFAULT_SEARCH_FIELDS,
        levels: Iterable[LogLevel] = (),
    ) -> list[LogEntry]:
        """Substring search over retained entries, optionally filtered by level."""
        allowed = set(levels)
        needle = query if case_sensitive else query.lower()

        out: list[LogEntry] = []
        for entry in self.get_all_entries():
            if allowed and entry.level not in allowed:
                continue
            for name in fields:
                value = getattr(entry, name, "") or ""
                if not case_sensitive:
                    value = value.lower()
                if needle in value:
                    out.append(entry)
                    break
        return out
