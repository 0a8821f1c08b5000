"""Bounded-concurrency processing of several files."""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .callbacks import emit
from .config import ReaderConfig
from .parsing import LineParser
from .reader import (
    FileSource,
    LogChunk,
    ProgressiveFileReader,
    ReaderState,
    ReadProgress,
    ReadSummary,
)

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERRORED = "errored"
    ABORTED = "aborted"


@dataclass(slots=True, eq=False)
class FileJob:
    """One file's slot in the queue."""

    id: str
    source: FileSource
    status: JobStatus = JobStatus.QUEUED
    attempts: int = 0
    entry_count: int = 0
    progress: ReadProgress | None = None
    summary: ReadSummary | None = None
    error: str | None = None
    reader: ProgressiveFileReader | None = field(default=None, repr=False)


class FileProcessingQueue:
    """Run at most ``concurrency`` readers at once.

    Callbacks receive the job first, then the reader payload. A failing file
    is reported through ``on_file_error`` and never stops its siblings.
    """

    def __init__(
        self,
        config: ReaderConfig | None = None,
        *,
        concurrency: int | None = None,
        parser: LineParser | None = None,
        on_file_progress: Callable[[FileJob, ReadProgress], Any] | None = None,
        on_file_chunk: Callable[[FileJob, LogChunk], Any] | None = None,
        on_file_complete: Callable[[FileJob, ReadSummary], Any] | None = None,
        on_file_error: Callable[[FileJob, str], Any] | None = None,
    ) -> None:
        self.config = config or ReaderConfig()
        if concurrency is None:
            concurrency = self.config.max_concurrent_files
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.concurrency = concurrency
        self.parser = parser
        self.on_file_progress = on_file_progress
        self.on_file_chunk = on_file_chunk
        self.on_file_complete = on_file_complete
        self.on_file_error = on_file_error

        self.jobs: dict[str, FileJob] = {}
        self._pending: deque[FileJob] = deque()
        self._ids = itertools.count(1)

    @property
    def pending(self) -> list[FileJob]:
        return list(self._pending)

    @property
    def active(self) -> list[FileJob]:
        return [j for j in self.jobs.values() if j.status is JobStatus.PROCESSING]

    def add(self, source: FileSource) -> FileJob:
        job = FileJob(id=f"file-{next(self._ids)}", source=source)
        self.jobs[job.id] = job
        self._pending.append(job)
        return job

    def extend(self, sources: Iterable[FileSource]) -> list[FileJob]:
        return [self.add(s) for s in sources]

    def retry(self, job_id: str) -> FileJob:
        """Re-queue a failed or aborted job; it restarts from offset 0."""
        job = self._require(job_id)
        if job.status not in (JobStatus.ERRORED, JobStatus.ABORTED):
            raise ValueError(f"Only failed or aborted jobs can be retried (job {job_id} is {job.status.value})")
        job.status = JobStatus.QUEUED
        job.entry_count = 0
        job.progress = None
        job.summary = None
        job.error = None
        job.reader = None
        self._pending.append(job)
        return job

    def pause(self, job_id: str) -> None:
        job = self._require(job_id)
        if job.reader is not None:
            job.reader.pause()

    def resume(self, job_id: str) -> None:
        job = self._require(job_id)
        if job.reader is not None:
            job.reader.resume()

    def abort(self, job_id: str) -> None:
        job = self._require(job_id)
        if job.status is JobStatus.QUEUED:
            self._pending.remove(job)
            job.status = JobStatus.ABORTED
        elif job.reader is not None:
            job.reader.abort()

    async def run(self) -> list[FileJob]:
        """Process queued jobs until none remain; returns every known job."""
        worker_count = min(self.concurrency, len(self._pending))
        workers = [asyncio.create_task(self._worker()) for _ in range(worker_count)]
        if workers:
            await asyncio.gather(*workers)
        return list(self.jobs.values())

    async def _worker(self) -> None:
        while self._pending:
            job = self._pending.popleft()
            await self._process(job)

    async def _process(self, job: FileJob) -> None:
        job.status = JobStatus.PROCESSING
        job.attempts += 1

        async def on_progress(progress: ReadProgress) -> None:
            job.progress = progress
            await emit(self.on_file_progress, job, progress)

        async def on_chunk(chunk: LogChunk) -> None:
            job.entry_count += len(chunk.entries)
            await emit(self.on_file_chunk, job, chunk)

        async def on_complete(summary: ReadSummary) -> None:
            job.summary = summary
            job.status = JobStatus.COMPLETED
            await emit(self.on_file_complete, job, summary)

        async def on_error(message: str, exc: BaseException) -> None:
            job.error = message
            job.status = JobStatus.ERRORED
            await emit(self.on_file_error, job, message)

        reader = ProgressiveFileReader(
            self.config,
            parser=self.parser,
            on_progress=on_progress,
            on_chunk=on_chunk,
            on_complete=on_complete,
            on_error=on_error,
        )
        job.reader = reader

        try:
            await reader.read_file(job.source)
        except Exception as exc:
            # Failures outside the read loop (e.g. the file vanished before start).
            logger.error("Could not start %s: %s", job.source.name, exc)
            await on_error(str(exc), exc)
            return

        if reader.state is ReaderState.ABORTED:
            job.status = JobStatus.ABORTED

    def _require(self, job_id: str) -> FileJob:
        job = self.jobs.get(job_id)
        if job is None:
            raise KeyError(f"Unknown job id: {job_id}")
        return job


async def process_files(
    sources: Iterable[FileSource],
    config: ReaderConfig | None = None,
    *,
    concurrency: int | None = None,
    parser: LineParser | None = None,
    on_file_progress: Callable[[FileJob, ReadProgress], Any] | None = None,
    on_file_chunk: Callable[[FileJob, LogChunk], Any] | None = None,
    on_file_complete: Callable[[FileJob, ReadSummary], Any] | None = None,
    on_file_error: Callable[[FileJob, str], Any] | None = None,
) -> list[FileJob]:
    """Queue ``sources`` and process them with bounded concurrency."""
    queue = FileProcessingQueue(
        config,
        concurrency=concurrency,
        parser=parser,
        on_file_progress=on_file_progress,
        on_file_chunk=on_file_chunk,
        on_file_complete=on_file_complete,
        on_file_error=on_file_error,
    )
    queue.extend(sources)
    return await queue.run()
