# reindexer/core/index_job.py
from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Protocol, Tuple

from .base_stage import Stage
from .errors import ChildJobError
from .fetcher_base import Batch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexResult:
    """
    Lightweight result object returned by Indexer.index_documents().
    - success_count: number of documents written to the index
    - error_count: number of documents that failed to write
    - errors: optional short error messages
    """

    success_count: int
    error_count: int = 0
    errors: List[str] | None = None


class Indexer(Stage, ABC):
    """
    Writes one batch of documents to the search index.
    How documents are serialized and how the engine is reached is up to the
    implementation; the reindexer only sees the result counts.
    """

    @abstractmethod
    def index_documents(self, documents: Batch) -> IndexResult:
        """
        Write one batch (MUST be implemented by subclasses).
        Should be idempotent: a batch may be delivered more than once.
        """
        ...


class IndexJob:
    """
    Child unit of work: index a single batch.
    `process_dependencies` tells the host whether finishing this job may
    trigger further dependent work; the reindex job always turns it off.
    """

    def __init__(self, documents: Batch, process_dependencies: bool = True) -> None:
        self.documents = documents
        self.process_dependencies = process_dependencies

    @property
    def title(self) -> str:
        return f"Search service index {len(self.documents)} documents"

    def set_process_dependencies(self, enabled: bool) -> "IndexJob":
        self.process_dependencies = enabled
        return self

    def run(self, indexer: Indexer) -> IndexResult:
        try:
            result = indexer.index_documents(self.documents)
        except Exception as e:
            raise ChildJobError(f"Indexing {len(self.documents)} documents failed: {e}", job=self) from e
        if result.error_count:
            detail = "; ".join(result.errors or [])
            raise ChildJobError(
                f"Indexing failed for {result.error_count} of {len(self.documents)} documents"
                + (f": {detail}" if detail else ""),
                job=self,
            )
        return result


class ChildJobDispatcher(Protocol):
    def open(self) -> None: ...

    def run(self, job: IndexJob) -> None: ...

    def wait(self) -> Tuple[int, int]: ...

    def close(self) -> None: ...


class InlineDispatcher(Stage):
    """Runs each child job synchronously; a failure propagates to the caller."""

    def __init__(self, indexer: Indexer) -> None:
        self.indexer = indexer
        self._total_ok = 0

    def open(self) -> None:
        self.indexer.open()

    def run(self, job: IndexJob) -> None:
        result = job.run(self.indexer)
        self._total_ok += result.success_count

    def wait(self) -> Tuple[int, int]:
        return (self._total_ok, 0)

    def close(self) -> None:
        self.indexer.close()


class ThreadPoolDispatcher(Stage):
    """
    Fire-and-track dispatcher. run() submits the child job to a thread pool
    and returns as soon as it is queued; wait() blocks until every submitted
    job has finished, aggregates counts and raises the first ChildJobError.

    At most `max_pending` jobs (default: twice the worker count) are queued
    or running at once. run() blocks while that many are in flight, so the
    batches held in memory stay bounded however fast pages are fetched.
    """

    def __init__(self, indexer: Indexer, workers: int = 4, max_pending: Optional[int] = None) -> None:
        self.indexer = indexer
        self.workers = max(1, workers)
        self.max_pending = max(1, max_pending or self.workers * 2)
        self._pool: Optional[ThreadPoolExecutor] = None
        self._slots = threading.BoundedSemaphore(self.max_pending)
        self._done = threading.Condition()
        self._in_flight = 0
        self.peak_in_flight = 0
        self._failures: List[BaseException] = []
        self._total_ok = 0
        self._total_err = 0

    @property
    def in_flight(self) -> int:
        with self._done:
            return self._in_flight

    def open(self) -> None:
        self.indexer.open()
        self._pool = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="index-job")

    def run(self, job: IndexJob) -> None:
        if self._pool is None:
            self.open()
        assert self._pool is not None
        self._slots.acquire()
        with self._done:
            self._in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self._in_flight)
        try:
            fut = self._pool.submit(job.run, self.indexer)
        except Exception:
            self._finish()
            raise
        fut.add_done_callback(self._reap)

    def wait(self) -> Tuple[int, int]:
        with self._done:
            while self._in_flight:
                self._done.wait()
            failures, self._failures = self._failures, []
            totals = (self._total_ok, self._total_err)

        if failures:
            first_error = failures[0]
            if isinstance(first_error, ChildJobError):
                raise first_error
            raise ChildJobError(str(first_error)) from first_error
        return totals

    def close(self) -> None:
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None
        self.indexer.close()

    # ---------------------- internals ----------------------

    def _reap(self, fut: Future) -> None:
        err = fut.exception()
        if err is not None:
            logger.error("Index job failed: %s", err)
        with self._done:
            if err is None:
                result: IndexResult = fut.result()
                self._total_ok += result.success_count
            else:
                self._total_err += 1
                self._failures.append(err)
        self._finish()

    def _finish(self) -> None:
        with self._done:
            self._in_flight -= 1
            self._done.notify_all()
        self._slots.release()


__all__ = [
    "IndexResult",
    "Indexer",
    "IndexJob",
    "ChildJobDispatcher",
    "InlineDispatcher",
    "ThreadPoolDispatcher",
]
