"""
Pytest configuration and shared fixtures.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Union

import pytest

from reindexer.core.config import IndexConfiguration
from reindexer.core.errors import ChildJobError
from reindexer.core.fetcher_base import Batch, Fetcher, SequenceFetcher
from reindexer.core.index_job import IndexJob, Indexer, IndexResult
from reindexer.core.registry import FetcherRegistry

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_docs(count: int, prefix: str = "doc") -> List[dict]:
    return [{"id": f"{prefix}-{i}"} for i in range(count)]


class TrackingFetcher(SequenceFetcher):
    """SequenceFetcher that records calls and can fail its next N fetches, or the fetch at given offsets."""

    def __init__(self, documents, fail_fetches: int = 0, fail_offsets=()):
        super().__init__(documents)
        self.fail_fetches = fail_fetches
        self.fail_offsets = set(fail_offsets)
        self.fetch_calls: List[tuple] = []
        self.count_calls = 0
        self.opened = False
        self.closed = False

    def open(self):
        self.opened = True

    def close(self):
        self.closed = True

    def get_total_documents(self) -> int:
        self.count_calls += 1
        return super().get_total_documents()

    def fetch(self, limit: int, offset: int) -> Batch:
        self.fetch_calls.append((limit, offset))
        if self.fail_fetches:
            self.fail_fetches -= 1
            raise ConnectionError("search backend unavailable")
        if offset in self.fail_offsets:
            self.fail_offsets.discard(offset)
            raise ConnectionError("search backend unavailable")
        return super().fetch(limit, offset)


class RecordingIndexer(Indexer):
    """Indexer that keeps every batch it receives. Fails batches containing `fail_on`."""

    def __init__(self, fail_on: Optional[str] = None):
        self.batches: List[Batch] = []
        self.fail_on = fail_on
        self.opened = False
        self.closed = False

    def open(self):
        self.opened = True

    def close(self):
        self.closed = True

    def index_documents(self, documents: Batch) -> IndexResult:
        if self.fail_on and any(d["id"] == self.fail_on for d in documents):
            raise RuntimeError(f"mapping conflict on {self.fail_on}")
        self.batches.append(list(documents))
        return IndexResult(success_count=len(documents))

    @property
    def indexed_ids(self) -> List[str]:
        return [d["id"] for batch in self.batches for d in batch]


class RecordingDispatcher:
    """Dispatcher that records child jobs without running them. Can fail the next N dispatches."""

    def __init__(self, fail_dispatches: int = 0):
        self.jobs: List[IndexJob] = []
        self.fail_dispatches = fail_dispatches

    def open(self):
        pass

    def run(self, job: IndexJob) -> None:
        if self.fail_dispatches:
            self.fail_dispatches -= 1
            raise ChildJobError("queue rejected the index job", job=job)
        self.jobs.append(job)

    def wait(self):
        return (sum(len(j.documents) for j in self.jobs), 0)

    def close(self):
        pass

    @property
    def windows(self) -> List[List[str]]:
        return [[d["id"] for d in job.documents] for job in self.jobs]


SourceSpec = Union[int, Fetcher, None]


@pytest.fixture
def make_registry():
    """
    Build a registry from {source: spec}. An int spec becomes a TrackingFetcher
    over that many documents, a Fetcher is returned as is, and None registers a
    creator that declines. The registry's `calls` list records (source, until).
    """

    def build(sources: Dict[str, SourceSpec]) -> FetcherRegistry:
        registry = FetcherRegistry()
        registry.calls = []  # type: ignore[attr-defined]
        for name, spec in sources.items():
            fetcher = TrackingFetcher(make_docs(spec, name)) if isinstance(spec, int) else spec

            def creator(source, until, _fetcher=fetcher):
                registry.calls.append((source, until))  # type: ignore[attr-defined]
                return _fetcher

            registry.register(name, creator)
        return registry

    return build


@pytest.fixture
def config() -> IndexConfiguration:
    return IndexConfiguration(batch_size=10, sync_interval="1 hour", searchable_base_classes=["Page"])


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def indexer() -> RecordingIndexer:
    return RecordingIndexer()
