# reindexer/core/fetcher_base.py
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Optional

from .base_stage import Stage

Document = Dict[str, Any]
Batch = List[Document]


class Fetcher(Stage, ABC):
    """
    Abstract base for all fetchers. A fetcher covers the records of one source
    changed since a cutoff, and serves them in offset/limit windows.

    fetch() must return an ordered, deterministic page for a given
    (limit, offset) pair as long as the source is not mutated underneath it;
    windowed reindexing relies on that ordering.
    """

    @abstractmethod
    def get_total_documents(self) -> int:
        """Number of eligible records. May be stale if called again later."""
        ...

    @abstractmethod
    def fetch(self, limit: int, offset: int) -> Batch:
        """Return at most `limit` documents starting at `offset`."""
        ...

    def iter_batches(self, batch_size: int) -> Iterator[Batch]:
        """Walk every page with fetch(). Stops at the first short or empty page."""
        offset = 0
        while True:
            batch = self.fetch(batch_size, offset)
            if batch:
                yield batch
            if len(batch) < batch_size:
                return
            offset += batch_size


class SequenceFetcher(Fetcher):
    """
    In-memory fetcher over a fixed list of documents.
    When `changed_field` and `until` are both given, only documents whose
    field is set and >= until are kept. The list is snapshotted on creation.
    """

    def __init__(
        self,
        documents: Iterable[Document],
        until: Optional[datetime] = None,
        changed_field: Optional[str] = None,
    ) -> None:
        docs = list(documents)
        if changed_field and until is not None:
            docs = [d for d in docs if d.get(changed_field) is not None and d[changed_field] >= until]
        self._documents: Batch = docs

    def get_total_documents(self) -> int:
        return len(self._documents)

    def fetch(self, limit: int, offset: int) -> Batch:
        return self._documents[offset : offset + limit]


__all__ = ["Fetcher", "SequenceFetcher", "Document", "Batch"]
