# reindexer/core/cursor.py
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Optional, Sequence

from .fetcher_base import Fetcher


@dataclass
class ReindexCursor:
    """
    Persisted iteration state of a reindex: which fetcher is active and at
    what offset, plus the progress counters reported to the host.

    Invariants:
      - 0 <= fetcher_index <= len(fetchers); == len(fetchers) means exhausted
      - offset >= 0 and a multiple of the batch size
      - current_step <= total_steps
    """

    fetcher_index: int = 0
    offset: int = 0
    current_step: int = 0
    total_steps: int = 0
    complete: bool = False

    @classmethod
    def start(cls, total_steps: int) -> "ReindexCursor":
        return cls(total_steps=total_steps, complete=total_steps == 0)

    def current_fetcher(self, fetchers: Sequence[Optional[Fetcher]]) -> Optional[Fetcher]:
        if 0 <= self.fetcher_index < len(fetchers):
            return fetchers[self.fetcher_index]
        return None

    def is_exhausted(self, fetcher_count: int) -> bool:
        return self.fetcher_index >= fetcher_count

    def advance(self, total_documents_for_current: int, batch_size: int) -> None:
        """
        Move one window forward. Crossing the end of the current source moves
        to the next one with the offset reset, so an empty source is left
        after a single call.
        """
        next_offset = self.offset + batch_size
        if next_offset >= total_documents_for_current:
            self.fetcher_index += 1
            self.offset = 0
        else:
            self.offset = next_offset
        self.current_step += 1

    def mark_complete(self) -> None:
        self.complete = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ReindexCursor":
        return cls(
            fetcher_index=int(data.get("fetcher_index", 0)),
            offset=int(data.get("offset", 0)),
            current_step=int(data.get("current_step", 0)),
            total_steps=int(data.get("total_steps", 0)),
            complete=bool(data.get("complete", False)),
        )


__all__ = ["ReindexCursor"]
