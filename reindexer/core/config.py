# reindexer/core/config.py
from __future__ import annotations

import re
from dataclasses import dataclass, field, fields
from datetime import datetime, timedelta, timezone
from typing import Any, List, Mapping, Optional, Union

from .errors import ConfigurationError

_UNITS = {
    "second": "seconds",
    "minute": "minutes",
    "hour": "hours",
    "day": "days",
    "week": "weeks",
}
_PART = re.compile(r"^\s*(\d+)\s*([a-z]+?)s?\s*$")


def parse_interval(text: str) -> timedelta:
    """
    Parse a relative interval such as "5 minutes", "1 hour" or
    "1 day, 12 hours" into a timedelta.
    """
    if not text or not text.strip():
        raise ConfigurationError("Sync interval is empty")
    total = timedelta()
    for part in re.split(r",|\band\b", text.lower()):
        match = _PART.match(part)
        if not match or match.group(2) not in _UNITS:
            raise ConfigurationError(f"Cannot parse sync interval '{text}'")
        total += timedelta(**{_UNITS[match.group(2)]: int(match.group(1))})
    return total


@dataclass
class IndexConfiguration:
    """
    Behaviour knobs for reindexing.
    The registry and the fetchers are created by your code; the job only needs
    to know which sources to walk, how far back to look and how big a step is.
    """

    batch_size: int = 100  # documents processed per step
    sync_interval: Union[str, timedelta] = "5 minutes"  # cutoff = now - interval
    searchable_base_classes: List[str] = field(default_factory=list)
    workers: int = 4  # threads for the local child-job dispatcher
    max_pending_batches: Optional[int] = None  # child jobs in flight at once; default 2 x workers

    def __post_init__(self) -> None:
        if not isinstance(self.batch_size, int) or self.batch_size <= 0:
            raise ConfigurationError(f"batch_size must be a positive integer, got {self.batch_size!r}")
        if self.workers < 1:
            raise ConfigurationError(f"workers must be >= 1, got {self.workers!r}")
        if self.max_pending_batches is not None and self.max_pending_batches < 1:
            raise ConfigurationError(f"max_pending_batches must be >= 1, got {self.max_pending_batches!r}")
        # fail early on a bad interval
        self.interval()

    def interval(self) -> timedelta:
        if isinstance(self.sync_interval, timedelta):
            return self.sync_interval
        return parse_interval(self.sync_interval)

    def cutoff(self, now: Optional[datetime] = None) -> datetime:
        """Records changed at or after this instant are reindexed."""
        now = now or datetime.now(timezone.utc)
        return now - self.interval()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "IndexConfiguration":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


__all__ = ["IndexConfiguration", "parse_interval"]
