# reindexer/core/planner.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .errors import ConfigurationError, PlanningError
from .fetcher_base import Fetcher
from .registry import FetcherRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchPlan:
    """
    The work of one reindex, sized once at setup.
    - fetchers: resolved fetchers, in walk order (None for a source a resumed
      job has already finished)
    - sources: the identifier each fetcher was resolved from
    - counts: each fetcher's document count at planning time
    """

    total_steps: int
    fetchers: Tuple[Optional[Fetcher], ...] = ()
    sources: Tuple[str, ...] = ()
    counts: Tuple[int, ...] = ()

    @property
    def complete(self) -> bool:
        return self.total_steps == 0


def steps_for(total_documents: int, batch_size: int) -> int:
    """Number of windows needed to cover total_documents; a partial window counts as one."""
    if total_documents <= 0:
        return 0
    return -(-total_documents // batch_size)


class BatchPlanner:
    def __init__(self, registry: FetcherRegistry) -> None:
        self.registry = registry

    def plan(self, sources: Iterable[str], until: datetime, batch_size: int) -> BatchPlan:
        """
        Resolve one fetcher per source identifier and count the steps needed.
        Sources without a fetcher are skipped. Any failure while resolving or
        counting aborts planning with PlanningError.
        """
        if batch_size <= 0:
            raise ConfigurationError(f"batch_size must be > 0, got {batch_size}")

        resolved: Dict[str, Fetcher] = {}
        seen: Set[str] = set()
        for source in sources:
            # registry keys are case-insensitive
            if source.lower() in seen:
                continue
            seen.add(source.lower())
            try:
                fetcher = self.registry.get_fetcher(source, until)
            except Exception as e:
                raise PlanningError(f"Resolving fetcher for '{source}' failed: {e}", source=source) from e
            if fetcher is None:
                logger.debug("No fetcher for source=%s, skipping", source)
                continue
            resolved[source] = fetcher

        planned: List[Tuple[str, Fetcher, int]] = []
        for source, fetcher in resolved.items():
            try:
                count = int(fetcher.get_total_documents())
            except Exception as e:
                raise PlanningError(f"Counting documents for '{source}' failed: {e}", source=source) from e
            # an empty source never becomes the current fetcher
            if count <= 0:
                logger.debug("Source %s has no documents since %s, skipping", source, until)
                continue
            planned.append((source, fetcher, count))

        counts = [count for _, _, count in planned]
        total_steps = sum(steps_for(c, batch_size) for c in counts)
        logger.info(
            "Planned reindex sources=%d documents=%d batch_size=%d total_steps=%d",
            len(planned),
            sum(counts),
            batch_size,
            total_steps,
        )
        return BatchPlan(
            total_steps=total_steps,
            fetchers=tuple(f for _, f, _ in planned),
            sources=tuple(s for s, _, _ in planned),
            counts=tuple(counts),
        )


__all__ = ["BatchPlan", "BatchPlanner", "steps_for"]
