# reindexer/core/reindex_job.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from .config import IndexConfiguration
from .cursor import ReindexCursor
from .errors import ConfigurationError, FetchError, JobStateError, ResumeError
from .fetcher_base import Fetcher
from .index_job import ChildJobDispatcher, IndexJob
from .planner import BatchPlan, BatchPlanner
from .registry import FetcherRegistry, get_registry

logger = logging.getLogger(__name__)

STATE_VERSION = 1


class JobType(str, Enum):
    """
    Queue a host should place the job on. Reindexing is QUEUED; IMMEDIATE
    and LARGE are the host's other queues, for jobs that pick them.
    """

    IMMEDIATE = "immediate"
    QUEUED = "queued"
    LARGE = "large"


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"


@dataclass(frozen=True)
class StepReport:
    """What the host needs after setup() or step(): progress and whether to stop."""

    current_step: int
    total_steps: int
    complete: bool


@dataclass
class ReindexState:
    """
    Everything the host must persist between steps. Fetchers are not part of
    it: they are re-resolved from `sources` with the same `until` cutoff.
    """

    only_class: Optional[str]
    batch_size: int
    until: datetime
    sources: List[str] = field(default_factory=list)
    counts: List[int] = field(default_factory=list)
    cursor: ReindexCursor = field(default_factory=ReindexCursor)
    version: int = STATE_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "only_class": self.only_class,
            "batch_size": self.batch_size,
            "until": self.until.isoformat(),
            "sources": list(self.sources),
            "counts": list(self.counts),
            "cursor": self.cursor.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ReindexState":
        version = data.get("version", STATE_VERSION)
        if version != STATE_VERSION:
            raise ResumeError(f"Unsupported reindex state version {version!r}")
        try:
            return cls(
                only_class=data.get("only_class"),
                batch_size=int(data["batch_size"]),
                until=datetime.fromisoformat(data["until"]),
                sources=list(data.get("sources", [])),
                counts=[int(c) for c in data.get("counts", [])],
                cursor=ReindexCursor.from_dict(data.get("cursor", {})),
                version=version,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ResumeError(f"Malformed reindex state: {e}") from e


class ReindexJob:
    """
    Reindexes every searchable source (or only one) in fixed-size batches,
    one batch per step, so the host can persist progress and stop or resume
    between any two steps.

    Lifecycle: PENDING --setup()--> RUNNING --step()*--> COMPLETE.
    setup() goes straight to COMPLETE when there is nothing to index.

    The cursor moves on as soon as a batch is handed to the dispatcher. A
    child job that later fails does not hold iteration back and its batch is
    not retried by this job; only a failure raised synchronously by the
    fetch or the dispatch leaves the cursor in place.
    """

    job_type = JobType.QUEUED

    def __init__(
        self,
        only_class: Optional[str] = None,
        batch_size: Optional[int] = None,
        registry: Optional[FetcherRegistry] = None,
        configuration: Optional[IndexConfiguration] = None,
        dispatcher: Optional[ChildJobDispatcher] = None,
    ) -> None:
        self.configuration = configuration or IndexConfiguration()
        self.registry = registry or get_registry()
        self.only_class = only_class
        self.batch_size = batch_size or self.configuration.batch_size
        if self.batch_size <= 0:
            raise ConfigurationError(f"batch_size must be > 0, got {self.batch_size}")
        self.dispatcher = dispatcher

        self.until: Optional[datetime] = None
        self.plan: Optional[BatchPlan] = None
        self.cursor: Optional[ReindexCursor] = None

    @property
    def title(self) -> str:
        title = "Search service reindex all documents"
        if self.only_class:
            title += f" of class {self.only_class}"
        return title

    @property
    def status(self) -> JobStatus:
        if self.cursor is None:
            return JobStatus.PENDING
        if self.cursor.complete:
            return JobStatus.COMPLETE
        return JobStatus.RUNNING

    @property
    def is_complete(self) -> bool:
        return self.status is JobStatus.COMPLETE

    def set_batch_size(self, batch_size: int) -> "ReindexJob":
        if self.plan is not None:
            raise JobStateError("Cannot change batch size after setup()")
        if batch_size <= 0:
            raise ConfigurationError(f"batch_size must be > 0, got {batch_size}")
        self.batch_size = batch_size
        return self

    # ---------------------- host entry points ----------------------

    def setup(self, now: Optional[datetime] = None) -> StepReport:
        """Size the work and install the cursor. Must be called exactly once."""
        if self.plan is not None:
            raise JobStateError("setup() was already called for this job")

        until = self.configuration.cutoff(now)
        sources = [self.only_class] if self.only_class else list(self.configuration.searchable_base_classes)
        plan = BatchPlanner(self.registry).plan(sources, until, self.batch_size)

        self.until = until
        self.plan = plan
        self.cursor = ReindexCursor.start(plan.total_steps)
        if self.cursor.complete:
            logger.info("%s: nothing to reindex since %s", self.title, until.isoformat())
        return self._report()

    def step(self) -> StepReport:
        """Process exactly one batch and advance the cursor."""
        plan, cursor = self._require_setup()
        if cursor.complete:
            return self._report()

        fetcher = cursor.current_fetcher(plan.fetchers)
        if fetcher is None:
            cursor.mark_complete()
            logger.info("%s: complete after %d steps", self.title, cursor.current_step)
            return self._report()

        if self.dispatcher is None:
            raise JobStateError("No child job dispatcher configured")

        index = cursor.fetcher_index
        source = plan.sources[index]
        offset = cursor.offset
        try:
            documents = fetcher.fetch(self.batch_size, offset)
        except Exception as e:
            logger.error("Fetch failed source=%s offset=%d error=%s", source, offset, e)
            raise FetchError(
                f"Fetching {self.batch_size} documents of '{source}' at offset {offset} failed: {e}",
                source=source,
                offset=offset,
            ) from e

        job = IndexJob(documents).set_process_dependencies(False)
        self.dispatcher.run(job)

        cursor.advance(plan.counts[index], self.batch_size)
        logger.debug(
            "Step %d/%d source=%s offset=%d documents=%d",
            cursor.current_step,
            cursor.total_steps,
            source,
            offset,
            len(documents),
        )

        if cursor.is_exhausted(len(plan.fetchers)):
            cursor.mark_complete()
            logger.info("%s: complete after %d steps", self.title, cursor.current_step)
        return self._report()

    # ---------------------- persistence ----------------------

    @property
    def state(self) -> ReindexState:
        plan, cursor = self._require_setup()
        assert self.until is not None
        return ReindexState(
            only_class=self.only_class,
            batch_size=self.batch_size,
            until=self.until,
            sources=list(plan.sources),
            counts=list(plan.counts),
            cursor=ReindexCursor(**cursor.to_dict()),
        )

    @classmethod
    def resume(
        cls,
        state: ReindexState,
        registry: Optional[FetcherRegistry] = None,
        configuration: Optional[IndexConfiguration] = None,
        dispatcher: Optional[ChildJobDispatcher] = None,
    ) -> "ReindexJob":
        """
        Rebuild a job from persisted state. Sources the cursor has not
        finished yet are re-resolved with the persisted cutoff; finished ones
        keep only their slot. Planned counts are reused, so the step total
        never changes mid-run.
        """
        if len(state.sources) != len(state.counts):
            raise ResumeError("Reindex state has mismatched sources and counts")
        if not 0 <= state.cursor.fetcher_index <= len(state.sources):
            raise ResumeError(f"Cursor fetcher_index {state.cursor.fetcher_index} out of range")

        job = cls(
            only_class=state.only_class,
            batch_size=state.batch_size,
            registry=registry,
            configuration=configuration,
            dispatcher=dispatcher,
        )
        fetchers: List[Optional[Fetcher]] = []
        for index, source in enumerate(state.sources):
            if index < state.cursor.fetcher_index:
                fetchers.append(None)
                continue
            try:
                fetcher = job.registry.get_fetcher(source, state.until)
            except Exception as e:
                raise ResumeError(f"Resolving fetcher for '{source}' failed: {e}") from e
            if fetcher is None:
                raise ResumeError(f"Source '{source}' no longer has a fetcher")
            fetchers.append(fetcher)

        job.until = state.until
        job.plan = BatchPlan(
            total_steps=state.cursor.total_steps,
            fetchers=tuple(fetchers),
            sources=tuple(state.sources),
            counts=tuple(state.counts),
        )
        job.cursor = ReindexCursor(**state.cursor.to_dict())
        logger.info(
            "%s: resumed at step %d/%d (source %d, offset %d)",
            job.title,
            job.cursor.current_step,
            job.cursor.total_steps,
            job.cursor.fetcher_index,
            job.cursor.offset,
        )
        return job

    # ---------------------- internals ----------------------

    def _require_setup(self) -> tuple[BatchPlan, ReindexCursor]:
        if self.plan is None or self.cursor is None:
            raise JobStateError("step() called before setup()")
        return self.plan, self.cursor

    def _report(self) -> StepReport:
        assert self.cursor is not None
        return StepReport(
            current_step=self.cursor.current_step,
            total_steps=self.cursor.total_steps,
            complete=self.cursor.complete,
        )


__all__ = ["ReindexJob", "ReindexState", "StepReport", "JobType", "JobStatus", "STATE_VERSION"]
