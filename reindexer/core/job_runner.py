# reindexer/core/job_runner.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from .config import IndexConfiguration
from .errors import ChildJobError
from .fetcher_base import Fetcher
from .index_job import ChildJobDispatcher, Indexer, ThreadPoolDispatcher
from .reindex_job import JobStatus, ReindexJob, ReindexState

logger = logging.getLogger(__name__)

Checkpoint = Callable[[ReindexState], None]


@dataclass(frozen=True)
class RunSummary:
    steps: int  # steps executed by this run() call
    current_step: int
    total_steps: int
    complete: bool
    indexed: int  # documents reported written by finished child jobs


class JobRunner:
    """
    Minimal local host for a ReindexJob:
      - setup() once if the job is still pending
      - step() until complete (or until max_steps, to suspend voluntarily)
      - hand the job state to `checkpoint` after setup and after every step
      - wait for the dispatched child jobs before returning
    Fetchers and the dispatcher are always closed, in reverse order.
    """

    def __init__(
        self,
        cfg: IndexConfiguration,
        dispatcher: Optional[ChildJobDispatcher] = None,
        checkpoint: Optional[Checkpoint] = None,
    ) -> None:
        self.cfg = cfg
        self.dispatcher = dispatcher
        self.checkpoint = checkpoint

    @classmethod
    def threaded(
        cls, cfg: IndexConfiguration, indexer: Indexer, checkpoint: Optional[Checkpoint] = None
    ) -> "JobRunner":
        """Runner whose child jobs are indexed on a thread pool of cfg.workers threads."""
        dispatcher = ThreadPoolDispatcher(indexer, workers=cfg.workers, max_pending=cfg.max_pending_batches)
        return cls(cfg, dispatcher=dispatcher, checkpoint=checkpoint)

    # ---------------------- public entry points ----------------------

    def run(self, job: ReindexJob, max_steps: Optional[int] = None) -> RunSummary:
        if job.dispatcher is None:
            job.dispatcher = self.dispatcher
        dispatcher = job.dispatcher
        if dispatcher is None:
            raise ValueError("JobRunner needs a dispatcher, either on the runner or on the job")

        fetchers: List[Fetcher] = []
        steps = 0
        dispatcher.open()
        try:
            if job.status is JobStatus.PENDING:
                job.setup()
                self._save(job)
            assert job.plan is not None
            logger.info("Running %s (total_steps=%d)", job.title, job.plan.total_steps)

            for fetcher in job.plan.fetchers:
                if fetcher is None:
                    continue
                fetcher.open()
                fetchers.append(fetcher)

            while not job.is_complete:
                if max_steps is not None and steps >= max_steps:
                    logger.info("Suspending %s after %d steps", job.title, steps)
                    break
                job.step()
                steps += 1
                self._save(job)
        except Exception as step_error:
            # children already dispatched must not fail silently
            child_error = self._drain(dispatcher)
            if child_error is not None:
                step_error.__context__ = child_error
            raise
        else:
            indexed, _ = dispatcher.wait()
        finally:
            # always close in reverse order
            for fetcher in reversed(fetchers):
                fetcher.close()
            dispatcher.close()

        report = job.state.cursor
        return RunSummary(
            steps=steps,
            current_step=report.current_step,
            total_steps=report.total_steps,
            complete=report.complete,
            indexed=indexed,
        )

    # ---------------------- internals ----------------------

    def _drain(self, dispatcher: ChildJobDispatcher) -> Optional[ChildJobError]:
        """Wait for in-flight children after a failed step; return their first failure."""
        try:
            dispatcher.wait()
        except ChildJobError as e:
            logger.error("Child job failed before the run stopped: %s", e)
            return e
        return None

    def _save(self, job: ReindexJob) -> None:
        if self.checkpoint is not None:
            self.checkpoint(job.state)


__all__ = ["JobRunner", "RunSummary", "Checkpoint"]
