# reindexer/core/errors.py
from __future__ import annotations

from typing import Any, Optional


class ReindexError(Exception):
    """Base class for every error raised by the reindexer."""


class ConfigurationError(ReindexError):
    """Invalid batch size, sync interval or other configuration input."""


class PlanningError(ReindexError):
    """
    Resolving a fetcher or counting its documents failed during setup.
    No plan is installed; the job does not start.
    """

    def __init__(self, message: str, source: Optional[str] = None) -> None:
        super().__init__(message)
        self.source = source


class FetchError(ReindexError):
    """
    A page retrieval failed inside a step. The cursor is left where it was,
    so retrying the step re-fetches the same window.
    """

    def __init__(self, message: str, source: Optional[str] = None, offset: int = 0) -> None:
        super().__init__(message)
        self.source = source
        self.offset = offset


class ChildJobError(ReindexError):
    """The index job for one batch failed."""

    def __init__(self, message: str, job: Any = None) -> None:
        super().__init__(message)
        self.job = job


class ResumeError(ReindexError):
    """Persisted state cannot be reattached to live fetchers."""


class JobStateError(ReindexError):
    """An operation was called in the wrong lifecycle state (e.g. step() before setup())."""


__all__ = [
    "ReindexError",
    "ConfigurationError",
    "PlanningError",
    "FetchError",
    "ChildJobError",
    "ResumeError",
    "JobStateError",
]
