# reindexer/core/base_stage.py
from __future__ import annotations

from abc import ABC
from typing import Any, TypeVar

S = TypeVar("S", bound="Stage")


class Stage(ABC):  # noqa: B024
    """
    Lifecycle base for fetchers, indexers and dispatchers.
    Subclasses override open()/close() when they hold a client, a pool or a
    file handle. The job runner opens every planned fetcher before the first
    step and closes them in reverse order once the run stops, whether it
    completed or failed. Stages also work as context managers.
    """

    def open(self) -> None:  # noqa: B027
        """Acquire resources. Called once before the first fetch/index call."""

    def close(self) -> None:  # noqa: B027
        """Release resources. Safe to call on a stage that was never opened."""

    def __enter__(self: S) -> S:
        self.open()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


__all__ = ["Stage"]
