# reindexer/core/registry.py
from __future__ import annotations

from datetime import datetime
from typing import Callable, Dict, List, Optional, TypeVar

from .fetcher_base import Fetcher

FetcherCreator = Callable[[str, datetime], Optional[Fetcher]]
C = TypeVar("C", bound=FetcherCreator)


class FetcherRegistry:
    """
    Maps source identifiers (record classes) to fetcher creators.
    A creator is called as creator(source, until) and returns a Fetcher, or
    None when it has nothing to reindex for that source.
    Example:
        @register_fetcher("Page")
        def page_fetcher(source, until): ...
    """

    def __init__(self) -> None:
        self._creators: Dict[str, FetcherCreator] = {}
        self._names: Dict[str, str] = {}

    def register(self, source: str, creator: FetcherCreator) -> None:
        key = source.lower()
        if key in self._creators and self._creators[key] is not creator:
            raise ValueError(f"Registry already has a different fetcher for '{source}'")
        self._creators[key] = creator
        self._names.setdefault(key, source)

    def get_creator(self, source: str) -> Optional[FetcherCreator]:
        return self._creators.get(source.lower())

    def get_fetcher(self, source: str, until: datetime) -> Optional[Fetcher]:
        creator = self.get_creator(source)
        if creator is None:
            return None
        return creator(source, until)

    def sources(self) -> List[str]:
        return list(self._names.values())


# Global registry instance and decorator shortcut
_global_registry = FetcherRegistry()


def register_fetcher(source: str) -> Callable[[C], C]:
    def deco(creator: C) -> C:
        _global_registry.register(source, creator)
        return creator

    return deco


def get_registry() -> FetcherRegistry:
    return _global_registry


__all__ = ["FetcherRegistry", "FetcherCreator", "register_fetcher", "get_registry"]
