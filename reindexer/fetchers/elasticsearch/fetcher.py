# reindexer/fetchers/elasticsearch/fetcher.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from elasticsearch import Elasticsearch
from reindexer.core.errors import ConfigurationError
from reindexer.core.fetcher_base import Batch, Fetcher
from reindexer.core.registry import FetcherCreator

ClientOrHosts = Union[Elasticsearch, List[str]]


class ElasticsearchFetcher(Fetcher):
    """
    Concrete fetcher that pages through the documents of an Elasticsearch
    index changed since a cutoff.
    Pages use from/size with a total sort order so that a given
    (offset, limit) window always returns the same documents. from + size
    is bounded by the index's max_result_window setting.

    Give either an explicit `sort` or a `tiebreak_field`: a unique keyword
    (doc-values) field sorted after `changed_field`. `_id` is not usable,
    Elasticsearch 8 rejects sorting on it by default.
    """

    def __init__(
        self,
        client_or_hosts: ClientOrHosts,
        index: str,
        until: Optional[datetime] = None,
        changed_field: str = "last_edited",
        sort: Optional[List[Dict[str, Any]]] = None,
        query: Optional[Dict[str, Any]] = None,
        tiebreak_field: Optional[str] = None,
    ):
        if not sort and not tiebreak_field:
            raise ConfigurationError(
                f"ElasticsearchFetcher for '{index}' needs a sort or a unique tiebreak_field"
            )
        if isinstance(client_or_hosts, (list, tuple)):
            self.client: Elasticsearch | None = None
            self.hosts: List[str] = list(client_or_hosts)
            self._owns_client = True
        else:
            self.client = client_or_hosts
            self.hosts = []
            self._owns_client = False
        self.index = index
        self.until = until
        self.changed_field = changed_field
        self.sort = sort or [{changed_field: "asc"}, {tiebreak_field: "asc"}]
        self.query = query or {"match_all": {}}
        self._total: Optional[int] = None

    def open(self) -> None:
        """Initialize Elasticsearch client."""
        if self.client is None:
            self.client = Elasticsearch(self.hosts)

    def build_query(self) -> Dict[str, Any]:
        if self.until is None:
            return self.query
        return {
            "bool": {
                "must": [self.query],
                "filter": [{"range": {self.changed_field: {"gte": self.until.isoformat()}}}],
            }
        }

    def get_total_documents(self) -> int:
        """Count once; later calls return the same (possibly stale) number."""
        if self._total is None:
            resp = self._client().count(index=self.index, query=self.build_query())
            self._total = int(resp["count"])
        return self._total

    def fetch(self, limit: int, offset: int) -> Batch:
        resp = self._client().search(
            index=self.index,
            query=self.build_query(),
            sort=self.sort,
            from_=offset,
            size=limit,
        )
        # Each hit is a dict like {"_id": "...", "_source": {...}}
        return [{"_id": hit["_id"], **hit["_source"]} for hit in resp["hits"]["hits"]]

    def close(self) -> None:
        """Close the client if this fetcher created it."""
        if self.client is not None and self._owns_client:
            self.client.close()
            self.client = None

    def _client(self) -> Elasticsearch:
        if self.client is None:
            self.open()
        assert self.client is not None
        return self.client


def elasticsearch_creator(
    client_or_hosts: ClientOrHosts,
    index_for: Union[Mapping[str, str], Callable[[str], Optional[str]]],
    **options: Any,
) -> FetcherCreator:
    """
    Build a registry creator that maps a source identifier to an index.
    Sources with no index get no fetcher.
    """

    def create(source: str, until: datetime) -> Optional[Fetcher]:
        if callable(index_for):
            index = index_for(source)
        else:
            index = index_for.get(source)
        if not index:
            return None
        return ElasticsearchFetcher(client_or_hosts, index=index, until=until, **options)

    return create


__all__ = ["ElasticsearchFetcher", "elasticsearch_creator"]
