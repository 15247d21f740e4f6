from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any

from datakit.dataviews.data_source import DataSource, RecordCache, slice_window
from datakit.dataviews.fields import Field
from datakit.dataviews.query import DataQuery, Filters, Search, Sort

from .provider import CacheProvider

_LOG = logging.getLogger("datakit.cache")


@dataclass(frozen=True)
class CachedDataSource:
    """Read-through cache for ``count``, ``list_ids`` and ``fields`` of a source.

    Entries are tagged with the wrapped source id, so deleting that tag drops
    every cached page of every query of the source. Records themselves are
    always read from the wrapped source, which keeps per-record permission
    checks live.
    """

    inner: DataSource
    cache: CacheProvider
    ttl: int | None = None
    scope: str = "anonymous"

    @property
    def id(self) -> str:
        return self.inner.id

    @property
    def query(self) -> DataQuery:
        return self.inner.query

    def _key(self, *parts: Any) -> str:
        return ":".join([self.inner.id, self.scope, *[str(part) for part in parts]])

    def _remember(self, key: str, compute):
        cached = self.cache.get(key)
        if cached is not None:
            _LOG.debug("cache hit key=%s", key)
            return cached
        value = compute()
        self.cache.set(key, value, ttl=self.ttl, tags=[self.inner.id])
        return value

    def fields(self) -> list[Field]:
        raw = self._remember(self._key("fields"), lambda: [item.to_dict() for item in self.inner.fields()])
        return [Field(item["id"], item["label"], item.get("parent")) for item in raw]

    def count(self) -> int:
        return int(self._remember(self._key(self.query.digest(), "count"), self.inner.count))

    def list_ids(self, limit: int = 100, offset: int = 0, records: RecordCache | None = None) -> list[str]:
        limit, offset = slice_window(limit, offset)
        key = self._key(self.query.digest(), "ids", limit, offset)
        return [str(item) for item in self._remember(key, lambda: self.inner.list_ids(limit, offset, records))]

    def get_by_id(self, record_id: str, records: RecordCache | None = None) -> dict[str, Any]:
        return self.inner.get_by_id(record_id, records)

    def filter_by(self, filters: Filters | list[dict] | None) -> "CachedDataSource":
        return replace(self, inner=self.inner.filter_by(filters))

    def search_by(self, search: Search | str | None) -> "CachedDataSource":
        return replace(self, inner=self.inner.search_by(search))

    def sort_by(self, sort: Sort | None) -> "CachedDataSource":
        return replace(self, inner=self.inner.sort_by(sort))
