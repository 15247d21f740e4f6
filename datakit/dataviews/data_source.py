"""The contract every backend adapter implements.

Adapters are frozen dataclasses carrying their backend configuration plus the
:class:`~datakit.dataviews.query.DataQuery` applied to them. ``filter_by``,
``search_by`` and ``sort_by`` return reconfigured copies, so one adapter value
can be shared by concurrent requests.

Per-call state lives outside the adapter: the orchestrator creates a
:class:`RecordCache` for each call and passes it to both ``list_ids`` and
``get_by_id``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterable, Protocol

from .exceptions import ActionForbidden, DataViewError, RecordNotFound
from .fields import Field
from .query import DataQuery, Filters, Search, Sort


class RecordCache:
    """Hydrated records of one orchestration call, keyed by source and record id."""

    def __init__(self):
        self._records: dict[tuple[str, str], dict[str, Any]] = {}

    def get(self, source_id: str, record_id: str) -> dict[str, Any] | None:
        return self._records.get((source_id, str(record_id)))

    def put(self, source_id: str, record_id: str, record: dict[str, Any]) -> None:
        self._records[(source_id, str(record_id))] = record

    def __len__(self) -> int:
        return len(self._records)


@dataclass
class DeletionReport:
    deleted: list[str] = field(default_factory=list)
    errors: dict[str, DataViewError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


class DataSource(Protocol):
    query: DataQuery

    @property
    def id(self) -> str:
        ...

    def fields(self) -> list[Field]:
        ...

    def count(self) -> int:
        ...

    def list_ids(self, limit: int = 100, offset: int = 0, records: RecordCache | None = None) -> list[str]:
        ...

    def get_by_id(self, record_id: str, records: RecordCache | None = None) -> dict[str, Any]:
        ...

    def filter_by(self, filters: Filters) -> "DataSource":
        ...

    def search_by(self, search: Search | str | None) -> "DataSource":
        ...

    def sort_by(self, sort: Sort | None) -> "DataSource":
        ...


class MutableDataSource(DataSource, Protocol):
    def can_delete(self) -> bool:
        ...

    def delete_by_ids(self, *ids: str) -> DeletionReport:
        ...


def is_mutable(source: Any) -> bool:
    return callable(getattr(source, "can_delete", None)) and callable(getattr(source, "delete_by_ids", None))


class QueryableMixin:
    """``filter_by``/``search_by``/``sort_by`` for dataclass adapters holding a ``query``."""

    query: DataQuery

    def filter_by(self, filters: Filters | list[dict] | None):
        if not isinstance(filters, Filters):
            filters = Filters.from_list(filters)
        return replace(self, query=self.query.with_filters(filters))

    def search_by(self, search: Search | str | None):
        return replace(self, query=self.query.with_search(search))

    def sort_by(self, sort: Sort | None):
        return replace(self, query=self.query.with_sort(sort))


class ViewScopedMixin:
    """Names permission subjects after the registered view the adapter serves.

    Adapters built outside a view fall back to their own ``id``.
    """

    view_id: str | None

    @property
    def subject_id(self) -> str:
        return self.view_id or self.id


def delete_each(ids: Iterable[str], delete_one: Callable[[str], None]) -> DeletionReport:
    """Attempts every id on its own; a failing id never stops the others."""
    report = DeletionReport()
    for record_id in dict.fromkeys(str(item) for item in ids):
        try:
            delete_one(record_id)
        except (RecordNotFound, ActionForbidden) as exc:
            report.errors[record_id] = exc
            continue
        report.deleted.append(record_id)
    return report


def config_id(prefix: str, config: dict[str, Any]) -> str:
    encoded = json.dumps(config, sort_keys=True, default=str, ensure_ascii=False)
    return f"{prefix}-{hashlib.sha1(encoded.encode('utf-8')).hexdigest()[:12]}"


def slice_window(limit: int, offset: int) -> tuple[int, int]:
    return max(int(limit), 0), max(int(offset), 0)
