from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from datakit.dataviews.data_source import QueryableMixin, RecordCache, slice_window
from datakit.dataviews.evaluate import select_ids
from datakit.dataviews.exceptions import RecordNotFound
from datakit.dataviews.fields import Field, ensure_unique_keys, humanize_key
from datakit.dataviews.query import DataQuery


@dataclass(frozen=True, eq=False)
class MemoryTable:
    """Immutable rows shared by every configured copy of an in-memory source."""

    fields: tuple[Field, ...]
    rows: tuple[tuple[str, dict[str, Any]], ...]
    index: dict[str, dict[str, Any]] = field(init=False, repr=False)

    def __post_init__(self):
        ensure_unique_keys(list(self.fields))
        object.__setattr__(self, "index", {record_id: record for record_id, record in self.rows})

    @property
    def keys(self) -> set[str]:
        return {item.key for item in self.fields}

    @classmethod
    def build(cls, records: Iterable[tuple[str, dict[str, Any]]], labels: dict[str, str] | None = None) -> "MemoryTable":
        rows = tuple((str(record_id), dict(record)) for record_id, record in records)
        if labels is None:
            keys: list[str] = []
            for _, record in rows:
                keys.extend(key for key in record if key not in keys)
            labels = {key: humanize_key(key) for key in keys}
        return cls(fields=tuple(Field(key, label) for key, label in labels.items()), rows=rows)


class MemoryQueryMixin(QueryableMixin):
    """Data source operations over a :class:`MemoryTable` held in ``table``."""

    table: MemoryTable

    def fields(self) -> list[Field]:
        return list(self.table.fields)

    def _matching_ids(self) -> list[str]:
        return select_ids(self.table.rows, self.query, self.table.keys)

    def count(self) -> int:
        return len(self._matching_ids())

    def list_ids(self, limit: int = 100, offset: int = 0, records: RecordCache | None = None) -> list[str]:
        limit, offset = slice_window(limit, offset)
        ids = self._matching_ids()[offset:offset + limit]
        if records is not None:
            for record_id in ids:
                records.put(self.id, record_id, dict(self.table.index[record_id]))
        return ids

    def get_by_id(self, record_id: str, records: RecordCache | None = None) -> dict[str, Any]:
        if records is not None:
            cached = records.get(self.id, record_id)
            if cached is not None:
                return cached
        record = self.table.index.get(str(record_id))
        if record is None:
            raise RecordNotFound.with_id(record_id)
        return dict(record)


@dataclass(frozen=True)
class ArrayDataSource(MemoryQueryMixin):
    name: str
    table: MemoryTable
    query: DataQuery = field(default_factory=DataQuery)

    @property
    def id(self) -> str:
        return f"array-{self.name}"

    @classmethod
    def from_records(
        cls,
        name: str,
        records: dict[str, dict[str, Any]] | list[dict[str, Any]],
        labels: dict[str, str] | None = None,
    ) -> "ArrayDataSource":
        if isinstance(records, dict):
            items = list(records.items())
        else:
            items = [(str(index), record) for index, record in enumerate(records, start=1)]
        return cls(name=name, table=MemoryTable.build(items, labels))
