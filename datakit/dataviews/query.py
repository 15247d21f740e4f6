from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Iterator

from .exceptions import InvalidQuery
from .fields import strip_field_key


class Operator(str, Enum):
    IS = "is"
    IS_NOT = "is-not"
    IS_ANY_OF = "is-any-of"
    IS_ALL_OF = "is-all-of"
    IS_NONE_OF = "is-none-of"
    IS_NOT_ALL_OF = "is-not-all-of"

    @property
    def takes_list(self) -> bool:
        return self not in (Operator.IS, Operator.IS_NOT)

    @classmethod
    def parse(cls, raw: Any) -> "Operator":
        if isinstance(raw, cls):
            return raw
        text = str(raw or "").strip().lower()
        for member in cls:
            if member.value == text:
                return member
        raise InvalidQuery(f'Unknown filter operator "{raw}".')


def _is_list_value(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


@dataclass(frozen=True)
class Filter:
    field: str
    operator: Operator
    value: Any

    def __post_init__(self):
        if not str(self.field or "").strip():
            raise InvalidQuery("Filter field is required.")
        operator = Operator.parse(self.operator)
        object.__setattr__(self, "operator", operator)
        if operator.takes_list:
            if not _is_list_value(self.value):
                raise InvalidQuery(f'Operator "{operator.value}" expects a list of values for field "{self.field}".')
            values = tuple(self.value)
            if not values:
                raise InvalidQuery(f'Operator "{operator.value}" expects at least one value for field "{self.field}".')
            if any(_is_list_value(item) or isinstance(item, dict) for item in values):
                raise InvalidQuery(f'Filter values for field "{self.field}" must be scalars.')
            object.__setattr__(self, "value", values)
        elif _is_list_value(self.value) or isinstance(self.value, dict):
            raise InvalidQuery(f'Operator "{operator.value}" expects a single value for field "{self.field}".')

    @property
    def key(self) -> str:
        return strip_field_key(self.field)

    @property
    def values(self) -> tuple:
        return self.value if self.operator.takes_list else (self.value,)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Filter":
        if not isinstance(raw, dict):
            raise InvalidQuery("A filter must be an object with field, operator and value.")
        missing = [name for name in ("field", "operator", "value") if name not in raw]
        if missing:
            raise InvalidQuery(f"Filter is missing: {', '.join(missing)}.")
        return cls(field=str(raw["field"]), operator=Operator.parse(raw["operator"]), value=raw["value"])

    def to_dict(self) -> dict[str, Any]:
        value = list(self.value) if self.operator.takes_list else self.value
        return {"field": self.field, "operator": self.operator.value, "value": value}


@dataclass(frozen=True)
class Filters:
    items: tuple[Filter, ...] = ()

    @classmethod
    def of(cls, *filters: Filter) -> "Filters":
        return cls(tuple(filters))

    @classmethod
    def from_list(cls, raw: list[dict[str, Any]] | None) -> "Filters":
        if raw is None:
            return cls()
        if not isinstance(raw, (list, tuple)):
            raise InvalidQuery("Filters must be a list.")
        return cls(tuple(Filter.from_dict(item) for item in raw))

    def __iter__(self) -> Iterator[Filter]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __bool__(self) -> bool:
        return bool(self.items)

    def to_list(self) -> list[dict[str, Any]]:
        return [item.to_dict() for item in self.items]


@dataclass(frozen=True)
class Search:
    term: str = ""

    @classmethod
    def from_value(cls, value: "Search | str | None") -> "Search":
        if isinstance(value, Search):
            return value
        return cls(str(value or "").strip())

    def is_empty(self) -> bool:
        return not self.term.strip()

    def __str__(self) -> str:
        return self.term


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class Sort:
    field: str
    direction: SortDirection = SortDirection.ASC

    def __post_init__(self):
        if not str(self.field or "").strip():
            raise InvalidQuery("Sort field is required.")
        raw = self.direction.value if isinstance(self.direction, SortDirection) else str(self.direction or "").strip().lower()
        try:
            object.__setattr__(self, "direction", SortDirection(raw))
        except ValueError:
            raise InvalidQuery(f'Unknown sort direction "{self.direction}".')

    @property
    def key(self) -> str:
        return strip_field_key(self.field)

    @property
    def descending(self) -> bool:
        return self.direction is SortDirection.DESC

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Sort":
        if not isinstance(raw, dict) or "field" not in raw:
            raise InvalidQuery("Sort must be an object with field and direction.")
        return cls(field=str(raw["field"]), direction=raw.get("direction") or SortDirection.ASC)

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "direction": self.direction.value}


@dataclass(frozen=True)
class DataQuery:
    """The search/filter/sort context a data source is configured with."""

    filters: Filters = field(default_factory=Filters)
    search: Search = field(default_factory=Search)
    sort: Sort | None = None

    def with_filters(self, filters: Filters) -> "DataQuery":
        return replace(self, filters=filters)

    def with_search(self, search: Search | str | None) -> "DataQuery":
        return replace(self, search=Search.from_value(search))

    def with_sort(self, sort: Sort | None) -> "DataQuery":
        return replace(self, sort=sort)

    def digest(self) -> str:
        payload = {
            "filters": self.filters.to_list(),
            "search": self.search.term,
            "sort": self.sort.to_dict() if self.sort else None,
        }
        encoded = json.dumps(payload, sort_keys=True, default=str, ensure_ascii=False)
        return hashlib.sha1(encoded.encode("utf-8")).hexdigest()
