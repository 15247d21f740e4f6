"""In-memory evaluation of a :class:`DataQuery` over plain record dicts.

Values are compared by their string form, which is what file backed sources
hold anyway. List-valued record fields match on membership.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable

from .exceptions import InvalidQuery
from .query import DataQuery, Filter, Operator, Search, Sort


def _norm(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value).strip()


def _record_values(value: Any) -> list[str]:
    if isinstance(value, (list, tuple, set)):
        return [_norm(item) for item in value]
    return [_norm(value)]


MEMORY_OPERATORS: dict[Operator, Callable[[list[str], list[str]], bool]] = {
    Operator.IS: lambda actual, expected: expected[0] in actual,
    Operator.IS_NOT: lambda actual, expected: expected[0] not in actual,
    Operator.IS_ANY_OF: lambda actual, expected: any(item in actual for item in expected),
    Operator.IS_NONE_OF: lambda actual, expected: not any(item in actual for item in expected),
    Operator.IS_ALL_OF: lambda actual, expected: all(item in actual for item in expected),
    Operator.IS_NOT_ALL_OF: lambda actual, expected: not all(item in actual for item in expected),
}


def matches_filter(record: dict[str, Any], item: Filter) -> bool:
    evaluate = MEMORY_OPERATORS.get(item.operator)
    if evaluate is None:
        raise InvalidQuery(f'Operator "{item.operator.value}" is not supported.')
    return evaluate(_record_values(record.get(item.key)), [_norm(value) for value in item.values])


def matches_search(record: dict[str, Any], search: Search) -> bool:
    if search.is_empty():
        return True
    needle = search.term.lower()
    for value in record.values():
        if any(needle in text.lower() for text in _record_values(value)):
            return True
    return False


def natural_key(value: Any) -> tuple:
    text = _norm(value[0] if isinstance(value, (list, tuple)) and value else value)
    try:
        return (0, float(text), "")
    except ValueError:
        return (1, 0.0, text.lower())


def check_keys(query: DataQuery, known_keys: set[str]) -> None:
    for item in query.filters:
        if item.key not in known_keys:
            raise InvalidQuery(f'Field "{item.key}" cannot be used as a filter.')
    if query.sort is not None and query.sort.key not in known_keys:
        raise InvalidQuery(f'Field "{query.sort.key}" cannot be used for sorting.')


def select_ids(rows: Iterable[tuple[str, dict[str, Any]]], query: DataQuery, known_keys: set[str]) -> list[str]:
    """Ids of the rows matching ``query``, in sort order (source order when unsorted)."""
    check_keys(query, known_keys)
    matched = [
        (record_id, record)
        for record_id, record in rows
        if matches_search(record, query.search) and all(matches_filter(record, item) for item in query.filters)
    ]
    sort: Sort | None = query.sort
    if sort is not None:
        # Stable sort keeps source order as the tie-breaker.
        matched.sort(key=lambda row: natural_key(row[1].get(sort.key)), reverse=sort.descending)
    return [record_id for record_id, _ in matched]
