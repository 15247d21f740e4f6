"""Shared translation of the filter vocabulary into SQLAlchemy expressions."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

from sqlalchemy import and_, asc, desc, inspect, not_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from datakit.dataviews.exceptions import BackendUnavailable, InvalidQuery
from datakit.dataviews.query import Filter, Operator, Sort


TRUE_WORDS = frozenset({"1", "true", "yes", "y", "on"})
FALSE_WORDS = frozenset({"0", "false", "no", "n", "off"})


def _text(value) -> str:
    text = "" if value is None else str(value).strip()
    if not text:
        raise ValueError("empty")
    return text


def _iso_datetime(text: str) -> datetime:
    return datetime.fromisoformat(text.replace("Z", "+00:00"))


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    text = _text(value).lower()
    if text in TRUE_WORDS or text in FALSE_WORDS:
        return text in TRUE_WORDS
    raise ValueError(text)


def _number_parser(python_type):
    def parse(value):
        if isinstance(value, bool):
            raise ValueError("boolean is not a number")
        if isinstance(value, (int, float, Decimal)):
            return python_type(value)
        # Decimal comma is accepted ("3,14").
        return python_type(_text(value).replace(",", "."))

    return parse


def _parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = _text(value)
    return date.fromisoformat(text) if is_date_only_literal(text) else _iso_datetime(text).date()


def _parse_datetime(value) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif is_date_only_literal(value):
        # A bare date on a timestamp column means the start of that day.
        parsed = datetime.combine(_parse_date(value), datetime.min.time())
    else:
        parsed = _iso_datetime(_text(value))
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=timezone.utc)


def _parse_uuid(value) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(_text(value))


# Column python type -> (parser, name used in error messages). Parsers raise
# ValueError (or InvalidOperation for decimals) on values they cannot read.
VALUE_PARSERS: dict[type, tuple[Callable[[Any], Any], str]] = {
    bool: (_parse_bool, "boolean"),
    int: (_number_parser(int), "number"),
    float: (_number_parser(float), "number"),
    Decimal: (_number_parser(Decimal), "number"),
    date: (_parse_date, "date"),
    datetime: (_parse_datetime, "datetime"),
    uuid.UUID: (_parse_uuid, "uuid"),
    str: (lambda value: "" if value is None else str(value), "text"),
}


def column_python_type(column):
    try:
        return column.property.columns[0].type.python_type
    except (AttributeError, IndexError, NotImplementedError):
        return None


def coerce_filter_value(column, value):
    parser = VALUE_PARSERS.get(column_python_type(column))
    if parser is None:
        return value
    parse, kind = parser
    try:
        return parse(value)
    except (ValueError, TypeError, InvalidOperation):
        raise InvalidQuery(f'Invalid filter value for field "{column.key}" ({kind}).')


def is_date_only_literal(raw_value) -> bool:
    if isinstance(raw_value, date) and not isinstance(raw_value, datetime):
        return True
    if not isinstance(raw_value, str):
        return False
    text = raw_value.strip()
    if not text or "T" in text or " " in text:
        return False
    try:
        date.fromisoformat(text)
        return True
    except ValueError:
        return False


def _all_equal(column, values: list) -> ColumnElement:
    return and_(*[column == value for value in values])


# Single-valued columns: "all of" can only hold when every listed value is the same.
COLUMN_OPERATORS: dict[Operator, Callable[[Any, list], ColumnElement]] = {
    Operator.IS: lambda column, values: column == values[0],
    Operator.IS_NOT: lambda column, values: or_(column != values[0], column.is_(None)),
    Operator.IS_ANY_OF: lambda column, values: column.in_(values),
    Operator.IS_NONE_OF: lambda column, values: or_(column.not_in(values), column.is_(None)),
    Operator.IS_ALL_OF: _all_equal,
    Operator.IS_NOT_ALL_OF: lambda column, values: or_(not_(_all_equal(column, values)), column.is_(None)),
}

# Multi-row (entity/attribute/value) storage. ``has(values)`` is an EXISTS over
# the rows of one attribute whose value is in ``values``.
EAV_OPERATORS: dict[Operator, Callable[[Callable[[list], ColumnElement], list], ColumnElement]] = {
    Operator.IS: lambda has, values: has(values[:1]),
    Operator.IS_NOT: lambda has, values: not_(has(values[:1])),
    Operator.IS_ANY_OF: lambda has, values: has(values),
    Operator.IS_NONE_OF: lambda has, values: not_(has(values)),
    Operator.IS_ALL_OF: lambda has, values: and_(*[has([value]) for value in values]),
    Operator.IS_NOT_ALL_OF: lambda has, values: not_(and_(*[has([value]) for value in values])),
}


def _operator(table: dict, item: Filter):
    translate = table.get(item.operator)
    if translate is None:
        raise InvalidQuery(f'Operator "{item.operator.value}" is not supported.')
    return translate


def column_predicate(column, item: Filter) -> ColumnElement:
    translate = _operator(COLUMN_OPERATORS, item)
    if (
        column_python_type(column) is datetime
        and item.operator in (Operator.IS, Operator.IS_NOT)
        and is_date_only_literal(item.value)
    ):
        day_start = coerce_filter_value(column, item.value)
        day_expr = and_(column >= day_start, column < day_start + timedelta(days=1))
        return day_expr if item.operator is Operator.IS else not_(day_expr)
    return translate(column, [coerce_filter_value(column, value) for value in item.values])


def eav_predicate(has: Callable[[list], ColumnElement], item: Filter) -> ColumnElement:
    translate = _operator(EAV_OPERATORS, item)
    return translate(has, ["" if value is None else str(value) for value in item.values])


def contains_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def search_clause(columns: list, term: str) -> ColumnElement:
    pattern = contains_pattern(term)
    return or_(*[column.ilike(pattern, escape="\\") for column in columns])


def order_clauses(column, sort: Sort, primary_key) -> list:
    ordered = desc(column) if sort.descending else asc(column)
    return [ordered, asc(primary_key)]


def ensure_tables(db: Session, *table_names: str) -> None:
    try:
        inspector = inspect(db.get_bind())
        missing = [name for name in table_names if not inspector.has_table(name)]
    except SQLAlchemyError as exc:
        raise BackendUnavailable(detail="The database cannot be inspected.") from exc
    if missing:
        raise BackendUnavailable(detail=f"Missing tables: {', '.join(missing)}.")


def plain_value(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    return value


def parse_int_id(record_id) -> int | None:
    try:
        return int(str(record_id).strip())
    except (TypeError, ValueError):
        return None


def run_in_transaction(db: Session, work: Callable[[], None]) -> None:
    try:
        work()
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
