"""Entries of one form, stored as entry rows plus one value row per field input.

Composite fields (a name split into first/last, an address, ...) are stored as
their sub-inputs. The parent key reads as the space-joined sub-input values
and a filter on it matches any sub-input.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from sqlalchemy import delete, exists, func, select
from sqlalchemy.orm import Session

from datakit.dataviews.access import DELETE, VIEW, AccessController, Subject
from datakit.dataviews.data_source import (
    DeletionReport,
    QueryableMixin,
    RecordCache,
    ViewScopedMixin,
    delete_each,
    slice_window,
)
from datakit.dataviews.exceptions import ActionForbidden, BackendUnavailable, DataSourceNotFound, InvalidQuery, RecordNotFound
from datakit.dataviews.fields import Field, ensure_unique_keys
from datakit.dataviews.query import DataQuery, Filter, Operator
from datakit.models.form import Form
from datakit.models.form_entry import FormEntry, FormEntryValue
from datakit.models.form_field import FormField

from ._sql import (
    coerce_filter_value,
    column_predicate,
    contains_pattern,
    eav_predicate,
    ensure_tables,
    is_date_only_literal,
    order_clauses,
    parse_int_id,
    plain_value,
    run_in_transaction,
)

_LOG = logging.getLogger("datakit.sources.forms")

ENTRY_COLUMNS: dict[str, str] = {
    "id": "Entry ID",
    "status": "Status",
    "created_by": "Created by",
    "source_url": "Source URL",
    "created_at": "Date created",
}

# Filter keys answered by entry columns rather than field values.
TOP_LEVEL_FILTERS = {"status", "start_date", "end_date", "id", "created_by"}
DEFAULT_STATUS = "active"


@dataclass(frozen=True, eq=False)
class FormSchema:
    form_id: int
    title: str
    fields: tuple[Field, ...]
    composites: dict[str, tuple[str, ...]]

    @property
    def value_keys(self) -> set[str]:
        return {item.key for item in self.fields if item.key not in ENTRY_COLUMNS}


def load_form_schema(db: Session, form_id) -> FormSchema:
    parsed = parse_int_id(form_id)
    form = db.get(Form, parsed) if parsed is not None else None
    if form is None:
        raise DataSourceNotFound(detail=f"The form ID ({form_id}) is not found.")
    rows = db.scalars(
        select(FormField).where(FormField.form_id == form.id).order_by(FormField.sort_order, FormField.id)
    )
    fields = [Field(key, label) for key, label in ENTRY_COLUMNS.items()]
    composites: dict[str, tuple[str, ...]] = {}
    for row in rows:
        fields.append(Field(row.key, row.label))
        sub_keys = []
        for sub in row.inputs or []:
            if not isinstance(sub, dict) or not sub.get("key"):
                continue
            sub_key = str(sub["key"])
            fields.append(Field(sub_key, f"{row.label} ({sub.get('label') or sub_key})", parent=row.key))
            sub_keys.append(sub_key)
        if sub_keys:
            composites[row.key] = tuple(sub_keys)
    try:
        ensure_unique_keys(fields)
    except ValueError as exc:
        raise BackendUnavailable(detail=f"Form {form.id} has an invalid definition: {exc}.") from exc
    return FormSchema(form_id=form.id, title=form.title, fields=tuple(fields), composites=composites)


def _has_value(keys: tuple[str, ...]):
    def has(values: list):
        return exists().where(
            FormEntryValue.entry_id == FormEntry.id,
            FormEntryValue.field_key.in_(keys),
            FormEntryValue.value.in_(values),
        )

    return has


def _single(values: list):
    if not values:
        return None
    return values[0] if len(values) == 1 else list(values)


@dataclass(frozen=True)
class FormDataSource(QueryableMixin, ViewScopedMixin):
    db: Session
    access: AccessController
    schema: FormSchema
    query: DataQuery = field(default_factory=DataQuery)
    view_id: str | None = None

    @classmethod
    def for_form(cls, db: Session, access: AccessController, form_id, view_id: str | None = None) -> "FormDataSource":
        ensure_tables(
            db,
            Form.__tablename__,
            FormField.__tablename__,
            FormEntry.__tablename__,
            FormEntryValue.__tablename__,
        )
        return cls(db=db, access=access, schema=load_form_schema(db, form_id), view_id=view_id)

    @property
    def id(self) -> str:
        return f"forms-{self.schema.form_id}"

    def fields(self) -> list[Field]:
        return list(self.schema.fields)

    def _value_keys_for(self, key: str) -> tuple[str, ...]:
        return self.schema.composites.get(key, (key,))

    def _date_bound(self, item: Filter):
        if item.operator is not Operator.IS:
            raise InvalidQuery(f'Filter "{item.key}" only supports the "is" operator.')
        bound = coerce_filter_value(FormEntry.created_at, item.value)
        if item.key == "start_date":
            return FormEntry.created_at >= bound
        if is_date_only_literal(item.value):
            return FormEntry.created_at < bound + timedelta(days=1)
        return FormEntry.created_at <= bound

    def _clauses(self) -> list:
        clauses = [FormEntry.form_id == self.schema.form_id]
        has_status = False
        for item in self.query.filters:
            key = item.key
            if key in ("start_date", "end_date"):
                clauses.append(self._date_bound(item))
            elif key in TOP_LEVEL_FILTERS:
                has_status = has_status or key == "status"
                clauses.append(column_predicate(getattr(FormEntry, key), item))
            elif key in self.schema.value_keys:
                clauses.append(eav_predicate(_has_value(self._value_keys_for(key)), item))
            else:
                raise InvalidQuery(f'Field "{key}" cannot be used as a filter.')
        if not has_status:
            clauses.append(FormEntry.status == DEFAULT_STATUS)
        if not self.query.search.is_empty():
            clauses.append(
                exists().where(
                    FormEntryValue.entry_id == FormEntry.id,
                    FormEntryValue.value.ilike(contains_pattern(self.query.search.term), escape="\\"),
                )
            )
        return clauses

    def _sort_column(self, key: str):
        if key in ENTRY_COLUMNS:
            return getattr(FormEntry, key)
        if key not in self.schema.value_keys:
            raise InvalidQuery(f'Field "{key}" cannot be used for sorting.')
        return (
            select(FormEntryValue.value)
            .where(FormEntryValue.entry_id == FormEntry.id, FormEntryValue.field_key == self._value_keys_for(key)[0])
            .order_by(FormEntryValue.id)
            .limit(1)
            .scalar_subquery()
        )

    def count(self) -> int:
        return int(self.db.scalar(select(func.count(FormEntry.id)).where(*self._clauses())) or 0)

    def list_ids(self, limit: int = 100, offset: int = 0, records: RecordCache | None = None) -> list[str]:
        limit, offset = slice_window(limit, offset)
        stmt = select(FormEntry.id).where(*self._clauses())
        if self.query.sort is not None:
            stmt = stmt.order_by(*order_clauses(self._sort_column(self.query.sort.key), self.query.sort, FormEntry.id))
        else:
            stmt = stmt.order_by(FormEntry.id.desc())
        ids = [str(entry_id) for entry_id in self.db.scalars(stmt.limit(limit).offset(offset))]
        if records is not None and ids:
            for record_id, record in self._hydrate(ids).items():
                records.put(self.id, record_id, record)
        return ids

    def _hydrate(self, ids: list[str]) -> dict[str, dict[str, Any]]:
        entry_ids = [entry_id for entry_id in (parse_int_id(item) for item in ids) if entry_id is not None]
        if not entry_ids:
            return {}
        rows = self.db.execute(
            select(FormEntry, FormEntryValue)
            .outerjoin(FormEntryValue, FormEntryValue.entry_id == FormEntry.id)
            .where(FormEntry.id.in_(entry_ids), FormEntry.form_id == self.schema.form_id)
            .order_by(FormEntry.id, FormEntryValue.id)
        )
        entries: dict[int, FormEntry] = {}
        values: dict[int, dict[str, list]] = {}
        for entry, value in rows:
            entries[entry.id] = entry
            bucket = values.setdefault(entry.id, {})
            if value is not None:
                bucket.setdefault(value.field_key, []).append(value.value)
        return {str(entry_id): self._record(entry, values[entry_id]) for entry_id, entry in entries.items()}

    def _record(self, entry: FormEntry, values: dict[str, list]) -> dict[str, Any]:
        record = {key: plain_value(getattr(entry, key)) for key in ENTRY_COLUMNS}
        for item in self.schema.fields:
            if item.key not in ENTRY_COLUMNS:
                record[item.key] = _single(values.get(item.key, []))
        for parent, sub_keys in self.schema.composites.items():
            parts = [str(value) for sub_key in sub_keys for value in values.get(sub_key, []) if value not in (None, "")]
            if parts:
                record[parent] = " ".join(parts)
        return record

    def _subject(self, record_id: str, created_by) -> Subject:
        return Subject(self.subject_id, str(record_id), owner_id=str(created_by) if created_by is not None else None)

    def get_by_id(self, record_id: str, records: RecordCache | None = None) -> dict[str, Any]:
        record = records.get(self.id, record_id) if records is not None else None
        if record is None:
            record = self._hydrate([record_id]).get(str(parse_int_id(record_id)))
            if record is None:
                raise RecordNotFound.with_id(record_id)
            if records is not None:
                records.put(self.id, record_id, record)
        if not self.access.can(VIEW, self._subject(record_id, record.get("created_by"))):
            raise ActionForbidden.with_id(record_id)
        return record

    def can_delete(self) -> bool:
        return self.access.can(DELETE, Subject(self.subject_id))

    def _delete_one(self, record_id: str) -> None:
        entry_id = parse_int_id(record_id)
        entry = self.db.get(FormEntry, entry_id) if entry_id is not None else None
        if entry is None or entry.form_id != self.schema.form_id:
            raise RecordNotFound.with_id(record_id)
        if not self.access.can(DELETE, self._subject(record_id, entry.created_by)):
            raise ActionForbidden.with_id(record_id)

        def remove():
            self.db.execute(delete(FormEntryValue).where(FormEntryValue.entry_id == entry.id))
            self.db.delete(entry)

        run_in_transaction(self.db, remove)
        _LOG.info("form entry deleted source=%s id=%s", self.id, record_id)

    def delete_by_ids(self, *ids: str) -> DeletionReport:
        return delete_each(ids, self._delete_one)
