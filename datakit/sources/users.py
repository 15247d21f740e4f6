from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import delete, exists, func, select
from sqlalchemy.orm import Session

from datakit.dataviews.access import DELETE, VIEW, AccessController, Subject
from datakit.dataviews.data_source import (
    DeletionReport,
    QueryableMixin,
    RecordCache,
    ViewScopedMixin,
    config_id,
    delete_each,
    slice_window,
)
from datakit.dataviews.exceptions import ActionForbidden, RecordNotFound
from datakit.dataviews.fields import Field, humanize_key
from datakit.dataviews.query import DataQuery, Filter
from datakit.models.user import User, UserMeta

from ._sql import (
    column_predicate,
    eav_predicate,
    ensure_tables,
    order_clauses,
    parse_int_id,
    plain_value,
    run_in_transaction,
    search_clause,
)

_LOG = logging.getLogger("datakit.sources.users")

USER_COLUMNS: dict[str, str] = {
    "id": "ID",
    "login": "Username",
    "email": "Email",
    "display_name": "Display name",
    "nicename": "Nicename",
    "url": "Website",
    "status": "Status",
    "role": "Role",
    "registered_at": "Registration date",
}

SEARCH_COLUMNS = ("login", "email", "url", "nicename", "display_name")


def decode_meta_value(value: str | None):
    text = (value or "").strip()
    if text[:1] in ("[", "{"):
        try:
            return json.loads(text)
        except ValueError:
            return value
    return value


@dataclass(frozen=True)
class UserDataSource(QueryableMixin, ViewScopedMixin):
    """The user directory; any key that is not a ``users`` column is read from ``user_meta``."""

    db: Session
    access: AccessController
    roles: tuple[str, ...] = ()
    query: DataQuery = field(default_factory=DataQuery)
    view_id: str | None = None

    @classmethod
    def create(cls, db: Session, access: AccessController, roles=(), view_id: str | None = None) -> "UserDataSource":
        ensure_tables(db, User.__tablename__, UserMeta.__tablename__)
        return cls(
            db=db,
            access=access,
            roles=tuple(str(role).upper() for role in roles or ()),
            view_id=view_id,
        )

    @property
    def id(self) -> str:
        return config_id("users", {"roles": sorted(self.roles)})

    def _meta_keys(self) -> list[str]:
        stmt = select(UserMeta.meta_key).distinct().order_by(UserMeta.meta_key)
        return [key for key in self.db.scalars(stmt) if key and key not in USER_COLUMNS]

    def fields(self) -> list[Field]:
        fields = [Field(key, label) for key, label in USER_COLUMNS.items()]
        fields.extend(Field(key, humanize_key(key)) for key in self._meta_keys())
        return fields

    def _meta_predicate(self, item: Filter):
        key = item.key

        def has(values: list):
            return exists().where(
                UserMeta.user_id == User.id,
                UserMeta.meta_key == key,
                UserMeta.meta_value.in_(values),
            )

        return eav_predicate(has, item)

    def _clauses(self) -> list:
        clauses = []
        if self.roles:
            clauses.append(User.role.in_(self.roles))
        for item in self.query.filters:
            if item.key in USER_COLUMNS:
                clauses.append(column_predicate(getattr(User, item.key), item))
            else:
                clauses.append(self._meta_predicate(item))
        term = self.query.search.term.strip("*").strip()
        if term:
            clauses.append(search_clause([getattr(User, key) for key in SEARCH_COLUMNS], term))
        return clauses

    def _sort_column(self, key: str):
        if key in USER_COLUMNS:
            return getattr(User, key)
        return (
            select(UserMeta.meta_value)
            .where(UserMeta.user_id == User.id, UserMeta.meta_key == key)
            .order_by(UserMeta.id)
            .limit(1)
            .scalar_subquery()
        )

    def count(self) -> int:
        return int(self.db.scalar(select(func.count(User.id)).where(*self._clauses())) or 0)

    def list_ids(self, limit: int = 100, offset: int = 0, records: RecordCache | None = None) -> list[str]:
        limit, offset = slice_window(limit, offset)
        stmt = select(User.id).where(*self._clauses())
        if self.query.sort is not None:
            stmt = stmt.order_by(*order_clauses(self._sort_column(self.query.sort.key), self.query.sort, User.id))
        else:
            stmt = stmt.order_by(User.id.asc())
        return [str(user_id) for user_id in self.db.scalars(stmt.limit(limit).offset(offset))]

    def _load(self, record_id: str) -> User:
        user_id = parse_int_id(record_id)
        user = self.db.get(User, user_id) if user_id is not None else None
        if user is None or (self.roles and user.role not in self.roles):
            raise RecordNotFound.with_id(record_id)
        return user

    def _subject(self, user: User) -> Subject:
        return Subject(self.subject_id, str(user.id), owner_id=str(user.id))

    def _record(self, user: User) -> dict[str, Any]:
        record = {key: plain_value(getattr(user, key)) for key in USER_COLUMNS}
        rows = self.db.execute(
            select(UserMeta.meta_key, UserMeta.meta_value).where(UserMeta.user_id == user.id).order_by(UserMeta.id)
        )
        meta: dict[str, list] = {}
        for key, value in rows:
            if key in USER_COLUMNS:
                continue
            meta.setdefault(key, []).append(decode_meta_value(value))
        for key, values in meta.items():
            record[key] = values[0] if len(values) == 1 else values
        return record

    def get_by_id(self, record_id: str, records: RecordCache | None = None) -> dict[str, Any]:
        if records is not None:
            cached = records.get(self.id, record_id)
            if cached is not None:
                return cached
        user = self._load(record_id)
        if not self.access.can(VIEW, self._subject(user)):
            raise ActionForbidden.with_id(record_id)
        record = self._record(user)
        if records is not None:
            records.put(self.id, record_id, record)
        return record

    def can_delete(self) -> bool:
        return self.access.can(DELETE, Subject(self.subject_id))

    def _delete_one(self, record_id: str) -> None:
        user = self._load(record_id)
        if self.access.user_id is not None and str(user.id) == str(self.access.user_id):
            raise ActionForbidden.with_id(record_id)
        if not self.access.can(DELETE, self._subject(user)):
            raise ActionForbidden.with_id(record_id)
        def remove():
            self.db.execute(delete(UserMeta).where(UserMeta.user_id == user.id))
            self.db.delete(user)

        run_in_transaction(self.db, remove)
        _LOG.info("user deleted source=%s id=%s", self.id, record_id)

    def delete_by_ids(self, *ids: str) -> DeletionReport:
        return delete_each(ids, self._delete_one)
