from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from datakit.dataviews.access import DELETE, EDIT, AccessController, Subject, any_record
from datakit.dataviews.data_source import (
    DeletionReport,
    QueryableMixin,
    RecordCache,
    ViewScopedMixin,
    config_id,
    delete_each,
    slice_window,
)
from datakit.dataviews.exceptions import ActionForbidden, InvalidQuery, RecordNotFound
from datakit.dataviews.fields import Field
from datakit.dataviews.query import DataQuery
from datakit.models.post import Post

from ._sql import (
    column_predicate,
    ensure_tables,
    order_clauses,
    parse_int_id,
    plain_value,
    run_in_transaction,
    search_clause,
)

_LOG = logging.getLogger("datakit.sources.content")

CONTENT_COLUMNS: dict[str, str] = {
    "id": "ID",
    "title": "Title",
    "content": "Content",
    "excerpt": "Excerpt",
    "status": "Status",
    "post_type": "Type",
    "slug": "Slug",
    "author_id": "Author",
    "parent_id": "Parent",
    "menu_order": "Menu order",
    "comment_count": "Comment count",
    "mime_type": "MIME type",
    "created_at": "Date",
    "updated_at": "Modified date",
}

PUBLIC_STATUS = "publish"


@dataclass(frozen=True)
class ContentDataSource(QueryableMixin, ViewScopedMixin):
    """Rows of the ``posts`` table limited to some post types and statuses."""

    db: Session
    access: AccessController
    post_types: tuple[str, ...] = ()
    statuses: tuple[str, ...] = (PUBLIC_STATUS,)
    site_url: str = ""
    query: DataQuery = field(default_factory=DataQuery)
    view_id: str | None = None

    @classmethod
    def create(
        cls,
        db: Session,
        access: AccessController,
        post_types=(),
        statuses=(PUBLIC_STATUS,),
        site_url: str = "",
        view_id: str | None = None,
    ) -> "ContentDataSource":
        ensure_tables(db, Post.__tablename__)
        return cls(
            db=db,
            access=access,
            post_types=tuple(post_types or ()),
            statuses=tuple(statuses or ()),
            site_url=site_url,
            view_id=view_id,
        )

    @property
    def id(self) -> str:
        return config_id("content", {"post_types": sorted(self.post_types), "statuses": sorted(self.statuses)})

    def fields(self) -> list[Field]:
        fields = [Field(key, label) for key, label in CONTENT_COLUMNS.items()]
        fields.append(Field("permalink", "Permalink"))
        return fields

    def _column(self, key: str, usage: str):
        if key not in CONTENT_COLUMNS:
            raise InvalidQuery(f'Field "{key}" cannot be used {usage}.')
        return getattr(Post, key)

    def _sees_all(self) -> bool:
        return self.access.can(EDIT, any_record(self.subject_id))

    def _owner_id(self) -> int | None:
        return parse_int_id(self.access.user_id) if self.access.user_id is not None else None

    def _clauses(self) -> list:
        clauses = []
        if self.post_types:
            clauses.append(Post.post_type.in_(self.post_types))
        if self.statuses:
            clauses.append(Post.status.in_(self.statuses))
        if not self._sees_all():
            owner_id = self._owner_id()
            if owner_id is None:
                clauses.append(Post.status == PUBLIC_STATUS)
            else:
                clauses.append(or_(Post.status == PUBLIC_STATUS, Post.author_id == owner_id))
        for item in self.query.filters:
            clauses.append(column_predicate(self._column(item.key, "as a filter"), item))
        if not self.query.search.is_empty():
            clauses.append(search_clause([Post.title, Post.content, Post.excerpt], self.query.search.term))
        return clauses

    def count(self) -> int:
        stmt = select(func.count(Post.id)).where(*self._clauses())
        return int(self.db.scalar(stmt) or 0)

    def list_ids(self, limit: int = 100, offset: int = 0, records: RecordCache | None = None) -> list[str]:
        limit, offset = slice_window(limit, offset)
        stmt = select(Post.id).where(*self._clauses())
        if self.query.sort is not None:
            stmt = stmt.order_by(*order_clauses(self._column(self.query.sort.key, "for sorting"), self.query.sort, Post.id))
        else:
            stmt = stmt.order_by(Post.id.asc())
        return [str(post_id) for post_id in self.db.scalars(stmt.limit(limit).offset(offset))]

    def _in_scope(self, post: Post) -> bool:
        if self.post_types and post.post_type not in self.post_types:
            return False
        return not self.statuses or post.status in self.statuses

    def _load(self, record_id: str) -> Post:
        post_id = parse_int_id(record_id)
        post = self.db.get(Post, post_id) if post_id is not None else None
        if post is None or not self._in_scope(post):
            raise RecordNotFound.with_id(record_id)
        return post

    def _subject(self, post: Post) -> Subject:
        owner = str(post.author_id) if post.author_id is not None else None
        return Subject(self.subject_id, str(post.id), owner_id=owner)

    def _readable(self, post: Post) -> bool:
        if post.status == PUBLIC_STATUS:
            return True
        owner_id = self._owner_id()
        if owner_id is not None and post.author_id == owner_id:
            return True
        return self.access.can(EDIT, self._subject(post))

    def _record(self, post: Post) -> dict[str, Any]:
        record = {key: plain_value(getattr(post, key)) for key in CONTENT_COLUMNS}
        base = self.site_url.rstrip("/")
        record["permalink"] = f"{base}/{post.slug}" if post.slug else f"{base}/?p={post.id}"
        return record

    def get_by_id(self, record_id: str, records: RecordCache | None = None) -> dict[str, Any]:
        if records is not None:
            cached = records.get(self.id, record_id)
            if cached is not None:
                return cached
        post = self._load(record_id)
        if not self._readable(post):
            raise ActionForbidden.with_id(record_id)
        record = self._record(post)
        if records is not None:
            records.put(self.id, record_id, record)
        return record

    def can_delete(self) -> bool:
        return self.access.can(DELETE, Subject(self.subject_id))

    def _delete_one(self, record_id: str) -> None:
        post = self._load(record_id)
        if not self.access.can(DELETE, self._subject(post)):
            raise ActionForbidden.with_id(record_id)
        run_in_transaction(self.db, lambda: self.db.delete(post))
        _LOG.info("content deleted source=%s id=%s", self.id, record_id)

    def delete_by_ids(self, *ids: str) -> DeletionReport:
        return delete_each(ids, self._delete_one)
