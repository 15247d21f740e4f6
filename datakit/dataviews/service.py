from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

import redis
from sqlalchemy.exc import SQLAlchemyError

from datakit.cache.cached import CachedDataSource
from datakit.cache.provider import CacheProvider

from .access import VIEW, AccessController, Subject
from .data_source import DataSource, DeletionReport, RecordCache, is_mutable
from .exceptions import ActionForbidden, BackendUnavailable, DataViewError, InvalidQuery, RecordNotFound
from .fields import Field
from .pagination import Pagination, PaginationInfo
from .query import Filters, Search, Sort
from .repository import DataSourceDefinition, DataSourceRepository, SourceContext

_LOG = logging.getLogger("datakit.query")


@contextmanager
def backend_errors(view_id: str) -> Iterator[None]:
    """Turns driver level failures into :class:`BackendUnavailable`."""
    try:
        yield
    except DataViewError:
        raise
    except (SQLAlchemyError, OSError, redis.RedisError) as exc:
        _LOG.warning("backend failure view=%s error=%s", view_id, exc)
        raise BackendUnavailable() from exc


@dataclass
class QueryResult:
    data: list[dict[str, Any]]
    pagination: PaginationInfo

    def to_dict(self) -> dict[str, Any]:
        return {"data": self.data, "paginationInfo": self.pagination.to_dict()}


class DataViewQueryService:
    def __init__(self, repository: DataSourceRepository, cache: CacheProvider | None = None, settings=None):
        self.repository = repository
        self.cache = cache
        self.settings = settings

    @property
    def default_per_page(self) -> int:
        return int(getattr(self.settings, "PER_PAGE_DEFAULT", 25))

    @property
    def max_per_page(self) -> int | None:
        return getattr(self.settings, "PER_PAGE_MAX", None)

    @property
    def cache_ttl(self) -> int | None:
        return getattr(self.settings, "CACHE_TTL_SECONDS", None)

    def list_views(self, access: AccessController) -> list[DataSourceDefinition]:
        return [item for item in self.repository.all() if access.can(VIEW, Subject(item.id))]

    def _source(self, view_id: str, db, access: AccessController) -> DataSource:
        definition = self.repository.get(view_id)
        # Permission first: a forbidden caller never reaches the backend.
        if not access.can(VIEW, Subject(view_id)):
            raise ActionForbidden()
        with backend_errors(view_id):
            return definition.build(SourceContext(db=db, access=access, settings=self.settings, view_id=view_id))

    def _readable(self, source: DataSource, access: AccessController) -> DataSource:
        if self.cache is None:
            return source
        return CachedDataSource(inner=source, cache=self.cache, ttl=self.cache_ttl, scope=access.scope)

    def fields(self, view_id: str, db, access: AccessController) -> list[Field]:
        source = self._readable(self._source(view_id, db, access), access)
        with backend_errors(view_id):
            return source.fields()

    def query(
        self,
        view_id: str,
        db,
        access: AccessController,
        *,
        search: Search | str | None = None,
        filters: Filters | list[dict] | None = None,
        sort: Sort | dict | None = None,
        page: int | None = None,
        per_page: int | None = None,
    ) -> QueryResult:
        pagination = Pagination.create(
            page,
            per_page,
            default_per_page=self.default_per_page,
            max_per_page=self.max_per_page,
        )
        if not isinstance(filters, Filters):
            filters = Filters.from_list(filters)
        if isinstance(sort, dict):
            sort = Sort.from_dict(sort)

        source = self._source(view_id, db, access)
        source = source.search_by(search).filter_by(filters).sort_by(sort)
        source = self._readable(source, access)
        records = RecordCache()

        with backend_errors(view_id):
            total = source.count()
            ids = source.list_ids(pagination.per_page, pagination.offset, records)
            data = []
            for record_id in ids:
                try:
                    data.append(source.get_by_id(record_id, records))
                except RecordNotFound:
                    # Removed between listing and reading.
                    _LOG.debug("record vanished view=%s id=%s", view_id, record_id)
        _LOG.info(
            "view query view=%s total=%s page=%s per_page=%s returned=%s",
            view_id,
            total,
            pagination.page,
            pagination.per_page,
            len(data),
        )
        return QueryResult(data=data, pagination=pagination.info(total))

    def get_item(self, view_id: str, record_id: str, db, access: AccessController) -> dict[str, Any]:
        source = self._source(view_id, db, access)
        with backend_errors(view_id):
            return source.get_by_id(str(record_id), RecordCache())

    def delete(self, view_id: str, ids: list[str], db, access: AccessController) -> DeletionReport:
        ids = [str(item) for item in ids or []]
        if not ids:
            raise InvalidQuery("At least one id is required.")
        source = self._source(view_id, db, access)
        if not is_mutable(source):
            raise ActionForbidden()
        with backend_errors(view_id):
            if not source.can_delete():
                raise ActionForbidden()
            report = source.delete_by_ids(*ids)
            if report.deleted and self.cache is not None:
                self.cache.delete_by_tags([source.id])
        _LOG.info(
            "view delete view=%s deleted=%s failed=%s",
            view_id,
            len(report.deleted),
            len(report.errors),
        )
        return report
