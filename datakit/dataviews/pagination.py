from __future__ import annotations

import math
from dataclasses import dataclass

from .exceptions import InvalidQuery


@dataclass(frozen=True)
class PaginationInfo:
    total: int
    page_count: int
    page: int
    page_size: int

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "pageCount": self.page_count,
            "page": self.page,
            "pageSize": self.page_size,
        }


@dataclass(frozen=True)
class Pagination:
    page: int
    per_page: int

    def __post_init__(self):
        if isinstance(self.page, bool) or not isinstance(self.page, int) or self.page < 1:
            raise InvalidQuery("Page must be an integer of at least 1.")
        if isinstance(self.per_page, bool) or not isinstance(self.per_page, int) or self.per_page < 1:
            raise InvalidQuery("Page size must be a positive integer.")

    @classmethod
    def create(cls, page: int | None, per_page: int | None, *, default_per_page: int, max_per_page: int | None = None) -> "Pagination":
        pagination = cls(page=1 if page is None else page, per_page=default_per_page if per_page is None else per_page)
        if max_per_page is not None and pagination.per_page > max_per_page:
            raise InvalidQuery(f"Page size may not exceed {max_per_page}.")
        return pagination

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page

    def info(self, total: int) -> PaginationInfo:
        total = max(int(total), 0)
        return PaginationInfo(
            total=total,
            page_count=math.ceil(total / self.per_page),
            page=self.page,
            page_size=self.per_page,
        )
