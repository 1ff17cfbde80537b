from __future__ import annotations

import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pyseek.utils.exceptions import InvalidPageRequest

T = TypeVar("T")

_INTEGER = re.compile(r"-?[0-9]{1,18}")


@dataclass(frozen=True)
class PaginationConfig:
    """Limits applied to untrusted pagination input."""

    default_page: int = 1
    default_limit: int = 10
    allowed_limits: tuple[int, ...] = (10, 20, 50)
    max_limit: int = 50
    cursor_max_limit: int = 100

    def __post_init__(self) -> None:
        if self.default_page < 1:
            raise ValueError("default_page must be >= 1")
        if self.default_limit < 1:
            raise ValueError("default_limit must be >= 1")
        if self.cursor_max_limit < 1:
            raise ValueError("cursor_max_limit must be >= 1")
        if any(limit < 1 or limit > self.max_limit for limit in self.allowed_limits):
            raise ValueError("allowed_limits must lie within [1, max_limit]")

    def is_allowed_limit(self, limit: int) -> bool:
        return limit == self.default_limit or limit in self.allowed_limits


DEFAULT_PAGINATION = PaginationConfig()


@dataclass(frozen=True)
class PageParams:
    """Sanitized offset pagination parameters."""

    page: int
    limit: int
    search: str = ""

    @property
    def offset(self) -> int:
        return calculate_offset(self.page, self.limit)


@dataclass(frozen=True)
class OffsetPage:
    """Metadata for a "page N of M" view."""

    page: int
    limit: int
    total: int
    total_pages: int

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    def to_dict(self) -> dict[str, int]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "totalPages": self.total_pages,
        }


@dataclass(frozen=True)
class Page(Generic[T]):
    """Offset-based pagination result."""

    items: list[T]
    pagination: OffsetPage

    def to_dict(self) -> dict[str, Any]:
        return {"items": list(self.items), "pagination": self.pagination.to_dict()}


@dataclass(frozen=True)
class PageRequest:
    """Keyset page request: how many rows, where to resume, what to match."""

    limit: int
    cursor: str | None = None
    search: str | None = None

    def __post_init__(self) -> None:
        if self.limit < 1:
            raise InvalidPageRequest("limit must be >= 1")

    @classmethod
    def from_query(
        cls, raw_query: Mapping[str, Any], config: PaginationConfig | None = None
    ) -> PageRequest:
        """Build a request from untrusted query parameters.

        The limit is clamped to [1, cursor_max_limit]; a non-numeric limit
        falls back to the configured default.
        """
        config = config or DEFAULT_PAGINATION
        limit = _parse_int(raw_query.get("limit"))
        if limit is None:
            limit = config.default_limit
        limit = min(max(1, limit), config.cursor_max_limit)

        cursor = raw_query.get("cursor")
        if not isinstance(cursor, str) or not cursor:
            cursor = None
        search = raw_query.get("search")
        search = search.strip() if isinstance(search, str) else ""
        return cls(limit=limit, cursor=cursor, search=search or None)


@dataclass(frozen=True)
class CursorPage(Generic[T]):
    """Keyset pagination result.

    ``next_cursor`` is set exactly when ``has_more`` is true.
    """

    items: list[T]
    limit: int
    next_cursor: str | None = None
    has_more: bool = False

    def __post_init__(self) -> None:
        if self.has_more != (self.next_cursor is not None):
            raise ValueError("next_cursor must be present if and only if has_more is true")
        if len(self.items) > self.limit:
            raise ValueError("page holds more items than its limit")

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": list(self.items),
            "page": {
                "limit": self.limit,
                "nextCursor": self.next_cursor,
                "hasMore": self.has_more,
            },
        }


def _parse_int(value: Any) -> int | None:
    """Parse a query-string integer strictly; anything else is None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not _INTEGER.fullmatch(value):
        return None
    return int(value)


def parse_params(
    raw_query: Mapping[str, Any], config: PaginationConfig | None = None
) -> PageParams:
    """Sanitize page/limit/search query parameters for offset pagination.

    Out-of-range pages fall back to the default page; limits outside the
    allow-list fall back to the default limit instead of being honored.
    """
    config = config or DEFAULT_PAGINATION

    page = _parse_int(raw_query.get("page"))
    if page is None or page < 1:
        page = config.default_page

    limit = _parse_int(raw_query.get("limit"))
    if limit is None or not config.is_allowed_limit(limit):
        limit = config.default_limit

    search = raw_query.get("search")
    search = search.strip() if isinstance(search, str) else ""

    return PageParams(page=page, limit=limit, search=search)


def calculate_offset(page: int, limit: int) -> int:
    """Rows to skip for a 1-based page number."""
    return max(page - 1, 0) * limit


def build_response(page: int, limit: int, total: int) -> OffsetPage:
    """Compute page metadata. ``total_pages`` is 0 when there are no rows."""
    if limit < 1:
        raise ValueError("limit must be >= 1")
    if total < 0:
        raise ValueError("total must be >= 0")
    total_pages = math.ceil(total / limit) if total > 0 else 0
    return OffsetPage(page=page, limit=limit, total=total, total_pages=total_pages)
