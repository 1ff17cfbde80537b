"""Keyset (seek) pagination over a sort domain.

Rows are ordered by ``sort_field DESC, id_field DESC``. A page resumes after
the cursor row with the predicate::

    sort_field < v OR (sort_field = v AND id_field < id)

so rows inserted or deleted ahead of the cursor never shift later pages.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Iterable, TypeVar

from pymongo import DESCENDING

from pyseek.core.cursor import (
    Cursor,
    CursorCodec,
    DelimitedCursorCodec,
    InvalidCursorPolicy,
)
from pyseek.utils.exceptions import InvalidCursor, PyseekError
from pyseek.utils.pagination import CursorPage, PageRequest
from pyseek.utils.types import FilterSpec, SortSpec

logger = logging.getLogger(__name__)

Row = TypeVar("Row")

# fetch(filter, sort, limit) -> rows in sort order
FetchRows = Callable[[FilterSpec, SortSpec, int], Awaitable[list[Row]]]


@dataclass(frozen=True)
class SortDomain:
    """One independently pageable ordering of an entity's rows."""

    name: str
    sort_field: str
    id_field: str = "_id"
    filter: FilterSpec = field(default_factory=dict)

    @property
    def sort_spec(self) -> SortSpec:
        return [(self.sort_field, DESCENDING), (self.id_field, DESCENDING)]

    @property
    def index_keys(self) -> SortSpec:
        """Compound index that serves both the seek predicate and the order."""
        return self.sort_spec

    def key_of(self, row: Any) -> tuple[datetime, int]:
        """Extract ``(sort_value, tiebreak_id)`` from a raw row or a document."""
        sort_value = _read(row, self.sort_field)
        tiebreak_id = _read(row, self.id_field)
        if not isinstance(sort_value, datetime) or not isinstance(tiebreak_id, int):
            raise PyseekError(
                f"Row cannot be positioned in sort domain '{self.name}': "
                f"{self.sort_field}={sort_value!r}, {self.id_field}={tiebreak_id!r}"
            )
        return sort_value, tiebreak_id


def _read(row: Any, name: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(name)
    if name == "_id":
        return getattr(row, "id", None)
    return getattr(row, name, None)


def seek_filter(domain: SortDomain, cursor: Cursor) -> FilterSpec:
    """Rows strictly after ``cursor`` in the domain's descending order."""
    return {
        "$or": [
            {domain.sort_field: {"$lt": cursor.sort_value}},
            {
                domain.sort_field: cursor.sort_value,
                domain.id_field: {"$lt": cursor.tiebreak_id},
            },
        ]
    }


def search_filter(term: str | None, fields: Iterable[str]) -> FilterSpec:
    """Case-insensitive substring match on any of ``fields``.

    A blank term or an empty field list yields an empty filter.
    """
    fields = list(fields)
    if not term or not term.strip() or not fields:
        return {}
    pattern = re.escape(term.strip())
    clauses = [{name: {"$regex": pattern, "$options": "i"}} for name in fields]
    return clauses[0] if len(clauses) == 1 else {"$or": clauses}


def compose_filters(*filters: FilterSpec | None) -> FilterSpec:
    """AND together the non-empty filters.

    ``$and`` keeps each clause intact, so a search or seek clause can never
    replace a key of the domain filter.
    """
    parts = [f for f in filters if f]
    if not parts:
        return {}
    if len(parts) == 1:
        return dict(parts[0])
    return {"$and": parts}


def resolve_cursor(
    domain: SortDomain,
    token: str | None,
    codec: CursorCodec,
    on_invalid: InvalidCursorPolicy = InvalidCursorPolicy.FALLBACK,
) -> Cursor | None:
    """Decode a client cursor for ``domain``.

    Returns None for "start from the first row". Cursors that do not decode or
    that were issued for another domain are either ignored (FALLBACK) or
    rejected with InvalidCursor (REJECT).
    """
    if not token:
        return None

    cursor = codec.decode(token)
    if cursor is None:
        reason = "malformed cursor"
    elif cursor.domain != domain.name:
        reason = f"cursor belongs to sort domain '{cursor.domain}'"
    else:
        return cursor

    if on_invalid is InvalidCursorPolicy.REJECT:
        raise InvalidCursor(f"Invalid cursor for sort domain '{domain.name}': {reason}")
    logger.warning(
        "Ignoring cursor for sort domain '%s' (%s); starting from the first page",
        domain.name,
        reason,
    )
    return None


async def keyset_page(
    fetch: FetchRows,
    domain: SortDomain,
    request: PageRequest,
    *,
    base_filter: FilterSpec | None = None,
    search_fields: Iterable[str] = (),
    codec: CursorCodec | None = None,
    on_invalid_cursor: InvalidCursorPolicy = InvalidCursorPolicy.FALLBACK,
) -> CursorPage[Row]:
    """Fetch one keyset page.

    Asks ``fetch`` for ``limit + 1`` rows; the extra row only signals that
    another page exists and is never returned.

    Args:
        fetch: Coroutine function running (filter, sort, limit) against the store
        domain: Sort domain to page through
        request: Page size, resume cursor and search term
        base_filter: Caller filter, ANDed with the domain filter
        search_fields: Fields the search term is matched against
        codec: Cursor wire format (defaults to the delimited format)
        on_invalid_cursor: Policy for cursors that cannot be used

    Returns:
        CursorPage of the rows returned by ``fetch``
    """
    codec = codec or DelimitedCursorCodec()
    cursor = resolve_cursor(domain, request.cursor, codec, on_invalid_cursor)

    query = compose_filters(
        base_filter,
        domain.filter,
        search_filter(request.search, search_fields),
        seek_filter(domain, cursor) if cursor else None,
    )
    rows = await fetch(query, domain.sort_spec, request.limit + 1)

    has_more = len(rows) > request.limit
    rows = list(rows[: request.limit])

    next_cursor = None
    if has_more:
        sort_value, tiebreak_id = domain.key_of(rows[-1])
        next_cursor = codec.encode(sort_value, tiebreak_id, domain.name)

    logger.debug(
        "Keyset page on '%s': limit=%d cursor=%s search=%s returned=%d has_more=%s",
        domain.name,
        request.limit,
        bool(cursor),
        bool(request.search),
        len(rows),
        has_more,
    )
    return CursorPage(items=rows, limit=request.limit, next_cursor=next_cursor, has_more=has_more)
