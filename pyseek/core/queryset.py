from __future__ import annotations

from typing import Any, Generic, TypeVar

from pymongo import ASCENDING, DESCENDING

from pyseek.core.keyset import SortDomain, compose_filters, keyset_page, search_filter
from pyseek.utils.exceptions import InvalidPageRequest
from pyseek.utils.pagination import CursorPage, Page, PageRequest, build_response, calculate_offset
from pyseek.utils.types import DocumentData, FilterSpec, SortSpec, merge_filters
from pyseek.utils.validation import validate_query_result

T = TypeVar("T")


class QuerySet(Generic[T]):
    """Fluent, lazy, immutable query builder for documents.

    Each chainable method returns a new QuerySet instance.
    Queries are only executed when a terminal method is called.
    """

    def __init__(
        self,
        document_class: type[T],
        filter: FilterSpec | None = None,
        sort: SortSpec | None = None,
        skip_count: int = 0,
        limit_count: int = 0,
        search_term: str | None = None,
    ) -> None:
        self._document_class = document_class
        self._filter: FilterSpec = filter or {}
        self._sort: SortSpec = sort or []
        self._skip_count = skip_count
        self._limit_count = limit_count
        self._search_term = search_term

    def _clone(self, **overrides: Any) -> QuerySet[T]:
        """Return a new QuerySet with merged overrides."""
        defaults = {
            "document_class": self._document_class,
            "filter": self._filter.copy(),
            "sort": self._sort.copy(),
            "skip_count": self._skip_count,
            "limit_count": self._limit_count,
            "search_term": self._search_term,
        }
        defaults.update(overrides)
        return QuerySet(**defaults)

    @property
    def query(self) -> FilterSpec:
        """The filter sent to the store: base filter AND search clause."""
        return compose_filters(
            self._filter,
            search_filter(self._search_term, self._document_class._search_fields),
        )

    # --- Chainable methods ---

    def filter(self, _filter: FilterSpec | int | None = None, **kwargs: Any) -> QuerySet[T]:
        """Add filter conditions. Merges with existing filter.

        Examples:
            Item.find().filter(42)  # Filter by id
            Item.find(color="red").filter({"price": {"$lt": 10}})  # Chain filters
        """
        if isinstance(_filter, int):
            _filter = {"_id": _filter}

        merged = merge_filters(self._filter, _filter, **kwargs)
        return self._clone(filter=merged)

    def search(self, term: str | None) -> QuerySet[T]:
        """Match ``term`` against the document's Settings.search_fields.

        A blank term clears the search.
        """
        term = term.strip() if term else None
        return self._clone(search_term=term or None)

    def sort(self, *fields: str) -> QuerySet[T]:
        """Set sort order. Prefix with '-' for descending.

        Example: .sort("-created_at", "name")
        """
        sort_spec: SortSpec = []
        for field in fields:
            if field.startswith("-"):
                sort_spec.append((field[1:], DESCENDING))
            else:
                sort_spec.append((field, ASCENDING))
        return self._clone(sort=sort_spec)

    def skip(self, n: int) -> QuerySet[T]:
        return self._clone(skip_count=n)

    def limit(self, n: int) -> QuerySet[T]:
        return self._clone(limit_count=n)

    # --- Terminal methods ---

    async def _fetch(self, operation: str, filter: FilterSpec, sort: SortSpec, skip: int, limit: int) -> list[DocumentData]:
        doc_cls = self._document_class
        rows = await doc_cls._execute(
            operation,
            lambda store: store.find(doc_cls._collection_name, filter, sort=sort, skip=skip, limit=limit),
            filter=filter,
        )
        return validate_query_result(
            rows, operation_name=f"{doc_cls.__name__}.{operation}", expected_type=list
        )

    async def all(self) -> list[T]:
        """Execute the query and return all matching documents."""
        rows = await self._fetch("find", self.query, self._sort, self._skip_count, self._limit_count)
        return [self._document_class._from_mongo(raw) for raw in rows]

    async def first(self) -> T | None:
        """Return the first matching document, or None."""
        results = await self.limit(1).all()
        return results[0] if results else None

    async def count(self) -> int:
        """Count matching documents."""
        doc_cls = self._document_class
        query = self.query
        total = await doc_cls._execute(
            "count",
            lambda store: store.count(doc_cls._collection_name, query),
            filter=query,
        )
        return validate_query_result(total, operation_name=f"{doc_cls.__name__}.count", expected_type=int)

    async def exists(self) -> bool:
        """Check if any matching documents exist."""
        return await self.count() > 0

    # --- Pagination ---

    async def paginate(self, page: int = 1, limit: int | None = None) -> Page[T]:
        """Offset-based pagination. Returns a Page with items and metadata.

        Without an explicit sort, rows come newest id first; ``_id`` is always
        appended as a tie-breaker so pages never overlap.
        """
        limit = limit or self._document_class._pagination.default_limit
        if page < 1:
            raise InvalidPageRequest("page must be >= 1")
        if limit < 1:
            raise InvalidPageRequest("limit must be >= 1")

        sort = self._sort or [("_id", DESCENDING)]
        if all(name != "_id" for name, _ in sort):
            sort = [*sort, ("_id", DESCENDING)]

        total = await self.count()
        rows = await self._fetch("paginate", self.query, sort, calculate_offset(page, limit), limit)
        return Page(
            items=[self._document_class._from_mongo(raw) for raw in rows],
            pagination=build_response(page, limit, total),
        )

    async def keyset(
        self,
        domain: str | SortDomain,
        request: PageRequest | None = None,
        *,
        limit: int | None = None,
        cursor: str | None = None,
        search: str | None = None,
    ) -> CursorPage[T]:
        """Keyset page over ``domain``, resuming after ``cursor``.

        The query set's own filter and search are ANDed with the domain filter.
        Pass either a PageRequest or the individual ``limit``/``cursor``/``search``.
        """
        doc_cls = self._document_class
        domain = doc_cls.get_sort_domain(domain)
        if request is None:
            request = PageRequest(
                limit=limit or doc_cls._pagination.default_limit,
                cursor=cursor,
                search=search,
            )
        if request.limit > doc_cls._pagination.cursor_max_limit:
            raise InvalidPageRequest(
                f"limit must be <= {doc_cls._pagination.cursor_max_limit}"
            )

        async def fetch(query: FilterSpec, sort: SortSpec, fetch_limit: int) -> list[DocumentData]:
            return await self._fetch(f"keyset:{domain.name}", query, sort, 0, fetch_limit)

        page = await keyset_page(
            fetch,
            domain,
            request,
            base_filter=self.query,
            search_fields=doc_cls._search_fields,
            codec=doc_cls._cursor_codec,
            on_invalid_cursor=doc_cls._invalid_cursor,
        )
        return CursorPage(
            items=[doc_cls._from_mongo(raw) for raw in page.items],
            limit=page.limit,
            next_cursor=page.next_cursor,
            has_more=page.has_more,
        )

    # --- Async iteration ---

    async def __aiter__(self):
        for doc in await self.all():
            yield doc
