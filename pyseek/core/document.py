from __future__ import annotations

from typing import Any, Awaitable, Callable, ClassVar, Optional, Self, TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from pyseek.core.queryset import QuerySet

from pydantic import BaseModel, Field, PrivateAttr

from pyseek.core.connection import get_store
from pyseek.core.cursor import MAX_TIEBREAK_ID, CursorCodec, InvalidCursorPolicy, get_codec
from pyseek.core.keyset import SortDomain
from pyseek.core.store import Store
from pyseek.lifecycle.observability import track_query
from pyseek.utils.exceptions import DocumentNotFound, UnknownSortDomain
from pyseek.utils.pagination import (
    DEFAULT_PAGINATION,
    CursorPage,
    Page,
    PageRequest,
    PaginationConfig,
)
from pyseek.utils.retry import DEFAULT_RETRY_POLICY, RetryPolicy, execute_with_retry
from pyseek.utils.settings import SettingsResolver
from pyseek.utils.types import DocumentData, FilterSpec, merge_filters
from pyseek.utils.validation import validate_query_result

R = TypeVar("R")

# Global registry mapping class name -> Document subclass
_document_registry: dict[str, type[Document]] = {}


class Document(BaseModel):
    """Base document class.

    Provides CRUD operations, automatic collection binding, and keyset/offset
    pagination. Every store call runs through the retry executor using the
    class retry policy.
    """

    model_config = {"populate_by_name": True}

    id: Optional[int] = Field(default=None, alias="_id", ge=0)

    # Private state
    _is_new: bool = PrivateAttr(default=True)

    # Resolved from Settings in __init_subclass__
    _collection_name: ClassVar[str] = ""
    _connection_alias: ClassVar[str] = "default"
    _retry_policy: ClassVar[RetryPolicy] = DEFAULT_RETRY_POLICY
    _cursor_codec: ClassVar[CursorCodec] = get_codec("delimited")
    _invalid_cursor: ClassVar[InvalidCursorPolicy] = InvalidCursorPolicy.FALLBACK
    _search_fields: ClassVar[tuple[str, ...]] = ()
    _pagination: ClassVar[PaginationConfig] = DEFAULT_PAGINATION

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)

        cls._collection_name = SettingsResolver.get_collection_name(cls)
        cls._connection_alias = SettingsResolver.get_connection_alias(cls)
        cls._retry_policy = SettingsResolver.get_retry_policy(cls)
        cls._cursor_codec = SettingsResolver.get_cursor_codec(cls)
        cls._invalid_cursor = SettingsResolver.get_invalid_cursor_policy(cls)
        cls._search_fields = SettingsResolver.get_search_fields(cls)
        cls._pagination = SettingsResolver.get_pagination(cls)

        # Register in global registry
        _document_registry[cls.__name__] = cls

    # --- Serialization ---

    def _to_mongo(self) -> DocumentData:
        """Convert document to a store-compatible dict."""
        data = self.model_dump(by_alias=True, mode="python")
        # Remove None _id (for new documents)
        if data.get("_id") is None:
            data.pop("_id", None)
        return data

    @classmethod
    def _from_mongo(cls, data: DocumentData) -> Self:
        """Create a document instance from stored data."""
        doc = cls.model_validate(data)
        doc._is_new = False
        return doc

    # --- Store access ---

    @classmethod
    def get_store(cls) -> Store:
        """Get the store this document class is bound to."""
        return get_store(cls._connection_alias)

    @classmethod
    async def _execute(
        cls,
        operation: str,
        call: Callable[[Store], Awaitable[R]],
        *,
        filter: FilterSpec | None = None,
        update: dict[str, Any] | None = None,
        counts_rows: bool = True,
    ) -> R:
        """Run one store call under tracing and the class retry policy."""
        store = cls.get_store()
        async with track_query(
            operation,
            cls._collection_name,
            cls.__name__,
            filter=filter,
            update=update,
            store=store.system,
        ) as ctx:

            def count_retry(retry_number: int, error: BaseException, delay_ms: float) -> None:
                ctx["retries"] = retry_number

            result = await execute_with_retry(
                lambda: call(store),
                cls._retry_policy,
                operation_name=f"{cls.__name__}.{operation}",
                on_retry=count_retry,
            )
            if counts_rows and isinstance(result, list):
                ctx["result_count"] = len(result)
            elif counts_rows and isinstance(result, int) and not isinstance(result, bool):
                ctx["result_count"] = result
        return result

    # --- Sort domains ---

    @classmethod
    def _default_sort_domains(cls) -> dict[str, SortDomain]:
        return {}

    @classmethod
    def sort_domains(cls) -> dict[str, SortDomain]:
        """All keyset sort domains of this class, by name.

        Mixins contribute defaults; Settings.sort_domains adds or replaces.
        """
        domains = dict(cls._default_sort_domains())
        settings = getattr(cls, "Settings", None)
        for domain in getattr(settings, "sort_domains", ()):
            domains[domain.name] = domain
        return domains

    @classmethod
    def get_sort_domain(cls, domain: str | SortDomain) -> SortDomain:
        if isinstance(domain, SortDomain):
            return domain
        try:
            return cls.sort_domains()[domain]
        except KeyError:
            raise UnknownSortDomain(
                f"{cls.__name__} has no sort domain '{domain}'. "
                f"Available: {', '.join(sorted(cls.sort_domains())) or 'none'}"
            )

    # --- Indexing ---

    @classmethod
    async def ensure_indexes(cls) -> list[str]:
        """Create one (sort DESC, _id DESC) index per sort domain.

        Returns list of created index names.
        """
        index_names: list[str] = []
        for domain in cls.sort_domains().values():
            name = await cls._execute(
                "create_index",
                lambda store, d=domain: store.create_index(
                    cls._collection_name, d.index_keys, name=f"keyset_{d.name}"
                ),
            )
            index_names.append(name)
        return index_names

    # --- Pagination ---

    @classmethod
    async def keyset_page(
        cls,
        domain: str | SortDomain,
        request: PageRequest | None = None,
        *,
        limit: int | None = None,
        cursor: str | None = None,
        search: str | None = None,
    ) -> CursorPage[Self]:
        """One keyset page of a sort domain.

        The domain filter alone decides which rows belong to the domain, so
        this queries the whole collection rather than ``find()``.
        """
        from pyseek.core.queryset import QuerySet

        return await QuerySet(cls).keyset(
            domain, request, limit=limit, cursor=cursor, search=search
        )

    @classmethod
    async def paginate(cls, page: int = 1, limit: int | None = None, search: str | None = None) -> Page[Self]:
        """Offset page of ``find()`` results, newest id first."""
        return await cls.find().search(search).paginate(page, limit)

    # --- Class-level CRUD ---

    @classmethod
    async def create(cls, **kwargs: Any) -> Self:
        """Create and insert a new document."""
        doc = cls(**kwargs)
        await doc.insert()
        return doc

    @classmethod
    def _coerce_id(cls, id: int | str) -> int:
        if isinstance(id, str):
            if not id.isascii() or not id.isdigit() or len(id) > len(str(MAX_TIEBREAK_ID)):
                raise DocumentNotFound(f"{cls.__name__} with id '{id[:32]}' not found")
            id = int(id)
        if not 0 <= id <= MAX_TIEBREAK_ID:
            raise DocumentNotFound(f"{cls.__name__} with id '{id}' not found")
        return id

    @classmethod
    async def get(cls, id: int | str) -> Self:
        """Find a document by its _id. Raises DocumentNotFound if missing."""
        id = cls._coerce_id(id)
        data = await cls._execute(
            "get",
            lambda store: store.find_one(cls._collection_name, {"_id": id}),
            filter={"_id": id},
        )
        if data is None:
            raise DocumentNotFound(f"{cls.__name__} with id '{id}' not found")
        return cls._from_mongo(validate_query_result(data, operation_name=f"{cls.__name__}.get", expected_type=dict))

    @classmethod
    async def find_one(cls, filter: FilterSpec | None = None, **kwargs: Any) -> Self | None:
        """Find a single document matching the filter."""
        filter = merge_filters(filter, **kwargs)
        data = await cls._execute(
            "find_one",
            lambda store: store.find_one(cls._collection_name, filter),
            filter=filter,
        )
        if data is None:
            return None
        return cls._from_mongo(data)

    @classmethod
    def find(cls, filter: FilterSpec | None = None, **kwargs: Any) -> "QuerySet[Self]":
        """Return a QuerySet for fluent query building.

        Args:
            filter: MongoDB-style filter criteria
            **kwargs: Additional filter criteria

        Returns:
            QuerySet for this document type
        """
        from pyseek.core.queryset import QuerySet

        merged = merge_filters(filter, **kwargs)
        return QuerySet(cls, merged)

    # --- Instance-level CRUD ---

    async def insert(self) -> None:
        """Insert this document; the store assigns an integer id when missing.

        The id is allocated before the write, so a retried insert resends the
        same ``_id`` and fails with DuplicateKeyError instead of storing a
        second copy.
        """
        cls = self.__class__
        data = self._to_mongo()
        if data.get("_id") is None:
            data["_id"] = await cls._execute(
                "next_id",
                lambda store: store.next_id(cls._collection_name),
                counts_rows=False,
            )
        stored = await cls._execute(
            "insert", lambda store: store.insert(cls._collection_name, data)
        )
        stored = validate_query_result(stored, operation_name=f"{cls.__name__}.insert", expected_type=dict)
        self.id = stored["_id"]
        self._is_new = False

    async def save(self) -> None:
        """Insert if new, otherwise write every field back."""
        if self._is_new:
            await self.insert()
            return

        cls = self.__class__
        fields = self._to_mongo()
        fields.pop("_id", None)
        matched = await cls._execute(
            "save",
            lambda store: store.update_one(cls._collection_name, {"_id": self.id}, {"$set": fields}),
            filter={"_id": self.id},
            update=fields,
        )
        if not matched:
            raise DocumentNotFound(f"{cls.__name__} with id '{self.id}' not found")

    async def update(self, **kwargs: Any) -> None:
        """Atomic partial update: validate fields and values, update in store, and refresh local state.

        Args:
            **kwargs: Field names and values to update

        Raises:
            ValueError: If field doesn't exist or value is invalid
        """
        from pydantic import ValidationError

        cls = self.__class__
        for key in kwargs:
            if key not in cls.model_fields or key == "id":
                raise ValueError(f"Unknown field: {key}")

        try:
            current_data = self.model_dump(mode="python")
            current_data.update(kwargs)
            validated = cls.model_validate(current_data)
        except ValidationError as e:
            raise ValueError(f"Invalid update values: {e}") from e

        changes = {key: getattr(validated, key) for key in kwargs}
        matched = await cls._execute(
            "update",
            lambda store: store.update_one(cls._collection_name, {"_id": self.id}, {"$set": changes}),
            filter={"_id": self.id},
            update=changes,
        )
        if not matched:
            raise DocumentNotFound(f"{cls.__name__} with id '{self.id}' not found")
        for key, value in changes.items():
            object.__setattr__(self, key, value)

    async def delete(self) -> None:
        """Delete this document from the store."""
        cls = self.__class__
        await cls._execute(
            "delete",
            lambda store: store.delete_one(cls._collection_name, {"_id": self.id}),
            filter={"_id": self.id},
        )

    async def reload(self) -> None:
        """Re-fetch this document from the store."""
        refreshed = await self.__class__.get(self.id)
        for field_name in self.__class__.model_fields:
            object.__setattr__(self, field_name, getattr(refreshed, field_name))
