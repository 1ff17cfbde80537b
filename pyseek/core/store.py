"""Query execution backends.

Everything above this module speaks MongoDB filter dicts; a Store runs them.
``MongoStore`` talks to a real server through pymongo's async API,
``MemoryStore`` evaluates the same filters over in-process dicts.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Protocol

from pymongo import ReturnDocument
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from pyseek.core.matching import matches, sort_documents
from pyseek.utils.exceptions import PyseekError
from pyseek.utils.types import DocumentData, FilterSpec, SortSpec, UpdateSpec

logger = logging.getLogger(__name__)

COUNTERS_COLLECTION = "__counters__"


class Store(Protocol):
    """Minimal query-execution interface the document layer depends on."""

    system: str

    async def find(
        self,
        collection: str,
        filter: FilterSpec,
        *,
        sort: SortSpec | None = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[DocumentData]:
        ...

    async def find_one(self, collection: str, filter: FilterSpec) -> DocumentData | None:
        ...

    async def count(self, collection: str, filter: FilterSpec) -> int:
        ...

    async def next_id(self, collection: str) -> int:
        ...

    async def insert(self, collection: str, data: DocumentData) -> DocumentData:
        ...

    async def update_one(self, collection: str, filter: FilterSpec, update: UpdateSpec) -> int:
        ...

    async def delete_one(self, collection: str, filter: FilterSpec) -> int:
        ...

    async def create_index(self, collection: str, keys: SortSpec, **kwargs: Any) -> str:
        ...

    async def close(self) -> None:
        ...


def index_name(keys: SortSpec) -> str:
    """Index name in MongoDB's default ``field_direction`` format."""
    return "_".join(f"{name}_{direction}" for name, direction in keys)


class MongoStore:
    """Store backed by a MongoDB database.

    Documents get integer ``_id`` values from a per-collection sequence kept
    in the ``__counters__`` collection.
    """

    system = "mongodb"

    def __init__(self, database: AsyncDatabase, client: Any = None) -> None:
        self.database = database
        self.client = client

    async def find(
        self,
        collection: str,
        filter: FilterSpec,
        *,
        sort: SortSpec | None = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[DocumentData]:
        cursor = self.database[collection].find(filter)
        if sort:
            cursor = cursor.sort(sort)
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return await cursor.to_list(None)

    async def find_one(self, collection: str, filter: FilterSpec) -> DocumentData | None:
        return await self.database[collection].find_one(filter)

    async def count(self, collection: str, filter: FilterSpec) -> int:
        return await self.database[collection].count_documents(filter)

    async def next_id(self, collection: str) -> int:
        counter = await self.database[COUNTERS_COLLECTION].find_one_and_update(
            {"_id": collection},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return counter["seq"]

    async def insert(self, collection: str, data: DocumentData) -> DocumentData:
        data = dict(data)
        if data.get("_id") is None:
            data["_id"] = await self.next_id(collection)
        await self.database[collection].insert_one(data)
        return data

    async def update_one(self, collection: str, filter: FilterSpec, update: UpdateSpec) -> int:
        result = await self.database[collection].update_one(filter, update)
        return result.matched_count

    async def delete_one(self, collection: str, filter: FilterSpec) -> int:
        result = await self.database[collection].delete_one(filter)
        return result.deleted_count

    async def create_index(self, collection: str, keys: SortSpec, **kwargs: Any) -> str:
        return await self.database[collection].create_index(keys, **kwargs)

    async def close(self) -> None:
        if self.client is not None:
            await self.client.close()


class MemoryStore:
    """Process-local store with MongoDB filter semantics.

    Every operation completes without yielding to the event loop, so each
    call is atomic with respect to other tasks. Returned documents are copies.
    """

    system = "memory"

    def __init__(self, name: str = "default") -> None:
        self.name = name
        self._collections: dict[str, dict[Any, DocumentData]] = {}
        self._counters: dict[str, int] = {}
        self._indexes: dict[str, dict[str, SortSpec]] = {}

    def _rows(self, collection: str) -> dict[Any, DocumentData]:
        return self._collections.setdefault(collection, {})

    def _select(self, collection: str, filter: FilterSpec | None) -> list[DocumentData]:
        return [doc for doc in self._rows(collection).values() if matches(doc, filter)]

    async def find(
        self,
        collection: str,
        filter: FilterSpec,
        *,
        sort: SortSpec | None = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[DocumentData]:
        docs = sort_documents(self._select(collection, filter), sort)
        if skip:
            docs = docs[skip:]
        if limit:
            docs = docs[:limit]
        return copy.deepcopy(docs)

    async def find_one(self, collection: str, filter: FilterSpec) -> DocumentData | None:
        docs = await self.find(collection, filter, limit=1)
        return docs[0] if docs else None

    async def count(self, collection: str, filter: FilterSpec) -> int:
        return len(self._select(collection, filter))

    async def next_id(self, collection: str) -> int:
        self._counters[collection] = self._counters.get(collection, 0) + 1
        return self._counters[collection]

    async def insert(self, collection: str, data: DocumentData) -> DocumentData:
        rows = self._rows(collection)
        data = copy.deepcopy(data)
        if data.get("_id") is None:
            data["_id"] = await self.next_id(collection)
        elif isinstance(data["_id"], int):
            self._counters[collection] = max(self._counters.get(collection, 0), data["_id"])

        if data["_id"] in rows:
            raise DuplicateKeyError(
                f"E11000 duplicate key error collection: {self.name}.{collection} "
                f"dup key: {{ _id: {data['_id']!r} }}",
                code=11000,
            )
        rows[data["_id"]] = data
        return copy.deepcopy(data)

    async def update_one(self, collection: str, filter: FilterSpec, update: UpdateSpec) -> int:
        for doc in self._select(collection, filter):
            for op, fields in update.items():
                if op == "$set":
                    doc.update(copy.deepcopy(fields))
                elif op == "$unset":
                    for name in fields:
                        doc.pop(name, None)
                elif op == "$inc":
                    for name, amount in fields.items():
                        doc[name] = doc.get(name, 0) + amount
                else:
                    raise PyseekError(f"Unsupported update operator for in-memory store: {op}")
            return 1
        return 0

    async def delete_one(self, collection: str, filter: FilterSpec) -> int:
        rows = self._rows(collection)
        for doc in self._select(collection, filter):
            del rows[doc["_id"]]
            return 1
        return 0

    async def create_index(self, collection: str, keys: SortSpec, **kwargs: Any) -> str:
        name = kwargs.get("name") or index_name(keys)
        self._indexes.setdefault(collection, {})[name] = list(keys)
        return name

    def index_information(self, collection: str) -> dict[str, SortSpec]:
        return dict(self._indexes.get(collection, {}))

    async def close(self) -> None:
        self._collections.clear()
        self._counters.clear()
        self._indexes.clear()
        logger.debug("Cleared in-memory store '%s'", self.name)
