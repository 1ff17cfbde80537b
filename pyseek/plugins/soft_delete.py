from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import Field

from pyseek.core.keyset import SortDomain, compose_filters
from pyseek.plugins.timestamps import utcnow
from pyseek.utils.exceptions import DocumentNotFound

ACTIVE_FILTER = {"deleted_at": None}
DELETED_FILTER = {"deleted_at": {"$ne": None}}


class SoftDeleteMixin:
    """Mixin that replaces delete() with a soft-delete (sets deleted_at).

    Usage: class Item(SoftDeleteMixin, TimestampsMixin, Document): ...

    Provides:
    - deleted_at: Optional[datetime] - timestamp when deleted
    - deleted: bool - property that returns True if deleted_at is set
    - delete(): soft delete (sets deleted_at)
    - restore(): undelete (clears deleted_at)
    - hard_delete(): permanently remove from the store
    - sort domains "active" (by created_at) and "deleted" (by deleted_at)
    """

    deleted_at: Optional[datetime] = Field(default=None)

    @classmethod
    def _default_sort_domains(cls) -> dict[str, SortDomain]:
        return {
            **super()._default_sort_domains(),
            "active": SortDomain("active", "created_at", filter=ACTIVE_FILTER),
            "deleted": SortDomain("deleted", "deleted_at", filter=DELETED_FILTER),
        }

    @property
    def deleted(self) -> bool:
        """Check if document is soft-deleted."""
        return self.deleted_at is not None

    async def delete(self) -> None:
        """Soft-delete: set deleted_at instead of removing the document."""
        cls = self.__class__
        now = utcnow()
        matched = await cls._execute(
            "soft_delete",
            lambda store: store.update_one(
                cls._collection_name, {"_id": self.id}, {"$set": {"deleted_at": now}}
            ),
            filter={"_id": self.id},
        )
        if not matched:
            raise DocumentNotFound(f"{cls.__name__} with id '{self.id}' not found")
        object.__setattr__(self, "deleted_at", now)

    async def hard_delete(self) -> None:
        """Permanently remove the document from the store."""
        cls = self.__class__
        await cls._execute(
            "hard_delete",
            lambda store: store.delete_one(cls._collection_name, {"_id": self.id}),
            filter={"_id": self.id},
        )

    async def restore(self) -> None:
        """Restore a soft-deleted document by clearing deleted_at."""
        cls = self.__class__
        matched = await cls._execute(
            "restore",
            lambda store: store.update_one(
                cls._collection_name, {"_id": self.id}, {"$set": {"deleted_at": None}}
            ),
            filter={"_id": self.id},
        )
        if not matched:
            raise DocumentNotFound(f"{cls.__name__} with id '{self.id}' not found")
        object.__setattr__(self, "deleted_at", None)

    @classmethod
    def find(cls, filter: dict[str, Any] | None = None, **kwargs: Any) -> Any:
        """Override find to exclude soft-deleted documents by default."""
        return super().find(compose_filters(filter, kwargs, ACTIVE_FILTER))

    @classmethod
    def find_deleted(cls, filter: dict[str, Any] | None = None, **kwargs: Any) -> Any:
        """Find only soft-deleted documents, most recently deleted first."""
        return super().find(compose_filters(filter, kwargs, DELETED_FILTER)).sort("-deleted_at")

    @classmethod
    def find_with_deleted(cls, filter: dict[str, Any] | None = None, **kwargs: Any) -> Any:
        """Find all documents including soft-deleted ones."""
        return super().find(filter, **kwargs)
