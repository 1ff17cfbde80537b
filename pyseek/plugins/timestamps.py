from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import Field

from pyseek.core.keyset import SortDomain


def utcnow() -> datetime:
    """Current UTC time truncated to milliseconds, the precision MongoDB keeps.

    Timestamps used as keyset sort values must survive a store round trip
    unchanged, or cursors taken from them would not match the stored rows.
    """
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


class TimestampsMixin:
    """Mixin that automatically manages created_at and updated_at fields.

    Usage: class Order(TimestampsMixin, Document): ...

    Adds the "created" sort domain: newest first by created_at.
    """

    created_at: Optional[datetime] = Field(default=None)
    updated_at: Optional[datetime] = Field(default=None)

    @classmethod
    def _default_sort_domains(cls) -> dict[str, SortDomain]:
        return {
            **super()._default_sort_domains(),
            "created": SortDomain("created", "created_at"),
        }

    async def insert(self) -> None:
        now = utcnow()
        if self.created_at is None:
            object.__setattr__(self, "created_at", now)
        object.__setattr__(self, "updated_at", now)
        await super().insert()

    async def save(self) -> None:
        if not self._is_new:
            object.__setattr__(self, "updated_at", utcnow())
        await super().save()

    async def update(self, **kwargs: Any) -> None:
        kwargs["updated_at"] = utcnow()
        await super().update(**kwargs)
