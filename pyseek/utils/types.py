from typing import Any

# Raw documents and the MongoDB-style query language every store speaks
DocumentData = dict[str, Any]
FilterSpec = dict[str, Any]
SortSpec = list[tuple[str, int]]
UpdateSpec = dict[str, Any]

# Documents are keyed by non-negative integers so ids can break keyset ties
DocumentId = int


def merge_filters(
    base: FilterSpec | None = None,
    override: FilterSpec | None = None,
    **kwargs: Any
) -> FilterSpec:
    """Shallow-merge equality filters; later arguments win per key.

    Use ``compose_filters`` instead when both sides must hold.
    """
    return {**(base or {}), **(override or {}), **kwargs}
