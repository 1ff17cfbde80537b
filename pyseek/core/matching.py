"""Evaluate MongoDB-style filters and sorts against plain dicts.

Supports the operators the query layer emits: ``$eq $ne $lt $lte $gt $gte
$in $nin $exists $regex/$options $and $or``. Missing fields behave like
``None``, as in MongoDB.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any

from pymongo import DESCENDING

from pyseek.utils.exceptions import PyseekError
from pyseek.utils.types import DocumentData, FilterSpec, SortSpec

_MISSING = object()


def _comparable(value: Any) -> Any:
    # Naive datetimes are stored as UTC
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _compare(left: Any, right: Any, op: str) -> bool:
    if left is _MISSING or left is None or right is None:
        return False
    left, right = _comparable(left), _comparable(right)
    try:
        if op == "$lt":
            return left < right
        if op == "$lte":
            return left <= right
        if op == "$gt":
            return left > right
        return left >= right
    except TypeError:
        # MongoDB only compares values of the same BSON type
        return False


def _equals(value: Any, expected: Any) -> bool:
    if expected is None:
        return value is _MISSING or value is None
    if value is _MISSING:
        return False
    if isinstance(value, list) and not isinstance(expected, list):
        return any(_comparable(v) == _comparable(expected) for v in value)
    return _comparable(value) == _comparable(expected)


def _regex(value: Any, pattern: Any, options: str) -> bool:
    if not isinstance(value, str):
        return False
    flags = 0
    if "i" in options:
        flags |= re.IGNORECASE
    if "m" in options:
        flags |= re.MULTILINE
    if "s" in options:
        flags |= re.DOTALL
    if isinstance(pattern, re.Pattern):
        return pattern.search(value) is not None
    return re.search(pattern, value, flags) is not None


def _match_operators(value: Any, spec: dict[str, Any]) -> bool:
    for op, operand in spec.items():
        if op == "$options":
            continue
        if op == "$eq":
            ok = _equals(value, operand)
        elif op == "$ne":
            ok = not _equals(value, operand)
        elif op in ("$lt", "$lte", "$gt", "$gte"):
            ok = _compare(value, operand, op)
        elif op == "$in":
            ok = any(_equals(value, candidate) for candidate in operand)
        elif op == "$nin":
            ok = not any(_equals(value, candidate) for candidate in operand)
        elif op == "$exists":
            ok = (value is not _MISSING) == bool(operand)
        elif op == "$regex":
            ok = _regex(value, operand, spec.get("$options", ""))
        else:
            raise PyseekError(f"Unsupported query operator for in-memory store: {op}")
        if not ok:
            return False
    return True


def _is_operator_spec(spec: Any) -> bool:
    return isinstance(spec, dict) and bool(spec) and all(k.startswith("$") for k in spec)


def _lookup(doc: DocumentData, path: str) -> Any:
    current: Any = doc
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def matches(doc: DocumentData, filter: FilterSpec | None) -> bool:
    """Return True if ``doc`` satisfies ``filter``."""
    if not filter:
        return True
    for key, spec in filter.items():
        if key == "$and":
            if not all(matches(doc, clause) for clause in spec):
                return False
        elif key == "$or":
            if not any(matches(doc, clause) for clause in spec):
                return False
        elif key.startswith("$"):
            raise PyseekError(f"Unsupported query operator for in-memory store: {key}")
        elif _is_operator_spec(spec):
            if not _match_operators(_lookup(doc, key), spec):
                return False
        elif not _equals(_lookup(doc, key), spec):
            return False
    return True


def _sort_key(value: Any) -> tuple:
    # Nulls and missing fields sort before everything else
    if value is _MISSING or value is None:
        return (0,)
    return (1, _comparable(value))


def sort_documents(docs: list[DocumentData], sort: SortSpec | None) -> list[DocumentData]:
    """Sort by each (field, direction) pair, first pair most significant."""
    result = list(docs)
    for field_name, direction in reversed(sort or []):
        result.sort(
            key=lambda d: _sort_key(_lookup(d, field_name)),
            reverse=direction == DESCENDING,
        )
    return result
