from __future__ import annotations

from collections.abc import Sized
from typing import Any

from pyseek.utils.exceptions import InvalidQueryResult


def validate_query_result(
    result: Any,
    *,
    operation_name: str = "Query",
    allow_empty: bool = True,
    expected_type: type | tuple[type, ...] | None = None,
) -> Any:
    """Check a store result before handing it to callers.

    Raises:
        InvalidQueryResult: If the result is None, has the wrong type, or is
            empty while ``allow_empty`` is False
    """
    if result is None:
        raise InvalidQueryResult(f"{operation_name} returned invalid result: None")
    if expected_type is not None and not isinstance(result, expected_type):
        raise InvalidQueryResult(
            f"{operation_name} returned unexpected type: {type(result).__name__}"
        )
    if not allow_empty and isinstance(result, Sized) and len(result) == 0:
        raise InvalidQueryResult(f"{operation_name} returned unexpected empty result")
    return result
