from pyseek.utils.exceptions import (
    PyseekError,
    DocumentNotFound,
    NotConnected,
    InvalidCursor,
    InvalidPageRequest,
    InvalidQueryResult,
    UnknownSortDomain,
)
from pyseek.utils.pagination import (
    CursorPage,
    OffsetPage,
    Page,
    PageParams,
    PageRequest,
    PaginationConfig,
    build_response,
    calculate_offset,
    parse_params,
)
from pyseek.utils.retry import RetryPolicy, execute_with_retry, is_retryable, retrying
from pyseek.utils.types import (
    DocumentData,
    FilterSpec,
    SortSpec,
    DocumentId,
    merge_filters,
)
from pyseek.utils.validation import validate_query_result

__all__ = [
    "PyseekError",
    "DocumentNotFound",
    "NotConnected",
    "InvalidCursor",
    "InvalidPageRequest",
    "InvalidQueryResult",
    "UnknownSortDomain",
    "CursorPage",
    "OffsetPage",
    "Page",
    "PageParams",
    "PageRequest",
    "PaginationConfig",
    "build_response",
    "calculate_offset",
    "parse_params",
    "RetryPolicy",
    "execute_with_retry",
    "is_retryable",
    "retrying",
    "DocumentData",
    "FilterSpec",
    "SortSpec",
    "DocumentId",
    "merge_filters",
    "validate_query_result",
]
