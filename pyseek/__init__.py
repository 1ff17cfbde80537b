from pyseek.core import (
    Document,
    QuerySet,
    connect,
    disconnect,
    get_store,
    Cursor,
    DelimitedCursorCodec,
    Base64JsonCursorCodec,
    InvalidCursorPolicy,
    SortDomain,
    keyset_page,
    MongoStore,
    MemoryStore,
)
from pyseek.lifecycle import (
    enable_tracing,
    disable_tracing,
    QueryEvent,
    add_listener,
)
from pyseek.plugins import (
    SoftDeleteMixin,
    TimestampsMixin,
)
from pyseek.integrations import init_app
from pyseek.utils import (
    PyseekError,
    DocumentNotFound,
    NotConnected,
    InvalidCursor,
    InvalidPageRequest,
    InvalidQueryResult,
    UnknownSortDomain,
    Page,
    CursorPage,
    PageRequest,
    PaginationConfig,
    RetryPolicy,
    execute_with_retry,
    is_retryable,
    validate_query_result,
)

__all__ = [
    # Core
    "Document",
    "QuerySet",
    "connect",
    "disconnect",
    "get_store",
    "Cursor",
    "DelimitedCursorCodec",
    "Base64JsonCursorCodec",
    "InvalidCursorPolicy",
    "SortDomain",
    "keyset_page",
    "MongoStore",
    "MemoryStore",
    # Lifecycle
    "enable_tracing",
    "disable_tracing",
    "QueryEvent",
    "add_listener",
    # Plugins
    "SoftDeleteMixin",
    "TimestampsMixin",
    # Integrations
    "init_app",
    # Utils
    "PyseekError",
    "DocumentNotFound",
    "NotConnected",
    "InvalidCursor",
    "InvalidPageRequest",
    "InvalidQueryResult",
    "UnknownSortDomain",
    "Page",
    "CursorPage",
    "PageRequest",
    "PaginationConfig",
    "RetryPolicy",
    "execute_with_retry",
    "is_retryable",
    "validate_query_result",
]
