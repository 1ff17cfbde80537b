from pyseek.core.document import Document, _document_registry
from pyseek.core.queryset import QuerySet
from pyseek.core.connection import connect, disconnect, get_store
from pyseek.core.cursor import (
    Base64JsonCursorCodec,
    Cursor,
    CursorCodec,
    DelimitedCursorCodec,
    InvalidCursorPolicy,
    get_codec,
)
from pyseek.core.keyset import SortDomain, keyset_page
from pyseek.core.store import MemoryStore, MongoStore, Store

__all__ = [
    "Document",
    "QuerySet",
    "connect",
    "disconnect",
    "get_store",
    "Cursor",
    "CursorCodec",
    "DelimitedCursorCodec",
    "Base64JsonCursorCodec",
    "InvalidCursorPolicy",
    "get_codec",
    "SortDomain",
    "keyset_page",
    "Store",
    "MongoStore",
    "MemoryStore",
    "_document_registry",
]
