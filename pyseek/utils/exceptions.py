class PyseekError(Exception):
    """Base exception for all Pyseek errors."""


class DocumentNotFound(PyseekError):
    """Raised when a document is not found in the store."""


class NotConnected(PyseekError):
    """Raised when attempting to use a store that is not connected."""


class InvalidCursor(PyseekError):
    """Raised when a pagination cursor cannot be decoded or belongs to another sort domain."""


class InvalidPageRequest(PyseekError):
    """Raised when page request parameters cannot be honored."""


class InvalidQueryResult(PyseekError):
    """Raised when a store operation returns a result of an unexpected shape."""


class UnknownSortDomain(PyseekError):
    """Raised when a document class has no sort domain with the requested name."""
