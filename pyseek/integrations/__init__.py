from pyseek.integrations.fastapi import (
    CursorPageResponse,
    CursorParams,
    OffsetPageResponse,
    OffsetParams,
    init_app,
    register_exception_handlers,
)

__all__ = [
    "init_app",
    "register_exception_handlers",
    "OffsetParams",
    "CursorParams",
    "OffsetPageResponse",
    "CursorPageResponse",
]
