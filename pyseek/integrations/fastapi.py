from contextlib import asynccontextmanager
from typing import Any, Generic, Optional, TypeVar

from fastapi import Request
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from starlette.responses import JSONResponse

from pyseek.core.connection import connect, disconnect
from pyseek.utils.exceptions import (
    DocumentNotFound,
    InvalidCursor,
    InvalidPageRequest,
    PyseekError,
    UnknownSortDomain,
)
from pyseek.utils.pagination import (
    DEFAULT_PAGINATION,
    CursorPage,
    Page,
    PageRequest,
    PaginationConfig,
    parse_params,
)

T = TypeVar("T")


def init_app(app: Any, uri: str, alias: str = "default") -> Any:
    """Initialize a FastAPI app with Pyseek.

    Sets up:
    - Store connection/disconnection in app lifespan
    - Exception handlers for Pyseek exceptions

    Args:
        app: FastAPI application instance
        uri: Store URI (``mongodb://host:port/db`` or ``memory://name``)
        alias: Connection alias for multi-store setups (default: "default")
    """
    original_lifespan = getattr(app, "router", app).lifespan_context

    @asynccontextmanager
    async def lifespan(a: Any):
        await connect(uri, alias=alias)
        try:
            if original_lifespan is not None:
                async with original_lifespan(a) as state:
                    yield state
            else:
                yield
        finally:
            await disconnect(alias)

    app.router.lifespan_context = lifespan
    register_exception_handlers(app)
    return app


def register_exception_handlers(app: Any) -> None:
    """Register pyseek exception handlers on a FastAPI app."""

    @app.exception_handler(DocumentNotFound)
    async def document_not_found_handler(request: Any, exc: DocumentNotFound):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(InvalidCursor)
    @app.exception_handler(InvalidPageRequest)
    @app.exception_handler(UnknownSortDomain)
    async def bad_page_request_handler(request: Any, exc: PyseekError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(PyseekError)
    async def pyseek_error_handler(request: Any, exc: PyseekError):
        return JSONResponse(status_code=500, content={"detail": str(exc)})


class OffsetParams:
    """FastAPI dependency for ``page``/``limit``/``search`` query parameters.

    Values are sanitized with parse_params, so a bad ``page`` or a limit
    outside the allow-list falls back to the defaults instead of a 422.
    """

    config: PaginationConfig = DEFAULT_PAGINATION

    def __init__(self, request: Request):
        params = parse_params(request.query_params, self.config)
        self.page = params.page
        self.limit = params.limit
        self.search = params.search


class CursorParams:
    """FastAPI dependency for ``limit``/``cursor``/``search`` query parameters."""

    config: PaginationConfig = DEFAULT_PAGINATION

    def __init__(self, request: Request):
        self.request = PageRequest.from_query(request.query_params, self.config)

    @property
    def limit(self) -> int:
        return self.request.limit

    @property
    def cursor(self) -> Optional[str]:
        return self.request.cursor

    @property
    def search(self) -> Optional[str]:
        return self.request.search


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OffsetPageMeta(_CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class OffsetPageResponse(_CamelModel, Generic[T]):
    """``{"items": [...], "pagination": {page, limit, total, totalPages}}``."""

    items: list[T]
    pagination: OffsetPageMeta

    @classmethod
    def from_page(cls, page_obj: Page) -> "OffsetPageResponse":
        meta = page_obj.pagination
        return cls(
            items=page_obj.items,
            pagination=OffsetPageMeta(
                page=meta.page,
                limit=meta.limit,
                total=meta.total,
                total_pages=meta.total_pages,
            ),
        )


class CursorPageMeta(_CamelModel):
    limit: int
    next_cursor: Optional[str] = None
    has_more: bool = False


class CursorPageResponse(_CamelModel, Generic[T]):
    """``{"items": [...], "page": {limit, nextCursor, hasMore}}``."""

    items: list[T]
    page: CursorPageMeta

    @classmethod
    def from_page(cls, page_obj: CursorPage) -> "CursorPageResponse":
        return cls(
            items=page_obj.items,
            page=CursorPageMeta(
                limit=page_obj.limit,
                next_cursor=page_obj.next_cursor,
                has_more=page_obj.has_more,
            ),
        )
