import pytest

from pyseek.utils.exceptions import InvalidPageRequest
from pyseek.utils.pagination import (
    DEFAULT_PAGINATION,
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


class TestPaginationConfig:
    def test_defaults(self):
        assert DEFAULT_PAGINATION.default_page == 1
        assert DEFAULT_PAGINATION.default_limit == 10
        assert DEFAULT_PAGINATION.allowed_limits == (10, 20, 50)
        assert DEFAULT_PAGINATION.max_limit == 50
        assert DEFAULT_PAGINATION.cursor_max_limit == 100

    def test_allowed_limits_must_fit_max(self):
        with pytest.raises(ValueError):
            PaginationConfig(allowed_limits=(10, 100))

    def test_invalid_defaults(self):
        with pytest.raises(ValueError):
            PaginationConfig(default_limit=0)
        with pytest.raises(ValueError):
            PaginationConfig(default_page=0)


class TestParseParams:
    def test_empty_query_uses_defaults(self):
        assert parse_params({}) == PageParams(page=1, limit=10, search="")

    def test_valid_values(self):
        params = parse_params({"page": "3", "limit": "20", "search": "  widget "})
        assert params == PageParams(page=3, limit=20, search="widget")
        assert params.offset == 40

    @pytest.mark.parametrize("page", ["0", "-2", "abc", "1.5", "", None, True, "1" * 5000])
    def test_bad_page_falls_back(self, page):
        assert parse_params({"page": page}).page == 1

    @pytest.mark.parametrize("limit", ["15", "100", "0", "-10", "ten", "", "--5", "2" * 5000, "1" * 19])
    def test_limit_outside_allow_list_falls_back(self, limit):
        assert parse_params({"limit": limit}).limit == 10

    @pytest.mark.parametrize("limit", ["10", "20", "50", 50])
    def test_allowed_limits(self, limit):
        assert parse_params({"limit": limit}).limit == int(limit)

    def test_custom_config(self):
        config = PaginationConfig(default_limit=25, allowed_limits=(5, 25), max_limit=25)
        assert parse_params({"limit": "5"}, config).limit == 5
        assert parse_params({"limit": "10"}, config).limit == 25
        assert parse_params({}, config).limit == 25

    def test_non_string_search(self):
        assert parse_params({"search": ["a", "b"]}).search == ""


class TestOffsetMath:
    @pytest.mark.parametrize(
        "page, limit, expected",
        [(1, 10, 0), (2, 10, 10), (5, 25, 100), (0, 10, 0)],
    )
    def test_calculate_offset(self, page, limit, expected):
        assert calculate_offset(page, limit) == expected

    def test_build_response(self):
        meta = build_response(2, 10, 25)
        assert meta == OffsetPage(page=2, limit=10, total=25, total_pages=3)
        assert meta.has_next and meta.has_prev
        assert meta.to_dict() == {"page": 2, "limit": 10, "total": 25, "totalPages": 3}

    def test_build_response_exact_multiple(self):
        assert build_response(1, 10, 20).total_pages == 2

    def test_build_response_empty(self):
        meta = build_response(1, 10, 0)
        assert meta.total_pages == 0
        assert not meta.has_next
        assert not meta.has_prev

    def test_build_response_rejects_bad_input(self):
        with pytest.raises(ValueError):
            build_response(1, 0, 10)
        with pytest.raises(ValueError):
            build_response(1, 10, -1)

    def test_page_to_dict(self):
        page = Page(items=[{"name": "a"}], pagination=build_response(1, 10, 1))
        assert page.to_dict() == {
            "items": [{"name": "a"}],
            "pagination": {"page": 1, "limit": 10, "total": 1, "totalPages": 1},
        }


class TestPageRequest:
    def test_limit_must_be_positive(self):
        with pytest.raises(InvalidPageRequest):
            PageRequest(limit=0)

    @pytest.mark.parametrize(
        "raw, limit",
        [
            ({}, 10),
            ({"limit": "25"}, 25),
            ({"limit": "500"}, 100),
            ({"limit": "0"}, 1),
            ({"limit": "-3"}, 1),
            ({"limit": "lots"}, 10),
            ({"limit": "3" * 5000}, 10),
        ],
    )
    def test_from_query_clamps_limit(self, raw, limit):
        assert PageRequest.from_query(raw).limit == limit

    def test_from_query_cursor_and_search(self):
        request = PageRequest.from_query({"cursor": "abc", "search": "  blue "})
        assert request == PageRequest(limit=10, cursor="abc", search="blue")

    def test_from_query_blank_values(self):
        request = PageRequest.from_query({"cursor": "", "search": "   "})
        assert request.cursor is None
        assert request.search is None


class TestCursorPage:
    def test_to_dict(self):
        page = CursorPage(items=[1, 2], limit=2, next_cursor="c", has_more=True)
        assert page.to_dict() == {
            "items": [1, 2],
            "page": {"limit": 2, "nextCursor": "c", "hasMore": True},
        }

    def test_last_page(self):
        page = CursorPage(items=[1], limit=2)
        assert page.to_dict()["page"] == {"limit": 2, "nextCursor": None, "hasMore": False}

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"items": [], "limit": 2, "has_more": True},
            {"items": [], "limit": 2, "next_cursor": "c"},
            {"items": [1, 2, 3], "limit": 2},
        ],
    )
    def test_invariants(self, kwargs):
        with pytest.raises(ValueError):
            CursorPage(**kwargs)
