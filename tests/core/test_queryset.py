from datetime import datetime, timedelta, timezone

import pytest

from pyseek import Document, InvalidCursor, InvalidPageRequest, UnknownSortDomain
from pyseek.core.queryset import QuerySet
from pyseek.plugins import TimestampsMixin
from pyseek.utils.pagination import PageRequest

BASE = datetime(2024, 5, 1, tzinfo=timezone.utc)


class Product(Document):
    name: str
    category: str = "misc"
    price: int = 0

    class Settings:
        collection = "products"
        search_fields = ("name",)


class Post(TimestampsMixin, Document):
    title: str
    topic: str = "general"

    class Settings:
        collection = "posts"
        search_fields = ("title",)


class StrictPost(TimestampsMixin, Document):
    title: str

    class Settings:
        collection = "strict_posts"
        invalid_cursor = "reject"
        cursor_codec = "base64"


async def make_products():
    for name, category, price in [
        ("Apple", "fruit", 3),
        ("Banana", "fruit", 1),
        ("Carrot", "veg", 2),
        ("Durian", "fruit", 9),
        ("Eggplant", "veg", 4),
    ]:
        await Product.create(name=name, category=category, price=price)


async def make_posts(n: int, cls=Post):
    # Pairs share a timestamp so the id tie-break is exercised
    return [
        await cls.create(
            title=f"Post {i}",
            topic="python" if i % 3 == 0 else "general",
            created_at=BASE + timedelta(seconds=i // 2),
        )
        for i in range(1, n + 1)
    ]


class TestQueryBuilding:
    def test_chaining_returns_new_querysets(self):
        base = Product.find(category="fruit")
        filtered = base.filter(price={"$gt": 2})
        assert filtered is not base
        assert base.query == {"category": "fruit"}
        assert filtered.query == {"category": "fruit", "price": {"$gt": 2}}

    def test_filter_by_id_shortcut(self):
        assert Product.find().filter(7).query == {"_id": 7}

    def test_search_is_anded(self):
        qs = Product.find(category="fruit").search(" app ")
        assert qs.query == {
            "$and": [
                {"category": "fruit"},
                {"name": {"$regex": "app", "$options": "i"}},
            ]
        }

    def test_blank_search_clears(self):
        assert Product.find().search("apple").search("  ").query == {}

    def test_sort_spec(self):
        qs = Product.find().sort("-price", "name")
        assert qs._sort == [("price", -1), ("name", 1)]


class TestTerminalMethods:
    async def test_all_and_filter(self, store):
        await make_products()
        fruit = await Product.find(category="fruit").all()
        assert sorted(p.name for p in fruit) == ["Apple", "Banana", "Durian"]
        assert all(isinstance(p, Product) for p in fruit)

    async def test_sort_skip_limit(self, store):
        await make_products()
        names = [p.name for p in await Product.find().sort("-price").skip(1).limit(2).all()]
        assert names == ["Eggplant", "Apple"]

    async def test_first(self, store):
        await make_products()
        assert (await Product.find().sort("price").first()).name == "Banana"
        assert await Product.find(category="meat").first() is None

    async def test_count_and_exists(self, store):
        await make_products()
        assert await Product.find(category="veg").count() == 2
        assert await Product.find().search("AN").count() == 3
        assert await Product.find(category="veg").exists()
        assert not await Product.find(category="meat").exists()

    async def test_async_iteration(self, store):
        await make_products()
        names = [p.name async for p in Product.find(category="veg").sort("name")]
        assert names == ["Carrot", "Eggplant"]


class TestOffsetPagination:
    async def test_first_page_newest_id_first(self, store):
        for i in range(25):
            await Product.create(name=f"P{i:02d}")
        page = await Product.find().paginate(page=1, limit=10)
        assert len(page.items) == 10
        assert page.items[0].id == 25
        assert page.pagination.total == 25
        assert page.pagination.total_pages == 3
        assert page.pagination.has_next
        assert not page.pagination.has_prev

    async def test_last_and_beyond(self, store):
        for i in range(25):
            await Product.create(name=f"P{i:02d}")
        last = await Product.find().paginate(page=3, limit=10)
        assert [p.id for p in last.items] == [5, 4, 3, 2, 1]
        assert not last.pagination.has_next

        beyond = await Product.find().paginate(page=4, limit=10)
        assert beyond.items == []
        assert beyond.pagination.total == 25

    async def test_default_limit(self, store):
        for i in range(12):
            await Product.create(name=f"P{i:02d}")
        page = await Product.find().paginate()
        assert page.pagination.limit == 10
        assert len(page.items) == 10

    async def test_empty(self, store):
        page = await Product.find().paginate()
        assert page.items == []
        assert page.pagination.total_pages == 0

    async def test_explicit_sort_keeps_id_tiebreak(self, store):
        for name in ["b", "a", "b", "a"]:
            await Product.create(name=name)
        page = await Product.find().sort("name").paginate(limit=10)
        assert [(p.name, p.id) for p in page.items] == [("a", 4), ("a", 2), ("b", 3), ("b", 1)]

    @pytest.mark.parametrize("page, limit", [(0, 10), (-1, 10), (1, -5)])
    async def test_invalid_request(self, store, page, limit):
        with pytest.raises(InvalidPageRequest):
            await Product.find().paginate(page=page, limit=limit)


class TestKeysetPagination:
    async def test_walks_all_rows_once(self, store):
        posts = await make_posts(11)
        seen = []
        cursor = None
        while True:
            page = await Post.find().keyset("created", limit=4, cursor=cursor)
            seen.extend(page.items)
            if not page.has_more:
                break
            cursor = page.next_cursor

        expected = sorted(posts, key=lambda p: (p.created_at, p.id), reverse=True)
        assert [p.id for p in seen] == [p.id for p in expected]
        assert all(isinstance(p, Post) for p in seen)

    async def test_filter_and_search_apply(self, store):
        await make_posts(9)
        page = await Post.find(topic="python").keyset("created", limit=10)
        assert [p.title for p in page.items] == ["Post 9", "Post 6", "Post 3"]

        page = await Post.find().search("post 1").keyset("created", limit=10)
        assert [p.title for p in page.items] == ["Post 1"]

    async def test_page_request(self, store):
        await make_posts(5)
        page = await Post.find().keyset("created", PageRequest(limit=2, search="post"))
        assert len(page.items) == 2
        assert page.has_more

    async def test_default_limit(self, store):
        await make_posts(12)
        page = await Post.find().keyset("created")
        assert page.limit == 10
        assert len(page.items) == 10

    async def test_limit_above_maximum(self, store):
        with pytest.raises(InvalidPageRequest):
            await Post.find().keyset("created", limit=101)

    async def test_unknown_domain(self, store):
        with pytest.raises(UnknownSortDomain):
            await Post.find().keyset("deleted")

    async def test_invalid_cursor_falls_back(self, store):
        await make_posts(3)
        page = await Post.find().keyset("created", limit=2, cursor="not-a-cursor")
        assert [p.title for p in page.items] == ["Post 3", "Post 2"]

    async def test_invalid_cursor_rejected_by_settings(self, store):
        await make_posts(3, cls=StrictPost)
        first = await StrictPost.find().keyset("created", limit=2)
        second = await StrictPost.find().keyset("created", limit=2, cursor=first.next_cursor)
        assert [p.title for p in second.items] == ["Post 1"]

        with pytest.raises(InvalidCursor):
            await StrictPost.find().keyset("created", limit=2, cursor="not-a-cursor")

    async def test_new_rows_do_not_shift_next_page(self, store):
        await make_posts(8)
        first = await Post.find().keyset("created", limit=3)
        expected = await Post.find().keyset("created", limit=3, cursor=first.next_cursor)

        await Post.create(title="Breaking", created_at=BASE + timedelta(days=1))
        second = await Post.find().keyset("created", limit=3, cursor=first.next_cursor)
        assert [p.id for p in second.items] == [p.id for p in expected.items]


def test_bare_queryset_has_empty_query():
    qs = QuerySet(Product)
    assert qs.query == {}
