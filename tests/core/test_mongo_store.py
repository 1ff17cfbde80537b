"""Round trips against a real MongoDB server; skipped when none is running."""

from datetime import timedelta

from pyseek import Document, MongoStore
from pyseek.plugins import SoftDeleteMixin, TimestampsMixin


class Ticket(SoftDeleteMixin, TimestampsMixin, Document):
    subject: str

    class Settings:
        collection = "tickets"
        search_fields = ("subject",)


class TestMongoStore:
    async def test_integer_ids_from_counter(self, mongo_store):
        assert isinstance(mongo_store, MongoStore)
        first = await Ticket.create(subject="Printer jam")
        second = await Ticket.create(subject="VPN down")
        assert (first.id, second.id) == (1, 2)
        counter = await mongo_store.database["__counters__"].find_one({"_id": "tickets"})
        assert counter["seq"] == 2

    async def test_timestamps_survive_round_trip(self, mongo_store):
        ticket = await Ticket.create(subject="Printer jam")
        stored = await Ticket.get(ticket.id)
        assert stored.created_at == ticket.created_at
        assert stored.created_at.tzinfo is not None

    async def test_keyset_walk(self, mongo_store):
        tickets = [await Ticket.create(subject=f"Ticket {i}") for i in range(7)]
        await tickets[3].delete()

        seen = []
        cursor = None
        while True:
            page = await Ticket.keyset_page("active", limit=2, cursor=cursor)
            seen.extend(t.id for t in page.items)
            if not page.has_more:
                break
            cursor = page.next_cursor

        alive = [t for t in tickets if t.id != tickets[3].id]
        expected = sorted(alive, key=lambda t: (t.created_at, t.id), reverse=True)
        assert seen == [t.id for t in expected]

    async def test_search_escapes_regex(self, mongo_store):
        await Ticket.create(subject="Cost is $5 (approx)")
        await Ticket.create(subject="Cost is 5")
        page = await Ticket.keyset_page("active", search="$5 (")
        assert [t.subject for t in page.items] == ["Cost is $5 (approx)"]

    async def test_ensure_indexes(self, mongo_store):
        names = await Ticket.ensure_indexes()
        info = await mongo_store.database["tickets"].index_information()
        assert set(names) == {"keyset_created", "keyset_active", "keyset_deleted"}
        assert info["keyset_created"]["key"] == [("created_at", -1), ("_id", -1)]

    async def test_seek_predicate_on_equal_timestamps(self, mongo_store):
        ticket = await Ticket.create(subject="first")
        twin = await Ticket.create(subject="twin", created_at=ticket.created_at)
        older = await Ticket.create(subject="older", created_at=ticket.created_at - timedelta(seconds=1))

        first = await Ticket.keyset_page("created", limit=1)
        assert [t.id for t in first.items] == [twin.id]
        rest = await Ticket.keyset_page("created", limit=5, cursor=first.next_cursor)
        assert [t.id for t in rest.items] == [ticket.id, older.id]
