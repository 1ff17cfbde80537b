import pytest
import pytest_asyncio
from pymongo import AsyncMongoClient
from pymongo.errors import PyMongoError

from pyseek import connect, disable_tracing, disconnect
from pyseek.core.connection import _stores

MONGO_URI = "mongodb://localhost:27017/pyseek_test"


@pytest_asyncio.fixture(autouse=True)
async def store():
    """Register a fresh in-memory store as the default before each test."""
    store = await connect("memory://pyseek_test")
    yield store
    # Reset observability state between tests
    disable_tracing()
    for alias in list(_stores):
        await disconnect(alias)


@pytest_asyncio.fixture
async def mongo_store(store):
    """Replace the default store with localhost MongoDB, drop the DB after.

    Skips the test when no server answers.
    """
    probe = AsyncMongoClient(MONGO_URI, serverSelectionTimeoutMS=500)
    try:
        await probe.admin.command("ping")
    except PyMongoError:
        pytest.skip("MongoDB is not reachable on localhost:27017")
    finally:
        await probe.close()

    mongo = await connect(MONGO_URI)
    yield mongo
    for name in await mongo.database.list_collection_names():
        await mongo.database.drop_collection(name)
