from __future__ import annotations

import logging
import re
from typing import Any

from pymongo import AsyncMongoClient

from pyseek.core.store import MemoryStore, MongoStore, Store
from pyseek.utils.exceptions import NotConnected

logger = logging.getLogger(__name__)

MEMORY_SCHEME = "memory://"

_stores: dict[str, Store] = {}


async def connect(uri: str, *, alias: str = "default", **client_kwargs: Any) -> Store:
    """Open a store and register it under ``alias``.

    Args:
        uri: ``mongodb://host:port/database`` (or ``mongodb+srv://``) for
            MongoDB, ``memory://name`` for an in-process store.
        alias: Connection alias for multi-store setups.
        **client_kwargs: Extra options for AsyncMongoClient.

    Returns:
        The registered Store.

    Raises:
        ValueError: If URI format is invalid
    """
    logger.info(f"Connecting store with alias '{alias}'")

    if uri.startswith(MEMORY_SCHEME):
        name = uri[len(MEMORY_SCHEME):] or "default"
        store: Store = MemoryStore(name)
        logger.info(f"Created in-memory store '{name}' with alias '{alias}'")
    else:
        try:
            db_name = _extract_db_name(uri)
            client_kwargs.setdefault("tz_aware", True)
            client = AsyncMongoClient(uri, **client_kwargs)
            store = MongoStore(client[db_name], client)
            logger.info(f"Connected to database '{db_name}' with alias '{alias}'")
        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise

    previous = _stores.pop(alias, None)
    if previous is not None:
        await previous.close()
    _stores[alias] = store
    return store


async def disconnect(alias: str = "default") -> None:
    """Close and remove a registered store.

    Args:
        alias: Connection alias to disconnect
    """
    store = _stores.pop(alias, None)
    if store is not None:
        await store.close()
        logger.info(f"Disconnected store (alias: '{alias}')")


def get_store(alias: str = "default") -> Store:
    """Retrieve a registered store or raise NotConnected.

    Args:
        alias: Connection alias

    Returns:
        Store instance

    Raises:
        NotConnected: If no store exists for the alias
    """
    try:
        return _stores[alias]
    except KeyError:
        raise NotConnected(
            f"No store registered for alias '{alias}'. Call connect() first."
        )


def _extract_db_name(uri: str) -> str:
    """Extract the database name from a MongoDB URI with validation.

    Args:
        uri: MongoDB connection URI

    Returns:
        Database name extracted from URI

    Raises:
        ValueError: If URI format is invalid or database name cannot be extracted
    """
    if not uri:
        raise ValueError("MongoDB URI cannot be empty")

    # Remove query string
    path = uri.split("?")[0]

    # Strip scheme and credentials/host part
    _, _, rest = path.partition("://")
    _, slash, db_name = rest.partition("/")

    if not slash or not db_name:
        raise ValueError(
            "Cannot extract database name from URI. "
            "Expected format: mongodb://host:port/database"
        )

    # Validate database name format (MongoDB naming rules)
    if not re.match(r"^[a-zA-Z0-9_-]+$", db_name):
        raise ValueError(
            f"Invalid database name '{db_name}'. "
            f"Database names can only contain letters, numbers, underscores, and hyphens."
        )

    logger.debug(f"Extracted database name: {db_name}")
    return db_name
