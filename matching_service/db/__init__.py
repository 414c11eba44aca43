import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorClientSession,
    AsyncIOMotorDatabase,
)

from ..config import get_settings
from .mongo import ensure_match_indexes, ensure_user_indexes

_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None

LOGGER = logging.getLogger("uvicorn.error")


async def _ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    try:
        await ensure_user_indexes(db)
    except Exception as exc:  # pragma: no cover - best-effort logging
        LOGGER.error("Failed to ensure user indexes: %s", exc)
    # Match dedupe depends on the unique pair-key index, so this one must succeed
    await ensure_match_indexes(db)
    LOGGER.info("Ensured indexes on users and matches")


async def connect_to_mongo() -> None:
    """Initialise the shared MongoDB client and application database."""

    global _client, _db

    settings = get_settings()
    if not settings.mongo_uri and not settings.mongo_alt_uri:
        raise RuntimeError("Missing MONGO_URI env var for matching service")

    sel_timeout_ms = int(os.getenv("MONGO_SERVER_SELECTION_TIMEOUT_MS", "3000"))
    conn_timeout_ms = int(os.getenv("MONGO_CONNECT_TIMEOUT_MS", "3000"))
    sock_timeout_ms = int(os.getenv("MONGO_SOCKET_TIMEOUT_MS", "5000"))

    async def _try_connect(uri: str) -> tuple[AsyncIOMotorClient, AsyncIOMotorDatabase]:
        client = AsyncIOMotorClient(
            uri,
            maxPoolSize=20,
            serverSelectionTimeoutMS=sel_timeout_ms,
            connectTimeoutMS=conn_timeout_ms,
            socketTimeoutMS=sock_timeout_ms,
            **({"directConnection": True} if settings.mongo_direct else {}),
        )
        db = client[settings.mongo_db]
        await client.admin.command("ping")
        await _ensure_indexes(db)
        return client, db

    primary_error: Optional[Exception] = None

    if settings.mongo_uri:
        try:
            _client, _db = await _try_connect(settings.mongo_uri)
            LOGGER.info(
                "MongoDB connected: db=%s transactions=%s",
                settings.mongo_db,
                "on" if settings.mongo_transactions else "off",
            )
            return
        except Exception as exc:  # pragma: no cover - connection issues
            primary_error = exc
            LOGGER.error("Mongo primary URI failed: %s", exc)

    if settings.mongo_alt_uri:
        try:
            _client, _db = await _try_connect(settings.mongo_alt_uri)
            LOGGER.info("MongoDB connected via ALT URI: db=%s", settings.mongo_db)
            return
        except Exception as exc:  # pragma: no cover - same as above
            LOGGER.error("Mongo ALT URI failed: %s", exc)

    raise primary_error or RuntimeError("Mongo connection failed")


async def close_mongo_connection() -> None:
    """Close the MongoDB client if it is initialised."""

    global _client, _db
    if _client:
        try:
            _client.close()
        finally:
            LOGGER.info("MongoDB connection closed")
        _client = None
        _db = None


def get_db() -> AsyncIOMotorDatabase:
    if _db is None:
        raise RuntimeError("MongoDB database not connected. Did you call connect_to_mongo()?")
    return _db


def get_client() -> AsyncIOMotorClient:
    if _client is None:
        raise RuntimeError("Mongo client not initialised. Did you call connect_to_mongo()?")
    return _client


def is_connected() -> bool:
    return _client is not None and _db is not None


@asynccontextmanager
async def start_transaction() -> AsyncIterator[Optional[AsyncIOMotorClientSession]]:
    """Yield a session bound to a multi-document transaction.

    Yields ``None`` when transactions are disabled (standalone servers); callers
    then pass ``session=None`` to Motor and rely on their own compensation.
    Leaving the block normally commits, an exception aborts.
    """

    if not get_settings().mongo_transactions:
        yield None
        return

    async with await get_client().start_session() as session:
        async with session.start_transaction():
            yield session


__all__ = [
    "connect_to_mongo",
    "close_mongo_connection",
    "get_db",
    "get_client",
    "is_connected",
    "start_transaction",
]
