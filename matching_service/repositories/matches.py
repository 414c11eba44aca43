"""Repository helpers for the ``matches`` collection."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from motor.motor_asyncio import (
    AsyncIOMotorClientSession,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)

from ..db.collections import MATCHES_COLLECTION
from ..models.match import MatchDocument, MessageItem, pair_key
from .exceptions import NotFoundRepositoryError, store_errors

LOGGER = logging.getLogger("uvicorn.error")


class MatchRepository:
    """MongoDB access layer for match documents and their embedded messages."""

    def __init__(self, database: AsyncIOMotorDatabase) -> None:
        self._database = database
        self._collection: AsyncIOMotorCollection = database[MATCHES_COLLECTION]

    @property
    def collection(self) -> AsyncIOMotorCollection:
        return self._collection

    async def get(
        self,
        match_id: str,
        *,
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> Optional[MatchDocument]:
        with store_errors("load match"):
            doc = await self._collection.find_one({"_id": match_id}, session=session)
        return MatchDocument(**doc) if doc else None

    async def get_by_pair(
        self,
        user_a: str,
        user_b: str,
        *,
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> Optional[MatchDocument]:
        with store_errors("load match by pair"):
            doc = await self._collection.find_one({"pairKey": pair_key(user_a, user_b)}, session=session)
        return MatchDocument(**doc) if doc else None

    async def get_many(self, match_ids: Iterable[str]) -> List[MatchDocument]:
        ids = sorted(set(match_ids))
        if not ids:
            return []
        with store_errors("load matches"):
            docs = await self._collection.find({"_id": {"$in": ids}}).to_list(length=None)
        return [MatchDocument(**doc) for doc in docs]

    async def insert(
        self,
        *,
        match_id: str,
        user_a: str,
        user_b: str,
        created_at: int,
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> MatchDocument:
        """Create the record for a new pair.

        Raises ``DuplicateKeyRepositoryError`` when the pair already has one.
        """

        doc: Dict[str, Any] = {
            "_id": match_id,
            "users": [user_a, user_b],
            "pairKey": pair_key(user_a, user_b),
            "messages": [],
            "messagePreview": "",
            "lastMessageAt": created_at,
            "read": {user_a: False, user_b: False},
            "leftBy": [],
            "createdAt": created_at,
        }
        with store_errors("create match"):
            await self._collection.insert_one(doc, session=session)
        return MatchDocument(**doc)

    async def append_message(
        self,
        match_id: str,
        message: MessageItem,
        *,
        recipient_id: str,
    ) -> bool:
        """Append a message and refresh the denormalised fields in one update.

        Returns False when a message with the same id is already present.
        """

        payload = message.model_dump(by_alias=True)
        update = {
            "$push": {"messages": payload},
            "$set": {
                "messagePreview": message.text,
                "lastMessageAt": message.created_at,
                f"read.{recipient_id}": False,
            },
        }
        query = {"_id": match_id, "messages.messageId": {"$ne": message.message_id}}
        with store_errors("append message"):
            result = await self._collection.update_one(query, update)
        if result.matched_count == 1:
            return True
        if not await self._exists(match_id):
            raise NotFoundRepositoryError(f"match {match_id} not found")
        return False

    async def mark_read(self, match_id: str, reader_id: str) -> bool:
        """Set the reader's flag; returns False when it was already set."""

        with store_errors("mark read"):
            result = await self._collection.update_one(
                {"_id": match_id, f"read.{reader_id}": {"$ne": True}},
                {"$set": {f"read.{reader_id}": True}},
            )
        return result.modified_count == 1

    async def add_left_by(self, match_id: str, user_id: str) -> Optional[MatchDocument]:
        with store_errors("leave match"):
            result = await self._collection.update_one(
                {"_id": match_id},
                {"$addToSet": {"leftBy": user_id}},
            )
        if result.matched_count == 0:
            return None
        return await self.get(match_id)

    async def delete(
        self,
        match_id: str,
        *,
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> bool:
        with store_errors("delete match"):
            result = await self._collection.delete_one({"_id": match_id}, session=session)
        return bool(result.deleted_count)

    async def _exists(self, match_id: str) -> bool:
        with store_errors("check match"):
            doc = await self._collection.find_one({"_id": match_id}, projection={"_id": 1})
        return doc is not None


__all__ = ["MatchRepository"]
