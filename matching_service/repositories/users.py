"""Repository helpers for the ``users`` collection."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from motor.motor_asyncio import (
    AsyncIOMotorClientSession,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pymongo import ASCENDING, ReturnDocument

from ..db.collections import DELETED_USERS_COLLECTION, USERS_COLLECTION
from ..models.user import SET_FIELDS, UserDocument
from .exceptions import NotFoundRepositoryError, store_errors

LOGGER = logging.getLogger("uvicorn.error")

SetOps = Mapping[str, Iterable[str]]

# Fields kept when an account is archived; set-fields are stripped
ARCHIVED_FIELDS = ("username", "email", "name", "age", "birthdate", "gender", "createdAt")


def build_set_update(
    *,
    add: Optional[SetOps] = None,
    remove: Optional[SetOps] = None,
    updated_at: Optional[int] = None,
) -> Dict[str, Any]:
    """Compose a single update document of set-union and set-remove operators.

    Arrays in the store are treated as sets: ``$addToSet`` never duplicates a
    member and ``$pullAll`` removes every occurrence.
    """

    update: Dict[str, Any] = {}
    for field, values in (add or {}).items():
        members = sorted(set(values))
        if field not in SET_FIELDS:
            raise ValueError(f"{field} is not a set-field")
        if members:
            update.setdefault("$addToSet", {})[field] = {"$each": members}
    for field, values in (remove or {}).items():
        members = sorted(set(values))
        if field not in SET_FIELDS:
            raise ValueError(f"{field} is not a set-field")
        if field in update.get("$addToSet", {}):
            raise ValueError(f"{field} cannot be added to and pulled from in one update")
        if members:
            update.setdefault("$pullAll", {})[field] = members
    if updated_at is not None:
        update["$set"] = {"updatedAt": updated_at}
    return update


class UserRepository:
    """Thin abstraction over the user MongoDB collection."""

    def __init__(self, database: AsyncIOMotorDatabase) -> None:
        self._database = database
        self._collection: AsyncIOMotorCollection = database[USERS_COLLECTION]
        self._archive: AsyncIOMotorCollection = database[DELETED_USERS_COLLECTION]

    @property
    def collection(self) -> AsyncIOMotorCollection:
        return self._collection

    async def get(
        self,
        user_id: str,
        *,
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> Optional[UserDocument]:
        with store_errors("load user"):
            doc = await self._collection.find_one({"_id": user_id}, session=session)
        return UserDocument(**doc) if doc else None

    async def require(
        self,
        user_id: str,
        *,
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> UserDocument:
        user = await self.get(user_id, session=session)
        if user is None:
            raise NotFoundRepositoryError(f"user {user_id} not found")
        return user

    async def exists(self, user_id: str) -> bool:
        with store_errors("check user"):
            doc = await self._collection.find_one({"_id": user_id}, projection={"_id": 1})
        return doc is not None

    async def get_many(self, user_ids: Iterable[str]) -> Dict[str, UserDocument]:
        ids = sorted(set(user_ids))
        if not ids:
            return {}
        with store_errors("load users"):
            docs = await self._collection.find({"_id": {"$in": ids}}).to_list(length=None)
        return {doc["_id"]: UserDocument(**doc) for doc in docs}

    async def create_stub(
        self,
        *,
        user_id: str,
        username: Optional[str],
        email: Optional[str],
        created_at: int,
    ) -> tuple[UserDocument, bool]:
        """Insert the sign-up stub; an existing record is returned untouched."""

        stub: Dict[str, Any] = {
            "username": username,
            "email": email,
            "paused": False,
            "onboardingCompleted": False,
            "photos": [],
            "privatePhotos": [],
            "interestedIn": [],
            "createdAt": created_at,
            "updatedAt": created_at,
        }
        stub.update({field: [] for field in SET_FIELDS})
        with store_errors("create user"):
            result = await self._collection.update_one(
                {"_id": user_id},
                {"$setOnInsert": stub},
                upsert=True,
            )
        created = result.upserted_id is not None
        return await self.require(user_id), created

    async def update_fields(self, user_id: str, updates: Dict[str, Any]) -> UserDocument:
        with store_errors("update user"):
            doc = await self._collection.find_one_and_update(
                {"_id": user_id},
                {"$set": updates},
                return_document=ReturnDocument.AFTER,
            )
        if not doc:
            raise NotFoundRepositoryError(f"user {user_id} not found")
        return UserDocument(**doc)

    async def apply_set_ops(
        self,
        user_id: str,
        *,
        add: Optional[SetOps] = None,
        remove: Optional[SetOps] = None,
        updated_at: Optional[int] = None,
        guard: Optional[Dict[str, Any]] = None,
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> bool:
        """Apply set-field mutations to one user as a single atomic update.

        ``guard`` adds conditions to the filter; when they do not hold the
        document is left unchanged and False is returned.
        """

        update = build_set_update(add=add, remove=remove, updated_at=updated_at)
        if not update:
            return True
        query: Dict[str, Any] = {**(guard or {}), "_id": user_id}
        with store_errors("update user sets"):
            result = await self._collection.update_one(query, update, session=session)
        if result.matched_count == 1:
            return True
        if guard and await self.exists(user_id):
            return False
        raise NotFoundRepositoryError(f"user {user_id} not found")

    async def move_member(
        self,
        user_id: str,
        member: str,
        *,
        source: str,
        target: str,
        updated_at: int,
    ) -> bool:
        """Move ``member`` from one set-field to another, only if it is in ``source``.

        Returns False when ``member`` was not in ``source``; the document is
        left unchanged in that case.
        """

        update = build_set_update(add={target: [member]}, remove={source: [member]}, updated_at=updated_at)
        with store_errors("move set member"):
            result = await self._collection.update_one({"_id": user_id, source: member}, update)
        return result.matched_count == 1

    async def find_candidates(
        self,
        *,
        exclude: Iterable[str],
        genders: Optional[List[str]] = None,
        min_age: Optional[int] = None,
        max_age: Optional[int] = None,
        after: Optional[str] = None,
        limit: int = 20,
    ) -> List[UserDocument]:
        id_filter: Dict[str, Any] = {"$nin": sorted(set(exclude))}
        if after:
            id_filter["$gt"] = after
        query: Dict[str, Any] = {
            "_id": id_filter,
            "paused": {"$ne": True},
            "onboardingCompleted": True,
        }
        if genders:
            query["gender"] = {"$in": list(genders)}
        age_filter: Dict[str, int] = {}
        if min_age is not None:
            age_filter["$gte"] = min_age
        if max_age is not None:
            age_filter["$lte"] = max_age
        if age_filter:
            query["age"] = age_filter

        with store_errors("candidate lookup"):
            cursor = self._collection.find(query).sort("_id", ASCENDING).limit(limit)
            docs = await cursor.to_list(length=limit)
        return [UserDocument(**doc) for doc in docs]

    async def archive_and_delete(
        self,
        user: UserDocument,
        *,
        deleted_at: int,
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> None:
        raw = user.model_dump(by_alias=True, exclude_none=True)
        archived = {key: raw[key] for key in ARCHIVED_FIELDS if key in raw}
        archived.update({"_id": user.id, "deletedAt": deleted_at})
        with store_errors("archive user"):
            await self._archive.replace_one({"_id": user.id}, archived, upsert=True, session=session)
            await self._collection.delete_one({"_id": user.id}, session=session)
        LOGGER.info("Archived user %s into %s", user.id, DELETED_USERS_COLLECTION)

    async def get_archived(self, user_id: str) -> Optional[Dict[str, Any]]:
        with store_errors("load archived user"):
            return await self._archive.find_one({"_id": user_id})


__all__ = ["UserRepository", "build_set_update"]
