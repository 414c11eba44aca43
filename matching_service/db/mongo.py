from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from .collections import DELETED_USERS_COLLECTION, MATCHES_COLLECTION, USERS_COLLECTION


async def ensure_user_indexes(db: AsyncIOMotorDatabase) -> None:
    collection = db[USERS_COLLECTION]
    await collection.create_index("paused", name="users_paused_idx")
    await collection.create_index([("gender", ASCENDING), ("age", ASCENDING)], name="users_gender_age_idx")
    await db[DELETED_USERS_COLLECTION].create_index("deletedAt", name="deleted_users_deleted_at_idx")


async def ensure_match_indexes(db: AsyncIOMotorDatabase) -> None:
    collection = db[MATCHES_COLLECTION]
    # One match per unordered pair; concurrent Match calls race on this index
    await collection.create_index(
        [("pairKey", ASCENDING)],
        name="matches_pair_key_unique",
        unique=True,
    )
    await collection.create_index(
        [("users", ASCENDING), ("lastMessageAt", DESCENDING)],
        name="matches_users_last_message_idx",
    )


__all__ = ["ensure_user_indexes", "ensure_match_indexes"]
