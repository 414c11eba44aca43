"""MongoDB collection names used by the matching service."""

from __future__ import annotations

USERS_COLLECTION = "users"
MATCHES_COLLECTION = "matches"
DELETED_USERS_COLLECTION = "deleted_users"

__all__ = [
    "USERS_COLLECTION",
    "MATCHES_COLLECTION",
    "DELETED_USERS_COLLECTION",
]
