"""Private album access: NotRequested -> Requested -> Accepted.

All state lives on the owner's record (``privateRequests`` and
``privateAccepted``), so every transition is one conditional update of a
single document and concurrent accept/revoke calls serialise on it.
"""

from __future__ import annotations

import time
from typing import List

from ..db import get_db
from ..models.user import AccessState, ProfileSummary, UserDocument
from ..repositories.exceptions import NotFoundRepositoryError, RepositoryError
from ..repositories.users import UserRepository
from .errors import FailedPrecondition, Internal, InvalidArgument, NotFound


def access_state_for(viewer_id: str, owner: UserDocument) -> AccessState:
    if viewer_id == owner.id:
        return "owner"
    if viewer_id in owner.private_accepted:
        return "accepted"
    if viewer_id in owner.private_requests:
        return "requested"
    return "none"


def can_view_private_album(viewer_id: str, owner: UserDocument) -> bool:
    return access_state_for(viewer_id, owner) in ("owner", "accepted")


class AccessService:
    def __init__(self, users: UserRepository) -> None:
        self._users = users

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)

    async def _load(self, user_id: str) -> UserDocument:
        try:
            user = await self._users.get(user_id)
        except RepositoryError as exc:
            raise Internal("unable to load user", retryable=True) from exc
        if user is None:
            raise NotFound(f"user {user_id} not found")
        return user

    async def request_access(self, requester_id: str, owner_id: str) -> AccessState:
        if requester_id == owner_id:
            raise InvalidArgument("cannot request access to your own album")
        await self._load(requester_id)
        owner = await self._load(owner_id)
        if requester_id in owner.private_accepted:
            raise FailedPrecondition("access already granted")
        try:
            applied = await self._users.apply_set_ops(
                owner_id,
                add={"privateRequests": [requester_id]},
                updated_at=self._now_ms(),
                guard={"privateAccepted": {"$ne": requester_id}},
            )
        except NotFoundRepositoryError as exc:
            raise NotFound(str(exc)) from exc
        except RepositoryError as exc:
            raise Internal("unable to request access", retryable=True) from exc
        if not applied:
            raise FailedPrecondition("access already granted")
        return "requested"

    async def accept_request(self, owner_id: str, requester_id: str) -> None:
        try:
            moved = await self._users.move_member(
                owner_id,
                requester_id,
                source="privateRequests",
                target="privateAccepted",
                updated_at=self._now_ms(),
            )
            if not moved and not await self._users.exists(owner_id):
                raise NotFound(f"user {owner_id} not found")
        except RepositoryError as exc:
            raise Internal("unable to accept request", retryable=True) from exc
        if not moved:
            raise FailedPrecondition(f"no pending request from {requester_id}")

    async def decline_request(self, owner_id: str, requester_id: str) -> None:
        await self._update_owner(owner_id, remove={"privateRequests": [requester_id]}, action="decline request")

    async def revoke_access(self, owner_id: str, requester_id: str) -> None:
        await self._update_owner(owner_id, remove={"privateAccepted": [requester_id]}, action="revoke access")

    async def share_album(self, owner_id: str, target_id: str) -> None:
        """Grant access without waiting for a request."""
        if owner_id == target_id:
            raise InvalidArgument("cannot share your album with yourself")
        await self._load(target_id)
        await self._update_owner(
            owner_id,
            add={"privateAccepted": [target_id]},
            remove={"privateRequests": [target_id]},
            action="share album",
        )

    async def _update_owner(self, owner_id: str, *, add=None, remove=None, action: str) -> None:
        try:
            await self._users.apply_set_ops(owner_id, add=add, remove=remove, updated_at=self._now_ms())
        except NotFoundRepositoryError as exc:
            raise NotFound(str(exc)) from exc
        except RepositoryError as exc:
            raise Internal(f"unable to {action}", retryable=True) from exc

    async def access_state(self, viewer_id: str, owner_id: str) -> AccessState:
        owner = await self._load(owner_id)
        return access_state_for(viewer_id, owner)

    async def pending_requests(self, owner_id: str) -> List[ProfileSummary]:
        owner = await self._load(owner_id)
        return await self._summaries(owner.private_requests)

    async def accepted_viewers(self, owner_id: str) -> List[ProfileSummary]:
        owner = await self._load(owner_id)
        return await self._summaries(owner.private_accepted)

    async def _summaries(self, user_ids) -> List[ProfileSummary]:
        try:
            docs = await self._users.get_many(user_ids)
        except RepositoryError as exc:
            raise Internal("unable to load profiles", retryable=True) from exc
        return [ProfileSummary.from_document(docs[uid]) for uid in sorted(docs)]


def get_access_service() -> AccessService:
    return AccessService(users=UserRepository(get_db()))


__all__ = [
    "AccessService",
    "access_state_for",
    "can_view_private_album",
    "get_access_service",
]
