"""Like / Decline / Match transitions between two user records.

Per ordered pair (actor → target) the states are Unseen, Liked, Declined and
Matched; Liked and Declined are terminal for that direction and Matched needs
both directions to agree. Every write is a set-union or set-remove, so retries
after a partial failure converge instead of duplicating.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import List, Tuple

from pymongo.errors import PyMongoError

from ..db import get_db, start_transaction
from ..models.match import MatchDocument
from ..models.user import ProfileSummary, UserDocument
from ..repositories.exceptions import (
    DuplicateKeyRepositoryError,
    NotFoundRepositoryError,
    RepositoryError,
)
from ..repositories.matches import MatchRepository
from ..repositories.users import UserRepository
from .errors import FailedPrecondition, Internal, InvalidArgument, NotFound

LOGGER = logging.getLogger("uvicorn.error")


class InteractionService:
    """Applies one user's gesture on another user's profile."""

    def __init__(self, users: UserRepository, matches: MatchRepository) -> None:
        self._users = users
        self._matches = matches

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)

    @staticmethod
    def _check_pair(actor_id: str, target_id: str, verb: str) -> None:
        if actor_id == target_id:
            raise InvalidArgument(f"cannot {verb} yourself")

    async def _load(self, user_id: str) -> UserDocument:
        try:
            user = await self._users.get(user_id)
        except RepositoryError as exc:
            raise Internal("unable to load user", retryable=True) from exc
        if user is None:
            raise NotFound(f"user {user_id} not found")
        return user

    async def like(self, actor_id: str, target_id: str) -> bool:
        """Record actor's like; returns True when target already liked actor."""

        self._check_pair(actor_id, target_id, "like")
        actor = await self._load(actor_id)
        await self._load(target_id)
        now = self._now_ms()
        try:
            applied = await self._users.apply_set_ops(
                actor_id,
                add={"likedUsers": [target_id], "hiddenProfiles": [target_id]},
                updated_at=now,
                guard={"declinedUsers": {"$ne": target_id}},
            )
            if not applied:
                raise FailedPrecondition("profile was already declined")
            await self._users.apply_set_ops(
                target_id,
                add={"receivedLikes": [actor_id]},
                updated_at=now,
            )
        except NotFoundRepositoryError as exc:
            raise NotFound(str(exc)) from exc
        except RepositoryError as exc:
            LOGGER.error("Like %s -> %s failed: %s", actor_id, target_id, exc)
            raise Internal("unable to like user", retryable=True) from exc
        return target_id in actor.received_likes

    async def decline(self, actor_id: str, target_id: str) -> None:
        self._check_pair(actor_id, target_id, "decline")
        await self._load(actor_id)
        await self._load(target_id)
        now = self._now_ms()
        try:
            if await self._matches.get_by_pair(actor_id, target_id) is not None:
                raise FailedPrecondition("already matched; delete the match instead")
            applied = await self._users.apply_set_ops(
                actor_id,
                add={"declinedUsers": [target_id], "hiddenProfiles": [target_id]},
                remove={"receivedLikes": [target_id]},
                updated_at=now,
                guard={"likedUsers": {"$ne": target_id}},
            )
            if not applied:
                raise FailedPrecondition("profile was already liked")
            await self._users.apply_set_ops(
                target_id,
                add={"receivedDeclines": [actor_id]},
                updated_at=now,
            )
        except NotFoundRepositoryError as exc:
            raise NotFound(str(exc)) from exc
        except RepositoryError as exc:
            LOGGER.error("Decline %s -> %s failed: %s", actor_id, target_id, exc)
            raise Internal("unable to decline user", retryable=True) from exc

    async def match(self, actor_id: str, target_id: str) -> Tuple[MatchDocument, bool]:
        """Accept a received like, creating the pair's single match record.

        Returns ``(record, created)``; ``created`` is False when the pair was
        already matched (a retry or a concurrent call won the race).
        """

        self._check_pair(actor_id, target_id, "match")
        actor = await self._load(actor_id)
        target = await self._load(target_id)

        try:
            existing = await self._matches.get_by_pair(actor_id, target_id)
        except RepositoryError as exc:
            raise Internal("unable to load match", retryable=True) from exc
        if existing is not None:
            await self._reconcile(existing, actor_id, target_id)
            return existing, False

        if target_id not in actor.received_likes:
            raise FailedPrecondition("user has not liked you")

        match_id = uuid.uuid4().hex
        now = self._now_ms()
        try:
            async with start_transaction() as session:
                record = await self._matches.insert(
                    match_id=match_id,
                    user_a=actor_id,
                    user_b=target_id,
                    created_at=now,
                    session=session,
                )
                try:
                    await self._link(record, actor_id, target_id, now, session=session)
                except RepositoryError:
                    if session is None:
                        await self._compensate(record, actor, target)
                    raise
        except DuplicateKeyRepositoryError:
            try:
                winner = await self._matches.get_by_pair(actor_id, target_id)
            except RepositoryError as exc:
                raise Internal("unable to load match", retryable=True) from exc
            if winner is None:
                raise Internal("match record vanished during creation", retryable=True) from None
            LOGGER.info("Concurrent match for %s and %s resolved to %s", actor_id, target_id, winner.id)
            await self._reconcile(winner, actor_id, target_id)
            return winner, False
        except NotFoundRepositoryError as exc:
            raise NotFound(str(exc)) from exc
        except (RepositoryError, PyMongoError) as exc:
            LOGGER.error("Match %s <-> %s failed: %s", actor_id, target_id, exc)
            raise Internal("unable to create match", retryable=True) from exc

        LOGGER.info("Match %s created for %s and %s", record.id, actor_id, target_id)
        return record, True

    async def _link(self, record: MatchDocument, actor_id: str, target_id: str, now: int, *, session) -> None:
        # The actor's pending like must be the last thing consumed
        await self._users.apply_set_ops(
            target_id,
            add={"matches": [record.id]},
            remove={"receivedLikes": [actor_id]},
            updated_at=now,
            session=session,
        )
        await self._users.apply_set_ops(
            actor_id,
            add={"matches": [record.id], "hiddenProfiles": [target_id]},
            remove={"receivedLikes": [target_id]},
            updated_at=now,
            session=session,
        )

    async def _compensate(self, record: MatchDocument, actor: UserDocument, target: UserDocument) -> None:
        """Undo a half-applied match when no transaction is available.

        ``actor`` and ``target`` are the records as loaded before linking;
        every like and hidden entry the attempt consumed is put back.
        """

        try:
            await self._matches.delete(record.id)
            for user, other in ((actor, target), (target, actor)):
                add = {}
                remove = {"matches": [record.id]}
                if other.id in user.received_likes:
                    add["receivedLikes"] = [other.id]
                if other.id not in user.hidden_profiles:
                    remove["hiddenProfiles"] = [other.id]
                try:
                    await self._users.apply_set_ops(user.id, add=add, remove=remove)
                except NotFoundRepositoryError:
                    continue
        except RepositoryError as exc:
            # Left for the reconciliation on the next Match call for this pair
            LOGGER.error("Compensation for match %s failed: %s", record.id, exc)
        else:
            LOGGER.warning("Rolled back partially created match %s", record.id)

    async def _reconcile(self, record: MatchDocument, actor_id: str, target_id: str) -> None:
        """Bring both users in line with an existing record for their pair."""

        try:
            users = await self._users.get_many(record.users)
            now = self._now_ms()
            for user_id, user in users.items():
                if user_id in record.left_by:
                    continue
                other_id = target_id if user_id == actor_id else actor_id
                add = {}
                remove = {}
                if record.id not in user.matches:
                    add["matches"] = [record.id]
                if other_id in user.received_likes:
                    remove["receivedLikes"] = [other_id]
                if user_id == actor_id and other_id not in user.hidden_profiles:
                    add["hiddenProfiles"] = [other_id]
                if add or remove:
                    LOGGER.warning("Reconciling user %s with match %s", user_id, record.id)
                    await self._users.apply_set_ops(user_id, add=add, remove=remove, updated_at=now)
        except NotFoundRepositoryError:
            return
        except RepositoryError as exc:
            raise Internal("unable to reconcile match", retryable=True) from exc

    async def received_likes(self, actor_id: str) -> List[ProfileSummary]:
        actor = await self._load(actor_id)
        try:
            likers = await self._users.get_many(actor.received_likes)
        except RepositoryError as exc:
            raise Internal("unable to load likes", retryable=True) from exc
        return [ProfileSummary.from_document(likers[uid]) for uid in sorted(likers)]


def get_interaction_service() -> InteractionService:
    db = get_db()
    return InteractionService(users=UserRepository(db), matches=MatchRepository(db))


__all__ = ["InteractionService", "get_interaction_service"]
