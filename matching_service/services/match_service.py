from __future__ import annotations

import logging
import time
import uuid
from typing import List, Optional, Tuple

from pymongo.errors import PyMongoError

from ..config import get_settings
from ..db import get_db, start_transaction
from ..models.match import MatchDocument, MatchSummary, MessageItem
from ..models.user import ProfileSummary
from ..repositories.exceptions import NotFoundRepositoryError, RepositoryError
from ..repositories.matches import MatchRepository
from ..repositories.users import UserRepository
from .errors import FailedPrecondition, Internal, InvalidArgument, NotFound, PermissionDenied

LOGGER = logging.getLogger("uvicorn.error")

DELETE_MODES = ("unlink", "hard")


class MatchService:
    """Match registry and the message log embedded in each match record."""

    def __init__(
        self,
        users: UserRepository,
        matches: MatchRepository,
        *,
        delete_mode: str = "unlink",
        message_max_length: int = 2000,
    ) -> None:
        if delete_mode not in DELETE_MODES:
            raise ValueError(f"unknown match delete mode: {delete_mode}")
        self._users = users
        self._matches = matches
        self._delete_mode = delete_mode
        self._message_max_length = message_max_length

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)

    async def _participant_record(self, match_id: str, user_id: str) -> MatchDocument:
        try:
            record = await self._matches.get(match_id)
        except RepositoryError as exc:
            raise Internal("unable to load match", retryable=True) from exc
        if record is None:
            raise NotFound(f"match {match_id} not found")
        if not record.has_participant(user_id):
            raise PermissionDenied("not a participant of this match")
        return record

    async def send_message(
        self,
        match_id: str,
        sender_id: str,
        text: str,
        *,
        message_id: Optional[str] = None,
    ) -> Tuple[MessageItem, bool]:
        """Append a message; returns ``(message, appended)``.

        ``appended`` is False when ``message_id`` was already in the log, in
        which case the stored message is returned.
        """

        cleaned = (text or "").strip()
        if not cleaned:
            raise InvalidArgument("message text is empty")
        if len(cleaned) > self._message_max_length:
            raise InvalidArgument(f"message exceeds {self._message_max_length} characters")

        record = await self._participant_record(match_id, sender_id)
        recipient_id = record.other_participant(sender_id)
        if recipient_id is None:
            raise Internal(f"match {match_id} does not have two participants")
        if record.left_by:
            raise FailedPrecondition("conversation is closed")

        message = MessageItem(
            message_id=message_id or uuid.uuid4().hex,
            sender_id=sender_id,
            text=cleaned,
            created_at=self._now_ms(),
        )
        try:
            appended = await self._matches.append_message(match_id, message, recipient_id=recipient_id)
            if not appended:
                stored = await self._matches.get(match_id)
                previous = next(
                    (m for m in (stored.messages if stored else []) if m.message_id == message.message_id),
                    None,
                )
                if previous is None:
                    raise Internal("message was neither appended nor found")
                if previous.sender_id != sender_id:
                    raise FailedPrecondition("messageId is already used by another participant")
                return previous, False
        except NotFoundRepositoryError as exc:
            raise NotFound(str(exc)) from exc
        except RepositoryError as exc:
            LOGGER.error("Append to match %s failed: %s", match_id, exc)
            # Without a client id a blind retry could duplicate the message
            raise Internal("unable to send message", retryable=message_id is not None) from exc
        return message, True

    async def mark_read(self, match_id: str, reader_id: str) -> bool:
        await self._participant_record(match_id, reader_id)
        try:
            return await self._matches.mark_read(match_id, reader_id)
        except RepositoryError as exc:
            raise Internal("unable to mark messages read", retryable=True) from exc

    async def get_match(self, match_id: str, user_id: str) -> Tuple[MatchDocument, Optional[ProfileSummary]]:
        record = await self._participant_record(match_id, user_id)
        other_id = record.other_participant(user_id)
        other = None
        if other_id:
            try:
                other_doc = await self._users.get(other_id)
            except RepositoryError as exc:
                raise Internal("unable to load profile", retryable=True) from exc
            if other_doc is not None:
                other = ProfileSummary.from_document(other_doc)
        return record, other

    async def delete_match(self, match_id: str, user_id: str) -> bool:
        """Remove the match from ``user_id``'s list.

        Returns True when the record itself was deleted: always in ``hard``
        mode, and in ``unlink`` mode once both participants have left.
        """

        record = await self._participant_record(match_id, user_id)
        try:
            if self._delete_mode == "hard":
                await self._hard_delete(record)
                LOGGER.info("Match %s deleted by %s", match_id, user_id)
                return True
            return await self._unlink(record, user_id)
        except RepositoryError as exc:
            LOGGER.error("Delete of match %s by %s failed: %s", match_id, user_id, exc)
            raise Internal("unable to delete match", retryable=True) from exc

    async def _unlink(self, record: MatchDocument, user_id: str) -> bool:
        try:
            await self._users.apply_set_ops(user_id, remove={"matches": [record.id]}, updated_at=self._now_ms())
        except NotFoundRepositoryError:
            pass
        updated = await self._matches.add_left_by(record.id, user_id)
        if updated is None:
            return True
        if set(updated.users) <= updated.left_by:
            await self._matches.delete(record.id)
            LOGGER.info("Match %s deleted after both participants left", record.id)
            return True
        return False

    async def _hard_delete(self, record: MatchDocument) -> None:
        try:
            async with start_transaction() as session:
                await self._matches.delete(record.id, session=session)
                for participant in record.users:
                    try:
                        await self._users.apply_set_ops(
                            participant,
                            remove={"matches": [record.id]},
                            session=session,
                        )
                    except NotFoundRepositoryError:
                        continue
        except PyMongoError as exc:
            raise RepositoryError(f"delete match transaction failed: {exc}") from exc

    async def leave_all(self, user_id: str, match_ids) -> None:
        for match_id in sorted(match_ids):
            try:
                await self.delete_match(match_id, user_id)
            except NotFound:
                continue

    async def list_matches(self, user_id: str) -> List[MatchSummary]:
        try:
            user = await self._users.get(user_id)
            if user is None:
                raise NotFound(f"user {user_id} not found")
            records = await self._matches.get_many(user.matches)
            found = {record.id for record in records}
            dangling = user.matches - found
            if dangling:
                LOGGER.warning("User %s references missing matches: %s", user_id, sorted(dangling))
            other_ids = [record.other_participant(user_id) for record in records]
            others = await self._users.get_many(uid for uid in other_ids if uid)
        except RepositoryError as exc:
            raise Internal("unable to load matches", retryable=True) from exc

        summaries: List[MatchSummary] = []
        for record, other_id in zip(records, other_ids):
            if not record.has_participant(user_id):
                continue
            other_doc = others.get(other_id) if other_id else None
            summaries.append(
                MatchSummary(
                    match_id=record.id,
                    other_user=ProfileSummary.from_document(other_doc) if other_doc else None,
                    message_preview=record.message_preview,
                    last_message_at=record.last_message_at,
                    read=record.read.get(user_id, False),
                    active=not record.left_by,
                )
            )
        summaries.sort(key=lambda item: (item.last_message_at, item.match_id), reverse=True)
        return summaries


def get_match_service() -> MatchService:
    db = get_db()
    settings = get_settings()
    return MatchService(
        users=UserRepository(db),
        matches=MatchRepository(db),
        delete_mode=settings.match_delete_mode,
        message_max_length=settings.message_max_length,
    )


__all__ = ["DELETE_MODES", "MatchService", "get_match_service"]
