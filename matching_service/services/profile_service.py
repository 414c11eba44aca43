from __future__ import annotations

import logging
import time
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from pymongo.errors import PyMongoError

from ..config import get_settings
from ..db import get_db, start_transaction
from ..models.user import (
    Birthdate,
    CandidateQuery,
    Location,
    ProfileSummary,
    ProfileUpdate,
    ProfileView,
    UserDocument,
)
from ..repositories.exceptions import NotFoundRepositoryError, RepositoryError
from ..repositories.matches import MatchRepository
from ..repositories.users import UserRepository
from ..utils.geo import haversine_distance_km
from .access_service import access_state_for
from .errors import Internal, InvalidArgument, NotFound
from .match_service import MatchService

LOGGER = logging.getLogger("uvicorn.error")

# Upper bound on store round-trips for one candidate page when filters that
# cannot be pushed into the query (distance) reject most of a batch
_MAX_SCAN_BATCHES = 10


def _clean_str(value: Any, max_len: Optional[int] = None) -> Optional[str]:
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if max_len is not None and len(text) > max_len:
            text = text[:max_len]
        return text
    return None


def _normalize_photo_list(raw: Any, limit: int = 24) -> List[str]:
    photos: List[str] = []
    if isinstance(raw, (list, tuple)):
        for entry in raw:
            cleaned = _clean_str(entry, max_len=512)
            if not cleaned or cleaned in photos:
                continue
            photos.append(cleaned)
            if len(photos) >= limit:
                break
    return photos


def age_from_birthdate(birthdate: Birthdate, today: Optional[date] = None) -> int:
    today = today or date.today()
    age = today.year - birthdate.year
    if (today.month, today.day) < (birthdate.month, birthdate.day):
        age -= 1
    return age


def is_onboarded(doc: Dict[str, Any]) -> bool:
    return bool(doc.get("name") and doc.get("gender") and doc.get("photos"))


class ProfileService:
    """Profile directory: sign-up stubs, edits, candidate lookup, deletion."""

    def __init__(
        self,
        users: UserRepository,
        match_service: MatchService,
        *,
        candidate_page_max: int = 50,
    ) -> None:
        self._users = users
        self._match_service = match_service
        self._candidate_page_max = candidate_page_max

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

    async def create_user(
        self,
        user_id: str,
        *,
        username: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Tuple[UserDocument, bool]:
        try:
            user, created = await self._users.create_stub(
                user_id=user_id,
                username=_clean_str(username, max_len=32),
                email=_clean_str(email, max_len=254),
                created_at=self._now_ms(),
            )
        except RepositoryError as exc:
            raise Internal("unable to create user", retryable=True) from exc
        if created:
            LOGGER.info("Created user %s", user_id)
        return user, created

    async def get_me(self, user_id: str) -> UserDocument:
        return await self._load(user_id)

    async def update_profile(self, user_id: str, payload: ProfileUpdate) -> UserDocument:
        current = await self._load(user_id)
        updates = self._build_updates(payload)
        if not updates:
            return current

        merged = current.model_dump(by_alias=True)
        merged.update(updates)
        if is_onboarded(merged) and not current.onboarding_completed:
            updates["onboardingCompleted"] = True
        updates["updatedAt"] = self._now_ms()
        return await self._write(user_id, updates)

    def _build_updates(self, payload: ProfileUpdate) -> Dict[str, Any]:
        updates: Dict[str, Any] = {}
        fields = payload.model_fields_set

        if "name" in fields:
            updates["name"] = _clean_str(payload.name, max_len=80)
        if "bio" in fields:
            updates["bio"] = _clean_str(payload.bio, max_len=600)
        if "gender" in fields:
            gender = _clean_str(payload.gender, max_len=24)
            updates["gender"] = gender.lower() if gender else None
        if payload.interested_in is not None:
            cleaned = (_clean_str(entry, max_len=24) for entry in payload.interested_in)
            updates["interestedIn"] = sorted({entry.lower() for entry in cleaned if entry})
        if payload.photos is not None:
            updates["photos"] = _normalize_photo_list(payload.photos)
        if payload.private_photos is not None:
            updates["privatePhotos"] = _normalize_photo_list(payload.private_photos)
        if payload.location is not None:
            updates["location"] = payload.location.model_dump()

        if payload.birthdate is not None:
            try:
                date(payload.birthdate.year, payload.birthdate.month, payload.birthdate.day)
            except ValueError:
                raise InvalidArgument("birthdate is not a calendar date") from None
            age = age_from_birthdate(payload.birthdate)
            if age < 18:
                raise InvalidArgument("users must be at least 18")
            if payload.age is not None and payload.age != age:
                raise InvalidArgument("age does not match birthdate")
            updates["birthdate"] = payload.birthdate.model_dump()
            updates["age"] = age
        elif payload.age is not None:
            updates["age"] = payload.age

        return updates

    async def _write(self, user_id: str, updates: Dict[str, Any]) -> UserDocument:
        try:
            return await self._users.update_fields(user_id, updates)
        except NotFoundRepositoryError as exc:
            raise NotFound(str(exc)) from exc
        except RepositoryError as exc:
            raise Internal("unable to update user", retryable=True) from exc

    async def set_paused(self, user_id: str, paused: bool) -> UserDocument:
        return await self._write(user_id, {"paused": bool(paused), "updatedAt": self._now_ms()})

    async def update_location(self, user_id: str, location: Location) -> UserDocument:
        return await self._write(user_id, {"location": location.model_dump(), "updatedAt": self._now_ms()})

    async def get_profile(self, viewer_id: str, user_id: str) -> ProfileView:
        owner = await self._load(user_id)
        viewer_location = None
        if viewer_id != user_id:
            viewer = await self._load(viewer_id)
            viewer_location = viewer.location
        else:
            viewer_location = owner.location

        distance = None
        if viewer_location and owner.location and viewer_id != user_id:
            distance = haversine_distance_km(
                viewer_location.latitude,
                viewer_location.longitude,
                owner.location.latitude,
                owner.location.longitude,
            )

        state = access_state_for(viewer_id, owner)
        summary = ProfileSummary.from_document(owner, distance)
        return ProfileView(
            **summary.model_dump(),
            interested_in=sorted(owner.interested_in),
            private_photos=list(owner.private_photos) if state in ("owner", "accepted") else [],
            private_photo_count=len(owner.private_photos),
            access_state=state,
        )

    async def fetch_candidates(self, user_id: str, query: CandidateQuery) -> Tuple[List[ProfileSummary], Optional[str]]:
        """Return one page of candidates and the cursor for the next page.

        Candidates are ordered by user id; the cursor is the last id examined,
        so profiles dropped by the distance filter are not scanned again.
        """

        if query.min_age is not None and query.max_age is not None and query.min_age > query.max_age:
            raise InvalidArgument("minAge must not exceed maxAge")
        if query.limit > self._candidate_page_max:
            raise InvalidArgument(f"limit must be at most {self._candidate_page_max}")

        user = await self._load(user_id)
        genders = query.genders or sorted(user.interested_in) or None
        if genders:
            genders = [gender.strip().lower() for gender in genders if gender and gender.strip()]
        origin = user.location
        if query.max_distance_km is not None and origin is None:
            raise InvalidArgument("set a location before filtering by distance")

        exclude = user.excluded_from_candidates()
        page: List[ProfileSummary] = []
        after = query.cursor
        more = True
        batches = 0
        try:
            while more and len(page) < query.limit and batches < _MAX_SCAN_BATCHES:
                batches += 1
                batch = await self._users.find_candidates(
                    exclude=exclude,
                    genders=genders,
                    min_age=query.min_age,
                    max_age=query.max_age,
                    after=after,
                    limit=query.limit,
                )
                more = len(batch) == query.limit
                for index, doc in enumerate(batch):
                    after = doc.id
                    distance = None
                    if origin is not None and doc.location is not None:
                        distance = haversine_distance_km(
                            origin.latitude,
                            origin.longitude,
                            doc.location.latitude,
                            doc.location.longitude,
                        )
                    if query.max_distance_km is not None and (distance is None or distance > query.max_distance_km):
                        continue
                    page.append(ProfileSummary.from_document(doc, distance))
                    if len(page) >= query.limit:
                        more = more or index < len(batch) - 1
                        break
        except RepositoryError as exc:
            raise Internal("unable to fetch candidates", retryable=True) from exc

        return page, after if more else None

    async def delete_account(self, user_id: str) -> None:
        """Leave every match, then archive and remove the user as one unit.

        Each leave is its own idempotent DeleteMatch, so a retry after a
        failure only repeats the ones still listed in ``matches``.
        """

        user = await self._load(user_id)
        await self._match_service.leave_all(user_id, user.matches)
        try:
            async with start_transaction() as session:
                await self._users.archive_and_delete(user, deleted_at=self._now_ms(), session=session)
        except (RepositoryError, PyMongoError) as exc:
            LOGGER.error("Deleting account %s failed: %s", user_id, exc)
            raise Internal("unable to delete account", retryable=True) from exc
        LOGGER.info("Deleted account %s", user_id)


def get_profile_service() -> ProfileService:
    db = get_db()
    settings = get_settings()
    users = UserRepository(db)
    match_service = MatchService(
        users=users,
        matches=MatchRepository(db),
        delete_mode=settings.match_delete_mode,
        message_max_length=settings.message_max_length,
    )
    return ProfileService(
        users=users,
        match_service=match_service,
        candidate_page_max=settings.candidate_page_max,
    )


__all__ = [
    "ProfileService",
    "age_from_birthdate",
    "get_profile_service",
    "is_onboarded",
]
