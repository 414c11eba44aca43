from typing import List, Literal, Optional, Set

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_serializer

from .identifiers import RecordId

SET_FIELDS = (
    "likedUsers",
    "declinedUsers",
    "receivedLikes",
    "receivedDeclines",
    "hiddenProfiles",
    "matches",
    "privateRequests",
    "privateAccepted",
)


class Birthdate(BaseModel):
    day: int = Field(ge=1, le=31)
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=1900, le=2100)


class Location(BaseModel):
    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)


class UserDocument(BaseModel):
    """Canonical user record stored in the ``users`` collection."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(validation_alias=AliasChoices("_id", "id"), serialization_alias="id")
    username: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    age: Optional[int] = None
    birthdate: Optional[Birthdate] = None
    bio: Optional[str] = None
    gender: Optional[str] = None
    interested_in: Set[str] = Field(default_factory=set, alias="interestedIn")
    photos: List[str] = Field(default_factory=list)
    private_photos: List[str] = Field(default_factory=list, alias="privatePhotos")
    location: Optional[Location] = None
    onboarding_completed: bool = Field(default=False, alias="onboardingCompleted")
    paused: bool = False

    liked_users: Set[str] = Field(default_factory=set, alias="likedUsers")
    declined_users: Set[str] = Field(default_factory=set, alias="declinedUsers")
    received_likes: Set[str] = Field(default_factory=set, alias="receivedLikes")
    received_declines: Set[str] = Field(default_factory=set, alias="receivedDeclines")
    hidden_profiles: Set[str] = Field(default_factory=set, alias="hiddenProfiles")
    matches: Set[str] = Field(default_factory=set)
    private_requests: Set[str] = Field(default_factory=set, alias="privateRequests")
    private_accepted: Set[str] = Field(default_factory=set, alias="privateAccepted")

    created_at: Optional[int] = Field(default=None, alias="createdAt")
    updated_at: Optional[int] = Field(default=None, alias="updatedAt")

    @field_serializer(
        "interested_in",
        "liked_users",
        "declined_users",
        "received_likes",
        "received_declines",
        "hidden_profiles",
        "matches",
        "private_requests",
        "private_accepted",
    )
    def _serialize_set(self, value: Set[str]) -> List[str]:
        return sorted(value)

    def excluded_from_candidates(self) -> Set[str]:
        return {self.id} | self.hidden_profiles | self.liked_users | self.declined_users


class ProfileSummary(BaseModel):
    """Public card shown in candidate decks, like lists and match lists."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: Optional[str] = None
    age: Optional[int] = None
    bio: Optional[str] = None
    gender: Optional[str] = None
    photos: List[str] = Field(default_factory=list)
    distance_km: Optional[float] = Field(default=None, alias="distanceKm")

    @classmethod
    def from_document(cls, doc: UserDocument, distance_km: Optional[float] = None) -> "ProfileSummary":
        return cls(
            id=doc.id,
            name=doc.name,
            age=doc.age,
            bio=doc.bio,
            gender=doc.gender,
            photos=list(doc.photos),
            distance_km=round(distance_km, 1) if distance_km is not None else None,
        )


AccessState = Literal["owner", "accepted", "requested", "none"]


class ProfileView(ProfileSummary):
    """Full profile as seen by another user; private photos are gated."""

    interested_in: List[str] = Field(default_factory=list, alias="interestedIn")
    private_photos: List[str] = Field(default_factory=list, alias="privatePhotos")
    private_photo_count: int = Field(default=0, alias="privatePhotoCount")
    access_state: AccessState = Field(default="none", alias="accessState")


class CreateUserRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: Optional[str] = Field(default=None, max_length=32)
    email: Optional[str] = Field(default=None, max_length=254)


class ProfileUpdate(BaseModel):
    """Onboarding and edit-profile payload; omitted fields stay untouched."""

    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(default=None, max_length=80)
    birthdate: Optional[Birthdate] = None
    age: Optional[int] = Field(default=None, ge=18, le=120)
    bio: Optional[str] = Field(default=None, max_length=600)
    gender: Optional[str] = Field(default=None, max_length=24)
    interested_in: Optional[List[str]] = Field(default=None, alias="interestedIn")
    photos: Optional[List[str]] = None
    private_photos: Optional[List[str]] = Field(default=None, alias="privatePhotos")
    location: Optional[Location] = None


class PauseRequest(BaseModel):
    paused: bool


class CandidateQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_user_id: Optional[RecordId] = Field(default=None, alias="currentUserId")
    genders: Optional[List[str]] = None
    min_age: Optional[int] = Field(default=None, ge=18, le=120, alias="minAge")
    max_age: Optional[int] = Field(default=None, ge=18, le=120, alias="maxAge")
    max_distance_km: Optional[float] = Field(default=None, gt=0, alias="maxDistanceKm")
    limit: int = Field(default=20, ge=1)
    cursor: Optional[RecordId] = None


class CandidatePage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: Literal[True] = True
    profiles: List[ProfileSummary] = Field(default_factory=list)
    next_cursor: Optional[str] = Field(default=None, alias="nextCursor")


class MeResponse(BaseModel):
    success: Literal[True] = True
    user: UserDocument


class ProfileResponse(BaseModel):
    success: Literal[True] = True
    profile: ProfileView


class ProfileListResponse(BaseModel):
    success: Literal[True] = True
    profiles: List[ProfileSummary] = Field(default_factory=list)


__all__ = [
    "AccessState",
    "Birthdate",
    "CandidatePage",
    "CandidateQuery",
    "CreateUserRequest",
    "Location",
    "MeResponse",
    "PauseRequest",
    "ProfileListResponse",
    "ProfileResponse",
    "ProfileSummary",
    "ProfileUpdate",
    "ProfileView",
    "SET_FIELDS",
    "UserDocument",
]
