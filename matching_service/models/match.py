from typing import Dict, List, Optional, Set

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_serializer

from .identifiers import RecordId
from .interactions import ActionResponse
from .user import ProfileSummary


def pair_key(user_a: str, user_b: str) -> str:
    """Order-independent key for the two participants of a match."""
    first, second = sorted((user_a, user_b))
    return f"{first}|{second}"


class MessageItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message_id: str = Field(alias="messageId")
    sender_id: str = Field(alias="senderId")
    text: str
    created_at: int = Field(alias="createdAt")


class MatchDocument(BaseModel):
    """Canonical match record stored in the ``matches`` collection."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(validation_alias=AliasChoices("_id", "id"), serialization_alias="id")
    users: List[str]
    pair_key: str = Field(alias="pairKey")
    messages: List[MessageItem] = Field(default_factory=list)
    message_preview: str = Field(default="", alias="messagePreview")
    last_message_at: int = Field(alias="lastMessageAt")
    read: Dict[str, bool] = Field(default_factory=dict)
    left_by: Set[str] = Field(default_factory=set, alias="leftBy")
    created_at: int = Field(alias="createdAt")

    @field_serializer("left_by")
    def _serialize_left_by(self, value: Set[str]) -> List[str]:
        return sorted(value)

    def other_participant(self, user_id: str) -> Optional[str]:
        others = [uid for uid in self.users if uid != user_id]
        return others[0] if len(others) == 1 else None

    def has_participant(self, user_id: str) -> bool:
        return user_id in self.users


class SendMessageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_user_id: Optional[RecordId] = Field(default=None, alias="currentUserId")
    text: str
    # Client-generated id; a retry carrying the same id is not appended twice
    message_id: Optional[str] = Field(default=None, alias="messageId", min_length=1, max_length=64)


class MatchActorRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_user_id: Optional[RecordId] = Field(default=None, alias="currentUserId")


class SendMessageResponse(ActionResponse):
    message: MessageItem
    appended: bool = True


class MatchSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    match_id: str = Field(alias="matchId")
    other_user: Optional[ProfileSummary] = Field(default=None, alias="otherUser")
    message_preview: str = Field(default="", alias="messagePreview")
    last_message_at: int = Field(alias="lastMessageAt")
    read: bool = False
    active: bool = True


class MatchListResponse(ActionResponse):
    matches: List[MatchSummary] = Field(default_factory=list)


class MatchDetailResponse(ActionResponse):
    match: MatchDocument
    other_user: Optional[ProfileSummary] = Field(default=None, alias="otherUser")

    model_config = ConfigDict(populate_by_name=True)


class MatchDeletedResponse(ActionResponse):
    model_config = ConfigDict(populate_by_name=True)

    match_id: str = Field(alias="matchId")
    record_deleted: bool = Field(default=False, alias="recordDeleted")


__all__ = [
    "MatchActorRequest",
    "MatchDeletedResponse",
    "MatchDetailResponse",
    "MatchDocument",
    "MatchListResponse",
    "MatchSummary",
    "MessageItem",
    "SendMessageRequest",
    "SendMessageResponse",
    "pair_key",
]
