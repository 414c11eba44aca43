from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .identifiers import RecordId
from .user import ProfileSummary


class TargetRequest(BaseModel):
    """Body shared by the like/decline/match callables."""

    model_config = ConfigDict(populate_by_name=True)

    current_user_id: Optional[RecordId] = Field(default=None, alias="currentUserId")
    target_user_id: RecordId = Field(alias="targetUserId")


class ActionResponse(BaseModel):
    success: Literal[True] = True


class LikeResponse(ActionResponse):
    model_config = ConfigDict(populate_by_name=True)

    is_mutual: bool = Field(default=False, alias="isMutual")


class MatchCreatedResponse(ActionResponse):
    model_config = ConfigDict(populate_by_name=True)

    match_id: str = Field(alias="matchId")
    created: bool = True


class ReceivedLikesResponse(ActionResponse):
    profiles: List[ProfileSummary] = Field(default_factory=list)


__all__ = [
    "ActionResponse",
    "LikeResponse",
    "MatchCreatedResponse",
    "ReceivedLikesResponse",
    "TargetRequest",
]
