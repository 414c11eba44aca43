from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .identifiers import RecordId
from .interactions import ActionResponse
from .user import AccessState


class RequesterRequest(BaseModel):
    """Owner-side decision on a requester (accept, decline, revoke)."""

    model_config = ConfigDict(populate_by_name=True)

    current_user_id: Optional[RecordId] = Field(default=None, alias="currentUserId")
    requester_id: RecordId = Field(alias="requesterId")


class AccessStateResponse(ActionResponse):
    model_config = ConfigDict(populate_by_name=True)

    owner_id: str = Field(alias="ownerId")
    viewer_id: str = Field(alias="viewerId")
    state: AccessState


__all__ = ["AccessStateResponse", "RequesterRequest"]
