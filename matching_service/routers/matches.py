from typing import Optional

from fastapi import APIRouter, Body, Depends

from ..models.identifiers import RecordId
from ..models.interactions import ActionResponse
from ..models.match import (
    MatchActorRequest,
    MatchDeletedResponse,
    MatchDetailResponse,
    MatchListResponse,
    SendMessageRequest,
    SendMessageResponse,
)
from ..services.auth import resolve_actor
from ..services.match_service import MatchService, get_match_service
from .auth import require_caller

router = APIRouter(prefix="/matches")


@router.get("", response_model=MatchListResponse)
async def list_matches(
    caller_id: str = Depends(require_caller),
    service: MatchService = Depends(get_match_service),
):
    return MatchListResponse(matches=await service.list_matches(caller_id))


@router.get("/{match_id}", response_model=MatchDetailResponse)
async def get_match(
    match_id: RecordId,
    caller_id: str = Depends(require_caller),
    service: MatchService = Depends(get_match_service),
):
    record, other = await service.get_match(match_id, caller_id)
    return MatchDetailResponse(match=record, other_user=other)


@router.post("/{match_id}/messages", response_model=SendMessageResponse)
async def send_message(
    match_id: RecordId,
    body: SendMessageRequest,
    caller_id: str = Depends(require_caller),
    service: MatchService = Depends(get_match_service),
):
    sender_id = resolve_actor(caller_id, body.current_user_id)
    message, appended = await service.send_message(
        match_id,
        sender_id,
        body.text,
        message_id=body.message_id,
    )
    return SendMessageResponse(message=message, appended=appended)


@router.post("/{match_id}/read", response_model=ActionResponse)
async def mark_read(
    match_id: RecordId,
    body: Optional[MatchActorRequest] = Body(default=None),
    caller_id: str = Depends(require_caller),
    service: MatchService = Depends(get_match_service),
):
    reader_id = resolve_actor(caller_id, body.current_user_id if body else None)
    await service.mark_read(match_id, reader_id)
    return ActionResponse()


@router.delete("/{match_id}", response_model=MatchDeletedResponse)
async def delete_match(
    match_id: RecordId,
    caller_id: str = Depends(require_caller),
    service: MatchService = Depends(get_match_service),
):
    record_deleted = await service.delete_match(match_id, caller_id)
    return MatchDeletedResponse(match_id=match_id, record_deleted=record_deleted)


__all__ = ["router"]
