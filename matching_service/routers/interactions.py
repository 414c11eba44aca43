from fastapi import APIRouter, Depends

from ..models.interactions import (
    ActionResponse,
    LikeResponse,
    MatchCreatedResponse,
    ReceivedLikesResponse,
    TargetRequest,
)
from ..services.auth import resolve_actor
from ..services.interaction_service import InteractionService, get_interaction_service
from .auth import require_caller

router = APIRouter(prefix="/interactions")


@router.post("/like", response_model=LikeResponse)
async def like(
    body: TargetRequest,
    caller_id: str = Depends(require_caller),
    service: InteractionService = Depends(get_interaction_service),
):
    actor_id = resolve_actor(caller_id, body.current_user_id)
    is_mutual = await service.like(actor_id, body.target_user_id)
    return LikeResponse(is_mutual=is_mutual)


@router.post("/decline", response_model=ActionResponse)
async def decline(
    body: TargetRequest,
    caller_id: str = Depends(require_caller),
    service: InteractionService = Depends(get_interaction_service),
):
    actor_id = resolve_actor(caller_id, body.current_user_id)
    await service.decline(actor_id, body.target_user_id)
    return ActionResponse()


@router.post("/match", response_model=MatchCreatedResponse)
async def match(
    body: TargetRequest,
    caller_id: str = Depends(require_caller),
    service: InteractionService = Depends(get_interaction_service),
):
    actor_id = resolve_actor(caller_id, body.current_user_id)
    record, created = await service.match(actor_id, body.target_user_id)
    return MatchCreatedResponse(match_id=record.id, created=created)


@router.get("/received", response_model=ReceivedLikesResponse)
async def received_likes(
    caller_id: str = Depends(require_caller),
    service: InteractionService = Depends(get_interaction_service),
):
    return ReceivedLikesResponse(profiles=await service.received_likes(caller_id))


__all__ = ["router"]
