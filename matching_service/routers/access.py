from fastapi import APIRouter, Depends

from ..models.access import AccessStateResponse, RequesterRequest
from ..models.identifiers import RecordId
from ..models.interactions import ActionResponse, TargetRequest
from ..models.user import ProfileListResponse
from ..services.access_service import AccessService, get_access_service
from ..services.auth import resolve_actor
from .auth import require_caller

router = APIRouter(prefix="/private-access")


@router.post("/request", response_model=AccessStateResponse)
async def request_access(
    body: TargetRequest,
    caller_id: str = Depends(require_caller),
    service: AccessService = Depends(get_access_service),
):
    requester_id = resolve_actor(caller_id, body.current_user_id)
    state = await service.request_access(requester_id, body.target_user_id)
    return AccessStateResponse(owner_id=body.target_user_id, viewer_id=requester_id, state=state)


@router.post("/accept", response_model=ActionResponse)
async def accept_request(
    body: RequesterRequest,
    caller_id: str = Depends(require_caller),
    service: AccessService = Depends(get_access_service),
):
    owner_id = resolve_actor(caller_id, body.current_user_id)
    await service.accept_request(owner_id, body.requester_id)
    return ActionResponse()


@router.post("/decline", response_model=ActionResponse)
async def decline_request(
    body: RequesterRequest,
    caller_id: str = Depends(require_caller),
    service: AccessService = Depends(get_access_service),
):
    owner_id = resolve_actor(caller_id, body.current_user_id)
    await service.decline_request(owner_id, body.requester_id)
    return ActionResponse()


@router.post("/revoke", response_model=ActionResponse)
async def revoke_access(
    body: RequesterRequest,
    caller_id: str = Depends(require_caller),
    service: AccessService = Depends(get_access_service),
):
    owner_id = resolve_actor(caller_id, body.current_user_id)
    await service.revoke_access(owner_id, body.requester_id)
    return ActionResponse()


@router.post("/share", response_model=ActionResponse)
async def share_album(
    body: TargetRequest,
    caller_id: str = Depends(require_caller),
    service: AccessService = Depends(get_access_service),
):
    owner_id = resolve_actor(caller_id, body.current_user_id)
    await service.share_album(owner_id, body.target_user_id)
    return ActionResponse()


@router.get("/requests", response_model=ProfileListResponse)
async def pending_requests(
    caller_id: str = Depends(require_caller),
    service: AccessService = Depends(get_access_service),
):
    return ProfileListResponse(profiles=await service.pending_requests(caller_id))


@router.get("/accepted", response_model=ProfileListResponse)
async def accepted_viewers(
    caller_id: str = Depends(require_caller),
    service: AccessService = Depends(get_access_service),
):
    return ProfileListResponse(profiles=await service.accepted_viewers(caller_id))


@router.get("/{owner_id}", response_model=AccessStateResponse)
async def access_state(
    owner_id: RecordId,
    caller_id: str = Depends(require_caller),
    service: AccessService = Depends(get_access_service),
):
    state = await service.access_state(caller_id, owner_id)
    return AccessStateResponse(owner_id=owner_id, viewer_id=caller_id, state=state)


__all__ = ["router"]
