from fastapi import APIRouter, Depends, status
from fastapi.responses import ORJSONResponse

from ..models.identifiers import RecordId
from ..models.interactions import ActionResponse
from ..models.user import (
    CandidatePage,
    CandidateQuery,
    CreateUserRequest,
    Location,
    MeResponse,
    PauseRequest,
    ProfileResponse,
    ProfileUpdate,
)
from ..services.auth import resolve_actor
from ..services.profile_service import ProfileService, get_profile_service
from .auth import require_caller

router = APIRouter()


@router.post("/users", response_model=MeResponse)
async def create_user(
    body: CreateUserRequest,
    caller_id: str = Depends(require_caller),
    service: ProfileService = Depends(get_profile_service),
):
    user, created = await service.create_user(caller_id, username=body.username, email=body.email)
    payload = MeResponse(user=user).model_dump(by_alias=True, mode="json")
    return ORJSONResponse(
        status_code=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        content=payload,
    )


@router.get("/users/me", response_model=MeResponse)
async def get_me(
    caller_id: str = Depends(require_caller),
    service: ProfileService = Depends(get_profile_service),
):
    return MeResponse(user=await service.get_me(caller_id))


@router.patch("/users/me", response_model=MeResponse)
async def update_me(
    body: ProfileUpdate,
    caller_id: str = Depends(require_caller),
    service: ProfileService = Depends(get_profile_service),
):
    return MeResponse(user=await service.update_profile(caller_id, body))


@router.post("/users/me/pause", response_model=MeResponse)
async def pause_me(
    body: PauseRequest,
    caller_id: str = Depends(require_caller),
    service: ProfileService = Depends(get_profile_service),
):
    return MeResponse(user=await service.set_paused(caller_id, body.paused))


@router.post("/users/me/location", response_model=MeResponse)
async def update_my_location(
    body: Location,
    caller_id: str = Depends(require_caller),
    service: ProfileService = Depends(get_profile_service),
):
    return MeResponse(user=await service.update_location(caller_id, body))


@router.delete("/users/me", response_model=ActionResponse)
async def delete_me(
    caller_id: str = Depends(require_caller),
    service: ProfileService = Depends(get_profile_service),
):
    await service.delete_account(caller_id)
    return ActionResponse()


@router.get("/users/{user_id}", response_model=ProfileResponse)
async def get_profile(
    user_id: RecordId,
    caller_id: str = Depends(require_caller),
    service: ProfileService = Depends(get_profile_service),
):
    return ProfileResponse(profile=await service.get_profile(caller_id, user_id))


@router.post("/candidates", response_model=CandidatePage)
async def fetch_candidates(
    body: CandidateQuery,
    caller_id: str = Depends(require_caller),
    service: ProfileService = Depends(get_profile_service),
):
    actor_id = resolve_actor(caller_id, body.current_user_id)
    profiles, next_cursor = await service.fetch_candidates(actor_id, body)
    return CandidatePage(profiles=profiles, next_cursor=next_cursor)


__all__ = ["router"]
