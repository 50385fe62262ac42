"""User endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from staccato.api.deps import get_current_user, get_user_service
from staccato.contracts.user import UserCreateRequest
from staccato.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", status_code=201)
async def create_user(
    request: UserCreateRequest,
    user_id: str = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
) -> dict:
    user = await service.create_user(request)
    return user.to_api()


@router.get("")
async def list_users(
    family_id: str = Query("", alias="familyId"),
    limit: int | None = Query(None, gt=0),
    offset: int | None = Query(None, ge=0),
    user_id: str = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
) -> list[dict]:
    users = await service.get_users_by_family_id(family_id, limit=limit, offset=offset)
    return [u.to_api() for u in users]


@router.get("/{target_id}")
async def get_user(
    target_id: str,
    user_id: str = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
) -> dict:
    user = await service.get_user_by_id(target_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user.to_api()
