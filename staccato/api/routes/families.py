"""Family CRUD endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from staccato.api.deps import get_current_user, get_family_service
from staccato.contracts.family import FamilyCreateRequest, FamilyUpdateRequest
from staccato.services.family_service import FamilyService

router = APIRouter(prefix="/families", tags=["families"])


@router.get("")
async def list_families(
    limit: int | None = Query(None, gt=0),
    offset: int | None = Query(None, ge=0),
    user_id: str = Depends(get_current_user),
    service: FamilyService = Depends(get_family_service),
) -> list[dict]:
    """Families administered by the caller."""
    items = await service.get_families_by_primary_user_id(user_id, limit=limit, offset=offset)
    return [f.to_api() for f in items]


@router.post("", status_code=201)
async def create_family(
    request: FamilyCreateRequest,
    user_id: str = Depends(get_current_user),
    service: FamilyService = Depends(get_family_service),
) -> dict:
    family = await service.create_family(request, user_id)
    return family.to_api()


@router.get("/{family_id}")
async def get_family(
    family_id: str,
    include_members: bool = Query(True, alias="includeMembers"),
    user_id: str = Depends(get_current_user),
    service: FamilyService = Depends(get_family_service),
) -> dict:
    if include_members:
        response = await service.get_family_with_members(family_id)
        if response is None:
            raise HTTPException(status_code=404, detail="Family not found")
        return response.to_api()

    family = await service.get_family_by_id(family_id)
    if family is None:
        raise HTTPException(status_code=404, detail="Family not found")
    return family.to_api()


@router.put("/{family_id}")
async def update_family(
    family_id: str,
    request: FamilyUpdateRequest,
    user_id: str = Depends(get_current_user),
    service: FamilyService = Depends(get_family_service),
) -> dict:
    family = await service.update_family(family_id, request)
    return family.to_api()


@router.delete("/{family_id}", status_code=204)
async def delete_family(
    family_id: str,
    user_id: str = Depends(get_current_user),
    service: FamilyService = Depends(get_family_service),
) -> None:
    await service.delete_family(family_id, user_id)
