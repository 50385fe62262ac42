"""Family lifecycle: creation, membership view, updates and deletion."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from staccato.contracts.family import (
    Family,
    FamilyCreateRequest,
    FamilyMemberSummary,
    FamilySettings,
    FamilyUpdateRequest,
    FamilyWithMembersResponse,
)
from staccato.persistence.errors import DocumentNotFoundError
from staccato.persistence.repositories.family_repo import FamilyRepository
from staccato.persistence.repositories.user_repo import UserRepository
from staccato.services.errors import PermissionDeniedError, ValidationError

logger = logging.getLogger(__name__)


class FamilyService:
    def __init__(self, family_repo: FamilyRepository, user_repo: UserRepository):
        self._families = family_repo
        self._users = user_repo

    async def create_family(self, request: FamilyCreateRequest, primary_user_id: str) -> Family:
        """Create a family administered by ``primary_user_id``."""
        errors = request.validate_request()
        if errors:
            raise ValidationError(
                f"Family creation request validation failed: {', '.join(errors)}"
            )
        if not primary_user_id:
            raise ValidationError.missing_field("primaryUserId")

        now = datetime.now(timezone.utc)
        family = Family(
            id=str(uuid.uuid4()),
            name=request.name.strip(),
            primary_user_id=primary_user_id,
            settings=request.settings or FamilySettings(),
            created_at=now,
            updated_at=now,
        )
        created = await self._families.create(family)
        logger.info("Created family %s for %s", created.id, primary_user_id)
        return created

    async def get_family_by_id(self, family_id: str) -> Family | None:
        if not family_id:
            raise ValidationError.missing_field("id")
        return await self._families.get(family_id)

    async def get_family_with_members(self, family_id: str) -> FamilyWithMembersResponse | None:
        """Family plus its member summaries, primary user first."""
        if not family_id:
            raise ValidationError.missing_field("familyId")

        family = await self._families.get(family_id)
        if family is None:
            return None

        users = await self._users.find_by_family_id(family_id)
        response = FamilyWithMembersResponse(
            family=family,
            members=[FamilyMemberSummary.from_user(u) for u in users],
        )
        return response.with_sorted_members()

    async def get_families_by_primary_user_id(
        self,
        primary_user_id: str,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[Family]:
        if not primary_user_id:
            raise ValidationError.missing_field("primaryUserId")
        return await self._families.find_by_primary_user_id(
            primary_user_id, limit=limit, offset=offset
        )

    async def update_family(self, family_id: str, request: FamilyUpdateRequest) -> Family:
        """Read-modify-write: unspecified fields keep their stored value."""
        if not family_id:
            raise ValidationError.missing_field("familyId")
        errors = request.validate_request()
        if errors:
            raise ValidationError(
                f"Family update request validation failed: {', '.join(errors)}"
            )

        current = await self._families.get(family_id)
        if current is None:
            raise DocumentNotFoundError(self._families.collection_name, family_id)

        saved = await self._families.update(request.apply_to(current))
        logger.info("Updated family %s", saved.id)
        return saved

    async def delete_family(self, family_id: str, requesting_user_id: str) -> None:
        """Delete a family. Only its primary user may do so."""
        if not family_id:
            raise ValidationError.missing_field("familyId")
        if not requesting_user_id:
            raise ValidationError.missing_field("requestingUserId")

        family = await self._families.get(family_id)
        if family is None:
            raise DocumentNotFoundError(self._families.collection_name, family_id)
        if family.primary_user_id != requesting_user_id:
            raise PermissionDeniedError("Only the primary administrator can delete the family")

        await self._families.delete(family_id)
        logger.info("Deleted family %s (requested by %s)", family_id, requesting_user_id)
