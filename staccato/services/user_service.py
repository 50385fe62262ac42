"""User creation and lookup with business validation."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from urllib.parse import urlparse

from staccato.contracts.user import User, UserCreateRequest
from staccato.persistence.repositories.user_repo import UserRepository
from staccato.services.errors import ValidationError

logger = logging.getLogger(__name__)

MAX_DISPLAY_NAME_LENGTH = 100


class UserService:
    def __init__(self, user_repo: UserRepository):
        self._users = user_repo

    async def create_user(self, request: UserCreateRequest) -> User:
        """Validate ``request`` and store a new user under a fresh UUID."""
        _validate_create_request(request)

        now = datetime.now(timezone.utc)
        user = User(
            id=str(uuid.uuid4()),
            display_name=request.display_name.strip(),
            family_id=request.family_id,
            permission_level=request.permission_level,
            created_at=now,
            updated_at=now,
            profile_image_url=request.profile_image_url or None,
        )
        created = await self._users.create(user)
        logger.info("Created user %s in family %s", created.id, created.family_id)
        return created

    async def get_user_by_id(self, user_id: str) -> User | None:
        if not user_id:
            raise ValidationError.missing_field("id")
        return await self._users.get(user_id)

    async def get_users_by_family_id(
        self,
        family_id: str,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[User]:
        if not family_id:
            raise ValidationError.missing_field("familyId")
        return await self._users.find_by_family_id(family_id, limit=limit, offset=offset)


def _validate_create_request(request: UserCreateRequest) -> None:
    display_name = request.display_name.strip()
    if not display_name:
        raise ValidationError.missing_field("displayName")
    if len(display_name) > MAX_DISPLAY_NAME_LENGTH:
        raise ValidationError(
            f"Display name must be {MAX_DISPLAY_NAME_LENGTH} characters or less.",
            field="displayName",
            code="VALIDATION_FIELD_TOO_LONG",
        )

    if not request.family_id:
        raise ValidationError.missing_field("familyId")

    if request.profile_image_url:
        parsed = urlparse(request.profile_image_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValidationError.invalid_format("profileImageUrl", "valid HTTP or HTTPS URL")
