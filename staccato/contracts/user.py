"""Family member accounts.

Stored at: ``/users/{user_id}``
"""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from staccato.contracts.common import FirestoreModel
from staccato.contracts.enums import UserPermissionLevel


class User(FirestoreModel):
    """A member of a family."""

    id: str = Field(..., min_length=1)
    display_name: str = Field(..., min_length=1)
    family_id: str = Field(..., min_length=1)
    permission_level: UserPermissionLevel
    created_at: datetime
    updated_at: datetime | None = None
    profile_image_url: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.permission_level.is_admin

    @property
    def is_adult(self) -> bool:
        return self.permission_level.is_adult

    @property
    def can_manage_users(self) -> bool:
        return self.permission_level.can_manage_users


class UserCreateRequest(FirestoreModel):
    """Payload of ``POST /api/users``. Business rules live in UserService."""

    display_name: str
    family_id: str
    permission_level: UserPermissionLevel
    profile_image_url: str | None = None
